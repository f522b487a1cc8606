"""Switchboard: conversation orchestrator for support chat.

Routes customer messages to capability providers, runs in-band identity
verification, and escalates to human representatives through handoff
tickets.
"""

__version__ = "0.1.0"

"""Conversation state: sessions, their storage and their lifecycle."""

"""Interactive console for trying the orchestrator against mock providers.

Usage:
    python -m switchboard [--session-id ID] [--metrics]

Console commands:
    /reply <text>   Answer the open handoff ticket as a representative
    /unlock         Reset a locked-out session
    /end            End the session and start a new one
    /quit           Exit
"""

import argparse
import asyncio
import sys
from uuid import uuid4

from prometheus_client import start_http_server

from switchboard.bootstrap import bootstrap
from switchboard.config import get_settings
from switchboard.errors import SwitchboardError
from switchboard.orchestration.models import OutboundResponse
from switchboard.orchestration.orchestrator import Orchestrator
from switchboard.providers.base import CustomerNotifier


class ConsoleNotifier(CustomerNotifier):
    """Prints out-of-band messages to the console."""

    async def notify(self, session_id: str, message: str) -> None:
        print(f"\n[notification for {session_id}] {message}\nYou: ", end="", flush=True)


def _print_response(response: OutboundResponse) -> None:
    print(f"Assistant: {response.message}")
    details = [f"action={response.required_action.value}"]
    if response.category:
        details.append(f"category={response.category.value}")
    if response.ticket_id:
        details.append(f"ticket={response.ticket_id}")
    print(f"  ({', '.join(details)})")
    for suggestion in response.suggested_actions:
        print(f"  - {suggestion.suggested_question}")


async def _reply_as_representative(
    orchestrator: Orchestrator, session_id: str, text: str
) -> None:
    async with orchestrator.sessions.session(session_id) as session:
        ticket_id = session.active_ticket_id
    if ticket_id is None:
        print("No open handoff ticket for this session.")
        return
    outcome = await orchestrator.handoff.record_resolution(ticket_id, text)
    print(f"Representative reply {outcome.value} on ticket {ticket_id}.")


async def run_console(session_id: str) -> None:
    """Read messages from stdin until /quit or EOF."""
    orchestrator, _ = bootstrap(notifier=ConsoleNotifier())

    print("Utility billing assistant. Type /quit to exit.")
    print(f"Session: {session_id}\n")

    try:
        while True:
            try:
                line = (await asyncio.to_thread(input, "You: ")).strip()
            except EOFError:
                break
            if not line:
                continue

            try:
                if line == "/quit":
                    break
                if line == "/unlock":
                    await orchestrator.unlock(session_id)
                    print("Session unlocked.")
                elif line == "/end":
                    await orchestrator.end_session(session_id)
                    session_id = str(uuid4())
                    print(f"Session ended. New session: {session_id}")
                elif line.startswith("/reply "):
                    await _reply_as_representative(
                        orchestrator, session_id, line.removeprefix("/reply ").strip()
                    )
                else:
                    _print_response(await orchestrator.handle_message(session_id, line))
            except SwitchboardError as e:
                print(f"Error: {e.message}")
    finally:
        await orchestrator.close()


def main() -> int:
    """Entry point for ``python -m switchboard``."""
    parser = argparse.ArgumentParser(
        description="Switchboard conversation orchestrator - interactive console"
    )
    parser.add_argument(
        "--session-id",
        default=None,
        help="Session to continue (default: a new random session)",
    )
    parser.add_argument(
        "--metrics",
        action="store_true",
        help="Expose Prometheus metrics on the configured port",
    )
    args = parser.parse_args()

    if args.metrics:
        metrics_config = get_settings().observability.metrics
        start_http_server(metrics_config.port)

    try:
        asyncio.run(run_console(args.session_id or str(uuid4())))
    except KeyboardInterrupt:
        print("\nGoodbye!")
    return 0


if __name__ == "__main__":
    sys.exit(main())

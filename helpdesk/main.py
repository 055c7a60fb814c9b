"""CLI entry point for the helpdesk agent.

A terminal chat loop for testing and development. For production, use the
FastAPI server (helpdesk/server.py).

Usage:
    python -m helpdesk.main            # normal mode (quiet)
    python -m helpdesk.main --debug    # debug mode (shows API calls)
"""

from __future__ import annotations

import argparse
import logging

from helpdesk.config import Settings
from helpdesk.context import build_context
from helpdesk.services.chat import generate_conversation_id

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    root_level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=root_level,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )

    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger("helpdesk").setLevel(logging.DEBUG if debug else logging.INFO)


def main():
    """Run the interactive CLI chat loop."""
    parser = argparse.ArgumentParser(description="Helpdesk agent CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    args = parser.parse_args()

    _configure_logging(debug=args.debug)
    context = build_context(Settings.from_env())

    print("\n" + "=" * 60)
    print("  Helpdesk Agent - CLI Chat")
    print("=" * 60)
    print("  Type your message and press Enter.")
    print("  Commands: 'quit' to exit, 'new' for a new conversation.")
    print("=" * 60 + "\n")

    conversation_id = generate_conversation_id()
    logger.info("Started new conversation: %s", conversation_id)

    try:
        while True:
            try:
                user_input = input("You: ").strip()
            except (KeyboardInterrupt, EOFError):
                print("\n\nGoodbye!")
                break

            if not user_input:
                continue

            if user_input.lower() in ("exit", "quit", "q"):
                print("\nGoodbye! Have a great day!")
                break

            if user_input.lower() == "new":
                conversation_id = generate_conversation_id()
                print(f"\n>> New conversation started: {conversation_id}\n")
                continue

            try:
                turn = context.chat.handle_turn(user_input, conversation_id)
                if turn.tools_used:
                    logger.info("Tools used: %s", ", ".join(turn.tools_used))
                print(f"\nAgent: {turn.response}\n")
            except KeyboardInterrupt:
                print("\n\nGoodbye!")
                break
            except Exception as e:
                logger.exception("Error processing message")
                print(f"\nAgent: I'm sorry, something went wrong: {e}")
                print("       Please try again or type 'new' to start a fresh conversation.\n")
    finally:
        context.close()


if __name__ == "__main__":
    main()

"""Interactive command line for multi-turn sessions."""

from __future__ import annotations

import argparse
import asyncio
import logging
import uuid
from typing import Any, Dict, Optional

from reflectAgent.config import get_settings
from reflectAgent.graph.plan import get_progress_string
from reflectAgent.hitl import console_prompt
from reflectAgent.runtime import build_application
from reflectAgent.session import SessionManager
from reflectAgent.utils.error_handler import SessionBusyError
from reflectAgent.utils.logging_utils import log_error, setup_logging

HELP_TEXT = """Commands:
  /exit, /quit      - Exit
  /clear            - Delete the current session and start a new one
  /status           - Show the current session
  /sessions         - List saved sessions
  /delete <id>      - Delete a saved session (id prefix accepted)
  /mode [chat|agent] - Show or switch the mode
  /help             - Show this help
"""


def _print_result(result: Dict[str, Any]) -> None:
    plan = result.get("plan")
    if plan and len(plan.get("steps") or []) > 1:
        print(f"[plan] {plan.get('goal')}")
        for step in plan["steps"]:
            print(f"  {step['id']}. [{step.get('status', 'pending')}] {step['description']}")
    print(f"Agent> {result.get('response') or '(no response)'}")
    if result.get("error"):
        print(f"[error] {result['error']}")
    print(f"[iterations: {result.get('iterations', 0)}]")


def _print_status(manager: SessionManager, session_id: str, mode: str) -> None:
    info = manager.get_session_info(session_id)
    print(f"\nSession: {session_id}")
    print(f"  Mode: {mode}")
    if info is None:
        print("  No turns yet\n")
        return
    state = {"plan": {"steps": [None] * info["total_steps"]}, "current_step": info["current_step"]}
    print(f"  Messages: {info['message_count']} ({info['summarized_count']} summarized)")
    print(f"  Last goal: {info.get('goal') or 'N/A'}")
    print(f"  Progress: {get_progress_string(state)}")
    print(f"  Iterations: {info['iterations']} (session total {info['total_iterations']})")
    if info.get("error"):
        print(f"  Last error: {info['error']}")
    if info.get("pending_tool_call"):
        print(f"  Waiting for approval: {info['pending_tool_call'].get('name')}")
    print()


def _resolve_session(manager: SessionManager, prefix: str) -> Optional[str]:
    matching = [s["session_id"] for s in manager.list_sessions() if s["session_id"].startswith(prefix)]
    if len(matching) == 1:
        return matching[0]
    if not matching:
        print(f"No session starts with '{prefix}'.")
    else:
        print(f"{len(matching)} sessions match '{prefix}', use a longer prefix.")
    return None


async def async_main(session_id: Optional[str] = None, mode: str = "agent") -> None:
    settings = get_settings()
    logger = setup_logging(
        logging.INFO, settings.observability.log_dir, settings.observability.log_prompt_max_length
    )
    manager = build_application(settings=settings, prompt_fn=console_prompt)

    session_id = session_id or str(uuid.uuid4())
    print("reflectAgent ready.")
    print(f"Session: {session_id[:8]}... | Mode: {mode}")
    print(HELP_TEXT)

    info = manager.get_session_info(session_id)
    if info and info.get("pending_tool_call"):
        print("Resuming the action that was waiting for approval...")
        _print_result(await manager.resume(session_id))

    loop = asyncio.get_running_loop()
    try:
        while True:
            try:
                user_input = (await loop.run_in_executor(None, input, "You> ")).strip()
            except (KeyboardInterrupt, EOFError):
                print("\nGoodbye!")
                break

            if not user_input:
                continue

            command = user_input.lower()
            if command in {"/exit", "/quit"}:
                print("Session ended.")
                break

            if command == "/help":
                print(HELP_TEXT)
                continue

            if command == "/clear":
                manager.delete_session(session_id)
                session_id = str(uuid.uuid4())
                print(f"Cleared. New session: {session_id[:8]}...")
                logger.info(f"Session cleared, new session_id: {session_id}")
                continue

            if command == "/status":
                _print_status(manager, session_id, mode)
                continue

            if command == "/sessions":
                sessions = manager.list_sessions()
                if not sessions:
                    print("No saved sessions.")
                for i, item in enumerate(sessions, 1):
                    print(
                        f"{i}. {item['session_id'][:16]}... | {item['mode']} | "
                        f"messages: {item['message_count']} | updated: {item['updated_at'][:16]}"
                    )
                continue

            if command.startswith("/delete"):
                prefix = user_input[len("/delete"):].strip()
                if not prefix:
                    print("Usage: /delete <session id prefix>")
                    continue
                target = _resolve_session(manager, prefix)
                if target:
                    manager.delete_session(target)
                    print(f"Deleted {target[:16]}...")
                    if target == session_id:
                        session_id = str(uuid.uuid4())
                        print(f"New session: {session_id[:8]}...")
                continue

            if command.startswith("/mode"):
                requested = command[len("/mode"):].strip()
                if not requested:
                    mode = "chat" if mode == "agent" else "agent"
                elif requested in ("chat", "agent"):
                    mode = requested
                else:
                    print("Usage: /mode [chat|agent]")
                    continue
                print(f"Mode: {mode}")
                continue

            if command.startswith("/"):
                print(f"Unknown command: {user_input}")
                continue

            try:
                result = await manager.chat(session_id, mode, user_input)
            except SessionBusyError as e:
                print(e.user_message)
                continue
            except Exception as e:
                log_error(logger, e, "processing user message")
                print(f"[error] {e}")
                continue
            _print_result(result)
    finally:
        await manager.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Plan, execute and reflect agent")
    parser.add_argument("--session", help="Continue an existing session id")
    parser.add_argument("--mode", choices=["chat", "agent"], default="agent")
    args = parser.parse_args()
    asyncio.run(async_main(args.session, args.mode))


if __name__ == "__main__":
    main()

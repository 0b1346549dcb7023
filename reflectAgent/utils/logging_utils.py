"""Logging utilities for reflectAgent."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "reflectAgent"

# Set by setup_logging(); None until file logging is configured
LOG_FILE: Optional[Path] = None

# Characters of a system prompt shown at INFO level; set by setup_logging()
PROMPT_PREVIEW_LENGTH = 500


def setup_logging(level: int = logging.INFO, log_dir: str = "logs", prompt_max_length: int = 500) -> logging.Logger:
    """Setup logging configuration for reflectAgent.

    Args:
        level: Console logging level floor (console never logs below WARNING)
        log_dir: Directory for the timestamped log file
        prompt_max_length: Characters of each system prompt kept in the INFO preview

    Returns:
        Configured logger instance
    """
    global LOG_FILE, PROMPT_PREVIEW_LENGTH

    PROMPT_PREVIEW_LENGTH = prompt_max_length

    logs_dir = Path(log_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)
    LOG_FILE = logs_dir / f"reflectagent_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)  # Capture all child logs
    logger.propagate = False

    logger.handlers = []

    # File handler (detailed logs)
    file_handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    file_handler.setFormatter(file_formatter)

    # Console handler (user-friendly)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(max(level, logging.WARNING))
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    logger.info("=" * 80)
    logger.info("reflectAgent session started")
    logger.info(f"Log file: {LOG_FILE}")
    logger.info("=" * 80)

    return logger


def log_tool_call(logger: logging.Logger, tool_name: str, args: Dict[str, Any]) -> None:
    """Log tool invocation.

    Args:
        logger: Logger instance
        tool_name: Name of the tool being called
        args: Tool arguments
    """
    logger.info(f"Tool call: {tool_name}")
    logger.debug(f"  Arguments: {json.dumps(args, ensure_ascii=False, default=str)}")


def log_tool_result(logger: logging.Logger, tool_name: str, result: Any, success: bool = True) -> None:
    """Log tool execution result.

    Args:
        logger: Logger instance
        tool_name: Name of the tool
        result: Tool execution result
        success: Whether the tool executed successfully
    """
    status = "✓ Success" if success else "✗ Failed"
    logger.info(f"Tool result: {tool_name} - {status}")

    result_str = str(result)
    if len(result_str) > 500:
        result_str = result_str[:500] + "... (truncated)"
    logger.debug(f"  Result: {result_str}")


def log_error(logger: logging.Logger, error: Exception, context: str = "") -> None:
    """Log error with context.

    Args:
        logger: Logger instance
        error: Exception instance
        context: Additional context about where the error occurred
    """
    logger.error(f"Error occurred: {type(error).__name__}: {str(error)}")
    if context:
        logger.error(f"  Context: {context}")
    logger.debug("Full traceback:", exc_info=error)


def log_user_message(logger: logging.Logger, content: str) -> None:
    logger.info(f"User input: {content[:100]}{'...' if len(content) > 100 else ''}")


def log_agent_response(logger: logging.Logger, content: str) -> None:
    logger.info(f"Agent response: {content[:100]}{'...' if len(content) > 100 else ''}")


def log_prompt(logger: logging.Logger, phase: str, prompt: str, max_length: Optional[int] = None) -> None:
    """Log system prompt being used.

    Args:
        logger: Logger instance
        phase: Phase name (planner/executor/reflector/summarizer)
        prompt: System prompt content
        max_length: Characters kept in the INFO preview (defaults to PROMPT_PREVIEW_LENGTH);
            the full prompt goes to DEBUG
    """
    max_length = PROMPT_PREVIEW_LENGTH if max_length is None else max_length
    preview = prompt if len(prompt) <= max_length else prompt[:max_length] + "... (truncated)"
    logger.info(f"System prompt for {phase} ({len(prompt)} chars):")
    logger.info(preview)
    logger.debug(prompt)


def log_routing_decision(logger: logging.Logger, from_node: str, decision: str, reason: str = "") -> None:
    """Log routing decision.

    Args:
        logger: Logger instance
        from_node: Source phase making the decision
        decision: Routing destination
        reason: Reason for the routing decision
    """
    logger.info(f"Routing decision from {from_node}: → {decision}")
    if reason:
        logger.info(f"  → Reason: {reason}")


def log_plan_created(logger: logging.Logger, plan: Dict[str, Any]) -> None:
    """Log plan creation details.

    Args:
        logger: Logger instance
        plan: Plan dictionary
    """
    logger.info(f"\n{'='*80}")
    logger.info("Plan created:")
    logger.info(f"  Goal: {plan.get('goal', 'N/A')}")
    logger.info(f"  Query type: {plan.get('query_type', 'complex')}")
    logger.info(f"  Complexity: {plan.get('estimated_complexity', 'N/A')}")
    logger.info(f"  Total steps: {len(plan.get('steps', []))}")
    for step in plan.get('steps', []):
        logger.info(f"  Step {step.get('id')}: {step.get('description')}")
        logger.info(f"    - Tools: {step.get('tools_needed', [])}")
    logger.info(f"{'='*80}\n")


def log_step_execution(logger: logging.Logger, step_idx: int, step: Dict[str, Any], retries: int, max_retries: int) -> None:
    """Log step execution details.

    Args:
        logger: Logger instance
        step_idx: Current step index (0-based)
        step: Step dictionary
        retries: Retries already spent on this step
        max_retries: Maximum allowed retries
    """
    logger.info(f"\n{'='*80}")
    logger.info(f"Executing Step {step_idx + 1}:")
    logger.info(f"  ID: {step.get('id')}")
    logger.info(f"  Description: {step.get('description')}")
    logger.info(f"  Tools needed: {step.get('tools_needed', [])}")
    logger.info(f"  Retries: {retries}/{max_retries}")
    logger.info(f"{'='*80}\n")


def log_node_entry(logger: logging.Logger, node_name: str, state: Dict[str, Any]) -> None:
    """Log node entry with current state.

    Args:
        logger: Logger instance
        node_name: Name of the node being entered
        state: Current state dictionary
    """
    logger.info(f"\n{'#'*80}")
    logger.info(f"# ENTERING NODE: {node_name}")
    logger.info(f"{'#'*80}")
    logger.info("State snapshot:")
    logger.info(f"  - session_id: {state.get('session_id') or 'N/A'}")
    logger.info(f"  - mode: {state.get('mode')}")
    logger.info(f"  - iterations: {state.get('iterations', 0)}/{state.get('max_iterations')}")
    logger.info(f"  - current_step: {state.get('current_step', 0)}")
    logger.info(f"  - messages: {len(state.get('messages', []))}")
    logger.info(f"  - step_results: {len(state.get('step_results', {}))}")
    logger.info(f"  - pending_tool_call: {bool(state.get('pending_tool_call'))}")
    logger.info(f"  - error: {state.get('error')}")


def log_node_exit(logger: logging.Logger, node_name: str, updates: Dict[str, Any]) -> None:
    """Log node exit with state updates.

    Args:
        logger: Logger instance
        node_name: Name of the node being exited
        updates: State updates returned by the node
    """
    logger.info(f"# EXITING NODE: {node_name}")
    logger.info("State updates:")
    for key, value in updates.items():
        if key == "messages":
            logger.info(f"  - messages: +{len(value)} new messages")
        else:
            logger.info(f"  - {key}: {value}")

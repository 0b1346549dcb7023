"""Human approval gate for dangerous tool calls."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Union

LOGGER = logging.getLogger("reflectAgent.hitl")

APPROVE_ANSWERS = {"y", "yes", "approve", "approved", "ok", "okay", "sure", "allow", "true", "1"}


@dataclass
class ApprovalRequest:
    """What the reviewer sees."""

    tool_name: str
    args: Dict[str, Any] = field(default_factory=dict)
    reason: str = ""
    risk_level: str = "medium"
    tool_call_id: str = ""
    step_id: Optional[int] = None


@dataclass
class ApprovalVerdict:
    approved: bool
    reason: str  # approved | rejected | expired
    answer: str = ""


PromptFn = Callable[[ApprovalRequest], Union[str, bool, Awaitable[Union[str, bool]]]]


def normalize_answer(answer: Any) -> bool:
    """Map a free-text reviewer answer to approve (True) or reject (False).

    Unrecognized answers reject.
    """
    if isinstance(answer, bool):
        return answer
    if answer is None:
        return False
    return str(answer).strip().lower() in APPROVE_ANSWERS


def format_request(request: ApprovalRequest) -> str:
    args = json.dumps(request.args, ensure_ascii=False, indent=2, default=str)
    lines = [
        "",
        "=" * 60,
        f"Approval required: {request.tool_name} (risk: {request.risk_level})",
    ]
    if request.reason:
        lines.append(f"Reason: {request.reason}")
    lines.append(f"Arguments:\n{args}")
    lines.append("=" * 60)
    return "\n".join(lines)


def console_prompt(request: ApprovalRequest) -> str:
    print(format_request(request))
    return input("Approve this action? [y/N]: ")


class ApprovalGate:
    """Presents a pending tool call to a reviewer and waits for the verdict.

    ``prompt_fn`` may be sync or async. Sync prompts run in a worker thread so
    a blocking console read never stalls other sessions. With a timeout, an
    unanswered request is rejected with reason ``expired``.

    A thread cannot be interrupted, so an expired sync prompt keeps its worker
    thread blocked until the prompt returns (for ``console_prompt``, until the
    user presses Enter). Its late answer is discarded. Use an async prompt when
    expiry must also release the reviewer.
    """

    def __init__(self, prompt_fn: Optional[PromptFn] = None, *, timeout: Optional[float] = None) -> None:
        self.prompt_fn = prompt_fn or console_prompt
        self.timeout = timeout

    async def _ask(self, request: ApprovalRequest) -> Any:
        if inspect.iscoroutinefunction(self.prompt_fn):
            return await self.prompt_fn(request)
        answer = await asyncio.to_thread(self.prompt_fn, request)
        if inspect.isawaitable(answer):
            answer = await answer
        return answer

    async def request(self, request: ApprovalRequest) -> ApprovalVerdict:
        LOGGER.info(f"Approval requested for {request.tool_name} (risk={request.risk_level})")
        try:
            if self.timeout:
                answer = await asyncio.wait_for(self._ask(request), timeout=self.timeout)
            else:
                answer = await self._ask(request)
        except asyncio.TimeoutError:
            LOGGER.warning(f"Approval for {request.tool_name} expired after {self.timeout}s")
            if not inspect.iscoroutinefunction(self.prompt_fn):
                LOGGER.warning("The expired prompt is still waiting for input; its answer will be ignored")
            return ApprovalVerdict(approved=False, reason="expired")

        approved = normalize_answer(answer)
        LOGGER.info(f"Approval for {request.tool_name}: {'approved' if approved else 'rejected'}")
        return ApprovalVerdict(
            approved=approved,
            reason="approved" if approved else "rejected",
            answer="" if answer is None else str(answer),
        )

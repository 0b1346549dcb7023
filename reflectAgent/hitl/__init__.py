"""Human-in-the-loop approval for dangerous tool calls."""

from .approval_checker import ApprovalChecker, ApprovalDecision
from .approval_gate import (
    ApprovalGate,
    ApprovalRequest,
    ApprovalVerdict,
    console_prompt,
    format_request,
    normalize_answer,
)

__all__ = [
    "ApprovalChecker",
    "ApprovalDecision",
    "ApprovalGate",
    "ApprovalRequest",
    "ApprovalVerdict",
    "console_prompt",
    "format_request",
    "normalize_answer",
]

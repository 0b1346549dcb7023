"""Risk grading for tool calls shown at the approval gate.

Whether a call needs approval is decided by the tool registry's static
classification. This module only grades how risky a given call looks so the
reviewer sees a reason and a risk level next to the arguments.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml

LOGGER = logging.getLogger("reflectAgent.hitl")

RISK_LEVELS_ORDER = ["critical", "high", "medium", "low"]


@dataclass
class ApprovalDecision:
    """Risk assessment for one tool call."""

    needs_approval: bool
    reason: str = ""
    risk_level: str = "low"  # low, medium, high, critical


class ApprovalChecker:
    """Grades tool calls with three rule layers (highest priority first):

    1. Custom per-tool checkers registered in code
    2. Global risk patterns from the YAML rules file (any tool, any argument)
    3. Builtin rules for shell_command, http_request, write_file, delete_file
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Args:
            config_path: Optional YAML file with ``global.risk_patterns``
        """
        self.config_path = Path(config_path) if config_path else None
        self.rules = self._load_config() if self.config_path else {}
        self.custom_checkers: Dict[str, Callable[[dict], ApprovalDecision]] = {}
        self.global_patterns = self._load_global_patterns()

    def _load_config(self) -> dict:
        if not self.config_path or not self.config_path.exists():
            return {}

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            LOGGER.warning(f"Failed to load approval rules from {self.config_path}: {e}")
            return {}

    def _load_global_patterns(self) -> Dict[str, Any]:
        risk_patterns = self.rules.get("global", {}).get("risk_patterns", {})

        patterns_by_level = {}
        for level, pattern_config in risk_patterns.items():
            if isinstance(pattern_config, dict):
                patterns_by_level[level] = {
                    "patterns": pattern_config.get("patterns", []),
                    "reason": pattern_config.get("reason", f"Matches global {level} risk pattern"),
                }
        return patterns_by_level

    def register_checker(self, tool_name: str, checker: Callable[[dict], ApprovalDecision]):
        self.custom_checkers[tool_name] = checker

    def check(self, tool_name: str, args: dict) -> ApprovalDecision:
        """Grade a tool call.

        Args:
            tool_name: Tool name
            args: Tool arguments

        Returns:
            ApprovalDecision (needs_approval=False when no rule matched)
        """
        if tool_name in self.custom_checkers:
            return self.custom_checkers[tool_name](args)

        global_decision = self._check_global_patterns(args)
        if global_decision.needs_approval:
            return global_decision

        return self._check_builtin_rules(tool_name, args)

    def assess(self, tool_name: str, args: dict) -> ApprovalDecision:
        """Grade a call already known to be dangerous; always yields a reason."""

        decision = self.check(tool_name, args)
        if decision.needs_approval:
            return decision
        return ApprovalDecision(
            needs_approval=True,
            reason=f"{tool_name} is classified as a dangerous tool",
            risk_level="medium",
        )

    def _check_global_patterns(self, args: dict) -> ApprovalDecision:
        if not self.global_patterns:
            return ApprovalDecision(needs_approval=False)

        args_str = " ".join(str(v) for v in args.values())

        for risk_level in RISK_LEVELS_ORDER:
            if risk_level not in self.global_patterns:
                continue
            pattern_config = self.global_patterns[risk_level]
            for pattern in pattern_config["patterns"]:
                if re.search(pattern, args_str, re.IGNORECASE):
                    return ApprovalDecision(
                        needs_approval=True,
                        reason=pattern_config["reason"],
                        risk_level=risk_level,
                    )

        return ApprovalDecision(needs_approval=False)

    def _check_builtin_rules(self, tool_name: str, args: dict) -> ApprovalDecision:
        if tool_name == "shell_command":
            return self._check_shell_command(str(args.get("command", "")))

        if tool_name == "http_request":
            return self._check_http_request(str(args.get("url", "")), str(args.get("method", "GET")))

        if tool_name == "delete_file":
            if args.get("recursive"):
                return ApprovalDecision(True, "Recursive directory deletion", "high")
            return ApprovalDecision(True, f"Deletes {args.get('path', 'a file')}", "medium")

        if tool_name == "write_file":
            return ApprovalDecision(True, f"Writes to {args.get('path', 'a file')}", "low")

        return ApprovalDecision(needs_approval=False)

    def _check_shell_command(self, command: str) -> ApprovalDecision:
        high_risk_patterns = [
            r"\brm\s+-rf\b",
            r"\bsudo\b",
            r"\bchmod\s+777\b",
            r"\bmkfs\b",
            r"\bdd\b.*\bif=/dev/",
            r">\s*/dev/",
        ]
        for pattern in high_risk_patterns:
            if re.search(pattern, command, re.IGNORECASE):
                return ApprovalDecision(True, "High-risk shell operation", "high")

        medium_risk_patterns = [
            r"\bcurl\b",
            r"\bwget\b",
            r"\bgit\s+clone\b",
            r"\bpip\s+install\b",
            r"\bnpm\s+install\b",
        ]
        for pattern in medium_risk_patterns:
            if re.search(pattern, command, re.IGNORECASE):
                return ApprovalDecision(True, "Network or install operation", "medium")

        return ApprovalDecision(True, "Runs a shell command", "medium")

    def _check_http_request(self, url: str, method: str) -> ApprovalDecision:
        local_patterns = [
            r"localhost",
            r"127\.0\.0\.1",
            r"192\.168\.",
            r"//10\.",
            r"172\.(1[6-9]|2[0-9]|3[0-1])\.",
        ]
        for pattern in local_patterns:
            if re.search(pattern, url, re.IGNORECASE):
                return ApprovalDecision(True, "Accesses a local or private network address", "high")

        if method.upper() == "POST":
            return ApprovalDecision(True, "Sends data to an external service", "medium")
        return ApprovalDecision(True, "Fetches an external URL", "low")

"""Execute shell commands in the agent workspace."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Annotated, Optional

from langchain_core.tools import tool

LOGGER = logging.getLogger(__name__)

MAX_OUTPUT_CHARS = 2000


@tool
def shell_command(
    command: Annotated[str, "Shell command to execute (e.g. 'ls -la', 'wc -l notes.txt')"],
    cwd: Annotated[Optional[str], "Working directory relative to the workspace"] = None,
    timeout: Annotated[int, "Timeout in seconds"] = 30,
) -> str:
    """Execute a shell command (requires approval).

    Commands run with the current user's permissions inside the workspace
    directory (AGENT_WORKSPACE_PATH, or the current directory).

    Examples:
        shell_command("ls -la")
        shell_command("python --version")
    """
    workspace = Path(os.environ.get("AGENT_WORKSPACE_PATH") or os.getcwd()).resolve()
    workdir = (workspace / cwd).resolve() if cwd else workspace
    if not workdir.is_dir():
        return f"Error: Working directory not found: {cwd}"

    env = dict(os.environ)
    # Put the running interpreter first so "python" resolves to the same environment
    python_dir = Path(sys.executable).parent
    env["PATH"] = f"{python_dir}{os.pathsep}{env.get('PATH', '')}"

    LOGGER.info(f"Executing shell command: {command}")
    try:
        result = subprocess.run(
            command,
            cwd=workdir,
            env=env,
            capture_output=True,
            text=True,
            timeout=timeout,
            shell=True,
        )
    except subprocess.TimeoutExpired:
        LOGGER.warning(f"Command timed out after {timeout}s: {command}")
        return f"Command timed out after {timeout} seconds"

    output = result.stdout or result.stderr or "(no output)"
    if len(output) > MAX_OUTPUT_CHARS:
        output = output[:MAX_OUTPUT_CHARS] + f"\n... [truncated, {len(output)} total characters]"

    if result.returncode != 0:
        return f"Error (exit code {result.returncode}):\n{output}"
    return f"Command executed:\n{output}"


__all__ = ["shell_command"]

"""File operation tools confined to the agent workspace."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Annotated

from langchain_core.tools import tool

LOGGER = logging.getLogger(__name__)

__all__ = ["read_file", "list_directory", "write_file", "delete_file", "resolve_workspace_path"]

MAX_READ_CHARS = 3000


def _workspace_root() -> Path:
    """Workspace from AGENT_WORKSPACE_PATH, falling back to the current directory."""
    return Path(os.environ.get("AGENT_WORKSPACE_PATH") or os.getcwd()).resolve()


def resolve_workspace_path(path: str) -> Path:
    """Resolve ``path`` inside the workspace.

    Raises:
        PermissionError: The resolved path escapes the workspace
    """
    root = _workspace_root()
    target = (root / path).resolve()
    try:
        target.relative_to(root)
    except ValueError as e:
        raise PermissionError(f"Access denied. Path is outside the workspace: {path}") from e
    return target


def _format_size(size: int) -> str:
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


@tool
def read_file(path: Annotated[str, "File path relative to the workspace root"]) -> str:
    """Read the contents of a text file. Large files are truncated.

    Examples:
        read_file("notes/todo.md")
    """
    try:
        target = resolve_workspace_path(path)
    except PermissionError as e:
        return f"Error: {e}"

    if not target.exists():
        return f"Error: File not found: {path}"
    if not target.is_file():
        return f"Error: Not a file: {path}"

    try:
        content = target.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return f"Error: {path} is not a UTF-8 text file"

    size = target.stat().st_size
    if len(content) > MAX_READ_CHARS:
        content = (
            content[:MAX_READ_CHARS]
            + f"\n\n... [truncated, showing {MAX_READ_CHARS}/{len(content)} characters]"
        )
    LOGGER.info(f"Read file: {path} ({size} bytes)")
    return f"=== {path} ({size} bytes) ===\n{content}"


@tool
def list_directory(path: Annotated[str, "Directory path relative to the workspace root"] = ".") -> str:
    """List files and directories with their sizes.

    Examples:
        list_directory(".")
        list_directory("src")
    """
    try:
        target = resolve_workspace_path(path)
    except PermissionError as e:
        return f"Error: {e}"

    if not target.exists():
        return f"Error: Directory not found: {path}"
    if not target.is_dir():
        return f"Error: Not a directory: {path}"

    entries = sorted(target.iterdir(), key=lambda p: (not p.is_dir(), p.name.lower()))
    if not entries:
        return f"Directory {path} is empty"

    lines = [f"Contents of {path} ({len(entries)} items):"]
    for entry in entries:
        if entry.is_dir():
            lines.append(f"  [dir]  {entry.name}/")
        else:
            lines.append(f"  [file] {entry.name} ({_format_size(entry.stat().st_size)})")
    return "\n".join(lines)


@tool
def write_file(
    path: Annotated[str, "File path relative to the workspace root"],
    content: Annotated[str, "Content to write"],
    append: Annotated[bool, "Append instead of overwriting"] = False,
) -> str:
    """Write content to a file, creating parent directories as needed (requires approval).

    WARNING: overwrites existing files unless append is true.
    """
    try:
        target = resolve_workspace_path(path)
    except PermissionError as e:
        return f"Error: {e}"

    target.parent.mkdir(parents=True, exist_ok=True)
    mode = "a" if append else "w"
    with open(target, mode, encoding="utf-8") as f:
        f.write(content)

    LOGGER.info(f"{'Appended' if append else 'Wrote'} file: {path} ({len(content)} chars)")
    return f"{'Appended' if append else 'Wrote'} {len(content)} characters to {path}"


@tool
def delete_file(
    path: Annotated[str, "File or directory path relative to the workspace root"],
    recursive: Annotated[bool, "Delete directories recursively"] = False,
) -> str:
    """Delete a file or directory (requires approval). Use with extreme caution."""
    try:
        target = resolve_workspace_path(path)
    except PermissionError as e:
        return f"Error: {e}"

    if target == _workspace_root():
        return "Error: Refusing to delete the workspace root"
    if not target.exists():
        return f"Error: File not found: {path}"

    if target.is_dir():
        if not recursive:
            return f"Error: {path} is a directory. Use recursive=true to delete directories."
        shutil.rmtree(target)
        LOGGER.info(f"Deleted directory: {path}")
        return f"Deleted directory: {path}"

    target.unlink()
    LOGGER.info(f"Deleted file: {path}")
    return f"Deleted file: {path}"

"""Builtin tools shipped with reflectAgent."""

from .calculator import calculator
from .file_ops import delete_file, list_directory, read_file, write_file
from .http_request import http_request
from .now import get_current_time
from .run_shell_command import shell_command
from .weather import get_weather
from .web_search import web_search

SAFE_TOOLS = [calculator, get_weather, read_file, list_directory, get_current_time, web_search]
DANGEROUS_TOOLS = [write_file, shell_command, delete_file, http_request]

__all__ = [
    "SAFE_TOOLS",
    "DANGEROUS_TOOLS",
    "calculator",
    "delete_file",
    "get_current_time",
    "get_weather",
    "http_request",
    "list_directory",
    "read_file",
    "shell_command",
    "web_search",
    "write_file",
]

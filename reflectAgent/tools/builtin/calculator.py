"""Arithmetic expression evaluation without eval()."""

from __future__ import annotations

import ast
import math
import operator
from typing import Annotated

from langchain_core.tools import tool

__all__ = ["calculator", "evaluate_expression"]

_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

_FUNCTIONS = {
    "sqrt": math.sqrt,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "log": math.log,
    "log10": math.log10,
    "exp": math.exp,
    "abs": abs,
    "round": round,
    "floor": math.floor,
    "ceil": math.ceil,
    "min": min,
    "max": max,
}

_CONSTANTS = {"pi": math.pi, "e": math.e}

# Exponents above this are refused to keep evaluation bounded
_MAX_EXPONENT = 10_000


def _eval_node(node: ast.AST):
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left = _eval_node(node.left)
        right = _eval_node(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > _MAX_EXPONENT:
            raise ValueError("exponent too large")
        return _BINARY_OPS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand))
    if isinstance(node, ast.Name) and node.id in _CONSTANTS:
        return _CONSTANTS[node.id]
    if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name) and node.value.id in ("math", "Math"):
        if node.attr in _CONSTANTS:
            return _CONSTANTS[node.attr]
        raise ValueError(f"unsupported name: {node.value.id}.{node.attr}")
    if isinstance(node, ast.Call) and not node.keywords:
        func = node.func
        # Accept both sqrt(x) and math.sqrt(x)
        if isinstance(func, ast.Attribute) and isinstance(func.value, ast.Name) and func.value.id in ("math", "Math"):
            name = func.attr
        elif isinstance(func, ast.Name):
            name = func.id
        else:
            raise ValueError("unsupported function call")
        if name not in _FUNCTIONS:
            raise ValueError(f"unsupported function: {name}")
        return _FUNCTIONS[name](*[_eval_node(arg) for arg in node.args])
    raise ValueError(f"unsupported expression element: {type(node).__name__}")


def evaluate_expression(expression: str) -> float:
    """Evaluate an arithmetic expression restricted to numbers, operators and math functions."""

    tree = ast.parse(expression.strip(), mode="eval")
    return _eval_node(tree)


@tool
def calculator(
    expression: Annotated[str, "Mathematical expression to evaluate (e.g. '25 * 4 + 10', 'sqrt(144)')"]
) -> str:
    """Perform mathematical calculations.

    Supports +, -, *, /, //, %, ** with parentheses, and the functions sqrt, sin,
    cos, tan, log, log10, exp, abs, round, floor, ceil, min, max (optionally
    prefixed with ``math.``). Constants: pi, e.

    Examples:
        calculator("25 * 4 + 10") -> "Result: 110"
        calculator("(5 + 3) ** 2") -> "Result: 64"
    """
    try:
        result = evaluate_expression(expression)
    except ZeroDivisionError:
        return "Calculation error: division by zero"
    except (ValueError, TypeError, SyntaxError, OverflowError) as e:
        return f"Calculation error: {e}"

    if isinstance(result, float) and not math.isfinite(result):
        return f"Invalid result: {result}"
    return f"Result: {result}"

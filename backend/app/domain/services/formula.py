"""
Urgency formula language.

A formula is a Python-syntax arithmetic expression over exactly three
variables: ``effort``, ``importance`` and ``daysLeft``. It is parsed with
``ast`` and checked against a whitelist before anything is evaluated, then
interpreted node by node. Nothing is ever handed to ``eval``.

Supported: numbers, + - * / % **, unary +/-, parentheses and the functions
max, min, pow, abs (``Math.max`` style spellings are accepted too).
"""
import ast
import math
import operator
from typing import Callable, Dict, Mapping, Union

from app.core.exceptions import ConfigEvaluationError
from app.domain.models.urgency import FORMULA_VARIABLES

MAX_FORMULA_LENGTH = 500
MAX_DEPTH = 32

Number = Union[int, float]

_BINARY_OPS: Dict[type, Callable[[float, float], float]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS: Dict[type, Callable[[float], float]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


def _variadic(fn):
    def call(*args: float) -> float:
        if not args:
            raise ConfigEvaluationError(f"{fn.__name__}() needs at least one argument")
        return fn(args)
    call.__name__ = fn.__name__
    return call


_FUNCTIONS: Dict[str, Callable[..., float]] = {
    "max": _variadic(max),
    "min": _variadic(min),
    "pow": lambda base, exp: operator.pow(base, exp),
    "abs": lambda value: abs(value),
}
_FUNCTION_ARITY = {"pow": 2, "abs": 1}


def _function_name(node: ast.expr) -> str:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name) and node.value.id == "Math":
        return node.attr
    raise ConfigEvaluationError("Only max, min, pow and abs may be called")


class CompiledFormula:
    """A validated formula, ready to be evaluated many times."""

    def __init__(self, source: str, tree: ast.Expression):
        self.source = source
        self._tree = tree

    def __repr__(self) -> str:
        return f"CompiledFormula({self.source!r})"

    def evaluate(self, variables: Mapping[str, Number]) -> float:
        missing = [name for name in FORMULA_VARIABLES if name not in variables]
        if missing:
            raise ConfigEvaluationError(f"Unbound formula variables: {', '.join(missing)}")
        bound = {name: float(variables[name]) for name in FORMULA_VARIABLES}
        try:
            result = self._eval(self._tree.body, bound)
        except ConfigEvaluationError:
            raise
        except (ArithmeticError, ValueError, TypeError) as exc:
            raise ConfigEvaluationError(f"Formula evaluation failed: {exc}") from exc
        return _require_real(result)

    def _eval(self, node: ast.expr, bound: Dict[str, float]) -> float:
        if isinstance(node, ast.Constant):
            return float(node.value)
        if isinstance(node, ast.Name):
            return bound[node.id]
        if isinstance(node, ast.BinOp):
            left = self._eval(node.left, bound)
            right = self._eval(node.right, bound)
            return _require_real(_BINARY_OPS[type(node.op)](left, right))
        if isinstance(node, ast.UnaryOp):
            return _UNARY_OPS[type(node.op)](self._eval(node.operand, bound))
        if isinstance(node, ast.Call):
            fn = _FUNCTIONS[_function_name(node.func)]
            args = [self._eval(arg, bound) for arg in node.args]
            return _require_real(fn(*args))
        # validate() rejects everything else before we get here
        raise ConfigEvaluationError(f"Unsupported expression node {type(node).__name__}")


def _require_real(value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigEvaluationError(f"Formula produced a non-numeric result: {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise ConfigEvaluationError(f"Formula produced a non-finite result: {value!r}")
    return value


def _validate(node: ast.AST, depth: int = 0) -> None:
    if depth > MAX_DEPTH:
        raise ConfigEvaluationError("Formula is nested too deeply")

    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise ConfigEvaluationError(f"Only numeric literals are allowed, got {node.value!r}")
        return
    if isinstance(node, ast.Name):
        if node.id not in FORMULA_VARIABLES:
            allowed = ", ".join(FORMULA_VARIABLES)
            raise ConfigEvaluationError(f"Unknown variable {node.id!r}; allowed: {allowed}")
        return
    if isinstance(node, ast.BinOp):
        if type(node.op) not in _BINARY_OPS:
            raise ConfigEvaluationError(f"Operator {type(node.op).__name__} is not allowed")
        _validate(node.left, depth + 1)
        _validate(node.right, depth + 1)
        return
    if isinstance(node, ast.UnaryOp):
        if type(node.op) not in _UNARY_OPS:
            raise ConfigEvaluationError(f"Operator {type(node.op).__name__} is not allowed")
        _validate(node.operand, depth + 1)
        return
    if isinstance(node, ast.Call):
        name = _function_name(node.func)
        if name not in _FUNCTIONS:
            raise ConfigEvaluationError(f"Function {name!r} is not allowed")
        if node.keywords:
            raise ConfigEvaluationError("Keyword arguments are not allowed")
        arity = _FUNCTION_ARITY.get(name)
        if arity is not None and len(node.args) != arity:
            raise ConfigEvaluationError(f"{name}() takes exactly {arity} argument(s)")
        if not node.args:
            raise ConfigEvaluationError(f"{name}() needs at least one argument")
        for arg in node.args:
            if isinstance(arg, ast.Starred):
                raise ConfigEvaluationError("Argument unpacking is not allowed")
            _validate(arg, depth + 1)
        return
    raise ConfigEvaluationError(f"Unsupported syntax: {type(node).__name__}")


def compile_formula(source: str) -> CompiledFormula:
    """Parse and whitelist-check a formula. Raises ConfigEvaluationError."""
    if not isinstance(source, str) or not source.strip():
        raise ConfigEvaluationError("Formula is empty")
    if len(source) > MAX_FORMULA_LENGTH:
        raise ConfigEvaluationError(f"Formula is longer than {MAX_FORMULA_LENGTH} characters")
    try:
        tree = ast.parse(source.strip(), mode="eval")
    except SyntaxError as exc:
        raise ConfigEvaluationError(f"Formula syntax error: {exc.msg}") from exc
    _validate(tree.body)
    return CompiledFormula(source.strip(), tree)


def evaluate_formula(source: str, variables: Mapping[str, Number]) -> float:
    return compile_formula(source).evaluate(variables)

"""Declarative state models loaded from YAML (or JSON) files.

A model file looks like::

    name: hidden_flag
    initial_state: {flag: 0, h: 0}
    operations:
      - name: doStuff
        params: {data: uint256}
        updates:
          - {target: flag, value: 1, condition: "h == 5678"}
          - {target: h, value_from: data}
    invariants:
      - {name: flag_is_zero, expression: "flag == 0"}

Parameter types: ``uint8``..``uint256``, ``int8``..``int256``, ``bool``,
``address``, ``bytes``, ``bytesN``, ``[lo, hi]`` or a domain mapping such as
``{kind: int, min: 0, max: 10}``. ``require`` is a precondition; when it is false
the call is rejected. ``updates`` run in order with ``op`` one of
``set`` (default), ``add`` or ``sub``, taking ``value``, ``value_from`` (a
parameter name) or ``expr``.
"""

from __future__ import annotations

import ast
import logging
import operator
import re
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml
from pydantic import TypeAdapter, ValidationError

from statefuzz.adapters.model import ModelAdapter, ModelOperation
from statefuzz.core.exceptions import CallRejected, ModelError
from statefuzz.core.schema import (
    AddressDomain,
    BoolDomain,
    BytesDomain,
    Domain,
    IntDomain,
    InvariantSpec,
    OperationSpec,
    Parameter,
)

log = logging.getLogger(__name__)

_DOMAIN_ADAPTER: TypeAdapter[Any] = TypeAdapter(Domain)
_INT_TYPE = re.compile(r"^(u?)int(\d*)$")
_BYTES_TYPE = re.compile(r"^bytes(\d+)$")

_BIN_OPS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
}

_COMPARE_OPS: dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}

_UPDATE_OPS = ("set", "add", "sub")


class Expression:
    """A restricted Python expression: names, literals, arithmetic, comparisons, and/or/not."""

    def __init__(self, source: str) -> None:
        self.source = str(source)
        try:
            self._tree = ast.parse(self.source, mode="eval").body
        except SyntaxError as e:
            raise ModelError(f"Invalid expression {self.source!r}: {e.msg}") from e
        self._check(self._tree)

    @property
    def names(self) -> set[str]:
        return {n.id for n in ast.walk(self._tree) if isinstance(n, ast.Name)}

    @property
    def int_literals(self) -> list[int]:
        return [
            n.value
            for n in ast.walk(self._tree)
            if isinstance(n, ast.Constant) and isinstance(n.value, int) and not isinstance(n.value, bool)
        ]

    def evaluate(self, variables: Mapping[str, Any]) -> Any:
        return _eval_ast(self._tree, variables)

    def _check(self, node: ast.AST) -> None:
        allowed = (
            ast.Name,
            ast.Load,
            ast.Constant,
            ast.BinOp,
            ast.UnaryOp,
            ast.BoolOp,
            ast.Compare,
            ast.And,
            ast.Or,
            ast.Not,
            ast.USub,
            *_BIN_OPS,
            *_COMPARE_OPS,
        )
        for child in ast.walk(node):
            if not isinstance(child, allowed):
                raise ModelError(
                    f"Unsupported syntax {type(child).__name__} in expression {self.source!r}"
                )


def _eval_ast(node: ast.AST, variables: Mapping[str, Any]) -> Any:
    if isinstance(node, ast.Name):
        return variables[node.id]
    if isinstance(node, ast.Constant):
        return node.value
    if isinstance(node, ast.BinOp):
        return _BIN_OPS[type(node.op)](_eval_ast(node.left, variables), _eval_ast(node.right, variables))
    if isinstance(node, ast.UnaryOp):
        operand = _eval_ast(node.operand, variables)
        return (not operand) if isinstance(node.op, ast.Not) else -operand
    if isinstance(node, ast.BoolOp):
        if isinstance(node.op, ast.And):
            return all(_eval_ast(v, variables) for v in node.values)
        return any(_eval_ast(v, variables) for v in node.values)
    if isinstance(node, ast.Compare):
        left = _eval_ast(node.left, variables)
        for op_node, comparator in zip(node.ops, node.comparators):
            right = _eval_ast(comparator, variables)
            if not _COMPARE_OPS[type(op_node)](left, right):
                return False
            left = right
        return True
    raise ModelError(f"Unsupported expression node: {type(node).__name__}")


def parse_domain(raw: Any) -> Any:
    """Turn a parameter type shorthand into a domain model."""
    if isinstance(raw, list):
        if len(raw) != 2:
            raise ModelError(f"Integer range must be [lo, hi], got {raw!r}")
        try:
            return IntDomain(min=int(raw[0]), max=int(raw[1]))
        except (TypeError, ValueError, ValidationError) as e:
            raise ModelError(f"Invalid integer range {raw!r}: {e}") from e
    if isinstance(raw, Mapping):
        try:
            return _DOMAIN_ADAPTER.validate_python(dict(raw))
        except ValidationError as e:
            raise ModelError(f"Invalid domain {dict(raw)!r}: {e}") from e
    name = str(raw).strip().lower()
    if name == "bool":
        return BoolDomain()
    if name == "address":
        return AddressDomain()
    if name == "bytes":
        return BytesDomain()
    match = _BYTES_TYPE.match(name)
    if match:
        size = int(match.group(1))
        return BytesDomain(min_length=size, max_length=size)
    match = _INT_TYPE.match(name)
    if match:
        bits = int(match.group(2) or 256)
        if bits % 8 or not 8 <= bits <= 256:
            raise ModelError(f"Unsupported integer width: {name}")
        return IntDomain.uint(bits) if match.group(1) else IntDomain.sint(bits)
    raise ModelError(f"Unknown parameter type: {raw!r}")


def _parse_params(raw: Any, op_name: str) -> tuple[Parameter, ...]:
    if raw is None:
        return ()
    if isinstance(raw, Mapping):
        items = list(raw.items())
    elif isinstance(raw, list):
        items = []
        for entry in raw:
            if not isinstance(entry, Mapping) or "name" not in entry:
                raise ModelError(f"Operation {op_name}: list params need a 'name' and 'type'")
            items.append((entry["name"], entry.get("type", "uint256")))
    else:
        raise ModelError(f"Operation {op_name}: params must be a mapping or a list")
    return tuple(Parameter(name=str(name), domain=parse_domain(kind)) for name, kind in items)


class _Update:
    def __init__(self, raw: Mapping[str, Any], op_name: str, known: set[str], params: set[str]) -> None:
        if "target" not in raw:
            raise ModelError(f"Operation {op_name}: update without target")
        self.target = str(raw["target"])
        if self.target not in known:
            raise ModelError(f"Operation {op_name}: update target {self.target!r} is not in initial_state")
        self.op = str(raw.get("op", "set"))
        if self.op not in _UPDATE_OPS:
            raise ModelError(f"Operation {op_name}: unknown update op {self.op!r}")
        sources = [key for key in ("value", "value_from", "expr") if key in raw]
        if len(sources) != 1:
            raise ModelError(
                f"Operation {op_name}: update of {self.target} needs exactly one of value, value_from, expr"
            )
        self.value = raw.get("value")
        self.value_from = raw.get("value_from")
        if self.value_from is not None and self.value_from not in params:
            raise ModelError(f"Operation {op_name}: value_from {self.value_from!r} is not a parameter")
        self.expr = Expression(raw["expr"]) if "expr" in raw else None
        self.condition = Expression(raw["condition"]) if raw.get("condition") else None
        for expr in (self.expr, self.condition):
            if expr is not None:
                _check_names(expr, known | params, op_name)

    def apply(self, state: dict[str, Any], variables: dict[str, Any]) -> None:
        if self.condition is not None and not self.condition.evaluate(variables):
            return
        if self.expr is not None:
            value = self.expr.evaluate(variables)
        elif self.value_from is not None:
            value = variables[self.value_from]
        else:
            value = self.value
        if self.op == "add":
            value = state.get(self.target, 0) + value
        elif self.op == "sub":
            value = state.get(self.target, 0) - value
        state[self.target] = value
        variables[self.target] = value


def _check_names(expr: Expression, known: set[str], where: str) -> None:
    unknown = expr.names - known
    if unknown:
        raise ModelError(f"{where}: unknown name(s) {sorted(unknown)} in {expr.source!r}")


def _make_effect(
    op_name: str,
    param_names: list[str],
    require: Expression | None,
    updates: list[_Update],
) -> Callable[..., None]:
    def effect(state: dict[str, Any], *args: Any) -> None:
        variables = {**state, **dict(zip(param_names, args))}
        if require is not None and not require.evaluate(variables):
            raise CallRejected(f"{op_name}: require {require.source!r} failed")
        for update in updates:
            update.apply(state, variables)

    return effect


def _make_predicate(expr: Expression) -> Callable[[Mapping[str, Any]], bool]:
    def predicate(state: Mapping[str, Any]) -> bool:
        return bool(expr.evaluate(state))

    return predicate


def load_model(path: Path) -> dict[str, Any]:
    """Read a model file into a dict."""
    path = Path(path)
    if not path.is_file():
        raise ModelError(f"Model file not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ModelError(f"Malformed model file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ModelError(f"Model file {path} must contain a mapping")
    return data


class DeclarativeModelAdapter(ModelAdapter):
    """Model adapter built from a declarative YAML/JSON model file."""

    name = "declarative"

    def __init__(self, model_path: str | Path | None = None, data: Mapping[str, Any] | None = None) -> None:
        if data is None:
            if model_path is None:
                raise ModelError("DeclarativeModelAdapter needs model_path or data")
            data = load_model(Path(model_path))
        self.model_path = Path(model_path) if model_path else None
        self.name = str(data.get("name") or self.name)

        initial_state = data.get("initial_state") or {}
        if not isinstance(initial_state, Mapping):
            raise ModelError("initial_state must be a mapping")
        known = set(initial_state)
        constants: list[Any] = list(data.get("constants") or [])

        raw_ops = data.get("operations") or []
        if not raw_ops:
            raise ModelError("Model declares no operations")
        operations: list[ModelOperation] = []
        for raw in raw_ops:
            if not isinstance(raw, Mapping) or not raw.get("name"):
                raise ModelError(f"Operation entry needs a name: {raw!r}")
            op_name = str(raw["name"])
            params = _parse_params(raw.get("params"), op_name)
            param_names = [p.name for p in params]
            require = Expression(raw["require"]) if raw.get("require") else None
            if require is not None:
                _check_names(require, known | set(param_names), f"Operation {op_name}")
                constants.extend(require.int_literals)
            updates = [
                _Update(u, op_name, known, set(param_names)) for u in (raw.get("updates") or [])
            ]
            for update in updates:
                for expr in (update.expr, update.condition):
                    if expr is not None:
                        constants.extend(expr.int_literals)
            spec = OperationSpec(name=op_name, params=params, mutating=bool(raw.get("mutating", True)))
            operations.append(ModelOperation(spec=spec, effect=_make_effect(op_name, param_names, require, updates)))

        invariants: list[InvariantSpec] = []
        for raw in data.get("invariants") or []:
            if not isinstance(raw, Mapping) or not raw.get("expression"):
                raise ModelError(f"Invariant entry needs an expression: {raw!r}")
            expr = Expression(raw["expression"])
            _check_names(expr, known, "Invariant")
            constants.extend(expr.int_literals)
            invariants.append(
                InvariantSpec(
                    id=str(raw.get("name") or raw["expression"]),
                    predicate=_make_predicate(expr),
                    description=str(raw.get("description", raw["expression"])),
                )
            )

        unique_constants = list(dict.fromkeys(c for c in constants if not isinstance(c, bool)))
        try:
            super().__init__(operations, initial_state, invariants, unique_constants)
        except ValueError as e:
            raise ModelError(str(e)) from e
        log.debug(
            "Loaded model %s: %d operation(s), %d invariant(s)", self.name, len(operations), len(invariants)
        )

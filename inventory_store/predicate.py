"""
Restricted boolean expressions over record fields, translated to SQL.

Predicates are written against a field proxy and combined with `&` and `|`:

    translate(lambda p: (p.quantity > 5) & (p.name == "R1"), Part)
    # "quantity" > :p0 AND "name" = :p1   {p0: 5, p1: "R1"}

Only `field <op> constant` comparisons and AND/OR are understood. Anything else
(method calls, nested members, `~`, arithmetic, `in`, `len()`, indexing, iteration,
a field on the right-hand side, Python's `and`/`or`/`not` or chained comparisons)
raises `TranslationError` naming the offending construct before any SQL is produced.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Union

from inventory_store.binding import ParameterSet, bind_field
from inventory_store.errors import TranslationError
from inventory_store.records import FieldSpec, Record, RecordSpec, record_spec
from inventory_store.schema import quote


class Expression:
    def __eq__(self, other: Any) -> Comparison:  # type: ignore[override]
        return Comparison("=", self, _operand(other))

    def __ne__(self, other: Any) -> Comparison:  # type: ignore[override]
        return Comparison("<>", self, _operand(other))

    def __lt__(self, other: Any) -> Comparison:
        return Comparison("<", self, _operand(other))

    def __le__(self, other: Any) -> Comparison:
        return Comparison("<=", self, _operand(other))

    def __gt__(self, other: Any) -> Comparison:
        return Comparison(">", self, _operand(other))

    def __ge__(self, other: Any) -> Comparison:
        return Comparison(">=", self, _operand(other))

    __hash__ = object.__hash__

    def __and__(self, other: Any) -> BooleanOp:
        return BooleanOp("AND", self, _operand(other))

    def __rand__(self, other: Any) -> BooleanOp:
        return BooleanOp("AND", _operand(other), self)

    def __or__(self, other: Any) -> BooleanOp:
        return BooleanOp("OR", self, _operand(other))

    def __ror__(self, other: Any) -> BooleanOp:
        return BooleanOp("OR", _operand(other), self)

    def __invert__(self) -> Unsupported:
        return Unsupported("Not", f"~{self.describe()}")

    def _arithmetic(self, symbol: str) -> Callable[[Any], Unsupported]:
        return lambda other: Unsupported("Arithmetic", f"{self.describe()} {symbol} {other!r}")

    def __add__(self, other: Any) -> Unsupported:
        return self._arithmetic("+")(other)

    __radd__ = __add__

    def __sub__(self, other: Any) -> Unsupported:
        return self._arithmetic("-")(other)

    __rsub__ = __sub__

    def __mul__(self, other: Any) -> Unsupported:
        return self._arithmetic("*")(other)

    __rmul__ = __mul__

    def __truediv__(self, other: Any) -> Unsupported:
        return self._arithmetic("/")(other)

    def __mod__(self, other: Any) -> Unsupported:
        return self._arithmetic("%")(other)

    def __neg__(self) -> Unsupported:
        return Unsupported("Arithmetic", f"-{self.describe()}")

    def __getattr__(self, name: str) -> Unsupported:
        if name.startswith("_"):
            raise AttributeError(name)
        return Unsupported("NestedMember", f"{self.describe()}.{name}")

    def __call__(self, *args: Any, **kwargs: Any) -> Unsupported:
        return Unsupported("MethodCall", f"{self.describe()}(...)")

    def __getitem__(self, item: Any) -> Unsupported:
        return Unsupported("Index", f"{self.describe()}[{item!r}]")

    # Python coerces these results to bool, int or an iterator, so they raise instead.

    def __contains__(self, item: Any) -> bool:
        raise TranslationError("Membership", f"{item!r} in {self.describe()}")

    def __len__(self) -> int:
        raise TranslationError("Length", f"len({self.describe()})")

    def __iter__(self) -> Any:
        raise TranslationError("Iteration", f"iteration over {self.describe()}")

    def __bool__(self) -> bool:
        raise TranslationError(
            "BooleanCoercion",
            f"{self.describe()} was used as a bool; combine conditions with & and | and avoid chained comparisons",
        )

    def describe(self) -> str:
        return type(self).__name__


@dataclass(eq=False)
class FieldRef(Expression):
    field: FieldSpec

    def describe(self) -> str:
        return self.field.name


@dataclass(eq=False)
class Constant(Expression):
    value: Any

    def describe(self) -> str:
        return repr(self.value)


@dataclass(eq=False)
class Comparison(Expression):
    op: str
    left: Expression
    right: Expression

    def describe(self) -> str:
        return f"{self.left.describe()} {self.op} {self.right.describe()}"


@dataclass(eq=False)
class BooleanOp(Expression):
    op: str
    left: Expression
    right: Expression

    def describe(self) -> str:
        return f"({self.left.describe()} {self.op} {self.right.describe()})"


@dataclass(eq=False)
class Unsupported(Expression):
    node_kind: str
    description: str

    def describe(self) -> str:
        return self.description

    def __call__(self, *args: Any, **kwargs: Any) -> Unsupported:
        return Unsupported("MethodCall", f"{self.description}(...)")


def _operand(value: Any) -> Expression:
    return value if isinstance(value, Expression) else Constant(value)


class FieldProxy:
    """Stand-in for a record inside a predicate lambda; attribute access yields field references."""

    def __init__(self, spec: RecordSpec) -> None:
        self._spec = spec

    def __getattr__(self, name: str) -> Expression:
        if name.startswith("_"):
            raise AttributeError(name)
        found = self._spec.field(name)
        if found is None:
            return Unsupported("UnknownMember", f"{self._spec.name} has no field '{name}'")
        return FieldRef(found)


Predicate = Union[Expression, Callable[[FieldProxy], Any]]


@dataclass(frozen=True)
class PredicateFragment:
    sql: str
    parameters: ParameterSet


class _Translator:
    def __init__(self, spec: RecordSpec) -> None:
        self.spec = spec
        self.parameters = ParameterSet()

    def visit(self, node: Any, nested: bool = False) -> str:
        if isinstance(node, BooleanOp):
            sql = f"{self.visit(node.left, nested=True)} {node.op} {self.visit(node.right, nested=True)}"
            return f"({sql})" if nested else sql
        if isinstance(node, Comparison):
            return self._comparison(node)
        raise self._rejection(node)

    def _rejection(self, node: Any) -> TranslationError:
        if isinstance(node, Unsupported):
            return TranslationError(node.node_kind, node.description)
        if isinstance(node, FieldRef):
            return TranslationError("MemberAccess", f"{node.field.name} is not a comparison")
        if isinstance(node, Expression):
            return TranslationError(type(node).__name__, f"{node.describe()} is not a boolean expression")
        return TranslationError(type(node).__name__, f"{node!r} is not a predicate expression")

    def _comparison(self, node: Comparison) -> str:
        left, right = node.left, node.right
        if not isinstance(left, FieldRef):
            raise self._rejection(left)
        if self.spec.field(left.field.name) != left.field:
            raise TranslationError("UnknownMember", f"{self.spec.name} has no field '{left.field.name}'")
        if isinstance(right, FieldRef):
            raise TranslationError(
                "FieldOperand",
                f"{left.field.name} {node.op} {right.field.name}: the right-hand side must be a constant",
            )
        if not isinstance(right, Constant):
            raise self._rejection(right)

        column = quote(left.field.name)
        if right.value is None:
            if node.op == "=":
                return f"{column} IS NULL"
            if node.op == "<>":
                return f"{column} IS NOT NULL"
            raise TranslationError("NullComparison", f"{left.field.name} {node.op} None")

        name = f"p{len(self.parameters)}"
        self.parameters.add(bind_field(left.field, right.value, name))
        return f"{column} {node.op} :{name}"


def translate(predicate: Predicate, record_type: type[Record]) -> PredicateFragment:
    spec = record_spec(record_type)
    tree = predicate if isinstance(predicate, Expression) else predicate(FieldProxy(spec))
    translator = _Translator(spec)
    sql = translator.visit(tree)
    return PredicateFragment(sql=sql, parameters=translator.parameters)

"""
Formula tokenizer, parser, evaluator and reference rewriting.

Grammar (lowest precedence first)::

    comparison := concat (("=" | "<>" | "<" | ">" | "<=" | ">=") concat)*
    concat     := additive ("&" additive)*
    additive   := term (("+" | "-") term)*
    term       := power (("*" | "/") power)*
    power      := unary ("^" unary)*
    unary      := ("+" | "-") unary | postfix
    postfix    := primary "%"*
    primary    := NUMBER | STRING | TRUE | FALSE | ERROR | CELL | RANGE
                | NAME "(" [comparison ("," comparison)*] ")" | NAME
                | "(" comparison ")"

A bare ``NAME`` is a label.  Evaluation failures raise :class:`FormulaError`
carrying a spreadsheet error code (``#DIV/0!``, ``#VALUE!``, ...); the
engine stores the code on the cell instead of failing the request.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any, Union

from sheetserver.core.errors import InvalidSelectionError, MissingStoreError
from sheetserver.core.references import (
    MAX_COLUMN,
    MAX_ROW,
    CellRange,
    CellReference,
    is_cell_reference,
    parse_cell,
    parse_cell_range,
)

ERROR_DIV0 = "#DIV/0!"
ERROR_VALUE = "#VALUE!"
ERROR_REF = "#REF!"
ERROR_NAME = "#NAME?"
ERROR_CYCLE = "#CYCLE!"
ERROR_SYNTAX = "#ERROR"


class FormulaError(Exception):
    """A formula could not be parsed or evaluated."""

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or code)
        self.code = code


# ── Tokens ───────────────────────────────────────────────────────────────

_TOKEN = re.compile(
    r"""
     (?P<ws>\s+)
    |(?P<string>"(?:[^"]|"")*")
    |(?P<error>\#(?:DIV/0!|VALUE!|REF!|NAME\?|CYCLE!|ERROR))
    |(?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?(?![A-Za-z_]))
    |(?P<range>\$?[A-Za-z]{1,3}\$?\d+:\$?[A-Za-z]{1,3}\$?\d+(?![A-Za-z0-9_.(]))
    |(?P<cell>\$?[A-Za-z]{1,3}\$?\d+(?![A-Za-z0-9_.(]))
    |(?P<name>[A-Za-z_\\][A-Za-z0-9_.\\]*)
    |(?P<op><>|<=|>=|[-+*/^&=<>(),%])
    """,
    re.VERBOSE,
)

_CELL_PARTS = re.compile(r"^(\$?)([A-Za-z]{1,3})(\$?)(\d+)$")


@dataclass(frozen=True)
class Token:
    kind: str
    text: str


def tokenize(text: str) -> list[Token]:
    """Split *text* into tokens, whitespace included, so ``join`` restores it."""
    tokens = []
    position = 0
    while position < len(text):
        match = _TOKEN.match(text, position)
        if match is None:
            raise FormulaError(ERROR_SYNTAX, f"Unexpected character {text[position]!r} at {position}")
        kind = match.lastgroup or "op"
        token_text = match.group()
        if kind == "cell" and not is_cell_reference(token_text.replace("$", "")):
            kind = "name"
        tokens.append(Token(kind, token_text))
        position = match.end()
    return tokens


# ── Syntax tree ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class ErrorLiteral:
    code: str


@dataclass(frozen=True)
class CellNode:
    reference: CellReference


@dataclass(frozen=True)
class RangeNode:
    range: CellRange


@dataclass(frozen=True)
class LabelNode:
    name: str


@dataclass(frozen=True)
class Unary:
    operator: str
    operand: Node


@dataclass(frozen=True)
class Binary:
    operator: str
    left: Node
    right: Node


@dataclass(frozen=True)
class Call:
    name: str
    arguments: tuple[Node, ...]


Node = Union[Literal, ErrorLiteral, CellNode, RangeNode, LabelNode, Unary, Binary, Call]

_COMPARISONS = ("=", "<>", "<", ">", "<=", ">=")


class _Parser:
    def __init__(self, tokens: list[Token]):
        self._tokens = [t for t in tokens if t.kind != "ws"]
        self._position = 0

    def _peek(self) -> Token | None:
        if self._position < len(self._tokens):
            return self._tokens[self._position]
        return None

    def _next(self) -> Token:
        token = self._peek()
        if token is None:
            raise FormulaError(ERROR_SYNTAX, "Unexpected end of formula")
        self._position += 1
        return token

    def _accept(self, *operators: str) -> str | None:
        token = self._peek()
        if token is not None and token.kind == "op" and token.text in operators:
            self._position += 1
            return token.text
        return None

    def _expect(self, operator: str) -> None:
        if self._accept(operator) is None:
            raise FormulaError(ERROR_SYNTAX, f"Expected {operator!r}")

    def parse(self) -> Node:
        node = self._comparison()
        if self._peek() is not None:
            raise FormulaError(ERROR_SYNTAX, f"Unexpected {self._peek().text!r}")
        return node

    def _binary(self, operand: Callable[[], Node], *operators: str) -> Node:
        node = operand()
        while (operator := self._accept(*operators)) is not None:
            node = Binary(operator, node, operand())
        return node

    def _comparison(self) -> Node:
        return self._binary(self._concat, *_COMPARISONS)

    def _concat(self) -> Node:
        return self._binary(self._additive, "&")

    def _additive(self) -> Node:
        return self._binary(self._term, "+", "-")

    def _term(self) -> Node:
        return self._binary(self._power, "*", "/")

    def _power(self) -> Node:
        return self._binary(self._unary, "^")

    def _unary(self) -> Node:
        operator = self._accept("+", "-")
        if operator is not None:
            return Unary(operator, self._unary())
        node = self._primary()
        while self._accept("%") is not None:
            node = Unary("%", node)
        return node

    def _primary(self) -> Node:
        token = self._next()
        if token.kind == "number":
            return Literal(float(token.text))
        if token.kind == "string":
            return Literal(token.text[1:-1].replace('""', '"'))
        if token.kind == "error":
            return ErrorLiteral(token.text)
        if token.kind == "cell":
            return CellNode(parse_cell(token.text.replace("$", "")))
        if token.kind == "range":
            return RangeNode(parse_cell_range(token.text.replace("$", "")))
        if token.kind == "name":
            if self._accept("("):
                return Call(token.text.upper(), self._arguments())
            if token.text.upper() in ("TRUE", "FALSE"):
                return Literal(token.text.upper() == "TRUE")
            return LabelNode(token.text)
        if token.kind == "op" and token.text == "(":
            node = self._comparison()
            self._expect(")")
            return node
        raise FormulaError(ERROR_SYNTAX, f"Unexpected {token.text!r}")

    def _arguments(self) -> tuple[Node, ...]:
        if self._accept(")"):
            return ()
        arguments = [self._comparison()]
        while self._accept(","):
            arguments.append(self._comparison())
        self._expect(")")
        return tuple(arguments)


def parse_expression(text: str) -> Node:
    """Parse expression *text* (without the leading ``=``)."""
    return _Parser(tokenize(text)).parse()


def walk(node: Node) -> Iterator[Node]:
    yield node
    if isinstance(node, Unary):
        yield from walk(node.operand)
    elif isinstance(node, Binary):
        yield from walk(node.left)
        yield from walk(node.right)
    elif isinstance(node, Call):
        for argument in node.arguments:
            yield from walk(argument)


def references(text: str) -> tuple[set[CellRange], set[str]]:
    """Ranges (cells as one cell ranges) and labels referenced by formula *text*."""
    if not text.startswith("="):
        return set(), set()
    try:
        root = parse_expression(text[1:])
    except (FormulaError, InvalidSelectionError):
        return set(), set()
    ranges: set[CellRange] = set()
    labels: set[str] = set()
    for node in walk(root):
        if isinstance(node, CellNode):
            ranges.add(node.reference.to_range())
        elif isinstance(node, RangeNode):
            ranges.add(node.range)
        elif isinstance(node, LabelNode):
            labels.add(node.name)
    return ranges, labels


# ── Values ───────────────────────────────────────────────────────────────


def normalize_number(value: float) -> int | float:
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e15:
        return int(value)
    return value


def literal_value(text: str) -> Any:
    """Value of non-expression cell text: a number when it parses as one."""
    if text == "":
        return None
    try:
        number = float(text)
    except ValueError:
        return text
    if math.isnan(number) or math.isinf(number):
        return text
    return normalize_number(number)


def _to_number(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise FormulaError(ERROR_VALUE, f"Not a number: {value!r}") from None


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        return str(normalize_number(value))
    return str(value)


def _compare(operator: str, left: Any, right: Any) -> bool:
    if isinstance(left, str) or isinstance(right, str):
        a, b = _to_text(left).lower(), _to_text(right).lower()
    else:
        a, b = _to_number(left), _to_number(right)
    return {
        "=": a == b,
        "<>": a != b,
        "<": a < b,
        ">": a > b,
        "<=": a <= b,
        ">=": a >= b,
    }[operator]


def _numbers(values: list[Any]) -> list[float]:
    return [float(v) for v in values if isinstance(v, (int, float)) and not isinstance(v, bool)]


# ── Evaluation ───────────────────────────────────────────────────────────


class Evaluator:
    """Evaluates a syntax tree.

    Args:
        value_of: Value of a cell; raises :class:`FormulaError` when that
            cell itself holds an error.
        resolve_label: Label name → cell or range.
        functions: Lower-case names of the functions this spreadsheet may call.
    """

    def __init__(
        self,
        value_of: Callable[[CellReference], Any],
        resolve_label: Callable[[str], CellReference | CellRange],
        functions: frozenset[str],
    ):
        self._value_of = value_of
        self._resolve_label = resolve_label
        self._functions = functions

    def evaluate(self, node: Node) -> Any:
        value = self._scalar(node)
        return normalize_number(value) if isinstance(value, float) else value

    def _label(self, name: str) -> CellReference | CellRange:
        try:
            return self._resolve_label(name)
        except MissingStoreError:
            raise FormulaError(ERROR_NAME, f"Unknown label {name}") from None
        except InvalidSelectionError:
            raise FormulaError(ERROR_REF, f"Invalid label {name}") from None

    def _scalar(self, node: Node) -> Any:
        if isinstance(node, Literal):
            return node.value
        if isinstance(node, ErrorLiteral):
            raise FormulaError(node.code)
        if isinstance(node, CellNode):
            return self._value_of(node.reference)
        if isinstance(node, LabelNode):
            target = self._label(node.name)
            if isinstance(target, CellRange):
                if not target.is_single_cell:
                    raise FormulaError(ERROR_VALUE, f"Label {node.name} is a range")
                target = target.begin
            return self._value_of(target)
        if isinstance(node, RangeNode):
            raise FormulaError(ERROR_VALUE, f"Range {node.range} used as a value")
        if isinstance(node, Unary):
            return self._unary(node)
        if isinstance(node, Binary):
            return self._binary(node)
        return self._call(node)

    def _unary(self, node: Unary) -> Any:
        operand = _to_number(self._scalar(node.operand))
        if node.operator == "-":
            return -operand
        if node.operator == "%":
            return operand / 100
        return operand

    def _binary(self, node: Binary) -> Any:
        left = self._scalar(node.left)
        right = self._scalar(node.right)
        operator = node.operator
        if operator == "&":
            return _to_text(left) + _to_text(right)
        if operator in _COMPARISONS:
            return _compare(operator, left, right)
        a, b = _to_number(left), _to_number(right)
        if operator == "+":
            return a + b
        if operator == "-":
            return a - b
        if operator == "*":
            return a * b
        if operator == "/":
            if b == 0:
                raise FormulaError(ERROR_DIV0)
            return a / b
        try:
            return math.pow(a, b)
        except (OverflowError, ValueError):
            raise FormulaError(ERROR_VALUE, f"{a} ^ {b}") from None

    def _values(self, node: Node) -> list[Any]:
        """Argument values, flattening ranges and range labels."""
        target: CellReference | CellRange | None = None
        if isinstance(node, RangeNode):
            target = node.range
        elif isinstance(node, LabelNode):
            target = self._label(node.name)
        if isinstance(target, CellRange):
            return [self._value_of(cell) for cell in target]
        if isinstance(target, CellReference):
            return [self._value_of(target)]
        return [self._scalar(node)]

    def _call(self, node: Call) -> Any:
        name = node.name
        if name.lower() not in self._functions:
            raise FormulaError(ERROR_NAME, f"Unknown function {name}")
        if name == "IF":
            if not 2 <= len(node.arguments) <= 3:
                raise FormulaError(ERROR_VALUE, "IF takes 2 or 3 arguments")
            condition = self._scalar(node.arguments[0])
            if _to_number(condition) != 0:
                return self._scalar(node.arguments[1])
            return self._scalar(node.arguments[2]) if len(node.arguments) == 3 else False

        values: list[Any] = []
        for argument in node.arguments:
            values.extend(self._values(argument))

        if name == "SUM":
            return math.fsum(_numbers(values))
        if name == "COUNT":
            return float(len(_numbers(values)))
        if name == "AVERAGE":
            numbers = _numbers(values)
            if not numbers:
                raise FormulaError(ERROR_DIV0)
            return math.fsum(numbers) / len(numbers)
        if name == "MIN":
            return min(_numbers(values), default=0.0)
        if name == "MAX":
            return max(_numbers(values), default=0.0)
        if name == "CONCAT":
            return "".join(_to_text(v) for v in values)
        if name == "ABS":
            if len(values) != 1:
                raise FormulaError(ERROR_VALUE, "ABS takes 1 argument")
            return abs(_to_number(values[0]))
        if name == "ROUND":
            if len(values) not in (1, 2):
                raise FormulaError(ERROR_VALUE, "ROUND takes 1 or 2 arguments")
            digits = int(_to_number(values[1])) if len(values) == 2 else 0
            return float(round(_to_number(values[0]), digits))
        raise FormulaError(ERROR_NAME, f"Unknown function {name}")


# ── Reference rewriting ──────────────────────────────────────────────────

# (column, row) → new (column, row), or None when the cell no longer exists.
CellMapper = Callable[[int, int, bool, bool], "tuple[int, int] | None"]


def _rewrite_cell(text: str, mapper: CellMapper) -> str | None:
    match = _CELL_PARTS.match(text)
    column_abs, letters, row_abs, digits = match.groups()
    cell = parse_cell(f"{letters}{digits}")
    mapped = mapper(cell.column, cell.row, bool(column_abs), bool(row_abs))
    if mapped is None:
        return None
    column, row = mapped
    if not (1 <= column <= MAX_COLUMN and 1 <= row <= MAX_ROW):
        return None
    moved = str(CellReference(row=row, column=column))
    split = re.match(r"^([A-Z]+)(\d+)$", moved)
    return f"{column_abs}{split.group(1)}{row_abs}{split.group(2)}"


def _rewrite(text: str, cell_mapper: CellMapper, range_mapper: Callable[[str], str | None]) -> str:
    try:
        tokens = tokenize(text)
    except FormulaError:
        return text
    parts = []
    for token in tokens:
        if token.kind == "cell":
            parts.append(_rewrite_cell(token.text, cell_mapper) or ERROR_REF)
        elif token.kind == "range":
            parts.append(range_mapper(token.text) or ERROR_REF)
        else:
            parts.append(token.text)
    return "".join(parts)


def translate(text: str, columns: int, rows: int) -> str:
    """Move relative references of formula *text* by (*columns*, *rows*); ``$`` parts stay put."""
    if not text.startswith("="):
        return text

    def mapper(column: int, row: int, column_abs: bool, row_abs: bool) -> tuple[int, int]:
        return (column if column_abs else column + columns, row if row_abs else row + rows)

    def range_mapper(token: str) -> str | None:
        begin, end = token.split(":")
        first = _rewrite_cell(begin, mapper)
        last = _rewrite_cell(end, mapper)
        return f"{first}:{last}" if first and last else None

    return _rewrite(text, mapper, range_mapper)


def shift_axis(text: str, axis: str, at: int, delta: int) -> str:
    """Rewrite references after columns/rows were inserted or deleted.

    Inserting (``delta > 0``) moves indices ``>= at`` up by *delta*.
    Deleting (``delta < 0``) removes indices ``at .. at - delta - 1``;
    single references into that band become ``#REF!`` and ranges shrink.
    """
    removed_end = at - delta - 1 if delta < 0 else None

    def move(index: int) -> int | None:
        if removed_end is not None:
            if at <= index <= removed_end:
                return None
            return index + delta if index > removed_end else index
        return index + delta if index >= at else index

    def mapper(column: int, row: int, column_abs: bool, row_abs: bool) -> tuple[int, int] | None:
        if axis == "column":
            moved = move(column)
            return None if moved is None else (moved, row)
        moved = move(row)
        return None if moved is None else (column, moved)

    def range_mapper(token: str) -> str | None:
        begin_text, end_text = token.split(":")
        if removed_end is None:
            first = _rewrite_cell(begin_text, mapper)
            last = _rewrite_cell(end_text, mapper)
            return f"{first}:{last}" if first and last else None
        cell_range = parse_cell_range(token.replace("$", ""))
        low, high = (
            (cell_range.begin.column, cell_range.end.column)
            if axis == "column"
            else (cell_range.begin.row, cell_range.end.row)
        )
        new_low = move(low)
        new_high = move(high)
        if new_low is None and new_high is None:
            return None
        if new_low is None:
            new_low = at
        if new_high is None:
            new_high = at - 1
        if new_high < new_low:
            return None

        def clamp(which: int) -> CellMapper:
            def inner(column: int, row: int, column_abs: bool, row_abs: bool):
                return (which, row) if axis == "column" else (column, which)
            return inner

        first = _rewrite_cell(begin_text, clamp(new_low))
        last = _rewrite_cell(end_text, clamp(new_high))
        return f"{first}:{last}" if first and last else None

    return _rewrite(text, mapper, range_mapper)

"""
codec.py - Compact tagged wire format for number and text predicates.

Number predicates are single-field objects. The field name is the
discriminator, the value is either a number or a formatted string:

    {"eq": 42.0}
    {"close": "100.0±0.5"}          also accepts "100.0+-0.5"
    {"closePercent": "100.0±5.0%"}
    {"in": "[1.0..10.0)"}           "(" / ")" mark an exclusive bound
    {"notIn": "[1.0..5.0]"}

Text predicates carry exactly one operation field plus optional boolean
options:

    {"eq": "A=B", "ignoreNewLines": true, "ignoreCase": true}
    {"has": "total"}
    {"like": "^[0-9]+$", "dotall": true}

Every decode failure raises PredicateDecodeError naming the offending
token. Decoding never depends on field order.
"""

from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any, Callable

from pydantic import ValidationError

from errors import PredicateDecodeError, PredicateEncodeError
from logging_config import get_logger
from number_predicates import (
    CloseToOffset,
    CloseToPercent,
    EqualTo,
    GreaterOrEqual,
    GreaterThan,
    LessOrEqual,
    LessThan,
    NumberPredicate,
    OutsideRange,
    WithinRange,
    format_number,
)
from text_predicates import ContainsText, EqualsText, MatchesPattern, TextPredicate

logger = get_logger(__name__)


class NumberKind(str, Enum):
    """Number predicate variants keyed by their primary discriminator."""

    EQUAL_TO = "eq"
    GREATER_THAN = "gt"
    GREATER_OR_EQUAL = "gte"
    LESS_THAN = "lt"
    LESS_OR_EQUAL = "lte"
    CLOSE_TO_OFFSET = "close"
    CLOSE_TO_PERCENT = "closePercent"
    WITHIN_RANGE = "in"
    OUTSIDE_RANGE = "notIn"


NUMBER_ALIASES: dict[NumberKind, tuple[str, ...]] = {
    NumberKind.EQUAL_TO: ("==", "="),
    NumberKind.GREATER_THAN: (">",),
    NumberKind.GREATER_OR_EQUAL: (">=",),
    NumberKind.LESS_THAN: ("<",),
    NumberKind.LESS_OR_EQUAL: ("<=",),
    NumberKind.CLOSE_TO_OFFSET: ("~", "≈"),
    NumberKind.CLOSE_TO_PERCENT: ("close%", "≈%", "~%"),
    NumberKind.WITHIN_RANGE: ("∈", "within"),
    NumberKind.OUTSIDE_RANGE: ("∉", "out", "beyond"),
}


def _build_alias_table(aliases: dict[NumberKind, tuple[str, ...]]) -> dict[str, NumberKind]:
    table: dict[str, NumberKind] = {}
    for kind in NumberKind:
        for spelling in (kind.value, *aliases.get(kind, ())):
            if spelling in table:
                raise RuntimeError(f"discriminator {spelling!r} is claimed twice")
            table[spelling] = kind
    return table


NUMBER_DISCRIMINATORS: dict[str, NumberKind] = _build_alias_table(NUMBER_ALIASES)

_FLOAT = r"[-+]?(?:\d*\.?\d+(?:[eE][-+]?\d+)?|[iI]nf(?:inity)?)"
_UNSIGNED_FLOAT = r"(?:\d*\.?\d+(?:[eE][-+]?\d+)?|[iI]nf(?:inity)?)"
_CLOSE_TO = rf"(?P<expected>{_FLOAT})(?:±|\+-)(?P<tolerance>{_UNSIGNED_FLOAT})"
CLOSE_TO_OFFSET_PATTERN = re.compile(rf"^{_CLOSE_TO}$")
CLOSE_TO_PERCENT_PATTERN = re.compile(rf"^{_CLOSE_TO}%$")
RANGE_PATTERN = re.compile(
    rf"^(?P<open>[\[(])(?P<lower>{_FLOAT})\.\.(?P<upper>{_FLOAT})(?P<close>[\])])$"
)
_WHITESPACE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Number predicates
# ---------------------------------------------------------------------------


def encode_number(predicate: NumberPredicate) -> dict[str, Any]:
    """Encode a number predicate as a single-field dict."""
    if isinstance(predicate, EqualTo):
        return {NumberKind.EQUAL_TO.value: float(predicate.expected)}
    if isinstance(predicate, GreaterThan):
        return {NumberKind.GREATER_THAN.value: float(predicate.threshold)}
    if isinstance(predicate, GreaterOrEqual):
        return {NumberKind.GREATER_OR_EQUAL.value: float(predicate.threshold)}
    if isinstance(predicate, LessThan):
        return {NumberKind.LESS_THAN.value: float(predicate.threshold)}
    if isinstance(predicate, LessOrEqual):
        return {NumberKind.LESS_OR_EQUAL.value: float(predicate.threshold)}
    if isinstance(predicate, CloseToOffset):
        text = f"{format_number(predicate.expected)}±{format_number(predicate.tolerance)}"
        return {NumberKind.CLOSE_TO_OFFSET.value: text}
    if isinstance(predicate, CloseToPercent):
        text = f"{format_number(predicate.expected)}±{format_number(predicate.percent)}%"
        return {NumberKind.CLOSE_TO_PERCENT.value: text}
    if isinstance(predicate, WithinRange):
        return {NumberKind.WITHIN_RANGE.value: predicate.interval()}
    if isinstance(predicate, OutsideRange):
        return {NumberKind.OUTSIDE_RANGE.value: predicate.interval()}
    raise PredicateEncodeError(f"Unsupported number predicate: {type(predicate).__name__}")


def _require_number(key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PredicateDecodeError(
            f"Expected numeric value for '{key}', got {_json_kind(value)}"
        )
    return float(value)


def _require_string(key: str, value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise PredicateDecodeError(
            f"Expected string for {what} '{key}', got {_json_kind(value)}"
        )
    return _WHITESPACE.sub("", value)


def _parse_close_to(
    key: str,
    value: Any,
    pattern: re.Pattern[str],
    factory: Callable[[float, float], NumberPredicate],
) -> NumberPredicate:
    text = _require_string(key, value, "close-to pattern")
    match = pattern.match(text)
    if match is None:
        raise PredicateDecodeError(f"Invalid format for close-to pattern '{key}': {text!r}")
    expected = float(match.group("expected"))
    tolerance = float(match.group("tolerance"))
    return _construct(key, lambda: factory(expected, tolerance))


def _parse_range(
    key: str,
    value: Any,
    factory: Callable[..., NumberPredicate],
) -> NumberPredicate:
    text = _require_string(key, value, "within/outside range")
    match = RANGE_PATTERN.match(text)
    if match is None:
        raise PredicateDecodeError(f"Invalid format for within/outside range '{key}': {text!r}")
    return _construct(
        key,
        lambda: factory(
            lower=float(match.group("lower")),
            upper=float(match.group("upper")),
            exclusive_lower=match.group("open") == "(",
            exclusive_upper=match.group("close") == ")",
        ),
    )


def _construct(key: str, build: Callable[[], Any]) -> Any:
    try:
        return build()
    except ValidationError as exc:
        details = "; ".join(error["msg"] for error in exc.errors())
        raise PredicateDecodeError(f"Invalid arguments for '{key}': {details}") from exc


def decode_number(data: Any) -> NumberPredicate:
    """Decode a single-field dict into a number predicate."""
    if not isinstance(data, dict):
        raise PredicateDecodeError(f"Expected object, got {_json_kind(data)}")
    if not data:
        raise PredicateDecodeError("Expected single field as discriminator, found none")
    if len(data) > 1:
        raise PredicateDecodeError(
            f"Expected exactly one field as discriminator, found: {sorted(data)}"
        )

    key, value = next(iter(data.items()))
    kind = NUMBER_DISCRIMINATORS.get(key)
    if kind is None:
        raise PredicateDecodeError(f"Unknown discriminator: '{key}'")

    if kind is NumberKind.EQUAL_TO:
        return EqualTo(expected=_require_number(key, value))
    if kind is NumberKind.GREATER_THAN:
        return GreaterThan(threshold=_require_number(key, value))
    if kind is NumberKind.GREATER_OR_EQUAL:
        return GreaterOrEqual(threshold=_require_number(key, value))
    if kind is NumberKind.LESS_THAN:
        return LessThan(threshold=_require_number(key, value))
    if kind is NumberKind.LESS_OR_EQUAL:
        return LessOrEqual(threshold=_require_number(key, value))
    if kind is NumberKind.CLOSE_TO_OFFSET:
        return _parse_close_to(
            key,
            value,
            CLOSE_TO_OFFSET_PATTERN,
            lambda expected, tolerance: CloseToOffset(expected=expected, tolerance=tolerance),
        )
    if kind is NumberKind.CLOSE_TO_PERCENT:
        return _parse_close_to(
            key,
            value,
            CLOSE_TO_PERCENT_PATTERN,
            lambda expected, percent: CloseToPercent(expected=expected, percent=percent),
        )
    if kind is NumberKind.WITHIN_RANGE:
        return _parse_range(key, value, WithinRange)
    if kind is NumberKind.OUTSIDE_RANGE:
        return _parse_range(key, value, OutsideRange)
    raise RuntimeError(f"Unhandled number discriminator kind: {kind}")


# ---------------------------------------------------------------------------
# Text predicates
# ---------------------------------------------------------------------------

IGNORE_CASE = "ignoreCase"
IGNORE_NEW_LINES = "ignoreNewLines"
DOTALL = "dotall"

EQUALS_KEYS = ("eq", "=", "==")
CONTAINS_KEYS = ("has", "∋")
PATTERN_KEYS = ("like",)

TEXT_OPERATION_KEYS: frozenset[str] = frozenset(EQUALS_KEYS + CONTAINS_KEYS + PATTERN_KEYS)
TEXT_OPTION_KEYS: frozenset[str] = frozenset({IGNORE_CASE, IGNORE_NEW_LINES, DOTALL})
TEXT_ALLOWED_KEYS: frozenset[str] = TEXT_OPERATION_KEYS | TEXT_OPTION_KEYS


def encode_text(predicate: TextPredicate) -> dict[str, Any]:
    """Encode a text predicate as an operation field plus true-valued options."""
    result: dict[str, Any] = {}
    if isinstance(predicate, EqualsText):
        if predicate.expected is None:
            raise PredicateEncodeError("EqualsText with a null expected value has no wire form")
        result["eq"] = predicate.expected
        if predicate.ignore_new_lines:
            result[IGNORE_NEW_LINES] = True
    elif isinstance(predicate, ContainsText):
        result["has"] = predicate.substring
    elif isinstance(predicate, MatchesPattern):
        result["like"] = predicate.pattern
        if predicate.dotall_mode:
            result[DOTALL] = True
    else:
        raise PredicateEncodeError(f"Unsupported text predicate: {type(predicate).__name__}")

    if predicate.ignore_case:
        result[IGNORE_CASE] = True
    return result


def _read_option(data: dict[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise PredicateDecodeError(f"Option '{key}' must be a boolean, got {_json_kind(value)}")
    return value


def _operand_text(key: str, value: Any) -> str:
    if value is None:
        raise PredicateDecodeError(f"The value for '{key}' must not be null")
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    raise PredicateDecodeError(f"The value for '{key}' must be a string, got {_json_kind(value)}")


def decode_text(data: Any) -> TextPredicate:
    """Decode an operation-plus-options dict into a text predicate."""
    if not isinstance(data, dict):
        raise PredicateDecodeError(f"Expected object, got {_json_kind(data)}")

    for field in data:
        if field not in TEXT_ALLOWED_KEYS:
            raise PredicateDecodeError(f"Unknown field: {field}")

    operations = sorted(field for field in data if field in TEXT_OPERATION_KEYS)
    if len(operations) != 1:
        raise PredicateDecodeError(
            f"Exactly one operation key must be present, found: {operations}"
        )

    ignore_case = _read_option(data, IGNORE_CASE)
    ignore_new_lines = _read_option(data, IGNORE_NEW_LINES)
    dotall_mode = _read_option(data, DOTALL)

    key = operations[0]
    operand = _operand_text(key, data[key])

    if key in EQUALS_KEYS:
        return EqualsText(expected=operand, ignore_case=ignore_case, ignore_new_lines=ignore_new_lines)
    if key in CONTAINS_KEYS:
        return ContainsText(substring=operand, ignore_case=ignore_case)
    if key in PATTERN_KEYS:
        return _construct(
            key,
            lambda: MatchesPattern(pattern=operand, ignore_case=ignore_case, dotall_mode=dotall_mode),
        )
    raise RuntimeError(f"Unhandled text operation key: {key}")


# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------


def _json_kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise PredicateDecodeError(f"Invalid JSON: {exc}") from exc


def dumps_number(predicate: NumberPredicate) -> str:
    return json.dumps(encode_number(predicate), ensure_ascii=False)


def loads_number(text: str) -> NumberPredicate:
    predicate = decode_number(_load_json(text))
    logger.debug("number_predicate_decoded | wire=%s | predicate=%s", text, predicate)
    return predicate


def dumps_text(predicate: TextPredicate) -> str:
    return json.dumps(encode_text(predicate), ensure_ascii=False)


def loads_text(text: str) -> TextPredicate:
    predicate = decode_text(_load_json(text))
    logger.debug("text_predicate_decoded | wire=%s | predicate=%s", text, predicate)
    return predicate

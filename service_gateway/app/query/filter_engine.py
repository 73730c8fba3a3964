"""
Query-string filter engine.

Every query parameter becomes one predicate on the record field of the same
name. The operator comes from the value prefix:

    !x   not equal        >=x  greater or equal    <=x  less or equal
    >x   greater than     <x   less than           x    equal

Equality operands stay strings; ordering operands become numbers when the
remainder is a finite number. Values are percent-decoded before the prefix is
inspected, so ``%3E5`` means greater than 5.

A record matches when every predicate holds. Comparison rules per record
value type:

    missing / None   = false, != true, ordering false
    bool             = against "true" / "false"; ordering false
    int / float      = numeric equality when the operand is numeric;
                     ordering numeric, false against a string operand
    str              = exact string equality; ordering numeric when both
                     sides are numeric, lexical when both are strings
    other            = str(value) equality; ordering false

``!=`` is always the negation of ``=``.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Union
from urllib.parse import parse_qsl

from shared.errors import FilterError
from ..caching.models import Record

Operand = Union[str, int, float]

_MISSING = object()


class ComparisonOperator(str, Enum):
    """Predicate operators."""
    EQUALS = "="
    NOT_EQUALS = "!="
    GREATER_THAN = ">"
    LESS_THAN = "<"
    GREATER_OR_EQUAL = ">="
    LESS_OR_EQUAL = "<="


# Longer markers first so ">=" is not read as ">" followed by "="
_MARKERS = (
    (">=", ComparisonOperator.GREATER_OR_EQUAL),
    ("<=", ComparisonOperator.LESS_OR_EQUAL),
    ("!", ComparisonOperator.NOT_EQUALS),
    (">", ComparisonOperator.GREATER_THAN),
    ("<", ComparisonOperator.LESS_THAN),
)

_ORDERING = {
    ComparisonOperator.GREATER_THAN: lambda a, b: a > b,
    ComparisonOperator.LESS_THAN: lambda a, b: a < b,
    ComparisonOperator.GREATER_OR_EQUAL: lambda a, b: a >= b,
    ComparisonOperator.LESS_OR_EQUAL: lambda a, b: a <= b,
}


@dataclass(frozen=True)
class Predicate:
    """One field-scoped comparison."""

    operator: ComparisonOperator
    value: Operand


Predicates = Dict[str, Predicate]


def parse_number(text: str) -> Optional[Union[int, float]]:
    """Parse a finite int or float literal, else None."""
    candidate = text.strip()
    if not candidate or "_" in candidate:
        return None
    try:
        return int(candidate)
    except ValueError:
        pass
    try:
        number = float(candidate)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_query_string(query: str) -> Dict[str, str]:
    """Percent-decode a raw query string; a repeated key keeps its last value."""
    return dict(parse_qsl(query, keep_blank_values=True))


def parse_predicates(raw_params: Mapping[str, str]) -> Predicates:
    """Turn query parameters into predicates.

    Values must already be percent-decoded (see ``parse_query_string``); they
    are not decoded again here, so a literal ``%3E5`` stays an equality
    operand rather than turning into ``> 5``.
    """
    predicates: Predicates = {}
    for field, raw_value in raw_params.items():
        predicates[field] = _parse_value(raw_value)
    return predicates


def _parse_value(value: str) -> Predicate:
    for marker, operator in _MARKERS:
        if value.startswith(marker):
            remainder = value[len(marker):]
            if operator is ComparisonOperator.NOT_EQUALS:
                return Predicate(operator, remainder)
            number = parse_number(remainder)
            return Predicate(operator, remainder if number is None else number)
    return Predicate(ComparisonOperator.EQUALS, value)


def apply(records: Sequence[Record], predicates: Mapping[str, Predicate]) -> List[Record]:
    """Return the records matching every predicate, in their original order."""
    if not predicates:
        return list(records)
    return [record for record in records if matches(record, predicates)]


def matches(record: Record, predicates: Mapping[str, Predicate]) -> bool:
    if not isinstance(record, Mapping):
        raise FilterError("Record is not an object", details={"type": type(record).__name__})
    return all(
        _evaluate(record.get(field, _MISSING), predicate)
        for field, predicate in predicates.items()
    )


def _evaluate(value: object, predicate: Predicate) -> bool:
    try:
        operator = ComparisonOperator(predicate.operator)
    except ValueError as exc:
        raise FilterError("Unknown comparison operator", details={"operator": str(predicate.operator)}) from exc

    if operator is ComparisonOperator.EQUALS:
        return _equals(value, predicate.value)
    if operator is ComparisonOperator.NOT_EQUALS:
        return not _equals(value, predicate.value)
    return _ordered(value, predicate.value, _ORDERING[operator])


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _equals(value: object, operand: Operand) -> bool:
    if value is _MISSING or value is None:
        return False
    if isinstance(value, bool):
        return operand == ("true" if value else "false")
    if _is_number(value):
        number = operand if _is_number(operand) else parse_number(str(operand))
        return number is not None and value == number
    if isinstance(value, str):
        return value == str(operand)
    return str(value) == str(operand)


def _ordered(value: object, operand: Operand, compare) -> bool:
    if value is _MISSING or value is None or isinstance(value, bool):
        return False

    if _is_number(operand):
        if _is_number(value):
            return compare(value, operand)
        if isinstance(value, str):
            number = parse_number(value)
            return number is not None and compare(number, operand)
        return False

    if isinstance(value, str):
        return compare(value, operand)
    return False

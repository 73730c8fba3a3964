"""
Query filtering for dataset records.
"""

from .filter_engine import (
    ComparisonOperator,
    Predicate,
    Predicates,
    apply,
    parse_predicates,
    parse_query_string,
)

__all__ = [
    "ComparisonOperator",
    "Predicate",
    "Predicates",
    "apply",
    "parse_predicates",
    "parse_query_string",
]

"""
Unit tests for the query filter engine.
"""

import pytest

from shared.errors import FilterError
from service_gateway.app.query import filter_engine
from service_gateway.app.query.filter_engine import (
    ComparisonOperator,
    Predicate,
    apply,
    parse_number,
    parse_predicates,
    parse_query_string,
)


class TestParsePredicates:
    """Operator and operand parsing."""

    def test_not_equal_keeps_string(self):
        assert parse_predicates({"status": "!active"}) == {
            "status": Predicate(ComparisonOperator.NOT_EQUALS, "active")
        }

    def test_greater_or_equal_is_numeric(self):
        predicates = parse_predicates({"price": ">=100"})

        assert predicates == {"price": Predicate(ComparisonOperator.GREATER_OR_EQUAL, 100)}
        assert isinstance(predicates["price"].value, int)

    @pytest.mark.parametrize(
        "raw, operator, value",
        [
            ("<=2.5", ComparisonOperator.LESS_OR_EQUAL, 2.5),
            (">7", ComparisonOperator.GREATER_THAN, 7),
            ("<-3", ComparisonOperator.LESS_THAN, -3),
            ("42", ComparisonOperator.EQUALS, "42"),
            ("!42", ComparisonOperator.NOT_EQUALS, "42"),
            (">m", ComparisonOperator.GREATER_THAN, "m"),
            ("", ComparisonOperator.EQUALS, ""),
        ],
    )
    def test_markers(self, raw, operator, value):
        predicate = parse_predicates({"field": raw})["field"]

        assert predicate.operator is operator
        assert predicate.value == value
        assert type(predicate.value) is type(value)

    @pytest.mark.parametrize("text", ["abc", "", "1_000", "nan", "inf", "1e999"])
    def test_non_numbers_stay_strings(self, text):
        assert parse_number(text) is None
        assert parse_predicates({"f": f">{text}"})["f"].value == text

    def test_percent_decoding_happens_before_marker_detection(self):
        raw = parse_query_string("age=%3E%3D30&name=J%C3%BCrgen&status=%21active")

        assert raw == {"age": ">=30", "name": "Jürgen", "status": "!active"}
        assert parse_predicates(raw) == {
            "age": Predicate(ComparisonOperator.GREATER_OR_EQUAL, 30),
            "name": Predicate(ComparisonOperator.EQUALS, "Jürgen"),
            "status": Predicate(ComparisonOperator.NOT_EQUALS, "active"),
        }

    def test_predicates_are_not_decoded_twice(self):
        # "%253E5" on the wire is the literal text "%3E5"
        raw = parse_query_string("code=%253E5")

        assert raw == {"code": "%3E5"}
        assert parse_predicates(raw) == {"code": Predicate(ComparisonOperator.EQUALS, "%3E5")}
        assert apply([{"code": "%3E5"}, {"code": 6}], parse_predicates(raw)) == [{"code": "%3E5"}]

    def test_repeated_key_keeps_last_value(self):
        assert parse_query_string("a=1&a=2&b=") == {"a": "2", "b": ""}


class TestApply:
    """Record selection."""

    def test_range_filter_preserves_order(self):
        records = [{"age": 25}, {"age": 30}, {"age": 35}]

        result = apply(records, {"age": Predicate(ComparisonOperator.GREATER_OR_EQUAL, 30)})

        assert result == [{"age": 30}, {"age": 35}]

    def test_all_predicates_must_match(self):
        records = [
            {"a": "1", "b": "2"},
            {"a": "1", "b": "3"},
            {"a": "0", "b": "2"},
            {"a": 1, "b": 2},
        ]
        predicates = parse_predicates({"a": "1", "b": "2"})

        assert apply(records, predicates) == [{"a": "1", "b": "2"}, {"a": 1, "b": 2}]

    def test_no_predicates_returns_everything(self):
        records = [{"a": 1}, {"b": 2}]

        result = apply(records, {})

        assert result == records
        assert result is not records

    def test_missing_field(self):
        records = [{"name": "x"}]

        assert apply(records, parse_predicates({"age": "30"})) == []
        assert apply(records, parse_predicates({"age": "!30"})) == records
        assert apply(records, parse_predicates({"age": ">1"})) == []
        assert apply(records, parse_predicates({"age": "<z"})) == []

    def test_null_field(self):
        records = [{"age": None}]

        assert apply(records, parse_predicates({"age": "null"})) == []
        assert apply(records, parse_predicates({"age": "!null"})) == records
        assert apply(records, parse_predicates({"age": "<=0"})) == []

    def test_numeric_field_equality_parses_operand(self):
        records = [{"score": 30}, {"score": 30.5}]

        assert apply(records, parse_predicates({"score": "30.0"})) == [{"score": 30}]
        assert apply(records, parse_predicates({"score": "!30"})) == [{"score": 30.5}]
        assert apply(records, parse_predicates({"score": "thirty"})) == []

    def test_string_field_equality_is_exact(self):
        records = [{"code": "007"}, {"code": "7"}]

        assert apply(records, parse_predicates({"code": "7"})) == [{"code": "7"}]

    def test_bool_field(self):
        records = [{"active": True}, {"active": False}]

        assert apply(records, parse_predicates({"active": "true"})) == [{"active": True}]
        assert apply(records, parse_predicates({"active": "!true"})) == [{"active": False}]
        assert apply(records, parse_predicates({"active": "1"})) == []
        assert apply(records, parse_predicates({"active": ">0"})) == []

    def test_numeric_string_field_compares_numerically(self):
        records = [{"price": "9"}, {"price": "10"}, {"price": "n/a"}]

        assert apply(records, parse_predicates({"price": ">=10"})) == [{"price": "10"}]

    def test_string_operand_compares_lexically(self):
        records = [{"name": "alice"}, {"name": "bob"}, {"name": 5}]

        assert apply(records, parse_predicates({"name": ">b"})) == [{"name": "bob"}]
        assert apply(records, parse_predicates({"name": "<b"})) == [{"name": "alice"}]

    def test_non_record_raises_filter_error(self):
        with pytest.raises(FilterError):
            apply([["not", "a", "record"]], parse_predicates({"a": "1"}))

    def test_unknown_operator_raises_filter_error(self):
        with pytest.raises(FilterError):
            filter_engine.matches({"a": 1}, {"a": Predicate("~", 1)})

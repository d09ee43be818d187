"""Tests for the data aggregator."""
import pytest

from scrape_engine.models import AggregationOperation, AggregationRule, ProcessedRecord
from scrape_engine.services import DataAggregator
from scrape_engine.services.data_aggregator import extract_field_value


def make_records(*maps):
    return [ProcessedRecord(original_id=f"raw-{i}", processed=m) for i, m in enumerate(maps)]


@pytest.fixture
def aggregator():
    return DataAggregator()


class TestDataAggregator:
    """Tests for DataAggregator."""

    @pytest.mark.parametrize(
        "operation,expected",
        [
            ("sum", 6),
            ("average", 2),
            ("count", 3),
            ("min", 1),
            ("max", 3),
            ("first", 1),
            ("last", 3),
        ],
    )
    def test_single_default_group(self, aggregator, operation, expected):
        records = make_records({"x": 1}, {"x": 2}, {"x": 3})
        result = aggregator.aggregate(records, [AggregationRule(fields=["x"], operation=operation)])

        assert len(result) == 1
        assert result[0].group_key == "default"
        assert result[0].aggregated["x"] == expected

    def test_source_ids_are_kept(self, aggregator):
        records = make_records({"x": 1}, {"x": 2})
        result = aggregator.aggregate(records, [AggregationRule(fields=["x"], operation="sum")])
        assert result[0].source_ids == [r.id for r in records]

    def test_group_by_parameter(self, aggregator):
        """Test grouping by the first rule's group_by field."""
        records = make_records(
            {"category": "books", "price": 10},
            {"category": "games", "price": 50},
            {"category": "books", "price": 15},
            {"price": 99},
        )
        rules = [
            AggregationRule(fields=["price"], operation="sum", parameters={"group_by": "category"}),
        ]
        groups = {g.group_key: g for g in aggregator.aggregate(records, rules)}

        assert set(groups) == {"books", "games", None}
        assert groups["books"].aggregated["price"] == 25
        assert groups["games"].aggregated["price"] == 50
        assert groups[None].aggregated["price"] == 99

    def test_literal_default_value_kept_apart(self, aggregator):
        """Test a literal default value stays apart from records missing the field."""
        records = make_records(
            {"category": "default", "price": 1},
            {"price": 2},
            {"category": None, "price": 4},
        )
        rules = [
            AggregationRule(fields=["price"], operation="sum", parameters={"group_by": "category"}),
        ]
        groups = {g.group_key: g for g in aggregator.aggregate(records, rules)}

        assert groups["default"].aggregated["price"] == 1
        assert groups["default"].source_ids == [records[0].id]
        assert groups[None].aggregated["price"] == 6

    def test_multiple_rules_per_group(self, aggregator):
        records = make_records({"x": 1, "name": "a"}, {"x": 3, "name": "b"})
        result = aggregator.aggregate(
            records,
            [
                AggregationRule(fields=["x"], operation="average"),
                AggregationRule(fields=["name"], operation="concat", parameters={"separator": "|"}),
            ],
        )
        assert result[0].aggregated == {"x": 2, "name": "a|b"}

    def test_none_values_excluded(self, aggregator):
        records = make_records({"x": 4}, {"x": None}, {})
        result = aggregator.aggregate(
            records,
            [AggregationRule(fields=["x"], operation="average")],
        )
        assert result[0].aggregated["x"] == 4

    def test_empty_reductions(self, aggregator):
        assert aggregator.apply_operation([], AggregationOperation.AVERAGE) == 0
        assert aggregator.apply_operation([None], AggregationOperation.MIN) is None
        assert aggregator.apply_operation([], AggregationOperation.FIRST) is None
        assert aggregator.apply_operation([], AggregationOperation.COUNT) == 0

    def test_first_keeps_falsy_values(self, aggregator):
        assert aggregator.apply_operation([0, 5], AggregationOperation.FIRST) == 0
        assert aggregator.apply_operation([5, ""], AggregationOperation.LAST) == ""

    def test_concat_default_separator(self, aggregator):
        assert aggregator.apply_operation(["a", "b"], AggregationOperation.CONCAT) == "a, b"

    def test_numeric_strings_are_summed(self, aggregator):
        assert aggregator.apply_operation(["1.5", 2], AggregationOperation.SUM) == 3.5

    def test_shallow_merge(self, aggregator):
        """Test later values win in a shallow merge."""
        merged = aggregator.apply_operation(
            [{"a": 1, "nested": {"x": 1}}, {"b": 2, "nested": {"y": 2}}],
            AggregationOperation.MERGE,
        )
        assert merged == {"a": 1, "b": 2, "nested": {"y": 2}}

    def test_deep_merge(self, aggregator):
        merged = aggregator.apply_operation(
            [{"nested": {"x": 1}, "tags": ["a"]}, {"nested": {"y": 2}, "tags": ["a", "b"]}],
            AggregationOperation.MERGE,
            {"deep": True},
        )
        assert merged == {"nested": {"x": 1, "y": 2}, "tags": ["a", "b"]}

    def test_dotted_path(self, aggregator):
        records = make_records({"address": {"city": "Oslo"}}, {"address": {"city": "Bergen"}}, {"address": None})
        result = aggregator.aggregate(
            records, [AggregationRule(fields=["address.city"], operation="count")]
        )
        assert result[0].aggregated["address.city"] == 2

    def test_extract_field_value(self):
        data = {"a": {"b": {"c": 1}}, "x": 5}
        assert extract_field_value(data, "a.b.c") == 1
        assert extract_field_value(data, "a.missing.c") is None
        assert extract_field_value(data, "x.y") is None

"""Tests for the function registry and the cleaning engine."""
import pytest

from scrape_engine.models import CleaningCondition, CleaningRule, ConditionOperator
from scrape_engine.services import CleaningEngine, FunctionRegistry
from scrape_engine.services.cleaning import matches_condition, matches_conditions
from scrape_engine.services.registry import is_date, is_email, is_phone, is_url


@pytest.fixture
def cleaning_engine(registry):
    return CleaningEngine(registry)


class TestFunctionRegistry:
    """Tests for FunctionRegistry."""

    def test_builtins_registered(self, registry):
        """Test the built-in transformers and validators are seeded."""
        assert registry.transformer_names == [
            "lowercase",
            "parseNumber",
            "removeSpecialChars",
            "trim",
            "uppercase",
        ]
        assert registry.validator_names == ["date", "email", "phone", "url"]

    def test_empty_registry(self):
        """Test a registry can start without built-ins."""
        empty = FunctionRegistry(with_builtins=False)
        assert empty.get_transformer("trim") is None
        assert empty.validator_names == []

    def test_duplicate_registration_overwrites(self, registry):
        """Test registering an existing name replaces the entry."""
        registry.register_transformer("uppercase", lambda value, params=None: "replaced")
        assert registry.get_transformer("uppercase")("abc") == "replaced"

    def test_missing_name_returns_none(self, registry):
        assert registry.get_transformer("nope") is None
        assert registry.get_validator("nope") is None

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("$1,234.50", 1234.5),
            ("42 items", 42),
            ("-7", -7),
            ("abc", "abc"),
            (12, 12),
        ],
    )
    def test_parse_number(self, registry, value, expected):
        """Test parseNumber strips non-numeric characters and never raises."""
        assert registry.get_transformer("parseNumber")(value) == expected

    def test_string_transformers(self, registry):
        assert registry.get_transformer("uppercase")("abc") == "ABC"
        assert registry.get_transformer("lowercase")("ABC") == "abc"
        assert registry.get_transformer("trim")("  x ") == "x"
        assert registry.get_transformer("removeSpecialChars")("a-b_c!") == "abc"
        assert registry.get_transformer("uppercase")(5) == 5

    def test_validators(self):
        """Test the built-in validators are plain predicates."""
        assert is_email("jane@example.com")
        assert not is_email("jane@example")
        assert is_url("https://example.com/page")
        assert not is_url("example")
        assert is_phone("+1 (555) 123-4567")
        assert not is_phone("call me")
        assert is_date("2024-01-15")
        assert is_date("Jan 15, 2024")
        assert not is_date("someday")
        assert not is_email(None)


class TestConditions:
    """Tests for rule conditions."""

    def test_equals_and_negate(self):
        condition = CleaningCondition(field="status", operator="equals", value="active")
        assert matches_condition({"status": "active"}, condition)
        assert not matches_condition({"status": "inactive"}, condition)

        negated = CleaningCondition(field="status", operator="equals", value="active", negate=True)
        assert matches_condition({"status": "inactive"}, negated)

    def test_string_operators_require_strings(self):
        assert matches_condition(
            {"name": "Acme Corp"},
            CleaningCondition(field="name", operator=ConditionOperator.CONTAINS, value="Corp"),
        )
        assert matches_condition(
            {"name": "Acme Corp"},
            CleaningCondition(field="name", operator="startsWith", value="Acme"),
        )
        assert matches_condition(
            {"name": "Acme Corp"},
            CleaningCondition(field="name", operator="endsWith", value="Corp"),
        )
        assert not matches_condition(
            {"name": 42}, CleaningCondition(field="name", operator="contains", value="4")
        )

    def test_matches_regex(self):
        condition = CleaningCondition(field="sku", operator="matches", value=r"^[A-Z]{3}-\d+$")
        assert matches_condition({"sku": "ABC-123"}, condition)
        assert not matches_condition({"sku": "abc"}, condition)

    def test_numeric_operators(self):
        assert matches_condition({"n": 5}, CleaningCondition(field="n", operator="gt", value=3))
        assert matches_condition({"n": 1}, CleaningCondition(field="n", operator="lt", value=3))
        assert matches_condition(
            {"n": 3}, CleaningCondition(field="n", operator="between", value=[1, 3])
        )
        assert not matches_condition({"n": "5"}, CleaningCondition(field="n", operator="gt", value=3))
        assert not matches_condition({"n": True}, CleaningCondition(field="n", operator="gt", value=0))

    def test_conditions_use_and_semantics(self):
        conditions = [
            CleaningCondition(field="status", operator="equals", value="active"),
            CleaningCondition(field="n", operator="gt", value=10),
        ]
        assert matches_conditions({"status": "active", "n": 11}, conditions)
        assert not matches_conditions({"status": "active", "n": 9}, conditions)
        assert matches_conditions({}, [])


class TestCleaningEngine:
    """Tests for CleaningEngine."""

    @pytest.mark.asyncio
    async def test_trim(self, cleaning_engine):
        """Test trimming a string field."""
        cleaned, transformations = await cleaning_engine.apply(
            {"name": "  Jane  "}, [CleaningRule(field="name", operation="trim")]
        )
        assert cleaned["name"] == "Jane"
        assert len(transformations) == 1
        assert transformations[0].before == "  Jane  "
        assert transformations[0].after == "Jane"
        assert transformations[0].success

    @pytest.mark.asyncio
    async def test_input_is_not_mutated(self, cleaning_engine):
        record = {"name": "  Jane  "}
        await cleaning_engine.apply(record, [CleaningRule(field="name", operation="trim")])
        assert record == {"name": "  Jane  "}

    @pytest.mark.asyncio
    async def test_condition_not_matched_skips_rule(self, cleaning_engine):
        """Test a rule whose condition fails leaves no trace."""
        rule = CleaningRule(
            field="name",
            operation="normalize",
            parameters={"case": "upper"},
            conditions=[CleaningCondition(field="status", operator="equals", value="active")],
        )
        record = {"name": "jane", "status": "inactive"}

        cleaned, transformations = await cleaning_engine.apply(record, [rule])

        assert cleaned["name"] == record["name"]
        assert not [t for t in transformations if t.field == "name"]

        cleaned, transformations = await cleaning_engine.apply(
            {"name": "jane", "status": "active"}, [rule]
        )
        assert cleaned["name"] == "JANE"
        assert len(transformations) == 1

    @pytest.mark.asyncio
    async def test_unknown_operation_is_soft_failure(self, cleaning_engine):
        """Test an unknown operation marks the transformation unsuccessful."""
        cleaned, transformations = await cleaning_engine.apply(
            {"name": "Jane"},
            [
                CleaningRule(field="name", operation="explode"),
                CleaningRule(field="name", operation="normalize", parameters={"case": "lower"}),
            ],
        )
        assert not transformations[0].success
        assert transformations[0].error == "Unknown operation: explode"
        assert transformations[0].after == "Jane"
        # Later rules still run
        assert cleaned["name"] == "jane"

    @pytest.mark.asyncio
    async def test_normalize(self, cleaning_engine):
        cleaned, _ = await cleaning_engine.apply(
            {"city": "  new york "},
            [CleaningRule(field="city", operation="normalize", parameters={"trim": True, "case": "title"})],
        )
        assert cleaned["city"] == "New York"

    @pytest.mark.asyncio
    async def test_format_date(self, cleaning_engine):
        cleaned, transformations = await cleaning_engine.apply(
            {"published": "2024-01-15"},
            [
                CleaningRule(
                    field="published",
                    operation="format",
                    parameters={"type": "date", "format": "%d/%m/%Y"},
                )
            ],
        )
        assert cleaned["published"] == "15/01/2024"
        assert transformations[0].success

    @pytest.mark.asyncio
    async def test_format_number(self, cleaning_engine):
        cleaned, _ = await cleaning_engine.apply(
            {"price": 3.14159},
            [CleaningRule(field="price", operation="format", parameters={"type": "number", "decimals": 2})],
        )
        assert cleaned["price"] == 3.14

    @pytest.mark.asyncio
    async def test_validate(self, cleaning_engine):
        """Test a failed validation keeps the field and marks the step unsuccessful."""
        rule = CleaningRule(field="email", operation="validate", parameters={"validator": "email"})

        cleaned, transformations = await cleaning_engine.apply({"email": "not-an-email"}, [rule])
        assert cleaned["email"] == "not-an-email"
        assert not transformations[0].success

        _, transformations = await cleaning_engine.apply({"email": "jane@example.com"}, [rule])
        assert transformations[0].success

    @pytest.mark.asyncio
    async def test_unknown_validator_and_transformer(self, cleaning_engine):
        """Test missing registry names are a no-op with success=False."""
        cleaned, transformations = await cleaning_engine.apply(
            {"x": "value"},
            [
                CleaningRule(field="x", operation="validate", parameters={"validator": "missing"}),
                CleaningRule(field="x", operation="transform", parameters={"transformer": "missing"}),
            ],
        )
        assert cleaned["x"] == "value"
        assert [t.success for t in transformations] == [False, False]
        assert "missing" in transformations[1].error

    @pytest.mark.asyncio
    async def test_transform_with_builtin(self, cleaning_engine):
        cleaned, _ = await cleaning_engine.apply(
            {"price": "$19.99"},
            [CleaningRule(field="price", operation="transform", parameters={"transformer": "parseNumber"})],
        )
        assert cleaned["price"] == 19.99

    @pytest.mark.asyncio
    async def test_transform_with_async_function(self, registry, cleaning_engine):
        """Test coroutine transformers are awaited."""

        async def double(value, parameters=None):
            return value * 2

        registry.register_transformer("double", double)
        cleaned, _ = await cleaning_engine.apply(
            {"n": 21}, [CleaningRule(field="n", operation="transform", parameters={"transformer": "double"})]
        )
        assert cleaned["n"] == 42

    @pytest.mark.asyncio
    async def test_transformer_exception_propagates(self, registry, cleaning_engine):
        """Test errors raised by registered functions reach the caller."""

        def broken(value, parameters=None):
            raise ValueError("broken transformer")

        registry.register_transformer("broken", broken)
        with pytest.raises(ValueError, match="broken transformer"):
            await cleaning_engine.apply(
                {"n": 1},
                [CleaningRule(field="n", operation="transform", parameters={"transformer": "broken"})],
            )

    @pytest.mark.asyncio
    async def test_filter_keeps_value(self, cleaning_engine):
        cleaned, transformations = await cleaning_engine.apply(
            {"status": "spam"}, [CleaningRule(field="status", operation="filter")]
        )
        assert cleaned["status"] == "spam"
        assert transformations[0].success

    @pytest.mark.asyncio
    async def test_replace_is_global(self, cleaning_engine):
        cleaned, _ = await cleaning_engine.apply(
            {"phone": "555-123-4567"},
            [CleaningRule(field="phone", operation="replace", parameters={"pattern": "-", "replacement": ""})],
        )
        assert cleaned["phone"] == "5551234567"

    @pytest.mark.asyncio
    async def test_replace_backreferences(self, cleaning_engine):
        """Test replacements use Python group syntax; $1 stays literal."""
        rule = CleaningRule(
            field="date",
            operation="replace",
            parameters={"pattern": r"(\d{2})/(\d{2})/(\d{4})", "replacement": r"\3-\2-\g<1>"},
        )
        cleaned, _ = await cleaning_engine.apply({"date": "24/12/2025"}, [rule])
        assert cleaned["date"] == "2025-12-24"

        dollar = CleaningRule(
            field="name",
            operation="replace",
            parameters={"pattern": r"(\w+)", "replacement": "$1"},
        )
        cleaned, _ = await cleaning_engine.apply({"name": "abc"}, [dollar])
        assert cleaned["name"] == "$1"

    @pytest.mark.asyncio
    async def test_replace_invalid_pattern(self, cleaning_engine):
        cleaned, transformations = await cleaning_engine.apply(
            {"text": "abc"},
            [CleaningRule(field="text", operation="replace", parameters={"pattern": "("})],
        )
        assert cleaned["text"] == "abc"
        assert not transformations[0].success

    @pytest.mark.asyncio
    async def test_missing_field_not_added(self, cleaning_engine):
        cleaned, transformations = await cleaning_engine.apply(
            {"name": "x"}, [CleaningRule(field="missing", operation="trim")]
        )
        assert "missing" not in cleaned
        assert transformations[0].before is None

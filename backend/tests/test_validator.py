"""Tests for field constraint validation and defaulting."""

import pytest

from canteen.metadata.loader import EntityField
from canteen.validation import FieldConstraintValidator, apply_defaults, validate
from conftest import NOTE, PRODUCT, WIDGET, make_schema


def check(value, is_update=False, **field_kwargs):
    field_kwargs.setdefault("type", "string")
    validator = FieldConstraintValidator(EntityField(name="f", **field_kwargs))
    return validator.validate(value, is_update=is_update)


# =============================================================================
# Required
# =============================================================================


class TestRequired:
    def test_missing_required_on_create(self):
        result = validate(make_schema(NOTE), {})
        assert result.errors == ["Field 'title' is required"]

    def test_null_counts_as_missing(self):
        result = validate(make_schema(NOTE), {"title": None})
        assert not result.valid

    def test_update_skips_required(self):
        result = validate(make_schema(NOTE), {"body": "text"}, is_update=True)
        assert result.valid

    def test_update_rejects_null_required(self):
        result = validate(make_schema(NOTE), {"title": None}, is_update=True)
        assert result.errors == ["Field 'title' is required"]
        assert check(None, is_update=True, required=True) == ["Field 'f' is required"]
        assert check(None, is_update=True) == []

    def test_empty_string_satisfies_required_but_not_min_length(self):
        assert check("", required=True) == []
        assert check("", required=True, min_length=2) == [
            "Field 'f' must be at least 2 characters"
        ]


# =============================================================================
# Types
# =============================================================================


class TestTypes:
    @pytest.mark.parametrize("value", [1, 2.5, 0, -3])
    def test_numbers(self, value):
        assert check(value, type="number") == []

    @pytest.mark.parametrize("value", ["5", True, [], float("nan"), float("inf")])
    def test_not_numbers(self, value):
        assert check(value, type="number") == ["Field 'f' must be a number"]

    def test_boolean(self):
        assert check(False, type="boolean") == []
        assert check("true", type="boolean") == ["Field 'f' must be a boolean"]
        assert check(1, type="boolean") == ["Field 'f' must be a boolean"]

    def test_string(self):
        assert check(5) == ["Field 'f' must be a string"]

    @pytest.mark.parametrize("value", [{}, [], {"a": [1]}])
    def test_json(self, value):
        assert check(value, type="json") == []

    def test_json_rejects_scalars(self):
        assert check("x", type="json") == ["Field 'f' must be a valid JSON object or array"]

    def test_unknown_type_validated_as_string(self):
        assert check("2024-01-01T00:00:00", type="datetime") == []
        assert check(5, type="datetime") == ["Field 'f' must be a string"]


# =============================================================================
# Constraints
# =============================================================================


class TestConstraints:
    def test_min_length(self):
        assert check("abc", min_length=3) == []
        assert check("ab", min_length=3) == ["Field 'f' must be at least 3 characters"]

    def test_enum(self):
        assert check("open", enum=("open", "closed")) == []
        assert check("x", enum=("open", "closed")) == ["Field 'f' must be one of: open, closed"]

    def test_inclusive_bounds(self):
        assert check(0, type="number", minimum=0, maximum=10) == []
        assert check(10, type="number", minimum=0, maximum=10) == []
        assert check(-1, type="number", minimum=0) == ["Field 'f' must be at least 0"]
        assert check(11, type="number", maximum=10) == ["Field 'f' must be at most 10"]

    def test_float_bounds_keep_fraction(self):
        assert check(0.1, type="number", minimum=0.5) == ["Field 'f' must be at least 0.5"]

    def test_integral_float_bound_renders_as_integer(self):
        assert check(-1, type="number", minimum=0.0) == ["Field 'f' must be at least 0"]

    @pytest.mark.parametrize("value", ["a@b.co", "first.last+tag@uni.example.edu"])
    def test_valid_email(self, value):
        assert check(value, format="email") == []

    @pytest.mark.parametrize("value", ["not-an-email", "a@b", "@b.com", "a b@c.com"])
    def test_invalid_email(self, value):
        assert check(value, format="email") == ["Field 'f' must be a valid email address"]

    def test_email_too_long(self):
        value = "a" * 250 + "@b.com"
        assert check(value, format="email") == ["Field 'f' must be a valid email address"]

    def test_date(self):
        assert check("2024-02-29", format="date") == []
        message = "Field 'f' must be a valid date (YYYY-MM-DD)"
        assert check("2023-02-29", format="date") == [message]
        assert check("2024-2-1", format="date") == [message]
        assert check("tomorrow", format="date") == [message]

    def test_unrecognized_format_is_ignored(self):
        assert check("anything", format="uri") == []


# =============================================================================
# Entity validation
# =============================================================================


class TestValidate:
    def test_accumulates_every_error(self):
        result = validate(
            make_schema(NOTE),
            {"title": "x", "priority": 9, "status": "done", "pinned": "yes"},
        )
        assert not result.valid
        assert result.errors == [
            "Field 'title' must be at least 2 characters",
            "Field 'priority' must be at most 5",
            "Field 'status' must be one of: open, closed",
            "Field 'pinned' must be a boolean",
        ]

    def test_unknown_keys_ignored(self):
        result = validate(make_schema(WIDGET), {"count": 1, "colour": "red"})
        assert result.valid

    def test_implicit_columns_not_validated(self):
        result = validate(make_schema(WIDGET), {"count": 1, "id": 5, "created_by": 7})
        assert result.valid

    def test_does_not_mutate_input(self):
        data = {"count": 20}
        validate(make_schema(WIDGET), data)
        assert data == {"count": 20}

    def test_out_of_range_number(self):
        result = validate(make_schema(WIDGET), {"count": 20})
        assert result.errors == ["Field 'count' must be at most 10"]


class TestApplyDefaults:
    def test_fills_absent_fields(self):
        data = apply_defaults(make_schema(NOTE), {"title": "hello"})
        assert data["priority"] == 3
        assert data["status"] == "open"
        assert data["pinned"] is False
        assert data["tags"] == []
        assert "body" not in data

    def test_explicit_null_is_kept(self):
        data = apply_defaults(make_schema(NOTE), {"title": "hello", "status": None})
        assert data["status"] is None

    def test_explicit_value_wins(self):
        data = apply_defaults(make_schema(PRODUCT), {"name": "Tea", "active": False})
        assert data["active"] is False

    def test_mutable_defaults_are_copied(self):
        schema = make_schema(NOTE)
        first = apply_defaults(schema, {})
        first["tags"].append("x")
        assert apply_defaults(schema, {})["tags"] == []

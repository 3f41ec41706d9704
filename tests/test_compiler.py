"""
Unit tests for the field-definition compiler.
"""
import pytest

from compiler import DEFAULT_TEL_MIN_LENGTH, compile_fields
from errors import ValidationError
from schemas import DEFAULT_FIELDS, FieldDefinition, FieldType


def make_field(name, type="text", required=False, label=None, **extra):
    return FieldDefinition(id=name, name=name, label=label or name.title(), type=type,
                           required=required, **extra)


class TestFieldType:

    @pytest.mark.parametrize("raw,expected", [
        ("text", FieldType.TEXT),
        ("email", FieldType.EMAIL),
        ("number", FieldType.NUMBER),
        ("date", FieldType.DATE),
        ("datetime", FieldType.DATETIME),
        ("datetime-local", FieldType.DATETIME),
        ("tel", FieldType.TEL),
        ("color", FieldType.TEXT),
        ("", FieldType.TEXT),
        (None, FieldType.TEXT),
    ])
    def test_parse(self, raw, expected):
        assert FieldType.parse(raw) is expected


class TestCompileFields:

    def test_key_set_matches_field_names(self):
        """Validator keys are exactly the field names"""
        fields = [make_field("fullName"), make_field("email", "email"), make_field("guests", "number")]
        validator = compile_fields(fields)

        assert validator.names() == {"fullName", "email", "guests"}
        assert len(validator) == 3
        assert "guests" in validator

    def test_empty_field_list_accepts_anything(self):
        validator = compile_fields([])
        result = validator.validate({"anything": "goes", "n": 3})

        assert result.ok
        assert result.errors == {}
        assert result.cleaned == {}

    def test_none_record_is_treated_as_empty(self):
        validator = compile_fields([make_field("notes")])
        assert validator.validate(None).ok

    def test_duplicate_names_last_write_wins(self):
        fields = [
            make_field("code", "number", required=True, label="First"),
            make_field("code", "text", required=True, label="Second", min_length=3),
        ]
        validator = compile_fields(fields)

        assert len(validator) == 1
        assert validator.rules["code"].label == "Second"
        assert validator.validate({"code": "ab"}).errors == {"code": "Second must be at least 3 characters"}
        assert validator.validate({"code": "abc"}).ok

    def test_compile_is_idempotent(self):
        fields = [
            make_field("guests", "number", required=True, min=1, max=8),
            make_field("email", "email"),
            make_field("phone", "tel"),
        ]
        first, second = compile_fields(fields), compile_fields(fields)
        records = [
            {},
            {"guests": "3", "email": "guest@gmail.com", "phone": "0123456789"},
            {"guests": "nine", "email": "nope", "phone": "123"},
            {"guests": 12},
        ]
        for record in records:
            assert first.validate(record) == second.validate(record)

    def test_messages_are_stable_across_calls(self):
        validator = compile_fields([make_field("guests", "number", min=2, label="Guests")])
        messages = {validator.validate({"guests": "1"}).errors["guests"] for _ in range(3)}
        assert messages == {"Guests must be at least 2"}

    def test_unknown_keys_are_dropped(self):
        validator = compile_fields([make_field("fullName")])
        result = validator.validate({"fullName": "Ada", "extra": "x"})
        assert dict(result.cleaned) == {"fullName": "Ada"}


class TestRequiredWrapping:

    @pytest.mark.parametrize("field_type", ["text", "email", "number", "date", "datetime", "tel", "color"])
    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_required_empty_is_violation(self, field_type, value):
        validator = compile_fields([make_field("x", field_type, required=True, label="Thing")])
        assert validator.validate({"x": value}).errors == {"x": "Thing is required"}

    @pytest.mark.parametrize("field_type", ["text", "email", "number", "date", "datetime", "tel"])
    def test_required_missing_key_is_violation(self, field_type):
        validator = compile_fields([make_field("x", field_type, required=True, label="Thing")])
        assert validator.validate({}).errors == {"x": "Thing is required"}

    @pytest.mark.parametrize("field_type", ["text", "email", "number", "date", "datetime", "tel"])
    @pytest.mark.parametrize("record", [{}, {"x": None}, {"x": ""}])
    def test_optional_empty_is_valid(self, field_type, record):
        validator = compile_fields([make_field("x", field_type, min_length=5, min=1, max=2)])
        result = validator.validate(record)

        assert result.ok
        assert "x" not in result.cleaned


class TestNumberRule:

    @pytest.fixture
    def validator(self):
        return compile_fields([make_field("guests", "number", required=True, label="Guests", min=5, max=10)])

    def test_non_numeric_is_type_mismatch(self, validator):
        assert validator.validate({"guests": "abc"}).errors == {"guests": "Guests must be a number"}

    @pytest.mark.parametrize("value", [True, "1_000", "nan", "inf", [7]])
    def test_other_non_numbers_rejected(self, validator, value):
        assert validator.validate({"guests": value}).errors == {"guests": "Guests must be a number"}

    def test_below_min(self, validator):
        assert validator.validate({"guests": 3}).errors == {"guests": "Guests must be at least 5"}

    def test_within_range(self, validator):
        result = validator.validate({"guests": "7"})
        assert result.ok
        assert result.cleaned["guests"] == 7
        assert isinstance(result.cleaned["guests"], int)

    def test_above_max(self, validator):
        assert validator.validate({"guests": "12"}).errors == {"guests": "Guests must be at most 10"}

    def test_type_message_differs_from_range_messages(self, validator):
        type_error = validator.validate({"guests": "x"}).errors["guests"]
        low = validator.validate({"guests": 1}).errors["guests"]
        high = validator.validate({"guests": 99}).errors["guests"]
        assert len({type_error, low, high}) == 3

    def test_overlong_digit_string_is_not_a_number(self, validator):
        assert validator.validate({"guests": "9" * 5000}).errors == {"guests": "Guests must be a number"}

    def test_long_in_range_integer_string(self):
        validator = compile_fields([make_field("n", "number", label="N")])
        assert validator.validate({"n": "1" * 50}).cleaned["n"] == int("1" * 50)

    def test_decimal_input(self):
        validator = compile_fields([make_field("amount", "number", max=2.5, label="Amount")])
        assert validator.validate({"amount": "1.5"}).cleaned["amount"] == 1.5
        assert validator.validate({"amount": "3"}).errors == {"amount": "Amount must be at most 2.5"}

    def test_min_greater_than_max_is_unsatisfiable(self):
        validator = compile_fields([make_field("n", "number", label="N", min=10, max=5)])

        assert validator.validate({"n": 7}).errors == {"n": "N must be at least 10"}
        assert validator.validate({"n": 12}).errors == {"n": "N must be at most 5"}
        assert validator.validate({"n": 3}).errors == {"n": "N must be at least 10"}


class TestStringRules:

    def test_tel_default_min_length(self):
        validator = compile_fields([make_field("phone", "tel", label="Phone")])

        assert DEFAULT_TEL_MIN_LENGTH == 10
        assert validator.validate({"phone": "12345"}).errors == {
            "phone": "Phone must be at least 10 characters"
        }
        assert validator.validate({"phone": "0123456789"}).ok

    def test_tel_custom_min_length(self):
        validator = compile_fields([make_field("phone", "tel", label="Phone", min_length=5)])
        assert validator.validate({"phone": "12345"}).ok
        assert validator.validate({"phone": "1234"}).errors == {"phone": "Phone must be at least 5 characters"}

    def test_text_min_length(self):
        validator = compile_fields([make_field("fullName", label="Full Name", min_length=2)])
        assert validator.validate({"fullName": "A"}).errors == {
            "fullName": "Full Name must be at least 2 characters"
        }
        assert validator.validate({"fullName": "Al"}).ok

    def test_text_without_min_length_is_free(self):
        validator = compile_fields([make_field("notes")])
        assert validator.validate({"notes": "x"}).ok

    def test_unknown_type_behaves_as_text(self):
        validator = compile_fields([make_field("shade", "color", label="Shade", min_length=4)])
        assert validator.validate({"shade": "red"}).errors == {"shade": "Shade must be at least 4 characters"}
        assert validator.validate({"shade": "#fff"}).ok

    @pytest.mark.parametrize("value,ok", [
        ("guest@gmail.com", True),
        ("not-an-email", False),
        ("missing@", False),
        (42, False),
    ])
    def test_email(self, value, ok):
        validator = compile_fields([make_field("email", "email", label="Email")])
        result = validator.validate({"email": value})
        if ok:
            assert result.ok
        else:
            assert result.errors == {"email": "Email must be a valid email"}

    def test_email_is_stripped_in_cleaned_record(self):
        validator = compile_fields([make_field("email", "email", label="Email")])
        result = validator.validate({"email": "  guest@gmail.com "})

        assert result.ok
        assert result.cleaned["email"] == "guest@gmail.com"

    @pytest.mark.parametrize("field_type", ["date", "datetime", "datetime-local"])
    @pytest.mark.parametrize("value,ok", [
        ("2024-05-01", True),
        ("2024-05-01T18:30", True),
        ("2024-05-01T18:30:00+02:00", True),
        ("2024-02-30", False),
        ("tomorrow", False),
    ])
    def test_dates(self, field_type, value, ok):
        validator = compile_fields([make_field("when", field_type, label="Date & Time")])
        result = validator.validate({"when": value})
        if ok:
            assert result.ok
        else:
            assert result.errors == {"when": "Date & Time must be a valid date"}


class TestEnsureValid:

    def test_returns_cleaned_record(self):
        validator = compile_fields(DEFAULT_FIELDS)
        record = {"fullName": "Ada Lovelace", "email": "ada@gmail.com", "date": "2024-05-01T19:00"}

        assert validator.ensure_valid(record) == record

    def test_raises_with_every_failed_field(self):
        validator = compile_fields(DEFAULT_FIELDS)

        with pytest.raises(ValidationError) as exc_info:
            validator.ensure_valid({"fullName": "A", "email": "nope"})

        assert exc_info.value.errors == {
            "fullName": "Full Name must be at least 2 characters",
            "email": "Email must be a valid email",
            "date": "Date & Time is required",
        }

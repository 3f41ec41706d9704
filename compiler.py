"""
Compile admin-authored field definitions into a reusable validator.

Each field type maps to a rule builder; a builder reads the field's
constraints once and returns a check closing over its error messages, so the
messages of one compiled validator never change between calls.

Duplicate field names follow a last-write-wins policy: the rule compiled for
a later field replaces the earlier one.
"""

import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from errors import ValidationError
from schemas import FieldDefinition, FieldType

DEFAULT_TEL_MIN_LENGTH = 10
MAX_INT_DIGITS = 4300

_NUMBER_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_EMAIL = TypeAdapter(EmailStr)

# A check returns (error message or None, cleaned value).
Check = Callable[[Any], Tuple[Optional[str], Any]]


def _is_absent(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _format_bound(bound: float) -> str:
    if isinstance(bound, float) and bound.is_integer():
        return str(int(bound))
    return str(bound)


def _to_number(value: Any):
    if isinstance(value, bool):
        raise ValueError("booleans are not numbers")
    if isinstance(value, (int, float)):
        number = value
    else:
        text = str(value).strip()
        if not _NUMBER_RE.fullmatch(text):
            raise ValueError(f"not a number: {value!r}")
        # Digit strings past the int conversion limit go through float and overflow to inf.
        if any(c in text for c in ".eE") or len(text) > MAX_INT_DIGITS:
            number = float(text)
        else:
            number = int(text)
    if isinstance(number, float) and not math.isfinite(number):
        raise ValueError("non-finite number")
    return number


def _min_length_check(min_length: int, message: str) -> Check:
    def check(value):
        if len(str(value)) < min_length:
            return message, value
        return None, value
    return check


# --- Rule builders ---

def _email_rule(field: FieldDefinition) -> Check:
    message = f"{field.label} must be a valid email"

    def check(value):
        if not isinstance(value, str):
            return message, value
        address = value.strip()
        try:
            _EMAIL.validate_python(address)
        except PydanticValidationError:
            return message, value
        return None, address
    return check


def _number_rule(field: FieldDefinition) -> Check:
    type_message = f"{field.label} must be a number"
    lower, upper = field.min, field.max
    min_message = f"{field.label} must be at least {_format_bound(lower)}" if lower is not None else None
    max_message = f"{field.label} must be at most {_format_bound(upper)}" if upper is not None else None

    def check(value):
        try:
            number = _to_number(value)
        except (TypeError, ValueError):
            return type_message, value
        if lower is not None and number < lower:
            return min_message, number
        if upper is not None and number > upper:
            return max_message, number
        return None, number
    return check


def _date_rule(field: FieldDefinition) -> Check:
    message = f"{field.label} must be a valid date"

    def check(value):
        if isinstance(value, (date, datetime)):
            return None, value
        if not isinstance(value, str):
            return message, value
        try:
            datetime.fromisoformat(value.strip())
        except ValueError:
            return message, value
        return None, value
    return check


def _tel_rule(field: FieldDefinition) -> Check:
    min_length = field.min_length if field.min_length else DEFAULT_TEL_MIN_LENGTH
    return _min_length_check(min_length, f"{field.label} must be at least {min_length} characters")


def _text_rule(field: FieldDefinition) -> Check:
    if not field.min_length:
        return lambda value: (None, value)
    return _min_length_check(
        field.min_length, f"{field.label} must be at least {field.min_length} characters"
    )


RULE_BUILDERS: Dict[FieldType, Callable[[FieldDefinition], Check]] = {
    FieldType.EMAIL: _email_rule,
    FieldType.NUMBER: _number_rule,
    FieldType.DATE: _date_rule,
    FieldType.DATETIME: _date_rule,
    FieldType.TEL: _tel_rule,
    FieldType.TEXT: _text_rule,
}


@dataclass(frozen=True)
class FieldRule:
    name: str
    label: str
    field_type: FieldType
    required: bool
    required_message: str
    check: Check


@dataclass(frozen=True)
class ValidationResult:
    errors: Mapping[str, str]
    cleaned: Mapping[str, Any]

    @property
    def ok(self) -> bool:
        return not self.errors


class CompiledValidator:
    """Immutable set of field rules keyed by field name."""

    def __init__(self, rules: Mapping[str, FieldRule]):
        self._rules = MappingProxyType(dict(rules))

    @property
    def rules(self) -> Mapping[str, FieldRule]:
        return self._rules

    def names(self) -> frozenset:
        return frozenset(self._rules)

    def __contains__(self, name) -> bool:
        return name in self._rules

    def __len__(self) -> int:
        return len(self._rules)

    def validate(self, record: Optional[Mapping[str, Any]]) -> ValidationResult:
        """
        Validate a submitted record.

        Returns the first violated message per field, and the record
        restricted to declared fields with numbers converted. Keys the
        validator does not know are dropped; absent optional fields are
        omitted from the cleaned data.
        """
        record = record or {}
        errors: Dict[str, str] = {}
        cleaned: Dict[str, Any] = {}
        for name, rule in self._rules.items():
            value = record.get(name)
            if _is_absent(value):
                if rule.required:
                    errors[name] = rule.required_message
                continue
            error, value = rule.check(value)
            if error:
                errors[name] = error
            else:
                cleaned[name] = value
        return ValidationResult(errors=MappingProxyType(errors), cleaned=MappingProxyType(cleaned))

    def ensure_valid(self, record: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Return the cleaned record or raise ValidationError."""
        result = self.validate(record)
        if not result.ok:
            raise ValidationError(result.errors)
        return dict(result.cleaned)


def compile_rule(field: FieldDefinition) -> FieldRule:
    field_type = field.field_type
    return FieldRule(
        name=field.name,
        label=field.label,
        field_type=field_type,
        required=field.required,
        required_message=f"{field.label} is required",
        check=RULE_BUILDERS[field_type](field),
    )


def compile_fields(fields: Iterable[FieldDefinition]) -> CompiledValidator:
    """Build a validator for a list of field definitions (may be empty)."""
    rules: Dict[str, FieldRule] = {}
    for field in fields:
        rules[field.name] = compile_rule(field)
    return CompiledValidator(rules)

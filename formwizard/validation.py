"""
Field and section validation for dynamic forms.

Validation Rules Documentation:
===============================

Each field is validated independently. Rules are evaluated in a fixed
order and the first failing rule wins.

1. CHECKBOX
   - Required checkbox must be checked (custom validation message if supplied)
   - No other rule applies

2. ALL OTHER TYPES (value treated as text)
   - Required: value must not be empty or whitespace-only
   - minLength: trimmed length must be at least minLength
   - maxLength: raw length must not exceed maxLength
   - Email: local@domain.tld, letters/digits/._- in the local part,
     dot-separated domain labels, 2-4 letter top-level domain
   - Phone: 10 to 15 digits, no formatting characters

Section Validation:
===================
- A section is valid when every one of its fields is valid
- Fields missing from the answers are validated as their default value
- No cross-field or cross-section rules exist
"""

import re
from typing import Dict, List, Any, Optional, Callable, Mapping
from dataclasses import dataclass, field

from formwizard.schema import FieldDefinition, FieldType, SectionDefinition


@dataclass
class ValidationError:
    """Represents a single validation error."""
    field: str
    message: str
    code: str


@dataclass
class ValidationResult:
    """Container for validation results."""
    errors: List[ValidationError] = field(default_factory=list)
    is_valid: bool = True

    def add_error(self, field: str, message: str, code: str = 'invalid'):
        """Add a validation error."""
        self.errors.append(ValidationError(field, message, code))
        self.is_valid = False

    @property
    def first_message(self) -> Optional[str]:
        return self.errors[0].message if self.errors else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            'ok': self.is_valid,
            'errors': [
                {'field': e.field, 'message': e.message, 'code': e.code}
                for e in self.errors
            ]
        }


@dataclass
class SectionValidation:
    """
    Validation state of one section.

    This is a cache derived from (section, answers); it is recomputed after
    every answer change and never treated as a source of truth.
    """
    errors: Dict[str, Optional[str]] = field(default_factory=dict)
    is_valid: bool = True

    def error_for(self, field_id: str) -> Optional[str]:
        return self.errors.get(field_id)

    def failing_fields(self) -> List[str]:
        return [field_id for field_id, message in self.errors.items() if message]

    def to_dict(self) -> Dict[str, Any]:
        return {'valid': self.is_valid, 'errors': dict(self.errors)}


# Messages
REQUIRED_MESSAGE = 'This field is required'
MIN_LENGTH_MESSAGE = 'Minimum length is {} characters'
MAX_LENGTH_MESSAGE = 'Maximum length is {} characters'
EMAIL_MESSAGE = 'Please enter a valid email address'
PHONE_MESSAGE = 'Please enter a valid phone number'
CREDENTIALS_MESSAGE = 'Please fill in all fields'

# Regex patterns (intentionally permissive, do not tighten)
EMAIL_PATTERN = re.compile(r'[A-Za-z0-9_.-]+@([A-Za-z0-9_-]+\.)+[A-Za-z]{2,4}')
PHONE_PATTERN = re.compile(r'[0-9]{10,15}')


def _as_text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return ', '.join(str(v) for v in value)
    return str(value)


def _required_message(field_def: FieldDefinition) -> str:
    return field_def.validation_message or REQUIRED_MESSAGE


def _validate_checkbox(field_def: FieldDefinition, value: Any) -> Optional[str]:
    if field_def.required and not value:
        return _required_message(field_def)
    return None


def _validate_text(field_def: FieldDefinition, value: Any) -> Optional[str]:
    text = _as_text(value)

    if field_def.required and text.strip() == '':
        return _required_message(field_def)

    if field_def.min_length is not None and len(text.strip()) < field_def.min_length:
        return MIN_LENGTH_MESSAGE.format(field_def.min_length)

    if field_def.max_length is not None and len(text) > field_def.max_length:
        return MAX_LENGTH_MESSAGE.format(field_def.max_length)

    return None


def _validate_email(field_def: FieldDefinition, value: Any) -> Optional[str]:
    error = _validate_text(field_def, value)
    if error:
        return error
    text = _as_text(value)
    if text and not EMAIL_PATTERN.fullmatch(text):
        return EMAIL_MESSAGE
    return None


def _validate_phone(field_def: FieldDefinition, value: Any) -> Optional[str]:
    error = _validate_text(field_def, value)
    if error:
        return error
    text = _as_text(value)
    if text and not PHONE_PATTERN.fullmatch(text):
        return PHONE_MESSAGE
    return None


# One rule strategy per field variant
FIELD_VALIDATORS: Dict[FieldType, Callable[[FieldDefinition, Any], Optional[str]]] = {
    FieldType.TEXT: _validate_text,
    FieldType.PHONE: _validate_phone,
    FieldType.EMAIL: _validate_email,
    FieldType.TEXTAREA: _validate_text,
    FieldType.DATE: _validate_text,
    FieldType.DROPDOWN: _validate_text,
    FieldType.RADIO: _validate_text,
    FieldType.CHECKBOX: _validate_checkbox,
}


def validate_field(field_def: FieldDefinition, value: Any) -> Optional[str]:
    """
    Validate a single field value.

    Args:
        field_def: The field schema
        value: Current answer value (None is treated as the field default)

    Returns:
        Error message, or None when the value is valid
    """
    if value is None:
        value = field_def.default_value()
    return FIELD_VALIDATORS[field_def.type](field_def, value)


def validate_section(section: SectionDefinition, answers: Mapping[str, Any]) -> SectionValidation:
    """
    Validate every field of a section against the current answers.

    Args:
        section: The active section schema
        answers: Mapping (or AnswerStore) of field id to value

    Returns:
        SectionValidation with a per-field error map and the aggregate flag
    """
    result = SectionValidation()

    for field_def in section.fields:
        value = answers.get(field_def.field_id)
        message = validate_field(field_def, value)
        result.errors[field_def.field_id] = message
        if message:
            result.is_valid = False

    return result


def validate_credentials(roll_number: Any, name: Any) -> ValidationResult:
    """Validate the credential screen inputs (both must be non-blank)."""
    result = ValidationResult()

    if not _as_text(roll_number).strip():
        result.add_error('rollNumber', CREDENTIALS_MESSAGE, 'required')

    if not _as_text(name).strip():
        result.add_error('name', CREDENTIALS_MESSAGE, 'required')

    return result

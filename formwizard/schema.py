"""
Form schema model.

Typed, immutable representation of a form definition as served by the
remote form service. A form is an ordered list of sections; each section is
an ordered list of fields.

Wire Format:
============
{
    "form": {
        "formTitle": "...",
        "formId": "...",
        "version": "...",
        "sections": [
            {
                "sectionId": 1,
                "title": "...",
                "description": "...",
                "fields": [
                    {
                        "fieldId": "...",
                        "type": "text|tel|email|textarea|date|dropdown|radio|checkbox",
                        "label": "...",
                        "placeholder": "...",
                        "required": true,
                        "dataTestId": "...",
                        "minLength": 2,
                        "maxLength": 50,
                        "validation": {"message": "..."},
                        "options": [{"value": "...", "label": "...", "dataTestId": "..."}]
                    }
                ]
            }
        ]
    }
}
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Any, Optional, Tuple, Union


AnswerValue = Union[str, bool, List[str]]


class SchemaError(ValueError):
    """Raised when a form definition violates the schema invariants."""


class FieldType(Enum):
    """Closed set of field variants supported by the form engine."""
    TEXT = 'text'
    PHONE = 'tel'
    EMAIL = 'email'
    TEXTAREA = 'textarea'
    DATE = 'date'
    DROPDOWN = 'dropdown'
    RADIO = 'radio'
    CHECKBOX = 'checkbox'

    @property
    def is_boolean(self) -> bool:
        return self is FieldType.CHECKBOX

    @property
    def requires_options(self) -> bool:
        return self in (FieldType.DROPDOWN, FieldType.RADIO)

    @property
    def widget(self) -> str:
        """Name of the presentation macro that renders this variant."""
        return _WIDGETS[self]

    def default_value(self) -> AnswerValue:
        """Value seeded into the answer store before the first edit."""
        return False if self.is_boolean else ''


_WIDGETS = {
    FieldType.TEXT: 'input',
    FieldType.PHONE: 'input',
    FieldType.EMAIL: 'input',
    FieldType.TEXTAREA: 'textarea',
    FieldType.DATE: 'date',
    FieldType.DROPDOWN: 'select',
    FieldType.RADIO: 'radio_group',
    FieldType.CHECKBOX: 'checkbox',
}


def _optional_length(data: Dict[str, Any], key: str, field_id: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise SchemaError(f'Field "{field_id}": {key} must be an integer')
    if value < 0:
        raise SchemaError(f'Field "{field_id}": {key} must not be negative')
    return value


@dataclass(frozen=True)
class FieldOption:
    """One choice of a dropdown or radio field."""
    value: str
    label: str
    data_test_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FieldOption':
        if not isinstance(data, dict) or 'value' not in data:
            raise SchemaError('Option must be an object with a value')
        value = str(data['value'])
        return cls(
            value=value,
            label=str(data.get('label', value)),
            data_test_id=data.get('dataTestId')
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'value': self.value, 'label': self.label, 'dataTestId': self.data_test_id}


@dataclass(frozen=True)
class FieldDefinition:
    """Schema of a single form input."""
    field_id: str
    type: FieldType
    label: str = ''
    placeholder: str = ''
    required: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    options: Tuple[FieldOption, ...] = ()
    validation_message: Optional[str] = None
    data_test_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FieldDefinition':
        if not isinstance(data, dict):
            raise SchemaError('Field definition must be an object')

        field_id = data.get('fieldId')
        if not field_id or not isinstance(field_id, str):
            raise SchemaError('Field definition is missing a fieldId')

        try:
            field_type = FieldType(data.get('type'))
        except ValueError:
            raise SchemaError(f'Field "{field_id}": unsupported field type {data.get("type")!r}')

        options = tuple(FieldOption.from_dict(o) for o in (data.get('options') or []))
        if field_type.requires_options and not options:
            raise SchemaError(f'Field "{field_id}": {field_type.value} fields need at least one option')

        min_length = _optional_length(data, 'minLength', field_id)
        max_length = _optional_length(data, 'maxLength', field_id)
        if min_length is not None and max_length is not None and min_length > max_length:
            raise SchemaError(f'Field "{field_id}": minLength exceeds maxLength')

        validation = data.get('validation') or {}

        return cls(
            field_id=field_id,
            type=field_type,
            label=data.get('label') or '',
            placeholder=data.get('placeholder') or '',
            required=bool(data.get('required', False)),
            min_length=min_length,
            max_length=max_length,
            options=options,
            validation_message=validation.get('message') if isinstance(validation, dict) else None,
            data_test_id=data.get('dataTestId')
        )

    def default_value(self) -> AnswerValue:
        return self.type.default_value()

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'fieldId': self.field_id,
            'type': self.type.value,
            'label': self.label,
            'placeholder': self.placeholder,
            'required': self.required,
            'dataTestId': self.data_test_id,
        }
        if self.min_length is not None:
            result['minLength'] = self.min_length
        if self.max_length is not None:
            result['maxLength'] = self.max_length
        if self.validation_message:
            result['validation'] = {'message': self.validation_message}
        if self.options:
            result['options'] = [o.to_dict() for o in self.options]
        return result


@dataclass(frozen=True)
class SectionDefinition:
    """Ordered group of fields shown as one step."""
    title: str = ''
    description: str = ''
    fields: Tuple[FieldDefinition, ...] = ()
    section_id: Optional[Any] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SectionDefinition':
        if not isinstance(data, dict):
            raise SchemaError('Section definition must be an object')
        return cls(
            title=data.get('title') or '',
            description=data.get('description') or '',
            fields=tuple(FieldDefinition.from_dict(f) for f in (data.get('fields') or [])),
            section_id=data.get('sectionId')
        )

    @property
    def field_ids(self) -> List[str]:
        return [f.field_id for f in self.fields]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sectionId': self.section_id,
            'title': self.title,
            'description': self.description,
            'fields': [f.to_dict() for f in self.fields],
        }


@dataclass(frozen=True)
class FormDefinition:
    """A complete form schema."""
    form_id: str
    form_title: str
    version: str
    sections: Tuple[SectionDefinition, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.sections:
            raise SchemaError('Form must contain at least one section')

        seen = set()
        for section in self.sections:
            for f in section.fields:
                if f.field_id in seen:
                    raise SchemaError(f'Duplicate fieldId "{f.field_id}"')
                seen.add(f.field_id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FormDefinition':
        if not isinstance(data, dict):
            raise SchemaError('Form definition must be an object')
        return cls(
            form_id=str(data.get('formId', '')),
            form_title=data.get('formTitle') or '',
            version=str(data.get('version', '')),
            sections=tuple(SectionDefinition.from_dict(s) for s in (data.get('sections') or []))
        )

    @classmethod
    def from_response(cls, payload: Dict[str, Any]) -> 'FormDefinition':
        """Unwrap the ``{"form": {...}}`` envelope returned by the form service."""
        if not isinstance(payload, dict) or 'form' not in payload:
            raise SchemaError('Response does not contain a form')
        return cls.from_dict(payload['form'])

    @property
    def section_count(self) -> int:
        return len(self.sections)

    def get_field(self, field_id: str) -> Optional[FieldDefinition]:
        for section in self.sections:
            for f in section.fields:
                if f.field_id == field_id:
                    return f
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'formId': self.form_id,
            'formTitle': self.form_title,
            'version': self.version,
            'sections': [s.to_dict() for s in self.sections],
        }

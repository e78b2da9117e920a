"""
Answer store: the session's field id -> value mapping.
"""

from typing import Dict, List, Optional, Callable

from formwizard.schema import AnswerValue, SectionDefinition


class AnswerStore:
    """
    Accumulated answers of one form session.

    Entries are created with a type-appropriate default the first time
    their section is activated, replaced on every edit and never deleted
    while the session lives. Values are not checked against the schema.
    """

    def __init__(self, on_change: Optional[Callable[[str, AnswerValue], None]] = None):
        self._values: Dict[str, AnswerValue] = {}
        self.on_change = on_change

    def get(self, field_id: str, default: Optional[AnswerValue] = None) -> Optional[AnswerValue]:
        """Return the current value, or ``default`` if the field was never seeded."""
        return self._values.get(field_id, default)

    def set(self, field_id: str, value: AnswerValue):
        """Replace a value unconditionally and notify the change listener."""
        self._values[field_id] = value
        if self.on_change is not None:
            self.on_change(field_id, value)

    def seed_section(self, section: SectionDefinition) -> List[str]:
        """
        Give every field of ``section`` without an entry its default value.

        Seeding never triggers the change listener.

        Returns:
            Ids of the fields that were seeded
        """
        seeded = []
        for field_def in section.fields:
            if field_def.field_id not in self._values:
                self._values[field_def.field_id] = field_def.default_value()
                seeded.append(field_def.field_id)
        return seeded

    def to_dict(self) -> Dict[str, AnswerValue]:
        """Copy of all answers in insertion order."""
        return {
            k: list(v) if isinstance(v, list) else v
            for k, v in self._values.items()
        }

    def __contains__(self, field_id: str) -> bool:
        return field_id in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self):
        return f'<AnswerStore {len(self._values)} answers>'

"""
Section navigation state machine.

States are the section indexes 0..N-1 of a form. Progression is gated on
the validity of the active section:

- advance: only when the active section is valid and is not the last one
- retreat: always allowed from any section but the first; the section left
  behind is not re-validated, the one entered is checked against current answers
- submit: only on the last section when it is valid; navigation is not reset

A rejected advance or submit forces a full re-validation so that latent
errors become visible, but performs no transition.
"""

from typing import Dict, Any, Optional, Callable, Set

from formwizard.answers import AnswerStore
from formwizard.schema import AnswerValue, FormDefinition, SectionDefinition
from formwizard.validation import SectionValidation, validate_section


SubmitHandler = Callable[[Dict[str, AnswerValue]], Any]


class NavigationAction:
    """Constants for navigation actions."""
    ADVANCE = 'next'
    RETREAT = 'prev'
    SUBMIT = 'submit'

    ALL = (ADVANCE, RETREAT, SUBMIT)


class FormNavigator:
    """Tracks the active section and gates transitions on its validity."""

    def __init__(self, form: FormDefinition, answers: Optional[AnswerStore] = None,
                 on_submit: Optional[SubmitHandler] = None):
        self.form = form
        self.answers = answers if answers is not None else AnswerStore()
        self.on_submit = on_submit
        self.submit_count = 0
        self._index = 0
        self._validations: Dict[int, SectionValidation] = {}
        self._revealed: Set[int] = set()

        self.answers.on_change = self._on_answer_changed
        self._activate(0)

    # State

    @property
    def index(self) -> int:
        return self._index

    @property
    def section_count(self) -> int:
        return self.form.section_count

    @property
    def current_section(self) -> SectionDefinition:
        return self.form.sections[self._index]

    @property
    def is_first(self) -> bool:
        return self._index == 0

    @property
    def is_last(self) -> bool:
        return self._index == self.section_count - 1

    @property
    def validation(self) -> SectionValidation:
        return self._validations[self._index]

    @property
    def is_section_valid(self) -> bool:
        return self.validation.is_valid

    @property
    def can_advance(self) -> bool:
        return self.is_section_valid and not self.is_last

    @property
    def can_submit(self) -> bool:
        return self.is_section_valid and self.is_last

    @property
    def errors_visible(self) -> bool:
        """Whether the active section's errors should be shown to the user."""
        return self._index in self._revealed

    @property
    def progress(self) -> float:
        """Completion percentage, counting the active section as reached."""
        return (self._index + 1) / self.section_count * 100

    # Validation

    def recompute(self) -> SectionValidation:
        """Re-validate the active section against the current answers."""
        validation = validate_section(self.current_section, self.answers)
        self._validations[self._index] = validation
        return validation

    def set_answer(self, field_id: str, value: AnswerValue) -> SectionValidation:
        """Store an answer; validation is up to date when this returns."""
        self.answers.set(field_id, value)
        return self.validation

    def _on_answer_changed(self, field_id: str, value: AnswerValue):
        if field_id in self.current_section.field_ids:
            self._revealed.add(self._index)
            self.recompute()
            return
        # Edited from outside its section; revalidated when that section is entered again
        for index, section in enumerate(self.form.sections):
            if field_id in section.field_ids:
                self._validations.pop(index, None)

    def _activate(self, index: int):
        self._index = index
        self.answers.seed_section(self.current_section)
        self.recompute()

    # Transitions

    def advance(self) -> bool:
        """Move to the next section if the active one is valid."""
        if not self.is_section_valid:
            self._reveal()
            return False
        if self.is_last:
            return False
        self._activate(self._index + 1)
        return True

    def retreat(self) -> bool:
        """Move to the previous section; the section left behind is not validated."""
        if self._index == 0:
            return False
        self._index -= 1
        self.recompute()
        return True

    def submit(self) -> bool:
        """Hand all answers to the submit handler if the last section is valid."""
        if not self.is_section_valid:
            self._reveal()
            return False
        if not self.is_last:
            return False
        self.submit_count += 1
        if self.on_submit is not None:
            self.on_submit(self.answers.to_dict())
        return True

    def perform(self, action: str) -> bool:
        """Dispatch a navigation action by name."""
        if action == NavigationAction.ADVANCE:
            return self.advance()
        if action == NavigationAction.RETREAT:
            return self.retreat()
        if action == NavigationAction.SUBMIT:
            return self.submit()
        raise ValueError(f'Unknown navigation action: {action!r}')

    def _reveal(self):
        self._revealed.add(self._index)
        self.recompute()

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot of the navigation and validation state."""
        return {
            'index': self._index,
            'sectionCount': self.section_count,
            'isLast': self.is_last,
            'progress': self.progress,
            'section': self.current_section.to_dict(),
            'validation': self.validation.to_dict(),
            'errorsVisible': self.errors_visible,
            'answers': self.answers.to_dict(),
            'submitCount': self.submit_count,
        }

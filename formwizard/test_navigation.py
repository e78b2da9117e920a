"""
Navigation and Answer Store Tests

Tests for the section state machine:
- Default seeding on section activation
- Validation recomputed after every answer change
- advance/submit gated on section validity
- retreat always allowed past the first section
"""

import unittest

from formwizard.answers import AnswerStore
from formwizard.navigation import FormNavigator, NavigationAction
from formwizard.schema import (
    FormDefinition, SectionDefinition, FieldDefinition, FieldType, FieldOption
)


def two_section_form():
    return FormDefinition(
        form_id='f1',
        form_title='Test Form',
        version='1',
        sections=(
            SectionDefinition(
                title='Name',
                fields=(FieldDefinition(field_id='name', type=FieldType.TEXT, required=True),)
            ),
            SectionDefinition(
                title='Extras',
                fields=(
                    FieldDefinition(field_id='notes', type=FieldType.TEXTAREA, max_length=20),
                    FieldDefinition(field_id='newsletter', type=FieldType.CHECKBOX),
                    FieldDefinition(
                        field_id='year', type=FieldType.DROPDOWN,
                        options=(FieldOption('1', 'First'), FieldOption('2', 'Second'))
                    ),
                )
            ),
        )
    )


class TestAnswerStore(unittest.TestCase):
    """Test the answer store."""

    def test_get_absent_returns_none(self):
        store = AnswerStore()
        self.assertIsNone(store.get('missing'))
        self.assertNotIn('missing', store)

    def test_set_replaces_unconditionally(self):
        store = AnswerStore()
        store.set('a', 'x')
        store.set('a', True)
        self.assertIs(store.get('a'), True)

    def test_seed_only_missing_fields(self):
        form = two_section_form()
        store = AnswerStore()
        store.set('notes', 'kept')
        seeded = store.seed_section(form.sections[1])
        self.assertEqual(seeded, ['newsletter', 'year'])
        self.assertEqual(store.get('notes'), 'kept')
        self.assertIs(store.get('newsletter'), False)
        self.assertEqual(store.get('year'), '')

    def test_seed_does_not_notify(self):
        changes = []
        store = AnswerStore(on_change=lambda k, v: changes.append(k))
        store.seed_section(two_section_form().sections[1])
        self.assertEqual(changes, [])
        store.set('notes', 'hi')
        self.assertEqual(changes, ['notes'])

    def test_to_dict_is_a_copy(self):
        store = AnswerStore()
        store.set('tags', ['a'])
        snapshot = store.to_dict()
        snapshot['tags'].append('b')
        snapshot['other'] = 'x'
        self.assertEqual(store.get('tags'), ['a'])
        self.assertNotIn('other', store)


class TestNavigator(unittest.TestCase):
    """Test the section navigation state machine."""

    def setUp(self):
        self.submitted = []
        self.navigator = FormNavigator(two_section_form(), on_submit=self.submitted.append)

    def test_initial_state(self):
        self.assertEqual(self.navigator.index, 0)
        self.assertTrue(self.navigator.is_first)
        self.assertFalse(self.navigator.is_section_valid)
        self.assertFalse(self.navigator.errors_visible)
        self.assertEqual(self.navigator.answers.get('name'), '')

    def test_later_sections_not_seeded_until_activated(self):
        self.assertNotIn('notes', self.navigator.answers)

    def test_validation_recomputed_on_set(self):
        validation = self.navigator.set_answer('name', 'Alice')
        self.assertTrue(validation.is_valid)
        self.assertTrue(self.navigator.can_advance)
        self.navigator.set_answer('name', '   ')
        self.assertFalse(self.navigator.is_section_valid)

    def test_direct_store_mutation_keeps_validation_current(self):
        self.navigator.answers.set('name', 'Bob')
        self.assertTrue(self.navigator.is_section_valid)

    def test_empty_name_blocks_advance(self):
        self.navigator.set_answer('name', '')
        self.assertFalse(self.navigator.advance())
        self.assertEqual(self.navigator.index, 0)
        self.assertEqual(self.navigator.validation.error_for('name'), 'This field is required')
        self.assertTrue(self.navigator.errors_visible)

    def test_invalid_advance_reveals_errors_without_edit(self):
        self.assertFalse(self.navigator.advance())
        self.assertTrue(self.navigator.errors_visible)
        self.assertEqual(self.navigator.validation.failing_fields(), ['name'])

    def test_valid_name_advances_by_one(self):
        self.navigator.set_answer('name', 'Alice')
        self.assertTrue(self.navigator.advance())
        self.assertEqual(self.navigator.index, 1)
        self.assertIs(self.navigator.answers.get('newsletter'), False)
        self.assertTrue(self.navigator.is_last)

    def test_advance_on_last_section_does_nothing(self):
        self.navigator.set_answer('name', 'Alice')
        self.navigator.advance()
        self.assertFalse(self.navigator.advance())
        self.assertEqual(self.navigator.index, 1)

    def test_retreat_from_first_section_is_noop(self):
        self.assertFalse(self.navigator.retreat())
        self.assertEqual(self.navigator.index, 0)

    def test_retreat_ignores_validity(self):
        self.navigator.set_answer('name', 'Alice')
        self.navigator.advance()
        self.navigator.set_answer('notes', 'x' * 30)
        self.assertFalse(self.navigator.is_section_valid)
        self.assertTrue(self.navigator.retreat())
        self.assertEqual(self.navigator.index, 0)

    def test_retreat_keeps_answers(self):
        self.navigator.set_answer('name', 'Alice')
        self.navigator.advance()
        self.navigator.set_answer('notes', 'hello')
        self.navigator.retreat()
        self.navigator.advance()
        self.assertEqual(self.navigator.answers.get('notes'), 'hello')

    def test_edit_to_earlier_section_is_validated_on_return(self):
        self.navigator.set_answer('name', 'Alice')
        self.navigator.advance()
        self.navigator.set_answer('name', '')
        self.assertTrue(self.navigator.is_section_valid)
        self.navigator.retreat()
        self.assertFalse(self.navigator.is_section_valid)
        self.assertEqual(self.navigator.validation.error_for('name'), 'This field is required')
        self.assertFalse(self.navigator.advance())
        self.assertEqual(self.navigator.index, 0)

    def test_submit_requires_last_section(self):
        self.navigator.set_answer('name', 'Alice')
        self.assertFalse(self.navigator.submit())
        self.assertEqual(self.submitted, [])

    def test_submit_delivers_all_answers_with_defaults(self):
        self.navigator.set_answer('name', 'Alice')
        self.navigator.advance()
        self.assertTrue(self.navigator.submit())
        self.assertEqual(self.submitted, [{
            'name': 'Alice', 'notes': '', 'newsletter': False, 'year': ''
        }])
        self.assertEqual(self.navigator.index, 1)

    def test_submit_once_per_call(self):
        self.navigator.set_answer('name', 'Alice')
        self.navigator.advance()
        self.navigator.submit()
        self.navigator.submit()
        self.assertEqual(len(self.submitted), 2)
        self.assertEqual(self.navigator.submit_count, 2)

    def test_invalid_submit_does_not_call_handler(self):
        form = FormDefinition(
            form_id='f2', form_title='One', version='1',
            sections=(SectionDefinition(fields=(
                FieldDefinition(field_id='agree', type=FieldType.CHECKBOX, required=True),
            )),)
        )
        submitted = []
        navigator = FormNavigator(form, on_submit=submitted.append)
        self.assertFalse(navigator.submit())
        self.assertEqual(submitted, [])
        self.assertTrue(navigator.errors_visible)
        navigator.set_answer('agree', True)
        self.assertTrue(navigator.submit())
        self.assertEqual(submitted, [{'agree': True}])

    def test_progress(self):
        self.assertEqual(self.navigator.progress, 50.0)
        self.navigator.set_answer('name', 'Alice')
        self.navigator.advance()
        self.assertEqual(self.navigator.progress, 100.0)

    def test_perform_dispatch(self):
        self.navigator.set_answer('name', 'Alice')
        self.assertTrue(self.navigator.perform(NavigationAction.ADVANCE))
        self.assertTrue(self.navigator.perform(NavigationAction.RETREAT))
        with self.assertRaises(ValueError):
            self.navigator.perform('jump')

    def test_to_dict(self):
        state = self.navigator.to_dict()
        self.assertEqual(state['index'], 0)
        self.assertEqual(state['sectionCount'], 2)
        self.assertFalse(state['validation']['valid'])
        self.assertEqual(state['answers'], {'name': ''})
        self.assertEqual(state['submitCount'], 0)


if __name__ == '__main__':
    unittest.main()

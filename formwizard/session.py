"""
Form session context.

A FormSession owns everything that belongs to one login: the user, the
fetched schema, the answers and the navigation state. Sessions live in a
server-side SessionStore; the browser only carries an opaque token.
"""

import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Any, Optional, Callable

from formwizard.answers import AnswerStore
from formwizard.navigation import FormNavigator
from formwizard.schema import AnswerValue, FormDefinition


SessionSubmitHandler = Callable[['FormSession', Dict[str, AnswerValue]], Any]


@dataclass(frozen=True)
class User:
    """Credentials entered on the login screen."""
    roll_number: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return {'rollNumber': self.roll_number, 'name': self.name}


class FormSession:
    """State of one active login."""

    def __init__(self, token: str, user: User, form: FormDefinition,
                 on_submit: Optional[SessionSubmitHandler] = None):
        self.token = token
        self.user = user
        self.form = form
        self.on_submit = on_submit
        self.answers = AnswerStore()
        self.navigator = FormNavigator(form, self.answers, on_submit=self._handle_submit)
        self.created_at = datetime.utcnow()
        self.last_activity_at = self.created_at
        self.last_submission_id: Optional[int] = None

    def _handle_submit(self, answers: Dict[str, AnswerValue]):
        if self.on_submit is None:
            return
        submission = self.on_submit(self, answers)
        submission_id = getattr(submission, 'id', None)
        if submission_id is not None:
            self.last_submission_id = submission_id

    def touch(self):
        self.last_activity_at = datetime.utcnow()

    def is_expired(self, max_age: timedelta) -> bool:
        return datetime.utcnow() - self.last_activity_at > max_age

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user': self.user.to_dict(),
            'form': {
                'formId': self.form.form_id,
                'formTitle': self.form.form_title,
                'version': self.form.version,
            },
            'lastSubmissionId': self.last_submission_id,
            **self.navigator.to_dict(),
        }

    def __repr__(self):
        return f'<FormSession {self.user.roll_number} - {self.form.form_id}>'


class SessionStore:
    """In-memory registry of live form sessions keyed by token."""

    def __init__(self, max_age: timedelta = timedelta(hours=1)):
        self._sessions: Dict[str, FormSession] = {}
        self._lock = threading.RLock()
        self.max_age = max_age

    def create(self, user: User, form: FormDefinition,
               on_submit: Optional[SessionSubmitHandler] = None) -> FormSession:
        """Start a new session for a successful login."""
        token = secrets.token_urlsafe(32)
        form_session = FormSession(token, user, form, on_submit=on_submit)
        with self._lock:
            self.prune()
            self._sessions[token] = form_session
        return form_session

    def get(self, token: Optional[str]) -> Optional[FormSession]:
        """Return the live session for ``token``, discarding it if expired."""
        if not token:
            return None

        with self._lock:
            form_session = self._sessions.get(token)
            if form_session is None:
                return None

            if form_session.is_expired(self.max_age):
                self._sessions.pop(token, None)
                return None

            form_session.touch()
            return form_session

    def discard(self, token: Optional[str]) -> bool:
        """End a session; its answers are dropped."""
        if not token:
            return False
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def prune(self) -> int:
        """Remove expired sessions. Returns the number removed."""
        with self._lock:
            expired = [
                token for token, form_session in self._sessions.items()
                if form_session.is_expired(self.max_age)
            ]
            for token in expired:
                del self._sessions[token]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, token: str) -> bool:
        with self._lock:
            return token in self._sessions


def get_store(app) -> SessionStore:
    """Return the session store attached to ``app``, creating it on first use."""
    store = app.extensions.get('formwizard_sessions')
    if store is None:
        max_age = timedelta(seconds=app.config.get('SESSION_MAX_AGE', 3600))
        store = SessionStore(max_age=max_age)
        app.extensions['formwizard_sessions'] = store
    return store

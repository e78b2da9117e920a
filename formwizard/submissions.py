"""
Submission handling.

record_submission is installed as the submit handler of every form
session: it receives the complete answers (seeded defaults included) once
per accepted submit and persists them.
"""

from typing import Dict, Any

from flask import current_app, request

from formwizard import db
from formwizard.audit_logger import log_form_submitted
from formwizard.models import Submission
from formwizard.session import FormSession


def record_submission(form_session: FormSession, answers: Dict[str, Any]) -> Submission:
    """
    Persist the answers of a submitted form.

    Args:
        form_session: The session that submitted
        answers: Copy of the full answer store

    Returns:
        The stored Submission
    """
    try:
        ip_address = request.remote_addr
        user_agent = request.headers.get('User-Agent')
    except RuntimeError:
        ip_address = None
        user_agent = None

    submission = Submission(
        roll_number=form_session.user.roll_number,
        name=form_session.user.name,
        form_id=form_session.form.form_id,
        form_version=form_session.form.version,
        ip_address=ip_address,
        user_agent=user_agent
    )
    submission.set_answers(answers)
    db.session.add(submission)
    db.session.commit()

    current_app.logger.info(f'Form submitted with data: {submission.answers_json}')

    log_form_submitted(
        submission_id=submission.id,
        roll_number=form_session.user.roll_number,
        form_id=form_session.form.form_id,
        answers_sha256=submission.answers_sha256
    )

    return submission


def get_submissions_for_user(roll_number: str) -> list:
    """Return a user's submissions, newest first."""
    return Submission.query.filter_by(roll_number=roll_number) \
                           .order_by(Submission.id.desc()) \
                           .all()

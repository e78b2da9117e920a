"""
Database models for the form wizard.

- Submission: answers handed over when a user submits the final section
- AuditLog: append-only trail of logins, fetches and submissions
"""

import json
import hashlib
from datetime import datetime

from formwizard import db
from formwizard.utils import calculate_sha256, stable_json


class Submission(db.Model):
    """
    Stores submitted answers together with the form they answer.
    Every submit click creates a new record.
    """
    __tablename__ = 'submissions'

    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    # Who submitted
    roll_number = db.Column(db.String(100), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)

    # Which form
    form_id = db.Column(db.String(100), nullable=False)
    form_version = db.Column(db.String(50), nullable=True)

    # Answers
    answers_json = db.Column(db.Text, nullable=False)
    answers_sha256 = db.Column(db.String(64), nullable=False)

    # Request context
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)

    audit_logs = db.relationship('AuditLog', backref='submission', lazy='dynamic')

    def __repr__(self):
        return f'<Submission {self.id} - {self.form_id} by {self.roll_number}>'

    def to_dict(self):
        """Convert submission to dictionary for API responses."""
        return {
            'id': self.id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'roll_number': self.roll_number,
            'name': self.name,
            'form_id': self.form_id,
            'form_version': self.form_version,
            'answers': self.get_answers(),
            'answers_sha256': self.answers_sha256,
        }

    def get_answers(self):
        """Deserialize the stored answers."""
        return json.loads(self.answers_json)

    def set_answers(self, answers):
        """Serialize answers with stable ordering and record their hash."""
        self.answers_json = stable_json(answers)
        self.answers_sha256 = calculate_sha256(self.answers_json.encode('utf-8'))

    def verify_answers(self):
        """Check the stored answers still match their hash."""
        return calculate_sha256(self.answers_json.encode('utf-8')) == self.answers_sha256


class AuditLog(db.Model):
    """
    Immutable audit trail for significant actions.

    This table is append-only. Records are never modified or deleted.
    """
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    # Who
    actor_type = db.Column(db.String(20), nullable=False)  # 'user', 'system'
    actor_id = db.Column(db.String(100), nullable=True)  # roll number or IP

    # What
    action = db.Column(db.String(50), nullable=False)
    action_category = db.Column(db.String(20), nullable=False)
    submission_id = db.Column(db.Integer, db.ForeignKey('submissions.id'), nullable=True)
    resource_type = db.Column(db.String(50), nullable=False)
    resource_id = db.Column(db.String(100), nullable=True)
    details_json = db.Column(db.Text, nullable=True)

    # Outcome
    success = db.Column(db.Boolean, nullable=False)
    error_message = db.Column(db.Text, nullable=True)

    # Request context
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)

    integrity_hash = db.Column(db.String(64), nullable=False)

    def __repr__(self):
        return f'<AuditLog {self.id} - {self.action} by {self.actor_type}>'

    def to_dict(self):
        """Convert audit log to dictionary."""
        return {
            'id': self.id,
            'timestamp': self.timestamp.isoformat(),
            'actor_type': self.actor_type,
            'actor_id': self.actor_id,
            'action': self.action,
            'action_category': self.action_category,
            'resource_type': self.resource_type,
            'resource_id': self.resource_id,
            'submission_id': self.submission_id,
            'details': json.loads(self.details_json) if self.details_json else None,
            'success': self.success,
            'error_message': self.error_message
        }

    def compute_integrity_hash(self):
        """Compute hash of this record's content for tamper detection."""
        timestamp = self.timestamp.isoformat() if self.timestamp else ''
        content = f"{timestamp}{self.actor_type}{self.actor_id}{self.action}{self.resource_type}{self.resource_id}{self.details_json}"
        return hashlib.sha256(content.encode()).hexdigest()

    def verify_integrity(self):
        """Verify this record has not been tampered with."""
        return self.integrity_hash == self.compute_integrity_hash()

"""
Audit logging module for immutable audit trail.

Logins, form fetches, blocked navigation and submissions are logged with
integrity verification. This module is append-only - records are never
modified or deleted.
"""

import json
from datetime import datetime
from typing import Dict, Any, Optional
from flask import request, current_app

from formwizard import db
from formwizard.models import AuditLog


class AuditAction:
    """Constants for audit actions."""
    # Login actions
    USER_REGISTERED = 'user_registered'
    REGISTRATION_FAILED = 'registration_failed'
    SESSION_ENDED = 'session_ended'

    # Form actions
    FORM_FETCHED = 'form_fetched'
    FORM_FETCH_FAILED = 'form_fetch_failed'
    NAVIGATION_BLOCKED = 'navigation_blocked'
    FORM_SUBMITTED = 'form_submitted'


class AuditCategory:
    """Constants for audit action categories."""
    CREATE = 'create'
    READ = 'read'
    AUTH = 'auth'
    SYSTEM = 'system'


def log_action(
    action: str,
    action_category: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    submission_id: Optional[int] = None,
    actor_type: str = 'system',
    actor_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    success: bool = True,
    error_message: Optional[str] = None
) -> Optional[AuditLog]:
    """
    Log an action to the audit trail.

    Args:
        action: The action performed (use AuditAction constants)
        action_category: Category of action (use AuditCategory constants)
        resource_type: Type of resource affected
        resource_id: Identifier of the resource
        submission_id: Associated submission ID if applicable
        actor_type: Type of actor ('user', 'system')
        actor_id: Identifier of the actor (roll number, IP)
        details: Additional structured details
        success: Whether the action succeeded
        error_message: Error message if action failed

    Returns:
        The created AuditLog record, or None if logging failed
    """
    try:
        ip_address = None
        user_agent = None

        try:
            ip_address = request.remote_addr
            user_agent = request.headers.get('User-Agent')
            if actor_type == 'user' and not actor_id:
                actor_id = ip_address
        except RuntimeError:
            # Outside request context
            pass

        audit_log = AuditLog(
            timestamp=datetime.utcnow(),
            action=action,
            action_category=action_category,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id else None,
            submission_id=submission_id,
            actor_type=actor_type,
            actor_id=actor_id,
            details_json=json.dumps(details, sort_keys=True) if details else None,
            success=success,
            error_message=error_message,
            ip_address=ip_address,
            user_agent=user_agent
        )

        audit_log.integrity_hash = audit_log.compute_integrity_hash()

        db.session.add(audit_log)
        db.session.commit()

        return audit_log

    except Exception as e:
        # Audit logging must not break the request
        db.session.rollback()
        current_app.logger.error(f'Failed to create audit log: {str(e)}')
        return None


def log_registration(roll_number: str, success: bool, message: str = None) -> Optional[AuditLog]:
    """Log a user registration attempt."""
    return log_action(
        action=AuditAction.USER_REGISTERED if success else AuditAction.REGISTRATION_FAILED,
        action_category=AuditCategory.AUTH,
        resource_type='user',
        resource_id=roll_number,
        actor_type='user',
        actor_id=roll_number,
        success=success,
        error_message=None if success else message
    )


def log_form_fetch(roll_number: str, form_id: str = None, version: str = None,
                   error: str = None) -> Optional[AuditLog]:
    """Log a form fetch."""
    return log_action(
        action=AuditAction.FORM_FETCH_FAILED if error else AuditAction.FORM_FETCHED,
        action_category=AuditCategory.READ,
        resource_type='form',
        resource_id=form_id,
        actor_type='user',
        actor_id=roll_number,
        details={'version': version} if version else None,
        success=error is None,
        error_message=error
    )


def log_navigation_blocked(roll_number: str, form_id: str, section_index: int,
                           failing_fields: list) -> Optional[AuditLog]:
    """Log an advance or submit rejected by validation."""
    return log_action(
        action=AuditAction.NAVIGATION_BLOCKED,
        action_category=AuditCategory.SYSTEM,
        resource_type='form',
        resource_id=form_id,
        actor_type='user',
        actor_id=roll_number,
        details={'section_index': section_index, 'failing_fields': failing_fields},
        success=False
    )


def log_form_submitted(submission_id: int, roll_number: str, form_id: str,
                       answers_sha256: str) -> Optional[AuditLog]:
    """Log a form submission."""
    return log_action(
        action=AuditAction.FORM_SUBMITTED,
        action_category=AuditCategory.CREATE,
        resource_type='submission',
        resource_id=str(submission_id),
        submission_id=submission_id,
        actor_type='user',
        actor_id=roll_number,
        details={'form_id': form_id, 'answers_sha256': answers_sha256}
    )


def log_session_ended(roll_number: str) -> Optional[AuditLog]:
    """Log a logout."""
    return log_action(
        action=AuditAction.SESSION_ENDED,
        action_category=AuditCategory.AUTH,
        resource_type='session',
        actor_type='user',
        actor_id=roll_number
    )


def verify_audit_integrity() -> tuple:
    """
    Verify integrity of all audit log records.

    Returns:
        Tuple of (valid_count, invalid_count, invalid_ids)
    """
    logs = AuditLog.query.all()
    valid_count = 0
    invalid_count = 0
    invalid_ids = []

    for log in logs:
        if log.verify_integrity():
            valid_count += 1
        else:
            invalid_count += 1
            invalid_ids.append(log.id)

    return valid_count, invalid_count, invalid_ids


def get_audit_trail_for_submission(submission_id: int) -> list:
    """
    Get complete audit trail for a submission.

    Args:
        submission_id: The submission ID

    Returns:
        List of audit log dictionaries
    """
    logs = AuditLog.query.filter_by(submission_id=submission_id) \
                         .order_by(AuditLog.timestamp.asc()) \
                         .all()
    return [log.to_dict() for log in logs]

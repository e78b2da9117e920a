"""
Flask routes for the form wizard.

Screens:
- /       credential entry (register + fetch form)
- /form   paginated form, one section at a time
- any other path renders the not-found screen

JSON API (/api) exposes the same engine for script-driven clients.
"""

from functools import wraps

from flask import (
    Blueprint, render_template, request, jsonify,
    session, redirect, url_for, flash, current_app, g, abort
)

from formwizard.audit_logger import (
    log_registration, log_form_fetch, log_navigation_blocked, log_session_ended
)
from formwizard.client import FormFetchError
from formwizard.navigation import NavigationAction
from formwizard.security import limiter, sanitize_string, RATE_LIMITS
from formwizard.session import User, get_store
from formwizard.submissions import record_submission, get_submissions_for_user
from formwizard.utils import format_progress, mask_identifier, short_hash
from formwizard.validation import validate_credentials


# Create blueprints
main_bp = Blueprint('main', __name__)
api_bp = Blueprint('api', __name__, url_prefix='/api')

SESSION_TOKEN_KEY = 'form_session_token'
MAX_ROLL_NUMBER_LENGTH = 100
MAX_NAME_LENGTH = 200


def _current_form_session():
    """Look up the form session referenced by the browser session."""
    return get_store(current_app).get(session.get(SESSION_TOKEN_KEY))


def form_session_required(f):
    """Redirect to the credential screen when there is no active login."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        form_session = _current_form_session()
        if form_session is None:
            session.pop(SESSION_TOKEN_KEY, None)
            return redirect(url_for('main.login'))
        g.form_session = form_session
        return f(*args, **kwargs)
    return decorated_function


def api_session_required(f):
    """Reject API calls without an active login."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        form_session = _current_form_session()
        if form_session is None:
            return jsonify({'ok': False, 'error': 'No active session, please log in'}), 401
        g.form_session = form_session
        return f(*args, **kwargs)
    return decorated_function


def _log_if_blocked(form_session, action: str, moved: bool):
    navigator = form_session.navigator
    if moved or action == NavigationAction.RETREAT or navigator.is_section_valid:
        return
    log_navigation_blocked(
        roll_number=form_session.user.roll_number,
        form_id=form_session.form.form_id,
        section_index=navigator.index,
        failing_fields=navigator.validation.failing_fields()
    )


# Main routes
@main_bp.route('/', methods=['GET', 'POST'])
@limiter.limit(RATE_LIMITS['login'], methods=['POST'])
def login():
    """Credential screen: register the user and fetch their form."""
    if request.method == 'GET':
        return render_template('login.html', roll_number='', name='')

    roll_number = sanitize_string(request.form.get('rollNumber', ''), MAX_ROLL_NUMBER_LENGTH)
    name = sanitize_string(request.form.get('name', ''), MAX_NAME_LENGTH)

    result = validate_credentials(roll_number, name)
    if not result.is_valid:
        flash(result.first_message, 'error')
        return render_template('login.html', roll_number=roll_number, name=name)

    client = current_app.extensions['form_service']

    registration = client.register_user(roll_number, name)
    log_registration(roll_number, registration.success, registration.message)
    if not registration.success:
        flash(f'Registration Failed: {registration.message}', 'error')
        return render_template('login.html', roll_number=roll_number, name=name)

    try:
        form = client.fetch_form(roll_number)
    except FormFetchError as e:
        current_app.logger.error(f'Login error for {mask_identifier(roll_number)}: {str(e)}')
        log_form_fetch(roll_number, error=str(e))
        flash(str(e), 'error')
        return render_template('login.html', roll_number=roll_number, name=name)

    log_form_fetch(roll_number, form_id=form.form_id, version=form.version)

    store = get_store(current_app)
    store.discard(session.get(SESSION_TOKEN_KEY))
    form_session = store.create(User(roll_number, name), form, on_submit=record_submission)
    session[SESSION_TOKEN_KEY] = form_session.token

    flash('Login successful', 'success')
    return redirect(url_for('main.form_page'))


@main_bp.route('/form', methods=['GET'])
@form_session_required
def form_page():
    """Render the active section of the form."""
    form_session = g.form_session
    navigator = form_session.navigator

    return render_template(
        'form.html',
        form=form_session.form,
        user=form_session.user,
        navigator=navigator,
        section=navigator.current_section,
        answers=form_session.answers,
        validation=navigator.validation,
        show_errors=navigator.errors_visible,
        progress_label=format_progress(navigator.index, navigator.section_count)
    )


@main_bp.route('/form', methods=['POST'])
@limiter.limit(RATE_LIMITS['form'])
@form_session_required
def form_action():
    """Apply the posted answers of the active section, then navigate."""
    form_session = g.form_session
    navigator = form_session.navigator

    action = request.form.get('action', '')
    if action not in NavigationAction.ALL:
        abort(400)

    posted_index = request.form.get('section_index', type=int)
    if posted_index != navigator.index:
        # Posted from a stale page; the values belong to another section
        flash('The form was updated in another window, please review this section.', 'error')
        return redirect(url_for('main.form_page'))

    for field_def in navigator.current_section.fields:
        if field_def.type.is_boolean:
            navigator.set_answer(field_def.field_id, field_def.field_id in request.form)
        elif field_def.field_id in request.form:
            navigator.set_answer(field_def.field_id, request.form.get(field_def.field_id))

    moved = navigator.perform(action)
    _log_if_blocked(form_session, action, moved)

    if action == NavigationAction.SUBMIT and moved:
        flash('Form Submitted: your form has been successfully submitted.', 'success')

    return redirect(url_for('main.form_page'))


@main_bp.route('/logout', methods=['POST'])
def logout():
    """End the form session and return to the credential screen."""
    store = get_store(current_app)
    form_session = store.get(session.get(SESSION_TOKEN_KEY))
    if form_session is not None:
        log_session_ended(form_session.user.roll_number)
        store.discard(form_session.token)
    session.pop(SESSION_TOKEN_KEY, None)
    flash('You have been logged out', 'success')
    return redirect(url_for('main.login'))


# API Routes
@api_bp.route('/session', methods=['GET'])
@limiter.limit(RATE_LIMITS['api'])
@api_session_required
def api_session():
    """Return the current session state."""
    return jsonify({'ok': True, **g.form_session.to_dict()}), 200


@api_bp.route('/answers', methods=['POST'])
@limiter.limit(RATE_LIMITS['api'])
@api_session_required
def api_set_answer():
    """
    Store one answer and return the recomputed validation.

    Request body: {"fieldId": "...", "value": "..." | true | [...]}
    """
    form_session = g.form_session
    navigator = form_session.navigator

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict) or 'fieldId' not in payload or 'value' not in payload:
        return jsonify({'ok': False, 'error': 'fieldId and value are required'}), 400

    field_id = payload['fieldId']
    if form_session.form.get_field(field_id) is None:
        return jsonify({'ok': False, 'error': f'Unknown field: {field_id}'}), 400

    validation = navigator.set_answer(field_id, payload['value'])

    return jsonify({
        'ok': True,
        'fieldId': field_id,
        'validation': validation.to_dict(),
        'canAdvance': navigator.can_advance,
        'canSubmit': navigator.can_submit,
    }), 200


@api_bp.route('/navigate', methods=['POST'])
@limiter.limit(RATE_LIMITS['api'])
@api_session_required
def api_navigate():
    """
    Perform a navigation action.

    Request body: {"action": "next" | "prev" | "submit"}
    """
    form_session = g.form_session
    navigator = form_session.navigator

    payload = request.get_json(silent=True) or {}
    action = payload.get('action')
    if action not in NavigationAction.ALL:
        return jsonify({
            'ok': False,
            'error': f'action must be one of: {", ".join(NavigationAction.ALL)}'
        }), 400

    moved = navigator.perform(action)
    _log_if_blocked(form_session, action, moved)

    response = {
        'ok': True,
        'action': action,
        'moved': moved,
        **navigator.to_dict(),
    }
    if action == NavigationAction.SUBMIT and moved:
        response['submissionId'] = form_session.last_submission_id

    return jsonify(response), 200


@api_bp.route('/submissions', methods=['GET'])
@limiter.limit(RATE_LIMITS['api'])
@api_session_required
def api_submissions():
    """List the current user's submissions."""
    submissions = get_submissions_for_user(g.form_session.user.roll_number)
    return jsonify({
        'ok': True,
        'submissions': [
            {**s.to_dict(), 'reference': short_hash(s.answers_sha256)}
            for s in submissions
        ]
    }), 200

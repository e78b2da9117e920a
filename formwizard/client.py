"""
Form Service Client

HTTP client for the remote form service. Two one-shot operations:

- register_user: POST /create-user, failures are returned, never raised
- fetch_form: GET /get-form?rollNumber=..., failures raise FormFetchError

Requests are not retried and responses are not cached.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional

import requests

from formwizard.schema import FormDefinition, SchemaError
from formwizard.utils import mask_identifier


logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = 'https://dynamic-form-generator-9rl7.onrender.com'
REGISTER_FAILED_MESSAGE = 'Failed to create user'
FETCH_FAILED_MESSAGE = 'Failed to fetch form'


class FormFetchError(Exception):
    """The form could not be fetched or parsed."""


@dataclass(frozen=True)
class RegistrationResult:
    success: bool
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {'success': self.success, 'message': self.message}


class FormServiceClient:
    """Thin wrapper around the form service endpoints."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: Optional[float] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._session = requests.Session()

    def close(self):
        self._session.close()

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f'{self.base_url}{path}'
        return self._session.request(method, url, timeout=self.timeout, **kwargs)

    def register_user(self, roll_number: str, name: str) -> RegistrationResult:
        """
        Register a user with the form service.

        Args:
            roll_number: The user's roll number
            name: The user's full name

        Returns:
            RegistrationResult; success is False on any failure
        """
        try:
            response = self._request(
                'POST', '/create-user',
                json={'rollNumber': roll_number, 'name': name}
            )
        except requests.RequestException as exc:
            logger.error('Error creating user %s: %s', mask_identifier(roll_number), exc)
            return RegistrationResult(False, REGISTER_FAILED_MESSAGE)

        body = _json_body(response)
        message = body.get('message') if isinstance(body.get('message'), str) else None

        if not response.ok:
            logger.error('Error creating user %s: HTTP %s %s', mask_identifier(roll_number), response.status_code, message)
            return RegistrationResult(False, message or REGISTER_FAILED_MESSAGE)

        if body.get('success') is False:
            logger.warning('User %s rejected by form service: %s', mask_identifier(roll_number), message)
            return RegistrationResult(False, message or REGISTER_FAILED_MESSAGE)

        return RegistrationResult(True, message or '')

    def fetch_form(self, roll_number: str) -> FormDefinition:
        """
        Fetch the form definition for a user.

        Args:
            roll_number: The user's roll number

        Returns:
            The parsed FormDefinition

        Raises:
            FormFetchError: on network errors, non-2xx responses or invalid schemas
        """
        try:
            response = self._request('GET', '/get-form', params={'rollNumber': roll_number})
        except requests.RequestException as exc:
            logger.error('Error fetching form for %s: %s', mask_identifier(roll_number), exc)
            raise FormFetchError(FETCH_FAILED_MESSAGE) from exc

        if not response.ok:
            logger.error('Error fetching form for %s: HTTP %s', mask_identifier(roll_number), response.status_code)
            raise FormFetchError(FETCH_FAILED_MESSAGE)

        try:
            payload = response.json()
        except ValueError as exc:
            logger.error('Form service returned invalid JSON for %s', mask_identifier(roll_number))
            raise FormFetchError(FETCH_FAILED_MESSAGE) from exc

        try:
            return FormDefinition.from_response(payload)
        except SchemaError as exc:
            logger.error('Form service returned an invalid form for %s: %s', mask_identifier(roll_number), exc)
            raise FormFetchError(f'{FETCH_FAILED_MESSAGE}: {exc}') from exc


def _json_body(response: requests.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}

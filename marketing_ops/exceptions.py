"""Error taxonomy shared by the store, the workflows and the API layer."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from rest_framework import status
from rest_framework.response import Response

LOGGER = logging.getLogger(__name__)


class MarketingOpsError(Exception):
    """Base class for every domain error raised by the backend."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = 'error'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def as_payload(self) -> dict[str, Any]:
        return {'detail': self.message, 'code': self.code}


class ValidationFailed(MarketingOpsError):
    """Input rejected before anything is persisted."""

    code = 'validation_error'

    def __init__(self, message: str, errors: Optional[Mapping[str, Any]] = None):
        super().__init__(message)
        self.errors = dict(errors or {})

    @classmethod
    def for_field(cls, field: str, message: str) -> 'ValidationFailed':
        return cls(message, {field: [message]})

    def as_payload(self) -> dict[str, Any]:
        payload = super().as_payload()
        if self.errors:
            payload['errors'] = self.errors
        return payload


class InvalidTransition(ValidationFailed):
    """Requested status change is not allowed from the current status."""

    code = 'invalid_transition'


class AuthorizationDenied(MarketingOpsError):
    """Actor may not perform the attempted action."""

    status_code = status.HTTP_403_FORBIDDEN
    code = 'permission_denied'

    def __init__(self, message: str, reason: str = 'forbidden'):
        super().__init__(message)
        self.reason = reason

    def as_payload(self) -> dict[str, Any]:
        payload = super().as_payload()
        payload['reason'] = self.reason
        return payload


class ConfigurationError(MarketingOpsError):
    """Account or reference data is set up in a way the operation cannot use."""

    status_code = status.HTTP_409_CONFLICT
    code = 'configuration_error'


class EntityNotFound(MarketingOpsError):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'not_found'


class ConflictError(MarketingOpsError):
    """Write based on a stale version of the document."""

    status_code = status.HTTP_409_CONFLICT
    code = 'conflict'


class BackendUnavailable(MarketingOpsError):
    """The configured entity store could not be reached."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = 'backend_unavailable'


def api_exception_handler(exc, context):
    """Render domain errors the same way DRF renders its own."""
    from rest_framework.views import exception_handler

    if isinstance(exc, MarketingOpsError):
        if isinstance(exc, BackendUnavailable):
            LOGGER.error('Entity store unavailable: %s', exc.message)
        return Response(exc.as_payload(), status=exc.status_code)
    return exception_handler(exc, context)

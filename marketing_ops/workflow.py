"""
Status state machines for campaigns and access requests.

Campaign:
    Pending -> Approved | Rejected               (status change, summary required)
    Approved -> Completed                        (completion workflow only)
    Rejected, Completed                          terminal

Access request:
    pending -> approved | rejected
    approved -> revoked
    rejected, revoked                            terminal

Only the rules live here; persistence and authorization are handled by the
services that call into this module.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional

from .exceptions import InvalidTransition, ValidationFailed
from .models import AccessRequest, Campaign

CampaignStatus = Campaign.Status
AccessStatus = AccessRequest.Status

STATUS_CHANGE_TARGETS = frozenset({CampaignStatus.APPROVED, CampaignStatus.REJECTED})

CAMPAIGN_TRANSITIONS: Mapping[str, frozenset] = {
    CampaignStatus.PENDING: STATUS_CHANGE_TARGETS,
    CampaignStatus.APPROVED: frozenset({CampaignStatus.COMPLETED}),
    CampaignStatus.REJECTED: frozenset(),
    CampaignStatus.COMPLETED: frozenset(),
}

ACCESS_TRANSITIONS: Mapping[str, frozenset] = {
    AccessStatus.PENDING: frozenset({AccessStatus.APPROVED, AccessStatus.REJECTED}),
    AccessStatus.APPROVED: frozenset({AccessStatus.REVOKED}),
    AccessStatus.REJECTED: frozenset(),
    AccessStatus.REVOKED: frozenset(),
}


def parse_campaign_status(value: Any) -> str:
    try:
        return CampaignStatus(value)
    except ValueError as exc:
        raise ValidationFailed.for_field('status', f'Unknown campaign status: {value}') from exc


def check_status_change(current: str, target: str):
    """Validate a status change requested through the status workflow."""
    if current != CampaignStatus.PENDING:
        raise InvalidTransition(
            'Cannot change status once it has been Approved, Rejected, or Completed.',
            {'status': [f'Campaign is {current}']},
        )
    if target not in CAMPAIGN_TRANSITIONS[current]:
        raise InvalidTransition(
            'Status can only be changed from Pending to Approved or Rejected; use completion for Completed.',
            {'status': [f'{target} is not a valid target']},
        )


def check_completion(current: str):
    if current != CampaignStatus.APPROVED:
        raise InvalidTransition(
            'Only approved campaigns can be marked as completed.',
            {'status': [f'Campaign is {current}']},
        )


def require_summary(summary: Optional[str], field: str = 'summary') -> str:
    cleaned = (summary or '').strip()
    if not cleaned:
        raise ValidationFailed.for_field(field, 'Summary is required for status change')
    return cleaned


def as_date(value: Any, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError as exc:
            raise ValidationFailed.for_field(field, 'Enter a valid date (YYYY-MM-DD)') from exc
    raise ValidationFailed.for_field(field, 'This field is required.')


def check_completion_date(start_date: Any, completion_date: Any) -> date:
    completed_on = as_date(completion_date, 'completion_date')
    if start_date and completed_on < as_date(start_date, 'start_date'):
        raise ValidationFailed.for_field(
            'completion_date',
            'Completion date cannot be before campaign start date',
        )
    return completed_on


def check_access_transition(current: str, target: str):
    if target not in ACCESS_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransition(
            f'Cannot move an access request from {current} to {target}.',
            {'status': [f'Request is {current}']},
        )


def governing_request(requests: Iterable[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    """Most recently created request for a (requester, influencer) pair."""
    latest = None
    for request in requests:
        if latest is None or request['created_at'] > latest['created_at']:
            latest = request
    return latest

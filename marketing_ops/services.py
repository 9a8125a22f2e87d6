"""Domain services for the marketing operations backend.

Every service takes the acting user explicitly and follows the same order:
authorize through ``PermissionEvaluator``, validate the request against the
workflow rules, then persist through the configured ``EntityStore``.
"""
from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence
from urllib.parse import quote_plus
from zipfile import BadZipFile

import openpyxl
import phonenumbers
from openpyxl.utils.exceptions import InvalidFileException
from django.conf import settings
from django.contrib.auth.hashers import make_password
from django.core.cache import caches
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import EmailValidator
from django.utils import timezone

from .exceptions import (
    AuthorizationDenied,
    ConfigurationError,
    ConflictError,
    EntityNotFound,
    MarketingOpsError,
    ValidationFailed,
)
from .models import AccessRequest, Campaign, Influencer, User
from .permissions import RESOLVER_ROLES, Actor, evaluator, same_identity
from .store import EntityStore, get_entity_store
from .workflow import (
    as_date,
    check_access_transition,
    check_completion,
    check_completion_date,
    check_status_change,
    governing_request,
    parse_campaign_status,
    require_summary,
)

LOGGER = logging.getLogger(__name__)

EMAIL_VALIDATOR = EmailValidator(message='Invalid email address')
TAX_ID_PATTERN = re.compile(r'^[A-Z]{5}[0-9]{4}[A-Z]$')
DEFAULT_MOBILE_PLACEHOLDER = '••••••••••'
ACCESS_REQUEST_POLICIES = ('allow', 'block_open', 'block_all')
MAX_PLATFORMS = 2


def log_activity(
    *,
    store: EntityStore,
    actor: Actor,
    action: str,
    entity_type: str,
    entity_id: str,
    metadata: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Persist an audit entry for a workflow action."""

    return store.create(
        'activity_log',
        {
            'actor_email': actor.email,
            'action': action,
            'entity_type': entity_type,
            'entity_id': str(entity_id),
            'metadata': metadata or {},
            'timestamp': timezone.now(),
        },
    )


def avatar_url(name: str) -> str:
    return f'https://ui-avatars.com/api/?name={quote_plus(name)}&background=random'


def _text(value: Any) -> str:
    if value is None:
        return ''
    return str(value).strip()


def _non_negative_int(value: Any, field_name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationFailed.for_field(field_name, 'A whole number is required.') from exc
    if number < 0:
        raise ValidationFailed.for_field(field_name, 'Must not be negative.')
    return number


def _rating(value: Any) -> Optional[int]:
    if value is None or _text(value) == '':
        return None
    try:
        rating = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationFailed.for_field('rating', 'Rating must be between 1 and 5') from exc
    if not 1 <= rating <= 5:
        raise ValidationFailed.for_field('rating', 'Rating must be between 1 and 5')
    return rating


def _missing(data: Mapping[str, Any], fields: Iterable[str]) -> dict[str, list[str]]:
    return {name: ['This field is required.'] for name in fields if not _text(data.get(name))}


def _raise_if(errors: Mapping[str, list[str]], message: str = 'Please fill in all required fields.'):
    if errors:
        raise ValidationFailed(message, errors)


class DepartmentDirectory:
    """Id <-> name lookup for department references."""

    def __init__(self, departments: Iterable[Mapping[str, Any]]):
        self.by_id = {str(dept['id']): dept for dept in departments}
        self.by_name = {dept['name'].strip().casefold(): dept for dept in self.by_id.values()}

    @classmethod
    def load(cls, store: EntityStore) -> 'DepartmentDirectory':
        return cls(store.list('department'))

    def name_for(self, department_id: Optional[str]) -> Optional[str]:
        if not department_id:
            return None
        dept = self.by_id.get(str(department_id))
        return dept['name'] if dept else None

    def find(self, name: Any) -> Optional[Mapping[str, Any]]:
        cleaned = _text(name)
        if not cleaned:
            return None
        return self.by_name.get(cleaned.casefold())

    def resolve(self, name: Any, field_name: str = 'department') -> str:
        cleaned = _text(name)
        if not cleaned:
            raise ValidationFailed.for_field(field_name, 'Missing field: department')
        dept = self.find(cleaned)
        if dept is None:
            raise ValidationFailed.for_field(field_name, f'Unknown department: {cleaned}')
        return str(dept['id'])


class BaseService:
    def __init__(self, *, actor: Actor, store: Optional[EntityStore] = None):
        self.actor = actor
        self.store = store or get_entity_store()

    def _log(self, action: str, entity_type: str, entity_id: str, **metadata):
        log_activity(
            store=self.store,
            actor=self.actor,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            metadata=metadata,
        )

    def _expected(self, document: Mapping[str, Any], expected_version: Optional[int]) -> int:
        return document['version'] if expected_version is None else expected_version


class CampaignService(BaseService):
    """Campaign CRUD plus the status and completion workflows."""

    def list(
        self,
        *,
        status: Optional[str] = None,
        department: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        directory = DepartmentDirectory.load(self.store)
        filters: dict[str, Any] = {}
        if status:
            filters['status'] = parse_campaign_status(status)
        if department:
            dept = directory.find(department)
            if dept is None:
                return []
            filters['department_id'] = dept['id']
        campaigns = self.store.list('campaign', filters=filters, order_by=('-updated_at',))
        if search:
            needle = search.strip().lower()
            campaigns = [c for c in campaigns if needle in c['name'].lower()]
        return [self._present(campaign, directory) for campaign in campaigns]

    def get(self, campaign_id: str) -> dict[str, Any]:
        return self._present(self.store.get('campaign', campaign_id))

    def create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        directory = DepartmentDirectory.load(self.store)
        _raise_if(_missing(data, ('name', 'department', 'budget', 'start_date')))
        department_id = directory.resolve(data.get('department'))
        evaluator.require(evaluator.can_create_campaign(self.actor, directory.name_for(department_id)))
        now = timezone.now()
        document = {
            'name': _text(data['name']),
            'department_id': department_id,
            'influencer_id': self._influencer_ref(data.get('influencer_id')),
            'status': Campaign.Status.PENDING,
            'budget': _non_negative_int(data.get('budget'), 'budget'),
            'start_date': as_date(data.get('start_date'), 'start_date'),
            'deliverables': _text(data.get('deliverables')),
            'created_by': self.actor.email,
            'created_at': now,
            'updated_at': now,
        }
        campaign = self.store.create('campaign', document)
        LOGGER.info('Campaign %s created by %s', campaign['id'], self.actor.email)
        self._log('Campaign created', 'campaign', campaign['id'], department=directory.name_for(department_id))
        return self._present(campaign, directory)

    def update(
        self,
        campaign_id: str,
        changes: Mapping[str, Any],
        *,
        expected_version: Optional[int] = None,
    ) -> dict[str, Any]:
        directory = DepartmentDirectory.load(self.store)
        campaign = self.store.get('campaign', campaign_id)
        evaluator.require(
            evaluator.can_write_campaign(
                self.actor,
                directory.name_for(campaign['department_id']),
                campaign['created_by'],
            )
        )
        values: dict[str, Any] = {}
        if 'name' in changes:
            _raise_if(_missing(changes, ('name',)))
            values['name'] = _text(changes['name'])
        if 'department' in changes:
            department_id = directory.resolve(changes['department'])
            if department_id != campaign['department_id']:
                evaluator.require(evaluator.can_create_campaign(self.actor, directory.name_for(department_id)))
                values['department_id'] = department_id
        if 'influencer_id' in changes:
            values['influencer_id'] = self._influencer_ref(changes['influencer_id'])
        if 'budget' in changes:
            values['budget'] = _non_negative_int(changes['budget'], 'budget')
        if 'start_date' in changes:
            start_date = as_date(changes['start_date'], 'start_date')
            if campaign.get('completion_date') and as_date(campaign['completion_date'], 'completion_date') < start_date:
                raise ValidationFailed.for_field('start_date', 'Start date cannot be after the completion date')
            values['start_date'] = start_date
        if 'deliverables' in changes:
            values['deliverables'] = _text(changes['deliverables'])
        if not values:
            return self._present(campaign, directory)
        values['updated_at'] = timezone.now()
        updated = self.store.update(
            'campaign', campaign_id, values, expected_version=self._expected(campaign, expected_version)
        )
        self._log('Campaign updated', 'campaign', updated['id'], fields=sorted(values))
        return self._present(updated, directory)

    def transition(
        self,
        campaign_id: str,
        target_status: str,
        summary: Optional[str],
        *,
        expected_version: Optional[int] = None,
    ) -> dict[str, Any]:
        """Move a Pending campaign to Approved or Rejected."""
        directory = DepartmentDirectory.load(self.store)
        campaign = self.store.get('campaign', campaign_id)
        evaluator.require(
            evaluator.can_transition_campaign(self.actor, directory.name_for(campaign['department_id']))
        )
        target = parse_campaign_status(target_status)
        check_status_change(campaign['status'], target)
        cleaned_summary = require_summary(summary)
        now = timezone.now()
        updated = self.store.update(
            'campaign',
            campaign_id,
            {
                'status': target,
                'status_changed_at': now,
                'status_changed_by': self.actor.email,
                'status_change_summary': cleaned_summary,
                'updated_at': now,
            },
            expected_version=self._expected(campaign, expected_version),
        )
        LOGGER.info('Campaign %s moved %s -> %s by %s', campaign_id, campaign['status'], target, self.actor.email)
        self._log(
            'Campaign status changed',
            'campaign',
            updated['id'],
            previous=campaign['status'],
            status=str(target),
            summary=cleaned_summary,
        )
        return self._present(updated, directory)

    def complete(
        self,
        campaign_id: str,
        completion_date: Any,
        summary: Optional[str],
        *,
        rating: Optional[int] = None,
        expected_version: Optional[int] = None,
    ) -> dict[str, Any]:
        """Close an approved campaign; irreversible."""
        directory = DepartmentDirectory.load(self.store)
        campaign = self.store.get('campaign', campaign_id)
        evaluator.require(
            evaluator.can_transition_campaign(self.actor, directory.name_for(campaign['department_id']))
        )
        check_completion(campaign['status'])
        cleaned_summary = require_summary(summary)
        completed_on = check_completion_date(campaign['start_date'], completion_date)
        rating = _rating(rating)
        updated = self.store.update(
            'campaign',
            campaign_id,
            {
                'status': Campaign.Status.COMPLETED,
                'completion_date': completed_on,
                'completion_summary': cleaned_summary,
                'end_date': completed_on,
                'rating': rating,
                'updated_at': timezone.now(),
            },
            expected_version=self._expected(campaign, expected_version),
        )
        LOGGER.info('Campaign %s completed on %s by %s', campaign_id, completed_on, self.actor.email)
        self._log(
            'Campaign completed',
            'campaign',
            updated['id'],
            completion_date=completed_on.isoformat(),
            summary=cleaned_summary,
        )
        self._refresh_promotion(updated)
        return self._present(updated, directory)

    def delete(self, campaign_id: str):
        directory = DepartmentDirectory.load(self.store)
        campaign = self.store.get('campaign', campaign_id)
        evaluator.require(
            evaluator.can_write_campaign(
                self.actor,
                directory.name_for(campaign['department_id']),
                campaign['created_by'],
            )
        )
        self.store.delete('campaign', campaign_id)
        self._log('Campaign deleted', 'campaign', campaign['id'], name=campaign['name'])

    def _influencer_ref(self, influencer_id: Any) -> Optional[str]:
        if not _text(influencer_id):
            return None
        try:
            return self.store.get('influencer', influencer_id)['id']
        except EntityNotFound as exc:
            raise ValidationFailed.for_field('influencer_id', 'Unknown influencer') from exc

    def _refresh_promotion(self, campaign: Mapping[str, Any]):
        # Separate write: the campaign stays completed even if this one fails.
        if not campaign.get('influencer_id'):
            return
        try:
            influencer = self.store.get('influencer', campaign['influencer_id'])
            last_date = influencer.get('last_promo_date')
            if last_date and as_date(last_date, 'last_promo_date') > campaign['completion_date']:
                return
            self.store.update(
                'influencer',
                influencer['id'],
                {
                    'last_promo_department_id': campaign['department_id'],
                    'last_promo_date': campaign['completion_date'],
                    'last_price_paid': campaign['budget'],
                    'updated_at': timezone.now(),
                },
                expected_version=influencer['version'],
            )
        except MarketingOpsError as exc:
            LOGGER.warning(
                'Promotion summary for influencer %s not refreshed: %s',
                campaign['influencer_id'],
                exc.message,
            )

    def _present(
        self,
        campaign: Mapping[str, Any],
        directory: Optional[DepartmentDirectory] = None,
    ) -> dict[str, Any]:
        directory = directory or DepartmentDirectory.load(self.store)
        department = directory.name_for(campaign['department_id'])
        write = evaluator.can_write_campaign(self.actor, department, campaign.get('created_by'))
        transition = evaluator.can_transition_campaign(self.actor, department)
        presented = dict(campaign)
        presented.update(
            {
                'department': department,
                'can_edit': write.allowed,
                'can_change_status': transition.allowed and campaign['status'] == Campaign.Status.PENDING,
                'can_complete': transition.allowed and campaign['status'] == Campaign.Status.APPROVED,
                'read_only_reason': '' if write.allowed or transition.allowed else transition.message,
            }
        )
        return presented


@dataclass
class PlatformHandle:
    platform: str
    username: str
    channel: str = ''


class InfluencerService(BaseService):
    """Influencer CRUD with tax-id checks and the mobile visibility gate."""

    REQUIRED_ON_CREATE = ('name', 'email', 'mobile', 'tax_id', 'category', 'influencer_type')

    def list(
        self,
        *,
        search: Optional[str] = None,
        category: Optional[str] = None,
        language: Optional[str] = None,
        mine: bool = False,
    ) -> list[dict[str, Any]]:
        directory = DepartmentDirectory.load(self.store)
        influencers = self.store.list('influencer', order_by=('name',))
        if search:
            needle = search.strip().lower()
            influencers = [
                inf for inf in influencers
                if needle in inf['name'].lower() or needle in (inf.get('handle') or '').lower()
            ]
        if category:
            influencers = [inf for inf in influencers if inf['category'].lower() == category.strip().lower()]
        if language:
            wanted = language.strip().lower()
            influencers = [
                inf for inf in influencers
                if wanted in [part.strip().lower() for part in (inf.get('language') or '').split(',')]
            ]
        if mine:
            influencers = [inf for inf in influencers if same_identity(inf.get('created_by'), self.actor.email)]
        statuses = self._access_statuses()
        return [self._present(inf, directory, statuses.get(inf['id'])) for inf in influencers]

    def get(self, influencer_id: str) -> dict[str, Any]:
        influencer = self.store.get('influencer', influencer_id)
        return self._present(influencer, access_status=self._access_statuses().get(influencer['id']))

    def create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        errors = _missing(data, self.REQUIRED_ON_CREATE)
        languages = self._languages(data.get('languages', data.get('language')))
        if not languages:
            errors['languages'] = ['At least one language is required']
        platforms = self._platforms(data.get('platforms'), errors)
        _raise_if(errors)

        directory = DepartmentDirectory.load(self.store)
        tax_id = self._checked_tax_id(data.get('tax_id'))
        name = _text(data['name'])
        now = timezone.now()
        document = {
            'name': name,
            'handle': _text(data.get('handle')) or f'@{platforms[0].username.lstrip("@")}',
            'avatar': _text(data.get('avatar')) or avatar_url(name),
            'category': _text(data['category']),
            'influencer_type': self._influencer_type(data.get('influencer_type')),
            'language': ', '.join(languages),
            'location': _text(data.get('location')),
            'platforms': self._platform_document(platforms),
            'email': self._email(data.get('email')),
            'mobile': self._mobile(data.get('mobile')),
            'tax_id': tax_id,
            'created_by': self.actor.email,
            'created_at': now,
            'updated_at': now,
        }
        document.update(self._promotion(data, directory, is_new=True))
        influencer = self.store.create('influencer', document)
        LOGGER.info('Influencer %s added by %s', influencer['id'], self.actor.email)
        self._log('Influencer created', 'influencer', influencer['id'], name=name)
        return self._present(influencer, directory)

    def update(
        self,
        influencer_id: str,
        changes: Mapping[str, Any],
        *,
        expected_version: Optional[int] = None,
    ) -> dict[str, Any]:
        influencer = self.store.get('influencer', influencer_id)
        evaluator.require(evaluator.can_write_influencer(self.actor, influencer.get('created_by')))
        directory = DepartmentDirectory.load(self.store)
        errors: dict[str, list[str]] = {}
        for name in ('name', 'email', 'mobile', 'category', 'influencer_type'):
            if name in changes and not _text(changes[name]):
                errors[name] = ['This field is required.']
        values: dict[str, Any] = {}
        if 'languages' in changes or 'language' in changes:
            languages = self._languages(changes.get('languages', changes.get('language')))
            if not languages:
                errors['languages'] = ['At least one language is required']
            values['language'] = ', '.join(languages)
        if 'platforms' in changes:
            platforms = self._platforms(changes.get('platforms'), errors)
            if platforms:
                values['platforms'] = self._platform_document(platforms)
        _raise_if(errors)

        for name in ('name', 'handle', 'category', 'location', 'avatar'):
            if name in changes:
                values[name] = _text(changes[name])
        if 'influencer_type' in changes:
            values['influencer_type'] = self._influencer_type(changes['influencer_type'])
        if 'email' in changes:
            values['email'] = self._email(changes['email'])
        if 'mobile' in changes:
            values['mobile'] = self._mobile(changes['mobile'])
        if _text(changes.get('tax_id')):
            tax_id = normalize_tax_id(changes['tax_id'])
            if tax_id != influencer.get('tax_id'):
                values['tax_id'] = self._checked_tax_id(tax_id, exclude_id=influencer['id'])
        values.update(self._promotion(changes, directory, is_new=False))
        if not values:
            return self.get(influencer_id)
        values['updated_at'] = timezone.now()
        updated = self.store.update(
            'influencer', influencer_id, values, expected_version=self._expected(influencer, expected_version)
        )
        self._log('Influencer updated', 'influencer', updated['id'], fields=sorted(values))
        return self._present(updated, directory, self._access_statuses().get(updated['id']))

    def delete(self, influencer_id: str):
        influencer = self.store.get('influencer', influencer_id)
        evaluator.require(evaluator.can_write_influencer(self.actor, influencer.get('created_by')))
        for campaign in self.store.list('campaign', filters={'influencer_id': influencer['id']}):
            self.store.update('campaign', campaign['id'], {'influencer_id': None})
        for request in self.store.list('access_request', filters={'influencer_id': influencer['id']}):
            self.store.delete('access_request', request['id'])
        self.store.delete('influencer', influencer['id'])
        self._log('Influencer deleted', 'influencer', influencer['id'], name=influencer['name'])

    def check_tax_id(self, tax_id: Any, *, exclude_id: Optional[str] = None) -> dict[str, Any]:
        """Availability check for the debounced tax-id field."""
        gate = TaxIdCheckGate()
        ticket = gate.begin(self.actor.id)
        normalized = normalize_tax_id(tax_id)
        valid_format = bool(TAX_ID_PATTERN.match(normalized))
        exists = valid_format and self._tax_id_taken(normalized, exclude_id)
        return {
            'tax_id': normalized,
            'valid_format': valid_format,
            'exists': exists,
            'ticket': ticket,
            'stale': not gate.is_latest(self.actor.id, ticket),
        }

    def _tax_id_taken(self, tax_id: str, exclude_id: Optional[str] = None) -> bool:
        matches = self.store.list('influencer', filters={'tax_id': tax_id})
        return any(str(match['id']) != str(exclude_id) for match in matches)

    def _checked_tax_id(self, value: Any, exclude_id: Optional[str] = None) -> str:
        tax_id = normalize_tax_id(value)
        if not TAX_ID_PATTERN.match(tax_id):
            raise ValidationFailed.for_field('tax_id', 'Invalid PAN format (e.g., ABCDE1234F).')
        if self._tax_id_taken(tax_id, exclude_id):
            raise ValidationFailed.for_field('tax_id', 'Influencer already registered with this PAN')
        return tax_id

    def _email(self, value: Any) -> str:
        email = _text(value).lower()
        try:
            EMAIL_VALIDATOR(email)
        except DjangoValidationError as exc:
            raise ValidationFailed.for_field('email', 'Invalid email address') from exc
        return email

    def _mobile(self, value: Any) -> str:
        region = getattr(settings, 'INFLUENCER_PHONE_REGION', 'IN')
        try:
            parsed = phonenumbers.parse(_text(value), region)
        except phonenumbers.NumberParseException as exc:
            raise ValidationFailed.for_field('mobile', 'Invalid mobile number') from exc
        if not phonenumbers.is_valid_number(parsed):
            raise ValidationFailed.for_field('mobile', 'Invalid mobile number')
        return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)

    def _influencer_type(self, value: Any) -> str:
        try:
            return Influencer.Type(_text(value))
        except ValueError as exc:
            raise ValidationFailed.for_field('influencer_type', f'Unknown influencer type: {value}') from exc

    def _languages(self, value: Any) -> list[str]:
        if isinstance(value, str):
            value = value.split(',')
        seen: list[str] = []
        for item in value or []:
            cleaned = _text(item)
            if cleaned and cleaned not in seen:
                seen.append(cleaned)
        return seen

    def _platforms(self, value: Any, errors: dict[str, list[str]]) -> list[PlatformHandle]:
        entries: list[PlatformHandle] = []
        if isinstance(value, Mapping):
            value = [
                {'platform': key, **(item if isinstance(item, Mapping) else {'username': item})}
                for key, item in value.items()
            ]
        for item in value or []:
            platform = _text(item.get('platform')).lower()
            username = _text(item.get('username'))
            if platform or username:
                entries.append(PlatformHandle(platform=platform, username=username, channel=_text(item.get('channel'))))
        if not entries or not entries[0].username:
            errors['platforms'] = ['Username is required']
        elif len(entries) > MAX_PLATFORMS:
            errors['platforms'] = [f'At most {MAX_PLATFORMS} platforms can be recorded']
        elif any(not entry.platform or not entry.username for entry in entries):
            errors['platforms'] = ['Each platform needs a name and a username']
        elif len({entry.platform for entry in entries}) != len(entries):
            errors['platforms'] = ['Each platform can only be listed once']
        return entries

    def _platform_document(self, platforms: Sequence[PlatformHandle]) -> dict[str, dict[str, str]]:
        return {entry.platform: {'username': entry.username, 'channel': entry.channel} for entry in platforms}

    def _promotion(self, data: Mapping[str, Any], directory: DepartmentDirectory, *, is_new: bool) -> dict[str, Any]:
        status = _text(data.get('influencer_status')).lower()
        if is_new and status != 'existing':
            # New to the organisation: the creator's department is the first promoter.
            return {
                'last_promo_department_id': self.actor.department_id,
                'last_promo_date': None,
                'last_price_paid': None,
            }
        values: dict[str, Any] = {}
        if 'last_promo_by' in data:
            values['last_promo_department_id'] = (
                directory.resolve(data['last_promo_by'], 'last_promo_by') if _text(data['last_promo_by']) else None
            )
        if 'last_promo_date' in data:
            values['last_promo_date'] = (
                as_date(data['last_promo_date'], 'last_promo_date') if data['last_promo_date'] else None
            )
        if 'last_price_paid' in data:
            values['last_price_paid'] = (
                _non_negative_int(data['last_price_paid'], 'last_price_paid')
                if data['last_price_paid'] not in (None, '')
                else None
            )
        return values

    def _access_statuses(self) -> dict[str, str]:
        if self.actor.role != User.Role.EXECUTIVE:
            return {}
        grouped: dict[str, list[dict[str, Any]]] = {}
        for request in self.store.list('access_request', filters={'requester_id': self.actor.id}):
            grouped.setdefault(request['influencer_id'], []).append(request)
        return {influencer_id: governing_request(requests)['status'] for influencer_id, requests in grouped.items()}

    def _present(
        self,
        influencer: Mapping[str, Any],
        directory: Optional[DepartmentDirectory] = None,
        access_status: Optional[str] = None,
    ) -> dict[str, Any]:
        directory = directory or DepartmentDirectory.load(self.store)
        visible = evaluator.can_view_mobile(self.actor, access_status)
        presented = dict(influencer)
        presented['last_promo_by'] = directory.name_for(influencer.get('last_promo_department_id'))
        presented['mobile_visible'] = visible
        presented['access_status'] = access_status
        presented['can_edit'] = evaluator.can_write_influencer(self.actor, influencer.get('created_by')).allowed
        if not visible:
            presented['mobile'] = getattr(settings, 'MOBILE_PLACEHOLDER', DEFAULT_MOBILE_PLACEHOLDER)
        return presented


def normalize_tax_id(value: Any) -> str:
    return _text(value).upper()


class TaxIdCheckGate:
    """Numbers tax-id checks per actor so only the latest one counts."""

    key_template = 'marketing_ops:tax-id-check:{actor_id}'
    timeout = 60 * 60

    def __init__(self, cache_alias: Optional[str] = None):
        self.cache = caches[cache_alias or getattr(settings, 'ENTITY_STORE_CACHE_ALIAS', 'default')]

    def begin(self, actor_id: str) -> int:
        key = self.key_template.format(actor_id=actor_id)
        self.cache.add(key, 0, timeout=self.timeout)
        return self.cache.incr(key)

    def is_latest(self, actor_id: str, ticket: int) -> bool:
        return self.cache.get(self.key_template.format(actor_id=actor_id)) == ticket


class AccessRequestService(BaseService):
    """Request / approve / reject / revoke access to influencer mobile numbers."""

    def __init__(self, *, actor: Actor, store: Optional[EntityStore] = None, policy: Optional[str] = None):
        super().__init__(actor=actor, store=store)
        self.policy = policy or getattr(settings, 'ACCESS_REQUEST_DUPLICATE_POLICY', 'allow')
        if self.policy not in ACCESS_REQUEST_POLICIES:
            raise ConfigurationError(f'Unknown access request policy: {self.policy}')

    def request_access(self, influencer_id: str) -> dict[str, Any]:
        evaluator.require(evaluator.can_request_access(self.actor))
        if not self.actor.department_id:
            raise ConfigurationError(
                'You are not assigned to a department. Please contact your administrator '
                'to assign a department before requesting access.'
            )
        influencer = self.store.get('influencer', influencer_id)
        self._check_duplicates(influencer['id'])
        request = self.store.create(
            'access_request',
            {
                'requester_id': self.actor.id,
                'requester_name': self.actor.name or 'Unknown User',
                'requester_email': self.actor.email,
                'influencer_id': influencer['id'],
                'influencer_name': influencer['name'],
                'department_id': self.actor.department_id,
                'status': AccessRequest.Status.PENDING,
                'created_at': timezone.now(),
            },
        )
        LOGGER.info('Access to influencer %s requested by %s', influencer['id'], self.actor.email)
        self._log('Access requested', 'access_request', request['id'], influencer=influencer['name'])
        return self._present(request)

    def list_for_resolver(self, *, status: Optional[str] = None) -> list[dict[str, Any]]:
        if self.actor.role not in RESOLVER_ROLES:
            raise AuthorizationDenied('You do not have permission to view this page.', 'read_only')
        if not self.actor.department_id:
            return []
        filters: dict[str, Any] = {'department_id': self.actor.department_id}
        if status:
            filters['status'] = status
        directory = DepartmentDirectory.load(self.store)
        requests = self.store.list('access_request', filters=filters, order_by=('-created_at',))
        return [self._present(request, directory) for request in requests]

    def list_for_requester(self) -> list[dict[str, Any]]:
        directory = DepartmentDirectory.load(self.store)
        requests = self.store.list(
            'access_request', filters={'requester_id': self.actor.id}, order_by=('-created_at',)
        )
        return [self._present(request, directory) for request in requests]

    def status_for(self, influencer_id: str) -> Optional[str]:
        requests = self.store.list(
            'access_request', filters={'requester_id': self.actor.id, 'influencer_id': influencer_id}
        )
        latest = governing_request(requests)
        return latest['status'] if latest else None

    def approve(self, request_id: str, *, expected_version: Optional[int] = None) -> dict[str, Any]:
        return self._resolve(request_id, AccessRequest.Status.APPROVED, expected_version)

    def reject(self, request_id: str, *, expected_version: Optional[int] = None) -> dict[str, Any]:
        return self._resolve(request_id, AccessRequest.Status.REJECTED, expected_version)

    def revoke(self, request_id: str, *, expected_version: Optional[int] = None) -> dict[str, Any]:
        return self._resolve(request_id, AccessRequest.Status.REVOKED, expected_version)

    def _resolve(self, request_id: str, target: str, expected_version: Optional[int]) -> dict[str, Any]:
        directory = DepartmentDirectory.load(self.store)
        request = self.store.get('access_request', request_id)
        evaluator.require(
            evaluator.can_resolve_access_request(self.actor, directory.name_for(request['department_id']))
        )
        check_access_transition(request['status'], target)
        updated = self.store.update(
            'access_request',
            request_id,
            {'status': target, 'resolved_at': timezone.now(), 'resolved_by': self.actor.email},
            expected_version=self._expected(request, expected_version),
        )
        LOGGER.info('Access request %s %s by %s', request_id, target, self.actor.email)
        self._log(
            f'Access request {target}',
            'access_request',
            updated['id'],
            requester=request['requester_email'],
            influencer=request['influencer_name'],
        )
        return self._present(updated, directory)

    def _check_duplicates(self, influencer_id: str):
        if self.policy == 'allow':
            return
        existing = self.store.list(
            'access_request', filters={'requester_id': self.actor.id, 'influencer_id': influencer_id}
        )
        if self.policy == 'block_open':
            blocking = {AccessRequest.Status.PENDING, AccessRequest.Status.APPROVED}
        else:
            blocking = {AccessRequest.Status.PENDING, AccessRequest.Status.APPROVED, AccessRequest.Status.REJECTED}
        if any(request['status'] in blocking for request in existing):
            raise ValidationFailed.for_field(
                'influencer_id',
                'You already have an access request for this influencer',
            )

    def _present(
        self,
        request: Mapping[str, Any],
        directory: Optional[DepartmentDirectory] = None,
    ) -> dict[str, Any]:
        directory = directory or DepartmentDirectory.load(self.store)
        presented = dict(request)
        presented['department'] = directory.name_for(request['department_id'])
        return presented


class DirectoryService(BaseService):
    """Departments, users and role assignment (admin tier)."""

    def list_departments(self) -> list[dict[str, Any]]:
        return self.store.list('department', order_by=('name',))

    def create_department(self, data: Mapping[str, Any]) -> dict[str, Any]:
        evaluator.require(evaluator.can_manage_directory(self.actor))
        name = _text(data.get('name'))
        hod_name = _text(data.get('hod_name'))
        if not name:
            raise ValidationFailed.for_field('name', 'Missing field: name')
        if not hod_name:
            raise ValidationFailed.for_field('hod_name', 'Missing field: hod_name')
        if DepartmentDirectory.load(self.store).find(name):
            raise ValidationFailed.for_field('name', f'Duplicate department: {name}')
        department = self.store.create(
            'department', {'name': name, 'hod_name': hod_name, 'created_at': timezone.now()}
        )
        self._log('Department created', 'department', department['id'], name=name)
        return department

    def update_department(
        self,
        department_id: str,
        changes: Mapping[str, Any],
        *,
        expected_version: Optional[int] = None,
    ) -> dict[str, Any]:
        evaluator.require(evaluator.can_manage_directory(self.actor))
        department = self.store.get('department', department_id)
        values: dict[str, Any] = {}
        if 'name' in changes:
            name = _text(changes['name'])
            if not name:
                raise ValidationFailed.for_field('name', 'Missing field: name')
            clash = DepartmentDirectory.load(self.store).find(name)
            if clash and clash['id'] != department['id']:
                raise ValidationFailed.for_field('name', f'Duplicate department: {name}')
            values['name'] = name
        if 'hod_name' in changes:
            hod_name = _text(changes['hod_name'])
            if not hod_name:
                raise ValidationFailed.for_field('hod_name', 'Missing field: hod_name')
            values['hod_name'] = hod_name
        if not values:
            return department
        updated = self.store.update(
            'department', department_id, values, expected_version=self._expected(department, expected_version)
        )
        self._log('Department updated', 'department', updated['id'], fields=sorted(values))
        return updated

    def delete_department(self, department_id: str):
        evaluator.require(evaluator.can_manage_directory(self.actor))
        department = self.store.get('department', department_id)
        references = (
            ('user', 'department_id'),
            ('campaign', 'department_id'),
            ('access_request', 'department_id'),
            ('influencer', 'last_promo_department_id'),
        )
        for entity_type, attname in references:
            if self.store.exists(entity_type, **{attname: department['id']}):
                raise ValidationFailed.for_field(
                    'department',
                    f"Department {department['name']} is still referenced by {entity_type.replace('_', ' ')} records",
                )
        self.store.delete('department', department['id'])
        self._log('Department deleted', 'department', department['id'], name=department['name'])

    def list_users(self) -> list[dict[str, Any]]:
        evaluator.require(evaluator.can_manage_directory(self.actor))
        directory = DepartmentDirectory.load(self.store)
        return [self._present_user(user, directory) for user in self.store.list('user', order_by=('-created_at',))]

    def create_user(self, data: Mapping[str, Any]) -> dict[str, Any]:
        evaluator.require(evaluator.can_manage_directory(self.actor))
        directory = DepartmentDirectory.load(self.store)
        email = _text(data.get('email')).lower()
        if not email:
            raise ValidationFailed.for_field('email', 'Missing field: email')
        try:
            EMAIL_VALIDATOR(email)
        except DjangoValidationError as exc:
            raise ValidationFailed.for_field('email', f'Invalid email: {email}') from exc
        password = _text(data.get('password'))
        if not password:
            raise ValidationFailed.for_field('password', 'Missing field: password')
        role = self._role(data.get('role') or User.Role.EXECUTIVE)
        evaluator.require(evaluator.can_manage_user(self.actor, role))
        if self.store.exists('user', email=email):
            raise ValidationFailed.for_field('email', f'Duplicate email: {email}')
        name = _text(data.get('name')) or email.split('@')[0]
        user = self.store.create(
            'user',
            {
                'email': email,
                'password': make_password(password),
                'name': name,
                'role': role,
                'department_id': self._department_for_role(role, data.get('department'), directory),
                'avatar': _text(data.get('avatar')) or avatar_url(name),
                'created_at': timezone.now(),
            },
        )
        LOGGER.info('User %s created with role %s by %s', email, role, self.actor.email)
        self._log('User created', 'user', user['id'], email=email, role=role)
        return self._present_user(user, directory)

    def update_user(
        self,
        user_id: str,
        changes: Mapping[str, Any],
        *,
        expected_version: Optional[int] = None,
    ) -> dict[str, Any]:
        directory = DepartmentDirectory.load(self.store)
        user = self.store.get('user', user_id)
        evaluator.require(evaluator.can_manage_user(self.actor, user['role']))
        values: dict[str, Any] = {}
        role = user['role']
        if 'role' in changes and changes['role']:
            role = self._role(changes['role'])
            evaluator.require(evaluator.can_manage_user(self.actor, role))
            values['role'] = role
        if 'role' in values or 'department' in changes:
            department = changes.get('department') if 'department' in changes else directory.name_for(user['department_id'])
            values['department_id'] = self._department_for_role(role, department, directory)
        if 'email' in changes:
            email = _text(changes['email']).lower()
            if not email:
                raise ValidationFailed.for_field('email', 'Missing field: email')
            clash = self.store.first('user', email=email)
            if clash and clash['id'] != user['id']:
                raise ValidationFailed.for_field('email', f'Duplicate email: {email}')
            values['email'] = email
        if _text(changes.get('password')):
            values['password'] = make_password(_text(changes['password']))
        for name in ('name', 'avatar'):
            if name in changes:
                values[name] = _text(changes[name])
        if 'is_active' in changes:
            values['is_active'] = bool(changes['is_active'])
        if not values:
            return self._present_user(user, directory)
        updated = self.store.update('user', user_id, values, expected_version=self._expected(user, expected_version))
        self._log('User updated', 'user', updated['id'], fields=sorted(key for key in values if key != 'password'))
        return self._present_user(updated, directory)

    def assign_role(self, user_id: str, role: str, department: Optional[str] = None) -> dict[str, Any]:
        changes: dict[str, Any] = {'role': role}
        if _text(department):
            changes['department'] = department
        return self.update_user(user_id, changes)

    def delete_user(self, user_id: str):
        user = self.store.get('user', user_id)
        evaluator.require(evaluator.can_manage_user(self.actor, user['role']))
        if user['id'] == self.actor.id:
            raise ValidationFailed.for_field('user', 'You cannot delete your own account')
        for request in self.store.list('access_request', filters={'requester_id': user['id']}):
            self.store.delete('access_request', request['id'])
        self.store.delete('user', user['id'])
        self._log('User deleted', 'user', user['id'], email=user['email'])

    def _role(self, value: Any) -> str:
        try:
            return User.Role(_text(value).lower())
        except ValueError as exc:
            raise ValidationFailed.for_field('role', f'Invalid role: {value}') from exc

    def _department_for_role(self, role: str, department: Any, directory: DepartmentDirectory) -> Optional[str]:
        if not _text(department):
            if role == User.Role.MANAGER:
                raise ValidationFailed.for_field('department', 'Missing field: department (required for managers)')
            return None
        return directory.resolve(department)

    def _present_user(self, user: Mapping[str, Any], directory: DepartmentDirectory) -> dict[str, Any]:
        presented = {key: value for key, value in user.items() if key != 'password'}
        presented['department'] = directory.name_for(user.get('department_id'))
        return presented


@dataclass
class ImportReport:
    added: int = 0
    failed: int = 0
    rows: list[dict[str, Any]] = field(default_factory=list)

    def record(self, row_number: int, *, error: Optional[str] = None, entity_id: Optional[str] = None):
        if error:
            self.failed += 1
            self.rows.append({'row': row_number, 'status': 'failed', 'reason': error})
        else:
            self.added += 1
            self.rows.append({'row': row_number, 'status': 'added', 'id': entity_id})

    def as_dict(self) -> dict[str, Any]:
        return {'added': self.added, 'failed': self.failed, 'rows': self.rows}


class BulkImportService(BaseService):
    """Parse CSV/Excel sheets into departments or users, one row at a time."""

    def parse(self, uploaded_file) -> list[dict[str, Any]]:
        filename = uploaded_file.name.lower()
        raw = uploaded_file.read()
        if filename.endswith('.csv'):
            try:
                text = raw.decode('utf-8-sig')
            except UnicodeDecodeError as exc:
                raise ValidationFailed.for_field('file', 'CSV uploads must be UTF-8 encoded') from exc
            return self._parse_csv(text)
        if filename.endswith(('.xlsx', '.xlsm')):
            try:
                return self._parse_excel(raw)
            except (BadZipFile, InvalidFileException, KeyError, ValueError) as exc:
                raise ValidationFailed.for_field('file', 'Could not read the Excel workbook') from exc
        raise ValidationFailed.for_field('file', 'Only CSV or Excel uploads are supported')

    def _parse_csv(self, text: str) -> list[dict[str, Any]]:
        reader = csv.DictReader(io.StringIO(text))
        return [dict(row) for row in reader if any(_text(value) for value in row.values())]

    def _parse_excel(self, raw: bytes) -> list[dict[str, Any]]:
        workbook = openpyxl.load_workbook(io.BytesIO(raw), read_only=True, data_only=True)
        sheet = workbook.active
        rows = list(sheet.iter_rows(values_only=True))
        if not rows:
            return []
        headers = [_text(value) for value in rows[0]]
        parsed: list[dict[str, Any]] = []
        for row in rows[1:]:
            data = {headers[idx]: cell for idx, cell in enumerate(row) if idx < len(headers) and headers[idx]}
            if any(_text(value) for value in data.values()):
                parsed.append(data)
        return parsed

    def import_departments(self, rows: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
        evaluator.require(evaluator.can_manage_directory(self.actor))
        directory = DirectoryService(actor=self.actor, store=self.store)
        report = ImportReport()
        for row_number, row in enumerate(rows, start=1):
            normalized = self._department_row(row)
            try:
                department = directory.create_department(normalized)
            except (ValidationFailed, ConfigurationError, ConflictError) as exc:
                report.record(row_number, error=exc.message)
            else:
                report.record(row_number, entity_id=department['id'])
        LOGGER.info('Department upload by %s: added=%s failed=%s', self.actor.email, report.added, report.failed)
        return report.as_dict()

    def import_users(self, rows: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
        evaluator.require(evaluator.can_manage_directory(self.actor))
        directory = DirectoryService(actor=self.actor, store=self.store)
        report = ImportReport()
        for row_number, row in enumerate(rows, start=1):
            normalized = {_text(key).lower(): value for key, value in row.items() if key is not None}
            try:
                user = directory.create_user(
                    {
                        'email': normalized.get('email'),
                        'password': normalized.get('password'),
                        'role': _text(normalized.get('role')) or User.Role.EXECUTIVE,
                        'department': normalized.get('department'),
                        'name': normalized.get('name'),
                    }
                )
            except (ValidationFailed, ConfigurationError, ConflictError, AuthorizationDenied) as exc:
                report.record(row_number, error=exc.message)
            else:
                report.record(row_number, entity_id=user['id'])
        LOGGER.info('User upload by %s: added=%s failed=%s', self.actor.email, report.added, report.failed)
        return report.as_dict()

    def _department_row(self, row: Mapping[str, Any]) -> dict[str, str]:
        normalized = {'name': '', 'hod_name': ''}
        for key, value in row.items():
            clean_key = re.sub(r'\s', '', _text(key).lower())
            if 'hod' in clean_key:
                normalized['hod_name'] = _text(value)
            elif 'department' in clean_key or clean_key == 'name':
                normalized['name'] = _text(value)
        return normalized


class ActivityService(BaseService):
    def list(self, *, limit: int = 100) -> list[dict[str, Any]]:
        evaluator.require(evaluator.can_manage_directory(self.actor))
        return self.store.list('activity_log', order_by=('-timestamp',))[:limit]

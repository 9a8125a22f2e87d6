"""Login and JWT handling backed by the entity store."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from django.contrib.auth.hashers import check_password
from django.utils.translation import gettext_lazy as _
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import RefreshToken

from .exceptions import ConfigurationError, EntityNotFound
from .models import User
from .permissions import Actor
from .store import EntityStore, get_entity_store

LOGGER = logging.getLogger(__name__)

MANAGER_WITHOUT_DEPARTMENT = 'Configuration Error: Manager has no department assigned. Please contact admin.'


def actor_from_document(user: Mapping[str, Any], store: EntityStore) -> Actor:
    department = None
    if user.get('department_id'):
        try:
            department = store.get('department', user['department_id'])['name']
        except EntityNotFound:
            department = None
    return Actor(
        id=str(user['id']),
        name=user.get('name') or '',
        email=user['email'],
        role=user['role'],
        department=department,
        department_id=str(user['department_id']) if user.get('department_id') and department else None,
        avatar=user.get('avatar') or '',
    )


class LoginService:
    def __init__(self, store: Optional[EntityStore] = None):
        self.store = store or get_entity_store()

    def login(self, email: str, password: str) -> dict[str, Any]:
        email = (email or '').strip().lower()
        if not email or not password:
            raise AuthenticationFailed(_('Email and password are required'))
        user = self.store.first('user', email=email)
        if user is None or not check_password(password, user['password']):
            LOGGER.info('Failed login for %s', email)
            raise AuthenticationFailed(_('Invalid email or password'))
        if not user.get('is_active', True):
            raise AuthenticationFailed(_('User account is disabled'))
        actor = actor_from_document(user, self.store)
        if actor.role == User.Role.MANAGER and not actor.department_id:
            LOGGER.warning('Manager %s has no department assigned', email)
            raise ConfigurationError(MANAGER_WITHOUT_DEPARTMENT)
        refresh = self.issue_tokens(actor)
        LOGGER.info('User %s logged in as %s', email, actor.role)
        return {
            'user': actor.as_dict(),
            'tokens': {
                'refresh': str(refresh),
                'access': str(refresh.access_token),
            },
        }

    def refresh(self, raw_token: str) -> dict[str, str]:
        try:
            refresh = RefreshToken(raw_token)
        except TokenError as exc:
            raise InvalidToken(exc.args[0]) from exc
        try:
            user = self.store.get('user', refresh[api_settings.USER_ID_CLAIM])
        except (KeyError, EntityNotFound) as exc:
            raise AuthenticationFailed(_('User not found'), code='user_not_found') from exc
        if not user.get('is_active', True):
            raise AuthenticationFailed(_('User account is disabled'))
        return {'access': str(refresh.access_token)}

    @staticmethod
    def issue_tokens(actor: Actor) -> RefreshToken:
        refresh = RefreshToken()
        refresh[api_settings.USER_ID_CLAIM] = actor.id
        refresh['role'] = actor.role
        refresh['name'] = actor.name
        refresh['department'] = actor.department
        return refresh


class ActorJWTAuthentication(JWTAuthentication):
    """Resolve the token subject through the entity store into an ``Actor``."""

    def get_user(self, validated_token):  # type: ignore[override]
        try:
            user_id = validated_token[api_settings.USER_ID_CLAIM]
        except KeyError as exc:
            raise InvalidToken(_('Token contained no recognizable user identification')) from exc
        store = get_entity_store()
        try:
            user = store.get('user', user_id)
        except EntityNotFound as exc:
            raise AuthenticationFailed(_('User not found'), code='user_not_found') from exc
        if not user.get('is_active', True):
            raise AuthenticationFailed(_('User is inactive'), code='user_inactive')
        return actor_from_document(user, store)

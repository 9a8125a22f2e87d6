"""Shared fixtures for the marketing operations test suite.

Service-level tests run once per entity store backend through the
parametrized ``store`` fixture; actors are built from users stored in that
same backend so department lookups behave exactly as in production.
"""
from __future__ import annotations

from datetime import date

import pytest
from django.contrib.auth.hashers import make_password
from django.core.cache import caches
from django.utils import timezone
from rest_framework.test import APIClient

from marketing_ops.authentication import LoginService, actor_from_document
from marketing_ops.models import User
from marketing_ops.store import DatabaseEntityStore, LocalEntityStore

DEFAULT_PASSWORD = 's3cret-pass'


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def clear_cache():
    caches['default'].clear()
    yield
    caches['default'].clear()


@pytest.fixture(params=[pytest.param('database', marks=pytest.mark.django_db), 'local'])
def store(request, settings):
    """Entity store under test; the same backend is configured in settings."""
    settings.ENTITY_STORE_BACKEND = request.param
    if request.param == 'database':
        yield DatabaseEntityStore()
    else:
        local = LocalEntityStore()
        local.clear()
        yield local
        local.clear()


# ============================================================================
# Directory Fixtures
# ============================================================================

def make_department(store, name, hod_name='Head'):
    return store.create('department', {'name': name, 'hod_name': hod_name, 'created_at': timezone.now()})


def make_user(store, email, role, department=None, name=None, password=DEFAULT_PASSWORD):
    return store.create(
        'user',
        {
            'email': email,
            'name': name or email.split('@')[0].title(),
            'role': role,
            'department_id': department['id'] if department else None,
            'password': make_password(password),
            'created_at': timezone.now(),
        },
    )


@pytest.fixture
def marketing(store):
    return make_department(store, 'Marketing', 'Maya')


@pytest.fixture
def sales(store):
    return make_department(store, 'Sales', 'Sam')


@pytest.fixture
def manager(store, marketing):
    return actor_from_document(make_user(store, 'manager@example.com', User.Role.MANAGER, marketing), store)


@pytest.fixture
def sales_manager(store, sales):
    return actor_from_document(make_user(store, 'sales.manager@example.com', User.Role.MANAGER, sales), store)


@pytest.fixture
def executive(store, marketing):
    return actor_from_document(make_user(store, 'exec@example.com', User.Role.EXECUTIVE, marketing), store)


@pytest.fixture
def other_executive(store, marketing):
    return actor_from_document(make_user(store, 'exec2@example.com', User.Role.EXECUTIVE, marketing), store)


@pytest.fixture
def admin(store):
    return actor_from_document(make_user(store, 'admin@example.com', User.Role.ADMIN), store)


@pytest.fixture
def super_admin(store):
    return actor_from_document(make_user(store, 'root@example.com', User.Role.SUPER_ADMIN), store)


# ============================================================================
# Domain Fixtures
# ============================================================================

@pytest.fixture
def influencer_data():
    return {
        'name': 'Asha Rao',
        'email': 'asha@example.com',
        'mobile': '9876543210',
        'tax_id': 'abcde1234f',
        'category': 'Tech',
        'influencer_type': 'Person',
        'languages': ['English', 'Hindi'],
        'location': 'Bengaluru',
        'platforms': [{'platform': 'instagram', 'username': 'asha.codes', 'channel': ''}],
    }


@pytest.fixture
def campaign_data():
    return {
        'name': 'Launch week',
        'department': 'Marketing',
        'budget': 50000,
        'start_date': date(2024, 2, 1),
        'deliverables': '2 reels',
    }


# ============================================================================
# API Fixtures
# ============================================================================

@pytest.fixture
def api_client():
    return APIClient()


def authenticate(client, actor):
    refresh = LoginService.issue_tokens(actor)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client

"""Entity store adapter.

Every workflow reads and writes documents (plain dicts keyed by model
attribute names) through an ``EntityStore``. Two implementations share the
contract and the error taxonomy:

* ``DatabaseEntityStore`` keeps documents in the Django ORM tables.
* ``LocalEntityStore`` keeps them in a Django cache (local memory by default),
  for single-user demo setups with no database writes.

Exactly one of them is active, chosen by ``settings.ENTITY_STORE_BACKEND``.
A failing backend raises ``BackendUnavailable``; there is no fallback to the
other store. Updates compare the caller's ``expected_version`` with the stored
``version`` and raise ``ConflictError`` on mismatch.
"""
from __future__ import annotations

import copy
import logging
import threading
import uuid
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Iterable, Iterator, Mapping, Optional, Sequence

from django.conf import settings
from django.core.cache import caches
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F

from .exceptions import BackendUnavailable, ConflictError, EntityNotFound
from .models import AccessRequest, ActivityLog, Campaign, Department, Influencer, User

LOGGER = logging.getLogger(__name__)

ENTITY_MODELS = {
    'department': Department,
    'user': User,
    'influencer': Influencer,
    'campaign': Campaign,
    'access_request': AccessRequest,
    'activity_log': ActivityLog,
}

Document = dict[str, Any]


def _model_for(entity_type: str):
    try:
        return ENTITY_MODELS[entity_type]
    except KeyError as exc:
        raise ValueError(f'Unknown entity type: {entity_type}') from exc


def _field_names(model) -> set[str]:
    return {field.attname for field in model._meta.concrete_fields}


def _plain(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


def _coerce_id(entity_type: str, entity_id: Any) -> str:
    try:
        return str(uuid.UUID(str(entity_id)))
    except (TypeError, ValueError) as exc:
        raise EntityNotFound(f'{entity_type} {entity_id} not found') from exc


def _check_fields(model, data: Mapping[str, Any]):
    unknown = set(data) - _field_names(model)
    if unknown:
        raise ValueError(f"Unknown field(s) for {model.__name__}: {', '.join(sorted(unknown))}")


class EntityStore:
    """CRUD contract implemented by every backend."""

    name = 'abstract'

    def list(
        self,
        entity_type: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Sequence[str] = (),
    ) -> list[Document]:
        raise NotImplementedError

    def get(self, entity_type: str, entity_id: Any) -> Document:
        raise NotImplementedError

    def create(self, entity_type: str, data: Mapping[str, Any]) -> Document:
        raise NotImplementedError

    def update(
        self,
        entity_type: str,
        entity_id: Any,
        changes: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> Document:
        raise NotImplementedError

    def delete(self, entity_type: str, entity_id: Any) -> None:
        raise NotImplementedError

    def first(self, entity_type: str, **filters) -> Optional[Document]:
        found = self.list(entity_type, filters=filters)
        return found[0] if found else None

    def exists(self, entity_type: str, **filters) -> bool:
        return self.first(entity_type, **filters) is not None


class DatabaseEntityStore(EntityStore):
    """Durable backend over the Django ORM."""

    name = 'database'

    @contextmanager
    def _guard(self, entity_type: str) -> Iterator[None]:
        try:
            yield
        except IntegrityError as exc:
            raise ConflictError(f'{entity_type} write violates a uniqueness or reference rule') from exc
        except DatabaseError as exc:
            LOGGER.exception('Database error on %s', entity_type)
            raise BackendUnavailable('Data store is unavailable, please retry later') from exc

    def _to_document(self, instance) -> Document:
        return {field.attname: _plain(getattr(instance, field.attname)) for field in instance._meta.concrete_fields}

    def list(self, entity_type, filters=None, order_by=()):
        model = _model_for(entity_type)
        with self._guard(entity_type):
            queryset = model.objects.filter(**{k: _plain(v) for k, v in (filters or {}).items()})
            if order_by:
                queryset = queryset.order_by(*order_by)
            return [self._to_document(instance) for instance in queryset]

    def get(self, entity_type, entity_id):
        model = _model_for(entity_type)
        pk = _coerce_id(entity_type, entity_id)
        with self._guard(entity_type):
            instance = model.objects.filter(pk=pk).first()
        if instance is None:
            raise EntityNotFound(f'{entity_type} {entity_id} not found')
        return self._to_document(instance)

    def create(self, entity_type, data):
        model = _model_for(entity_type)
        _check_fields(model, data)
        with self._guard(entity_type):
            with transaction.atomic():
                instance = model(**data)
                instance.save(force_insert=True)
        return self._to_document(instance)

    def update(self, entity_type, entity_id, changes, expected_version=None):
        model = _model_for(entity_type)
        _check_fields(model, changes)
        pk = _coerce_id(entity_type, entity_id)
        values = {key: value for key, value in changes.items() if key not in ('id', 'version')}
        with self._guard(entity_type):
            with transaction.atomic():
                queryset = model.objects.filter(pk=pk)
                if expected_version is not None:
                    queryset = queryset.filter(version=expected_version)
                updated = queryset.update(version=F('version') + 1, **values)
            if not updated:
                if model.objects.filter(pk=pk).exists():
                    raise ConflictError(f'{entity_type} was modified by someone else, reload and retry')
                raise EntityNotFound(f'{entity_type} {entity_id} not found')
        return self.get(entity_type, pk)

    def delete(self, entity_type, entity_id):
        model = _model_for(entity_type)
        pk = _coerce_id(entity_type, entity_id)
        with self._guard(entity_type):
            with transaction.atomic():
                deleted, _ = model.objects.filter(pk=pk).delete()
        if not deleted:
            raise EntityNotFound(f'{entity_type} {entity_id} not found')


class LocalEntityStore(EntityStore):
    """Key-value backend over a Django cache; single writer, no sync."""

    name = 'local'
    key_prefix = 'marketing_ops:entities'

    def __init__(self, cache_alias: str = 'default'):
        self.cache_alias = cache_alias
        self._lock = threading.RLock()

    @property
    def cache(self):
        return caches[self.cache_alias]

    def _key(self, entity_type: str) -> str:
        return f'{self.key_prefix}:{entity_type}'

    def _load(self, entity_type: str) -> dict[str, Document]:
        _model_for(entity_type)
        try:
            return self.cache.get(self._key(entity_type)) or {}
        except Exception as exc:  # cache backends raise their own client errors
            raise BackendUnavailable('Local store is unavailable') from exc

    def _save(self, entity_type: str, documents: dict[str, Document]):
        try:
            self.cache.set(self._key(entity_type), documents, timeout=None)
        except Exception as exc:
            raise BackendUnavailable('Local store is unavailable') from exc

    def _defaults(self, model) -> Document:
        return {field.attname: _plain(field.get_default()) for field in model._meta.concrete_fields}

    def list(self, entity_type, filters=None, order_by=()):
        wanted = {key: _plain(value) for key, value in (filters or {}).items()}
        documents = [
            document for document in self._load(entity_type).values()
            if all(document.get(key) == value for key, value in wanted.items())
        ]
        return copy.deepcopy(_sort_documents(documents, order_by))

    def get(self, entity_type, entity_id):
        pk = _coerce_id(entity_type, entity_id)
        document = self._load(entity_type).get(pk)
        if document is None:
            raise EntityNotFound(f'{entity_type} {entity_id} not found')
        return copy.deepcopy(document)

    def create(self, entity_type, data):
        model = _model_for(entity_type)
        _check_fields(model, data)
        document = self._defaults(model)
        document.update({key: _plain(value) for key, value in data.items()})
        document['id'] = _coerce_id(entity_type, document.get('id') or uuid.uuid4())
        with self._lock:
            documents = self._load(entity_type)
            if document['id'] in documents:
                raise ConflictError(f"{entity_type} {document['id']} already exists")
            documents[document['id']] = document
            self._save(entity_type, documents)
        return copy.deepcopy(document)

    def update(self, entity_type, entity_id, changes, expected_version=None):
        model = _model_for(entity_type)
        _check_fields(model, changes)
        pk = _coerce_id(entity_type, entity_id)
        with self._lock:
            documents = self._load(entity_type)
            current = documents.get(pk)
            if current is None:
                raise EntityNotFound(f'{entity_type} {entity_id} not found')
            if expected_version is not None and current.get('version') != expected_version:
                raise ConflictError(f'{entity_type} was modified by someone else, reload and retry')
            updated = dict(current)
            updated.update({key: _plain(value) for key, value in changes.items() if key not in ('id', 'version')})
            updated['version'] = (current.get('version') or 0) + 1
            documents[pk] = updated
            self._save(entity_type, documents)
        return copy.deepcopy(updated)

    def delete(self, entity_type, entity_id):
        pk = _coerce_id(entity_type, entity_id)
        with self._lock:
            documents = self._load(entity_type)
            if pk not in documents:
                raise EntityNotFound(f'{entity_type} {entity_id} not found')
            del documents[pk]
            self._save(entity_type, documents)

    def clear(self):
        with self._lock:
            self.cache.delete_many([self._key(entity_type) for entity_type in ENTITY_MODELS])


def _sort_documents(documents: list[Document], order_by: Iterable[str]) -> list[Document]:
    ordered = list(documents)
    for field in reversed(list(order_by)):
        descending = field.startswith('-')
        name = field.lstrip('-')
        present = [doc for doc in ordered if doc.get(name) is not None]
        missing = [doc for doc in ordered if doc.get(name) is None]
        present.sort(key=lambda doc: doc[name], reverse=descending)
        ordered = present + missing
    return ordered


@lru_cache(maxsize=None)
def _build_store(backend: str, cache_alias: str) -> EntityStore:
    if backend == DatabaseEntityStore.name:
        return DatabaseEntityStore()
    if backend == LocalEntityStore.name:
        return LocalEntityStore(cache_alias=cache_alias)
    raise ValueError(f'Unsupported ENTITY_STORE_BACKEND: {backend}')


def get_entity_store() -> EntityStore:
    """Return the store configured by ``ENTITY_STORE_BACKEND``."""
    backend = getattr(settings, 'ENTITY_STORE_BACKEND', DatabaseEntityStore.name)
    cache_alias = getattr(settings, 'ENTITY_STORE_CACHE_ALIAS', 'default')
    return _build_store(backend, cache_alias)

"""Shared fixtures: an in-memory stand-in for the Directus session."""

import copy
from datetime import datetime, timezone
from typing import Any, AsyncIterator

import pytest

from handheld_deals.models import AppConfig
from handheld_deals.services.errors import CmsError
from handheld_deals.services.records import parse_timestamp


def _value(item: dict[str, Any], key: str) -> Any:
    value = item.get(key)
    if isinstance(value, dict) and "id" in value:
        return value["id"]
    return value


def _compare(value: Any, expected: Any) -> tuple[Any, Any]:
    left, right = parse_timestamp(value), parse_timestamp(expected)
    if left is not None and right is not None:
        return left, right
    return value, expected


def matches(item: dict[str, Any], flt: dict[str, Any] | None) -> bool:
    """Evaluate the subset of Directus filter syntax the jobs use."""
    if not flt:
        return True
    for key, condition in flt.items():
        if key == "_and":
            if not all(matches(item, c) for c in condition):
                return False
            continue
        if key == "_or":
            if not any(matches(item, c) for c in condition):
                return False
            continue

        value = _value(item, key)
        for op, expected in condition.items():
            if op == "_eq" and value != expected:
                return False
            if op == "_null" and (value is None) != expected:
                return False
            if op == "_nnull" and (value is not None) != expected:
                return False
            if op == "_in" and value not in expected:
                return False
            if op == "_icontains" and (value is None or str(expected).lower() not in str(value).lower()):
                return False
            if op in ("_lt", "_gt", "_gte"):
                if value is None:
                    return False
                left, right = _compare(value, expected)
                if op == "_lt" and not left < right:
                    return False
                if op == "_gt" and not left > right:
                    return False
                if op == "_gte" and not left >= right:
                    return False
    return True


class FakeSession:
    """Collections held in memory; records every write."""

    def __init__(self, collections: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self.collections: dict[str, list[dict[str, Any]]] = {
            name: [dict(item) for item in items] for name, items in (collections or {}).items()
        }
        self.created: list[tuple[str, dict[str, Any]]] = []
        self.updated: list[tuple[str, str, dict[str, Any]]] = []
        self.deleted: list[tuple[str, str]] = []
        self.fail_updates: set[str] = set()
        self._next_id = 1000

    def _items(self, collection: str) -> list[dict[str, Any]]:
        return self.collections.setdefault(collection, [])

    def get(self, collection: str, item_id: str) -> dict[str, Any] | None:
        for item in self._items(collection):
            if str(item.get("id")) == str(item_id):
                return item
        return None

    async def read_items(
        self,
        collection: str,
        filter: dict[str, Any] | None = None,
        fields: list[str] | None = None,
        sort: list[str] | None = None,
        limit: int | None = -1,
        page: int | None = None,
    ) -> list[dict[str, Any]]:
        found = [copy.deepcopy(item) for item in self._items(collection) if matches(item, filter)]
        if sort:
            for key in reversed(sort):
                reverse = key.startswith("-")
                name = key.lstrip("-")
                found.sort(key=lambda item: (item.get(name) is None, item.get(name) or 0), reverse=reverse)
        if limit is not None and limit > 0:
            start = ((page or 1) - 1) * limit
            found = found[start:start + limit]
        return found

    async def iter_items(self, collection: str, filter: dict[str, Any] | None = None, **_: Any) -> AsyncIterator[dict[str, Any]]:
        for item in await self.read_items(collection, filter=filter):
            yield item

    async def read_item(self, collection: str, item_id: str) -> dict[str, Any] | None:
        item = self.get(collection, item_id)
        return copy.deepcopy(item) if item else None

    async def create_item(self, collection: str, payload: dict[str, Any]) -> dict[str, Any]:
        self._next_id += 1
        item = dict(payload, id=str(self._next_id))
        self._items(collection).append(item)
        self.created.append((collection, copy.deepcopy(payload)))
        return copy.deepcopy(item)

    async def update_item(self, collection: str, item_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        if str(item_id) in self.fail_updates:
            raise CmsError("CMS PATCH failed", collection=collection, item_id=str(item_id), status_code=500)
        item = self.get(collection, item_id)
        if item is None:
            raise CmsError("Item not found", collection=collection, item_id=str(item_id), status_code=404)
        item.update(copy.deepcopy(payload))
        self.updated.append((collection, str(item_id), copy.deepcopy(payload)))
        return copy.deepcopy(item)

    async def delete_item(self, collection: str, item_id: str) -> None:
        items = self._items(collection)
        self.collections[collection] = [i for i in items if str(i.get("id")) != str(item_id)]
        self.deleted.append((collection, str(item_id)))

    async def delete_items(self, collection: str, item_ids: list[str]) -> None:
        for item_id in item_ids:
            await self.delete_item(collection, item_id)


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(cms_static_token="test-token", request_delay=0.0)

"""Object store clients.

Both stores expose one JSON tree addressed by slash-separated keys: reading,
writing or deleting ``pages/<id>/locales/en-us`` touches only that nested
node.  Neither store offers multi-key transactions.
"""

import abc
import copy
import enum
import json
import logging
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

import httpx

from lingopages.services.errors import StoreError

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 10  # seconds
# Highest code point Firebase accepts; used as the upper bound of prefix queries.
_PREFIX_UPPER_BOUND = "\uf8ff"


class Operator(str, enum.Enum):
    EQUALS = "equals"
    CONTAINS = "contains"
    STARTS_WITH = "startsWith"


class Predicate(NamedTuple):
    path: str
    operator: Operator
    value: Any


class Query:
    """Chainable search predicate: ``Query().where("title", Operator.CONTAINS, "about")``.

    Predicates are AND-ed.  Paths are slash-separated and relative to each
    child of the searched collection.
    """

    def __init__(self) -> None:
        self.predicates: List[Predicate] = []
        self.order_by_path: Optional[str] = None
        self.limit: Optional[int] = None

    def where(self, path: str, operator: Operator, value: Any) -> "Query":
        self.predicates.append(Predicate(path, Operator(operator), value))
        return self

    def order_by(self, path: str) -> "Query":
        self.order_by_path = path
        return self

    def take(self, count: int) -> "Query":
        self.limit = count
        return self

    def matches(self, value: Any) -> bool:
        return all(_predicate_matches(p, value) for p in self.predicates)


def split_key(key: str) -> List[str]:
    """Split *key* into path segments, rejecting empty keys."""
    segments = [s for s in key.strip("/").split("/") if s]
    if not segments:
        raise ValueError("Storage key must not be empty.")
    return segments


def resolve_path(value: Any, path: str) -> Any:
    """Walk *path* into nested dicts; return ``None`` when any segment is missing."""
    current = value
    for segment in path.strip("/").split("/"):
        if not isinstance(current, dict) or segment not in current:
            return None
        current = current[segment]
    return current


def _predicate_matches(predicate: Predicate, value: Any) -> bool:
    actual = resolve_path(value, predicate.path)
    if actual is None:
        return False

    if predicate.operator is Operator.EQUALS:
        return actual == predicate.value
    if not isinstance(actual, str) or not isinstance(predicate.value, str):
        return False
    if predicate.operator is Operator.CONTAINS:
        return predicate.value.lower() in actual.lower()
    return actual.startswith(predicate.value)


def apply_query(items: List[Tuple[str, Any]], query: Optional[Query]) -> List[Tuple[str, Any]]:
    """Filter, order and truncate *items* the way *query* asks."""
    if query is None:
        return items

    results = [(key, value) for key, value in items if query.matches(value)]

    if query.order_by_path:
        path = query.order_by_path

        def sort_key(item: Tuple[str, Any]) -> Tuple[bool, str]:
            resolved = resolve_path(item[1], path)
            return (resolved is None, "" if resolved is None else str(resolved))

        results.sort(key=sort_key)

    if query.limit is not None:
        results = results[: query.limit]

    return results


class ObjectStorage(abc.ABC):
    """Async key/value store holding JSON values."""

    @abc.abstractmethod
    async def get_object(self, key: str) -> Optional[Any]:
        """Return the value at *key*, or ``None`` when nothing is stored there."""

    async def add_object(self, key: str, value: Any) -> None:
        """Store *value* at a freshly derived *key*."""
        await self.update_object(key, value)

    @abc.abstractmethod
    async def update_object(self, key: str, value: Any) -> None:
        """Replace whatever is stored at *key* with *value*."""

    @abc.abstractmethod
    async def delete_object(self, key: str) -> None:
        """Remove *key* and everything nested under it. Missing keys are ignored."""

    @abc.abstractmethod
    async def search_objects(self, path: str, query: Optional[Query] = None) -> List[Tuple[str, Any]]:
        """Return ``(key, value)`` pairs of the children of *path* matching *query*."""


class MemoryObjectStorage(ObjectStorage):
    """In-process store backed by a nested dict.

    Values are deep-copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None) -> None:
        self._root: Dict[str, Any] = copy.deepcopy(data) if data else {}

    def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self._root)

    async def get_object(self, key: str) -> Optional[Any]:
        return copy.deepcopy(resolve_path(self._root, "/".join(split_key(key))))

    async def update_object(self, key: str, value: Any) -> None:
        segments = split_key(key)
        node = self._root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child
        node[segments[-1]] = copy.deepcopy(value)

    async def delete_object(self, key: str) -> None:
        segments = split_key(key)
        trail = [self._root]
        for segment in segments[:-1]:
            child = trail[-1].get(segment)
            if not isinstance(child, dict):
                return
            trail.append(child)
        trail[-1].pop(segments[-1], None)

        # Drop parents left empty.
        for depth in range(len(trail) - 1, 0, -1):
            if trail[depth]:
                break
            trail[depth - 1].pop(segments[depth - 1], None)

    async def search_objects(self, path: str, query: Optional[Query] = None) -> List[Tuple[str, Any]]:
        collection = resolve_path(self._root, "/".join(split_key(path)))
        if not isinstance(collection, dict):
            return []
        prefix = path.strip("/")
        items = [
            (f"{prefix}/{name}", copy.deepcopy(value))
            for name, value in collection.items()
            if isinstance(value, dict)
        ]
        return apply_query(items, query)


class HttpObjectStorage(ObjectStorage):
    """Client for a Firebase Realtime Database style REST store.

    Every key maps to ``{base_url}/{key}.json``.  Equality and prefix
    predicates are pushed to the server through ``orderBy``/``equalTo``/
    ``startAt``/``endAt``; all predicates are then re-checked locally so
    ``CONTAINS`` and multi-predicate queries behave like the memory store.

    Transport failures surface as :mod:`httpx` exceptions.
    """

    def __init__(
        self,
        base_url: str,
        auth_token: Optional[str] = None,
        timeout: float = _DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth_token = auth_token
        self._timeout = timeout
        self._transport = transport

    def _url(self, key: str) -> str:
        return f"{self._base_url}/{'/'.join(split_key(key))}.json"

    def _params(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        params: Dict[str, str] = dict(extra or {})
        if self._auth_token:
            params["auth"] = self._auth_token
        return params

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise StoreError(f"Store returned a non-JSON body for {response.request.url}.") from exc

    async def get_object(self, key: str) -> Optional[Any]:
        async with self._client() as client:
            response = await client.get(self._url(key), params=self._params())
            response.raise_for_status()
            return self._decode(response)

    async def update_object(self, key: str, value: Any) -> None:
        logger.debug("PUT %s", key)
        async with self._client() as client:
            response = await client.put(self._url(key), params=self._params(), json=value)
            response.raise_for_status()

    async def delete_object(self, key: str) -> None:
        logger.debug("DELETE %s", key)
        async with self._client() as client:
            response = await client.delete(self._url(key), params=self._params())
            response.raise_for_status()

    async def search_objects(self, path: str, query: Optional[Query] = None) -> List[Tuple[str, Any]]:
        async with self._client() as client:
            response = await client.get(self._url(path), params=self._params(_server_filter(query)))
            response.raise_for_status()
            payload = self._decode(response)

        if payload is None:
            return []
        if not isinstance(payload, dict):
            raise StoreError(f'Collection "{path}" is not an object.')

        prefix = path.strip("/")
        items = [(f"{prefix}/{name}", value) for name, value in payload.items() if isinstance(value, dict)]
        return apply_query(items, query)


def _server_filter(query: Optional[Query]) -> Dict[str, str]:
    """Translate the first server-evaluable predicate of *query* into REST parameters."""
    if query is None:
        return {}

    for predicate in query.predicates:
        if predicate.operator is Operator.EQUALS:
            return {
                "orderBy": json.dumps(predicate.path),
                "equalTo": json.dumps(predicate.value),
            }
        if predicate.operator is Operator.STARTS_WITH:
            return {
                "orderBy": json.dumps(predicate.path),
                "startAt": json.dumps(predicate.value),
                "endAt": json.dumps(f"{predicate.value}{_PREFIX_UPPER_BOUND}"),
            }

    if query.order_by_path:
        return {"orderBy": json.dumps(query.order_by_path)}
    return {}

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Optional

import requests

from errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


class MetadataCache:
    """Bounded, thread-safe LRU cache whose entries expire after ``ttl`` seconds."""

    def __init__(self, max_size: int = 512, ttl: float = 3600.0, clock=time.monotonic) -> None:
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self.ttl = ttl
        self._clock = clock
        self._items: OrderedDict[str, tuple[float, dict]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[dict]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            stored_at, value = item
            if self._clock() - stored_at >= self.ttl:
                del self._items[key]
                return None
            self._items.move_to_end(key)
            return value

    def put(self, key: str, value: dict) -> None:
        with self._lock:
            self._items[key] = (self._clock(), value)
            self._items.move_to_end(key)
            while len(self._items) > self.max_size:
                self._items.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class ExerciseCatalogClient:
    """HTTP client for the external exercise catalog."""

    def __init__(
        self,
        base_url: str = "https://exercisedb.p.rapidapi.com",
        api_key: str | None = None,
        host: str | None = "exercisedb.p.rapidapi.com",
        timeout: float = 5.0,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session_factory = session_factory
        self._local = threading.local()
        self.headers: dict[str, str] = {}
        if api_key:
            self.headers["X-RapidAPI-Key"] = api_key
        if host:
            self.headers["X-RapidAPI-Host"] = host

    @property
    def session(self) -> requests.Session:
        """Session of the calling thread; sessions are not shared across threads."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = self.session_factory()
            self._local.session = session
        return session

    def fetch(self, exercise_id: str) -> dict:
        """Return catalog metadata for ``exercise_id``.

        Raises :class:`UpstreamUnavailable` on timeouts, HTTP errors and
        malformed payloads.
        """
        url = f"{self.base_url}/exercises/exercise/{exercise_id}"
        try:
            resp = self.session.get(url, headers=self.headers, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise UpstreamUnavailable(f"catalog lookup failed for {exercise_id}: {e}") from e
        if not isinstance(data, dict):
            raise UpstreamUnavailable(f"unexpected catalog payload for {exercise_id}")
        return data


class CatalogService:
    """Read-through cache and concurrent fan-out over the exercise catalog."""

    def __init__(
        self,
        client: ExerciseCatalogClient | None = None,
        cache: MetadataCache | None = None,
        max_workers: int = 8,
    ) -> None:
        self.client = client or ExerciseCatalogClient()
        self.cache = cache or MetadataCache()
        self.max_workers = max_workers

    def lookup(self, exercise_id: str) -> Optional[dict]:
        """Return metadata for one exercise, or ``None`` if the catalog failed."""
        key = str(exercise_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        try:
            data = self.client.fetch(key)
        except UpstreamUnavailable as e:
            logger.warning("Exercise metadata unavailable: %s", e)
            return None
        self.cache.put(key, data)
        return data

    def lookup_many(self, exercise_ids: Iterable[str]) -> dict[str, Optional[dict]]:
        ids = list(dict.fromkeys(str(i) for i in exercise_ids))
        if not ids:
            return {}
        workers = max(1, min(self.max_workers, len(ids)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(self.lookup, ids))
        return dict(zip(ids, results))

    @staticmethod
    def summary(meta: Optional[dict]) -> dict:
        """Reduce catalog metadata to display fields, empty when missing."""
        if not meta:
            return {"name": "", "image": ""}
        return {
            "name": meta.get("name") or "",
            "image": meta.get("gifUrl") or meta.get("image") or "",
        }

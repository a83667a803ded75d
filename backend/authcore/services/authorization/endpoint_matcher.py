"""
Endpoint Matcher - request line to cataloged endpoint

Maps ``(METHOD, PATH)`` to at most one active cataloged endpoint. Endpoint
lists are cached per HTTP method with a single global TTL: the first lookup
after expiry clears the whole map, and each method key is then rebuilt lazily
under its own lock so a slow rebuild for one method never blocks another.

This cache is the only process-wide mutable state of the authorization core.
"""

import logging
import threading
import time
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ...models.authorization_models import EndpointDescriptor
from ...repositories.endpoint_repository import EndpointRepository
from ...utils.logging_security import sanitize_for_log, sanitize_path_for_log
from .path_matching import AntPathMatcher, composite_paths, normalize_path

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 30.0

EndpointLoader = Callable[[Session, str], List[EndpointDescriptor]]


def load_endpoints_for_method(db: Session, method: str) -> List[EndpointDescriptor]:
    """Default loader: every cataloged endpoint for the method, in id order"""
    return EndpointRepository(db).find_by_method(method)


@lru_cache(maxsize=8192)
def _candidate_templates(path: str, service: str, version: str) -> Tuple[str, ...]:
    return tuple(composite_paths(path, service, version))


def normalize_method(method: Optional[str]) -> str:
    """Upper-case HTTP method, GET when absent"""
    method = (method or "").strip().upper()
    return method or "GET"


class EndpointMatcher:
    """
    Per-method endpoint cache plus Ant-style matching.

    Args:
        ttl_seconds: Lifetime of the whole cache map
        loader: Callable(db, method) returning the method's endpoints
        clock: Monotonic time source (seconds)
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        loader: Optional[EndpointLoader] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._loader = loader or load_endpoints_for_method
        self._clock = clock
        self._path_matcher = AntPathMatcher()

        self._map_lock = threading.Lock()
        self._key_locks: Dict[str, threading.Lock] = {}
        self._cache: Dict[str, List[EndpointDescriptor]] = {}
        self._loaded_at: Optional[float] = None
        self._generation = 0

    def invalidate(self) -> None:
        """Drop every cached method list (e.g. after catalog edits)"""
        with self._map_lock:
            self._clear_locked()
            self._loaded_at = None

    def _clear_locked(self) -> None:
        self._cache.clear()
        self._generation += 1
        # Keep only locks a rebuild currently holds; method keys come from clients
        self._key_locks = {method: lock for method, lock in self._key_locks.items() if lock.locked()}

    def endpoints_for_method(self, db: Session, method: str) -> List[EndpointDescriptor]:
        """
        Cached endpoint list for a method, rebuilding it if needed.

        Args:
            db: Session used if the list has to be (re)loaded
            method: HTTP method

        Returns:
            Endpoints for the method in insertion order
        """
        method = normalize_method(method)

        with self._map_lock:
            now = self._clock()
            if self._loaded_at is None:
                self._loaded_at = now
            elif now - self._loaded_at >= self.ttl_seconds:
                logger.debug("Endpoint cache expired, clearing all method lists")
                self._clear_locked()
                self._loaded_at = now

            cached = self._cache.get(method)
            if cached is not None:
                return cached
            key_lock = self._key_locks.setdefault(method, threading.Lock())

        with key_lock:
            with self._map_lock:
                cached = self._cache.get(method)
                generation = self._generation
            if cached is not None:
                return cached

            endpoints = list(self._loader(db, method))

            with self._map_lock:
                # A clear during the load means this list may be stale; hand it
                # to this caller but let the next one reload.
                if generation == self._generation:
                    self._cache[method] = endpoints

            logger.debug(f"Loaded {len(endpoints)} endpoints for method {sanitize_for_log(method)}")
            return endpoints

    def matches(self, endpoint: EndpointDescriptor, path: str) -> bool:
        """Whether a normalized request path matches any composite form of the endpoint"""
        for template in _candidate_templates(endpoint.path, endpoint.service, endpoint.version):
            if self._path_matcher.match(template, path):
                return True
        return False

    def find_matching_endpoint(self, db: Session, method: Optional[str], path: Optional[str]) -> Optional[EndpointDescriptor]:
        """
        Resolve a request line to a cataloged endpoint.

        The first active endpoint (insertion order) whose template or composite
        form matches wins; inactive endpoints are skipped.

        Args:
            db: Session for cache rebuilds
            method: HTTP method (defaults to GET)
            path: Request URI, query string allowed

        Returns:
            Matching endpoint, or None when the request line is uncataloged
        """
        normalized_method = normalize_method(method)
        normalized_path = normalize_path(path)

        for endpoint in self.endpoints_for_method(db, normalized_method):
            if not endpoint.is_active:
                continue
            if self.matches(endpoint, normalized_path):
                return endpoint

        logger.debug(
            f"No cataloged endpoint for {normalized_method} {sanitize_path_for_log(normalized_path)}"
        )
        return None

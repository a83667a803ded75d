"""
ETag helpers for cacheable JSON responses

A response that carries an explicit version stamp uses that stamp as its
entity tag; anything else is tagged with the SHA-256 of its canonical JSON
form. ``If-None-Match`` handling understands quoted, weak (``W/``) and
comma-separated validators as well as ``*``.
"""

import hashlib
import json
from typing import Any, Iterable, Optional

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response


def canonical_json(payload: Any) -> str:
    """Serialize payload with sorted keys and no insignificant whitespace"""
    return json.dumps(jsonable_encoder(payload), sort_keys=True, separators=(",", ":"), default=str)


def content_hash(payload: Any) -> str:
    """SHA-256 hex digest of the canonical JSON form"""
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


def compute_etag(payload: Any, version_keys: Iterable[str] = ("version",)) -> str:
    """
    Compute the (unquoted) entity tag for a payload.

    Args:
        payload: Response body
        version_keys: Keys checked in order for an explicit version stamp

    Returns:
        The string form of the first present version stamp, otherwise a content hash
    """
    if isinstance(payload, dict):
        for key in version_keys:
            value = payload.get(key)
            if value is not None:
                return str(value)
    return content_hash(payload)


def quote_etag(etag: str) -> str:
    if etag.startswith('"') or etag.startswith("W/"):
        return etag
    return f'"{etag}"'


def _normalize_validator(candidate: str) -> str:
    candidate = candidate.strip()
    if candidate.startswith("W/"):
        candidate = candidate[2:]
    return candidate.strip('"')


def etag_matches(if_none_match: Optional[str], etag: str) -> bool:
    """Weak comparison of an If-None-Match header against an entity tag"""
    if not if_none_match:
        return False
    target = _normalize_validator(etag)
    for candidate in if_none_match.split(","):
        candidate = candidate.strip()
        if candidate == "*" or _normalize_validator(candidate) == target:
            return True
    return False


def etag_json_response(request: Request, payload: Any, etag: Optional[str] = None) -> Response:
    """
    Build a JSON response tagged with an ETag, or a bodiless 304 when the
    client's If-None-Match already matches.
    """
    etag = etag if etag is not None else compute_etag(payload)
    headers = {"ETag": quote_etag(etag)}

    if etag_matches(request.headers.get("if-none-match"), etag):
        return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers=headers)

    return JSONResponse(content=jsonable_encoder(payload), headers=headers)

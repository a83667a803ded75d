"""
Request path normalization and Ant-style template matching

Templates use the Ant conventions:
    ?       exactly one character inside a segment
    *       any run of characters inside a segment
    **      zero or more whole segments
    {name}  exactly one non-empty segment (``{name:regex}`` constrains it)

Matching is a boolean predicate; captured template variables are never
surfaced to the decision.
"""

import re
from functools import lru_cache
from typing import List, Optional, Sequence

_VARIABLE_PATTERN = re.compile(r"\{([^{}:]+)(?::((?:[^{}]|\{[^{}]*\})+))?\}")


def normalize_path(path: Optional[str]) -> str:
    """
    Normalize a request URI or template path.

    Strips the query component, ensures a single leading slash and drops a
    trailing slash unless the whole path is "/". Percent-escapes are left as-is.

    Args:
        path: Raw path (may include a query string)

    Returns:
        Normalized path, "/" for empty input
    """
    if not path:
        return "/"

    query_index = path.find("?")
    if query_index >= 0:
        path = path[:query_index]

    path = "/" + path.lstrip("/")
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    return path


def strip_context_path(path: str, context_path: Optional[str]) -> str:
    """Remove the application context prefix (e.g. "/auth") from a request path"""
    if not context_path or context_path == "/":
        return path
    prefix = context_path.rstrip("/")
    if path == prefix:
        return "/"
    if path.startswith(prefix + "/"):
        return path[len(prefix):]
    return path


def join_paths(prefix: str, path: str) -> str:
    """Join two path fragments with exactly one slash between them"""
    if not prefix:
        return path
    if not path:
        return prefix
    return prefix.rstrip("/") + "/" + path.lstrip("/")


def composite_paths(path: str, service: Optional[str], version: Optional[str]) -> List[str]:
    """
    Candidate templates for a cataloged endpoint, original path first.

    For service S and version V the candidates are the template itself,
    ``/api/S/V{path}`` and ``/api/S{path}``. Service and version are trimmed of
    surrounding slashes; an empty service disables the prefixed forms and an
    empty version skips the versioned one.

    Args:
        path: Template path as stored in the catalog
        service: Owning service name
        version: API version segment

    Returns:
        Distinct normalized candidate templates
    """
    original = normalize_path(path)
    candidates = [original]

    service_segment = (service or "").strip().strip("/")
    if not service_segment:
        return candidates

    version_segment = (version or "").strip().strip("/")
    service_prefix = join_paths("/api", service_segment)

    prefixed = []
    if version_segment:
        prefixed.append(join_paths(join_paths(service_prefix, version_segment), original))
    prefixed.append(join_paths(service_prefix, original))

    for candidate in prefixed:
        candidate = normalize_path(candidate)
        if candidate not in candidates:
            candidates.append(candidate)
    return candidates


@lru_cache(maxsize=4096)
def _segment_regex(segment: str) -> "re.Pattern[str]":
    """Compile one template segment into an anchored regex"""
    parts = []
    position = 0
    for variable in _VARIABLE_PATTERN.finditer(segment):
        parts.append(_wildcards_to_regex(segment[position:variable.start()]))
        constraint = variable.group(2)
        parts.append(f"(?:{constraint})" if constraint else "[^/]+")
        position = variable.end()
    parts.append(_wildcards_to_regex(segment[position:]))
    return re.compile("".join(parts) + r"\Z")


def _wildcards_to_regex(literal: str) -> str:
    out = []
    for char in literal:
        if char == "*":
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        else:
            out.append(re.escape(char))
    return "".join(out)


def _split(path: str) -> List[str]:
    return [segment for segment in path.split("/") if segment]


class AntPathMatcher:
    """
    Boolean Ant-style matcher over slash-separated paths.

    Example:
        matcher = AntPathMatcher()
        matcher.match("/invoices/{id}", "/invoices/42")      # True
        matcher.match("/reports/**", "/reports/2024/q1")     # True
        matcher.match("/files/*.pdf", "/files/a/b.pdf")      # False
    """

    def match(self, pattern: str, path: str) -> bool:
        pattern_segments = _split(normalize_path(pattern))
        path_segments = _split(normalize_path(path))
        return self._match_segments(pattern_segments, path_segments)

    def _match_segments(self, pattern: Sequence[str], path: Sequence[str]) -> bool:
        # reachable[j]: pattern prefix consumed so far can match path[:j]
        reachable = [False] * (len(path) + 1)
        reachable[0] = True

        for segment in pattern:
            if segment == "**":
                # zero or more segments: any position reachable earlier stays reachable onward
                seen = False
                for j in range(len(path) + 1):
                    seen = seen or reachable[j]
                    reachable[j] = seen
                continue

            regex = _segment_regex(segment)
            next_reachable = [False] * (len(path) + 1)
            for j in range(len(path)):
                if reachable[j] and regex.match(path[j]):
                    next_reachable[j + 1] = True
            reachable = next_reachable
            if not any(reachable):
                return False

        return reachable[len(path)]

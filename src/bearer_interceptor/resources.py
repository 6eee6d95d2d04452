"""
Protected-resource table and the matcher that maps a request to scopes.

The table is an ordered list of URL patterns, each mapped to a scope spec:

    ProtectedResourceTable({
        "https://graph.microsoft.com/v1.0/me": ["user.read"],
        "https://*.myapplication.com/*": ["mail.read"],
        "http://localhost:3000/unprotect": None,
        "http://applicationD.com": ["all.scope", {"GET": ["read.scope"]}],
    })

A spec of None marks a resource as explicitly unprotected; it wins over any
other matching entry. Otherwise a spec is a list of scope items: plain strings
apply to every HTTP method, a {"METHOD": [scopes]} object only to that method.

Patterns are compared component by component, never as regular expressions:

- one trailing "/" is ignored on both sides
- "*" as a whole host label or path segment consumes one or more of them
- "*" inside a label or segment matches by prefix/suffix
- a pattern whose path is exactly "/" covers every path on its origin,
  including origins matched through a wildcard host
- patterns are normalized with httpx.URL exactly like request URLs
  (default ports dropped, percent-encoding decoded)
- a query string in the pattern must be present verbatim in the request
- a relative pattern ("/api/*") applies to the path of any absolute URL
"""

import functools
import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping, Sequence, Union
from urllib.parse import urlsplit

import httpx

from bearer_interceptor.errors import ResourceMapError
from bearer_interceptor.log import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

ScopeItem = Union[str, Mapping[str, Sequence[str]]]
ScopeSpec = Union[Sequence[ScopeItem], None]


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------


class ProtectedResourceTable:
    """
    Immutable, ordered collection of (pattern, scope spec) entries.

    Declaration order is significant: it decides which entry supplies the
    scopes when several patterns match the same URL.
    """

    def __init__(self, entries: Mapping[str, ScopeSpec] | Iterable[tuple[str, ScopeSpec]] = ()):
        pairs = entries.items() if isinstance(entries, Mapping) else entries
        self._entries: tuple[tuple[str, tuple[ScopeItem, ...] | None], ...] = tuple(
            (_validate_key(key), _validate_spec(key, spec)) for key, spec in pairs
        )

    @classmethod
    def from_json_file(cls, path: str | Path) -> "ProtectedResourceTable":
        """Load a table from a JSON object file; key order in the file is kept."""
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ResourceMapError(f"{path}: expected a JSON object of pattern -> scopes")
        return cls(data)

    def __iter__(self) -> Iterator[tuple[str, tuple[ScopeItem, ...] | None]]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __repr__(self) -> str:
        return f"ProtectedResourceTable({[key for key, _ in self._entries]!r})"

    def patterns(self) -> list[str]:
        return [key for key, _ in self._entries]


def _validate_key(key: Any) -> str:
    if not isinstance(key, str) or not key:
        raise ResourceMapError(f"Resource pattern must be a non-empty string, got {key!r}")
    try:
        _parse(key)
    except (httpx.InvalidURL, ValueError) as e:
        raise ResourceMapError(f"{key}: invalid URL pattern: {e}") from e
    return key


def _validate_spec(key: str, spec: Any) -> tuple[ScopeItem, ...] | None:
    if spec is None:
        return None
    if isinstance(spec, (str, bytes)) or not isinstance(spec, Sequence):
        raise ResourceMapError(f"{key}: scopes must be a list or null, got {type(spec).__name__}")

    items: list[ScopeItem] = []
    for item in spec:
        if isinstance(item, str):
            items.append(item)
        elif isinstance(item, Mapping):
            methods = {}
            for method, scopes in item.items():
                if not isinstance(method, str):
                    raise ResourceMapError(f"{key}: HTTP method must be a string, got {method!r}")
                if isinstance(scopes, str) or not isinstance(scopes, Sequence):
                    raise ResourceMapError(f"{key}: scopes for {method} must be a list of strings")
                if not all(isinstance(s, str) for s in scopes):
                    raise ResourceMapError(f"{key}: scopes for {method} must be a list of strings")
                methods[method] = tuple(scopes)
            items.append(MappingProxyType(methods))
        else:
            raise ResourceMapError(
                f"{key}: scope item must be a string or a method mapping, got {item!r}"
            )
    return tuple(items)


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


def match_scopes_to_endpoint(
    table: ProtectedResourceTable | Mapping[str, ScopeSpec],
    candidate_urls: Iterable[str],
    method: str,
) -> list[str] | None:
    """
    Decide which scopes a request needs.

    Args:
        table: The protected-resource table (a plain mapping is accepted too)
        candidate_urls: Equivalent forms of the request URL (absolute,
                        relative, with/without trailing slash)
        method: HTTP method of the request, compared case-sensitively

    Returns:
        The scopes of the first matching entry that yields any for ``method``,
        or None when the request is not protected. Any matching entry with a
        null spec forces None.
    """
    if not isinstance(table, ProtectedResourceTable):
        table = ProtectedResourceTable(table)
    candidates = list(candidate_urls)

    selected: list[str] | None = None
    for pattern, spec in table:
        if not any(_matches(pattern, candidate) for candidate in candidates):
            continue
        if spec is None:
            logger.debug("Resource %s explicitly unprotected", pattern)
            return None
        if selected is None:
            scopes = _scopes_for_method(spec, method)
            if scopes:
                selected = scopes
    return selected


def _scopes_for_method(spec: Sequence[ScopeItem], method: str) -> list[str]:
    scopes: list[str] = []
    for item in spec:
        if isinstance(item, str):
            scopes.append(item)
        else:
            scopes.extend(item.get(method, ()))
    return scopes


def endpoint_candidates(url: str, base_url: str | None = None) -> list[str]:
    """
    Build the URL forms the matcher should test for ``url``.

    Always includes the absolute URL. When ``url`` lives on the same origin as
    ``base_url`` its relative form (path + query) is added. Every form appears
    with and without a trailing slash.
    """
    forms = [url]
    if base_url:
        parts, base = urlsplit(url), urlsplit(base_url)
        if (parts.scheme, parts.netloc) == (base.scheme, base.netloc):
            relative = parts.path or "/"
            if parts.query:
                relative = f"{relative}?{parts.query}"
            forms.append(relative)

    candidates: list[str] = []
    for form in forms:
        for variant in (form, _toggle_trailing_slash(form)):
            if variant and variant not in candidates:
                candidates.append(variant)
    return candidates


def _toggle_trailing_slash(url: str) -> str:
    base, sep, query = url.partition("?")
    base = base[:-1] if base.endswith("/") else base + "/"
    return f"{base}{sep}{query}"


class _UrlParts:
    __slots__ = ("scheme", "netloc", "path", "query", "root", "wildcard")

    def __init__(
        self,
        scheme: str,
        netloc: str,
        path: str,
        query: str | None,
        root: bool = False,
        wildcard: bool = False,
    ):
        self.scheme = scheme
        self.netloc = netloc
        self.path = path
        self.query = query
        self.root = root
        self.wildcard = wildcard

    @property
    def relative(self) -> bool:
        return not self.scheme and not self.netloc

    def path_only(self) -> "_UrlParts":
        return _UrlParts("", "", self.path, self.query, self.root, self.wildcard)


@functools.lru_cache(maxsize=1024)
def _parse(value: str) -> _UrlParts:
    # httpx.URL applies the same normalization outgoing requests get:
    # lowercase scheme and host, default ports dropped, percent-decoding.
    url = httpx.URL(value)
    netloc = url.host if url.port is None else f"{url.host}:{url.port}"
    query = url.query.decode("ascii") or None
    # Whether the path was written as "/" matters: "http://h/" covers the
    # whole origin while "http://h" does not.
    root = urlsplit(value).path == "/" and query is None
    return _UrlParts(url.scheme, netloc, url.path, query, root, "*" in value)


def _strip_slash(path: str) -> str:
    return path[:-1] if path.endswith("/") else path


def _matches(pattern: str, candidate: str) -> bool:
    pat = _parse(pattern)
    cand = _parse(candidate)

    if pat.relative and not cand.relative:
        cand = cand.path_only()
    elif cand.relative and not pat.relative:
        # Only literal, non-root absolute patterns are comparable to a bare path
        if pat.wildcard or pat.root or not _strip_slash(pat.path):
            return False
        pat = pat.path_only()

    if pat.query is not None and pat.query != cand.query:
        return False
    if pat.scheme != cand.scheme:
        return False

    if not pat.wildcard:
        if pat.netloc != cand.netloc:
            return False
        return pat.root or _strip_slash(pat.path) == _strip_slash(cand.path)

    if not _match_components(pat.netloc.split("."), cand.netloc.split(".")):
        return False
    if pat.root:
        return True
    pattern_segments = _segments(pat.path)
    segments = _segments(cand.path)
    if pattern_segments == ["*"] and not segments:
        return True
    return _match_components(pattern_segments, segments)


def _segments(path: str) -> list[str]:
    path = _strip_slash(path[1:] if path.startswith("/") else path)
    return path.split("/") if path else []


def _match_components(patterns: Sequence[str], parts: Sequence[str]) -> bool:
    """
    Match ``parts`` against ``patterns``, where a whole "*" consumes one or more parts.

    Each (pattern index, part index) pair is decided once, so the cost is
    bounded by len(patterns) * len(parts) however many wildcards there are.
    """

    @functools.lru_cache(maxsize=None)
    def match(i: int, j: int) -> bool:
        if i == len(patterns):
            return j == len(parts)
        if j == len(parts):
            return False
        if patterns[i] == "*":
            # Consume parts[j], then either stop here or keep consuming
            return match(i + 1, j + 1) or match(i, j + 1)
        return _match_component(patterns[i], parts[j]) and match(i + 1, j + 1)

    return match(0, 0)


def _match_component(pattern: str, value: str) -> bool:
    if "*" not in pattern:
        return pattern == value
    pieces = pattern.split("*")
    head, tail = pieces[0], pieces[-1]
    if len(value) < len(head) + len(tail):
        return False
    if not value.startswith(head) or not value.endswith(tail):
        return False
    pos, end = len(head), len(value) - len(tail)
    for piece in pieces[1:-1]:
        idx = value.find(piece, pos, end)
        if idx < 0:
            return False
        pos = idx + len(piece)
    return True

"""Deterministic cache-key construction for cacheable GET requests.

Keys have the form ``<namespace>:GET:<path>[?<query>]``. Path segments and
query pairs are percent-encoded canonically, so separators and glob
metacharacters never appear unescaped inside the variable parts and two
distinct requests cannot share a key.
"""

import re
from typing import Iterable, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import parse_qsl, quote, unquote, urlencode

from ...constants import CACHEABLE_METHOD, DEFAULT_CACHE_NAMESPACE

QueryInput = Union[
    None,
    str,
    Mapping[str, Union[str, Sequence[str]]],
    Iterable[Tuple[str, str]],
]

# pchar sub-delims minus the glob metacharacters ``* ? [ ]``
_SEGMENT_SAFE = "!$&'()+,;=:@"
_MULTI_SLASH = re.compile(r"/{2,}")


def normalize_path(path: str) -> str:
    """Canonicalize a URL path as sent on the wire (still percent-encoded).

    Collapses repeated slashes, resolves ``.`` and ``..`` segments, strips a
    trailing slash (except for the root) and re-encodes every segment. Passing
    an already-decoded path would let ``%25`` and ``%2525`` collide.
    """
    path = path.split("?", 1)[0].split("#", 1)[0] or "/"
    if not path.startswith("/"):
        path = "/" + path
    segments: list[str] = []
    for segment in _MULTI_SLASH.sub("/", path).split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if segments:
                segments.pop()
            continue
        segments.append(quote(unquote(segment), safe=_SEGMENT_SAFE))
    return "/" + "/".join(segments)


def _query_pairs(query: QueryInput) -> list[Tuple[str, str]]:
    if query is None:
        return []
    if isinstance(query, str):
        return parse_qsl(query.lstrip("?"), keep_blank_values=True)
    multi_items = getattr(query, "multi_items", None)
    if callable(multi_items):
        return [(str(k), str(v)) for k, v in multi_items()]
    if isinstance(query, Mapping):
        pairs: list[Tuple[str, str]] = []
        for name, value in query.items():
            if isinstance(value, (list, tuple)):
                pairs.extend((str(name), str(v)) for v in value)
            else:
                pairs.append((str(name), str(value)))
        return pairs
    return [(str(k), str(v)) for k, v in query]


def canonical_query(query: QueryInput) -> str:
    """Sort query pairs by (name, value) and percent-encode them."""
    return urlencode(sorted(_query_pairs(query)), quote_via=quote, safe="")


def build_cache_key(
    method: str,
    path: str,
    query: QueryInput = None,
    namespace: str = DEFAULT_CACHE_NAMESPACE,
) -> str:
    """Build the cache key for a request.

    Args:
        method: HTTP method; only ``GET`` is cacheable
        path: Percent-encoded request path, optionally carrying a raw query string
        query: Query parameters as a mapping, pair list or raw string
        namespace: Key namespace prefix

    Returns:
        The canonical cache key

    Raises:
        ValueError: If ``method`` is not ``GET``
    """
    if method.upper() != CACHEABLE_METHOD:
        raise ValueError(f"Only {CACHEABLE_METHOD} requests are cacheable, got {method!r}")

    if query is None and "?" in path:
        path, _, raw_query = path.partition("?")
        query = raw_query

    key = f"{namespace}:{CACHEABLE_METHOD}:{normalize_path(path)}"
    encoded = canonical_query(query)
    if encoded:
        key = f"{key}?{encoded}"
    return key


def path_pattern(path: str, namespace: Optional[str] = None) -> str:
    """Glob matching every cached GET under ``path`` (including queries)."""
    return f"{namespace or DEFAULT_CACHE_NAMESPACE}:{CACHEABLE_METHOD}:{normalize_path(path)}*"

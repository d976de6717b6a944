"""
Cache-key derivation for news proxy queries.

Each namespace has a fixed parameter order, so equivalent requests whose
query strings differ only in ordering land on the same key. Every value is
percent-encoded, which keeps the ``&`` and ``=`` separators unambiguous.
"""
from typing import Any, Dict, Iterable, Mapping, Tuple, Union
from urllib.parse import quote


NAMESPACE_PARAMS: Dict[str, Tuple[str, ...]] = {
    "headlines": ("category", "country", "page", "pageSize"),
    "search": ("q", "page", "pageSize", "sortBy", "language"),
    "sources": ("category", "language", "country"),
}

NAMESPACE_TTL_SECONDS: Dict[str, int] = {
    "headlines": 5 * 60,
    "search": 5 * 60,
    "sources": 60 * 60,
}

NUMERIC_PARAMS = frozenset({"page", "pageSize"})
FREE_TEXT_PARAMS = frozenset({"q"})

# Rendered for an absent value; cannot come out of quote() for a real value
ABSENT = "*"

Params = Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]


def canonical_int(value: Any) -> int:
    """Coerce ``5``, ``"5"`` and ``"05"`` to the same integer."""
    if isinstance(value, bool):
        raise ValueError(f"not an integer: {value!r}")
    if isinstance(value, int):
        return value
    return int(str(value).strip(), 10)


def _normalize(name: str, value: Any) -> str:
    if value is None:
        return ABSENT
    if name in NUMERIC_PARAMS:
        return str(canonical_int(value))
    text = str(value).strip() if name in FREE_TEXT_PARAMS else str(value)
    return quote(text, safe="")


def ttl_for(namespace: str) -> int:
    try:
        return NAMESPACE_TTL_SECONDS[namespace]
    except KeyError:
        raise ValueError(f"Unknown cache namespace: {namespace}")


def build_key(namespace: str, params: Params) -> str:
    """
    Build a deterministic cache key.

    Args:
        namespace: One of ``headlines``, ``search`` or ``sources``
        params: Mapping or (name, value) pairs; missing names count as absent

    Returns:
        Key such as ``headlines:category=general&country=us&page=1&pageSize=20``
    """
    if namespace not in NAMESPACE_PARAMS:
        raise ValueError(f"Unknown cache namespace: {namespace}")
    allowed = NAMESPACE_PARAMS[namespace]

    pairs = params.items() if isinstance(params, Mapping) else params
    values: Dict[str, Any] = {}
    for name, value in pairs:
        if name not in allowed:
            raise ValueError(f"Unexpected parameter for {namespace}: {name}")
        if name in values:
            raise ValueError(f"Duplicate parameter for {namespace}: {name}")
        values[name] = value

    parts = [f"{name}={_normalize(name, values.get(name))}" for name in allowed]
    return f"{namespace}:" + "&".join(parts)

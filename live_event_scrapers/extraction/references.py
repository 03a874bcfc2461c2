"""
Resolution of relational pointers inside a normalized client-state cache.

The cache is a flat mapping of ``"<TypeName>:<id>"`` keys to objects. Related
objects are stored once and referenced elsewhere by placeholders such as
``{"__ref": "Venue:9"}``. Resolving replaces each placeholder with the
relevant field of the referenced object (a venue's ``name``, an image's
``filename``...). Missing targets resolve to ``UNKNOWN`` instead of raising.
"""
import enum
import logging
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

REFERENCE_KEYS = ("__ref", "ref")
DEFAULT_MAX_DEPTH = 5

# Which field of a referenced object stands in for the reference, by type name.
RELEVANT_FIELDS: Dict[str, str] = {
    "Venue": "name",
    "Artist": "name",
    "Promoter": "name",
    "Area": "name",
    "Image": "filename",
}
DEFAULT_RELEVANT_FIELD = "name"


class Sentinel(enum.Enum):
    UNKNOWN = "unknown"

    def __repr__(self) -> str:
        return f"<{self.value}>"


UNKNOWN = Sentinel.UNKNOWN


def type_name(key: str) -> str:
    return key.split(":", 1)[0] if ":" in key else key


def reference_key(value: Any) -> Optional[str]:
    """The cache key a placeholder points at, or None when value is not a placeholder."""
    if not isinstance(value, dict) or len(value) != 1:
        return None
    for ref_key in REFERENCE_KEYS:
        target = value.get(ref_key)
        if isinstance(target, str):
            return target
    return None


def resolve_reference(cache: Mapping[str, Any], key: str, relevant_field: Optional[str] = None) -> Any:
    target = cache.get(key)
    if not isinstance(target, dict):
        logger.debug(f"Unresolvable reference '{key}'")
        return UNKNOWN
    field_name = relevant_field or RELEVANT_FIELDS.get(type_name(key), DEFAULT_RELEVANT_FIELD)
    value = target.get(field_name)
    if value is None:
        logger.debug(f"Reference '{key}' has no '{field_name}' field")
        return UNKNOWN
    return value


def resolve_value(cache: Mapping[str, Any], value: Any, max_depth: int = DEFAULT_MAX_DEPTH, _depth: int = 0) -> Any:
    """Returns a copy of value with every placeholder replaced. Nothing below max_depth is visited."""
    key = reference_key(value)
    if key is not None:
        return resolve_reference(cache, key)
    if _depth >= max_depth:
        return value
    if isinstance(value, dict):
        return {k: resolve_value(cache, v, max_depth, _depth + 1) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_value(cache, item, max_depth, _depth + 1) for item in value]
    return value


def resolve_entity(cache: Mapping[str, Any], key: str, max_depth: int = DEFAULT_MAX_DEPTH) -> Dict[str, Any]:
    """The cache entry under key with its references inlined; empty dict if the key is absent."""
    entry = cache.get(key)
    if not isinstance(entry, dict):
        return {}
    return resolve_value(cache, entry, max_depth)


def entries_with_prefix(cache: Mapping[str, Any], type_prefix: str) -> Dict[str, Dict[str, Any]]:
    prefix = type_prefix if type_prefix.endswith(":") else f"{type_prefix}:"
    return {key: value for key, value in cache.items() if key.startswith(prefix) and isinstance(value, dict)}

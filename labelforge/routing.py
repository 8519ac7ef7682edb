"""Flat routing keys for the workflow engine.

The workflow engine routes classified mail by key rather than by path:
("MANAGER", "Hailey") becomes MANAGER_HAILEY, ("GOOGLE REVIEW",) becomes
GOOGLE_REVIEW.
"""

import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_ENV_PREFIX = "LABEL_"


def routing_key(path: tuple[str, ...]) -> str:
    """Build the UPPER_SNAKE key for a logical path."""
    parts = []
    for segment in path:
        part = re.sub(r"[^A-Za-z0-9]+", "_", segment).strip("_").upper()
        if part:
            parts.append(part)
    return "_".join(parts)


@dataclass
class RoutingKeys:
    """Routing keys for one provider.

    Attributes:
        keys: Routing key -> provider id, in map order.
        collisions: (skipped path, path that owns the key, key) for every
                    path whose key was already taken.
    """

    keys: dict[str, str] = field(default_factory=dict)
    collisions: list[tuple[tuple[str, ...], tuple[str, ...], str]] = field(
        default_factory=list
    )


def routing_keys(label_map, provider: str) -> RoutingKeys:
    """Flatten the active entries of one provider into routing keys.

    The first path to produce a key keeps it; later paths with the same
    key are reported in `collisions` and left out.
    """
    result = RoutingKeys()
    owners: dict[str, tuple[str, ...]] = {}

    for entry in label_map.entries(provider):
        key = routing_key(entry.path)
        if not key:
            continue
        if key in owners:
            logger.warning(
                "Routing key %s for %s collides with %s; skipped",
                key,
                "/".join(entry.path),
                "/".join(owners[key]),
            )
            result.collisions.append((entry.path, owners[key], key))
            continue
        owners[key] = entry.path
        result.keys[key] = entry.id

    return result


def to_env(keys: dict[str, str], prefix: str = DEFAULT_ENV_PREFIX) -> dict[str, str]:
    """Prefix routing keys for export as environment variables."""
    return {f"{prefix}{key}": value for key, value in keys.items()}

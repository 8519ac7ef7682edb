"""Identifier map: logical label paths -> provider ids.

The map is the only durable output of a provisioning run. It has an
active section (labels the current taxonomy uses) and an archived
section (labels moved away by reconfiguration, plus the ARCHIVED
holding nodes). Both are keyed by (provider, path).

Maps are stored in ~/.config/labelforge/label-maps/<user>.json
"""

import json
import logging
import os
import re
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path

from filelock import FileLock, Timeout

from labelforge.config.paths import LABEL_MAP_DIR
from labelforge.errors import RunInProgress
from labelforge.routing import routing_keys
from labelforge.schema.models import TeamSnapshot

logger = logging.getLogger(__name__)

MAP_VERSION = 1

LabelPath = tuple[str, ...]
Key = tuple[str, LabelPath]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _is_under(path: LabelPath, prefix: LabelPath) -> bool:
    return path[: len(prefix)] == prefix


@dataclass(frozen=True)
class LabelMapEntry:
    """One provisioned label or folder.

    Attributes:
        path: Logical path (e.g., ("MANAGER", "Hailey")). For archived
              entries, the path under the archive root.
        provider: "gmail" or "outlook".
        id: Provider-assigned id.
        created_at: When the entry was first recorded (UTC).
        archived_at: When the entry was archived, None while active.
        original_path: Active path the entry had before archiving.
    """

    path: LabelPath
    provider: str
    id: str
    created_at: datetime
    archived_at: datetime | None = None
    original_path: LabelPath | None = None

    @property
    def key(self) -> Key:
        return (self.provider, self.path)

    def to_dict(self) -> dict:
        data = {
            "provider": self.provider,
            "path": list(self.path),
            "id": self.id,
            "created_at": self.created_at.isoformat(),
        }
        if self.archived_at is not None:
            data["archived_at"] = self.archived_at.isoformat()
        if self.original_path is not None:
            data["original_path"] = list(self.original_path)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "LabelMapEntry":
        archived_at = data.get("archived_at")
        original_path = data.get("original_path")
        return cls(
            path=tuple(data["path"]),
            provider=data["provider"],
            id=data["id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            archived_at=datetime.fromisoformat(archived_at) if archived_at else None,
            original_path=tuple(original_path) if original_path else None,
        )


class IdentifierMap:
    """Active and archived label entries for one user.

    A path maps to at most one id per provider. set() never replaces an
    existing entry; callers remove a stale entry first.

    Example:
        label_map = IdentifierMap()
        label_map.set("gmail", ("MANAGER",), "Label_1")
        label_map.get_id("gmail", ("MANAGER",))  # "Label_1"
    """

    def __init__(self):
        self._active: dict[Key, LabelMapEntry] = {}
        self._archived: dict[Key, LabelMapEntry] = {}

    def __len__(self) -> int:
        return len(self._active)

    def __contains__(self, key: Key) -> bool:
        return key in self._active

    def get(self, provider: str, path: LabelPath) -> LabelMapEntry | None:
        return self._active.get((provider, tuple(path)))

    def get_id(self, provider: str, path: LabelPath) -> str | None:
        entry = self.get(provider, path)
        return entry.id if entry else None

    def set(
        self,
        provider: str,
        path: LabelPath,
        node_id: str,
        created_at: datetime | None = None,
    ) -> LabelMapEntry:
        """Record an active entry. An existing entry for the key wins."""
        key = (provider, tuple(path))
        existing = self._active.get(key)
        if existing is not None:
            return existing

        entry = LabelMapEntry(
            path=tuple(path), provider=provider, id=node_id, created_at=created_at or _now()
        )
        self._active[key] = entry
        return entry

    def remove(self, provider: str, path: LabelPath) -> LabelMapEntry | None:
        return self._active.pop((provider, tuple(path)), None)

    def remove_subtree(self, provider: str, path: LabelPath) -> list[LabelMapEntry]:
        """Remove an active entry and every active entry below it."""
        path = tuple(path)
        keys = [
            key for key in self._active if key[0] == provider and _is_under(key[1], path)
        ]
        return [self._active.pop(key) for key in keys]

    def rekey(self, provider: str, path: LabelPath, new_path: LabelPath) -> list[LabelMapEntry]:
        """Give an active subtree a new path, keeping ids and creation times."""
        path = tuple(path)
        new_path = tuple(new_path)
        moved = [
            replace(entry, path=new_path + entry.path[len(path):])
            for entry in self.remove_subtree(provider, path)
        ]
        for entry in moved:
            self._active[entry.key] = entry
        return moved

    def entries(self, provider: str | None = None) -> list[LabelMapEntry]:
        """Active entries in insertion order, optionally for one provider."""
        return [e for e in self._active.values() if provider is None or e.provider == provider]

    def children_of(self, provider: str, path: LabelPath) -> list[LabelMapEntry]:
        """Active entries exactly one level below path."""
        path = tuple(path)
        return [
            e
            for e in self.entries(provider)
            if len(e.path) == len(path) + 1 and _is_under(e.path, path)
        ]

    def get_archived(self, provider: str, path: LabelPath) -> LabelMapEntry | None:
        return self._archived.get((provider, tuple(path)))

    def set_archived(self, provider: str, path: LabelPath, node_id: str) -> LabelMapEntry:
        """Record an archive holding node (e.g., ARCHIVED/MANAGER)."""
        key = (provider, tuple(path))
        existing = self._archived.get(key)
        if existing is not None:
            return existing

        now = _now()
        entry = LabelMapEntry(
            path=tuple(path), provider=provider, id=node_id, created_at=now, archived_at=now
        )
        self._archived[key] = entry
        return entry

    def remove_archived(self, provider: str, path: LabelPath) -> LabelMapEntry | None:
        return self._archived.pop((provider, tuple(path)), None)

    def archived_entries(self, provider: str | None = None) -> list[LabelMapEntry]:
        return [
            e for e in self._archived.values() if provider is None or e.provider == provider
        ]

    def archive(
        self,
        provider: str,
        path: LabelPath,
        archived_path: LabelPath,
        new_id: str | None = None,
    ) -> list[LabelMapEntry]:
        """Move an active subtree into the archived section.

        Args:
            provider: Provider of the entries.
            path: Active path of the subtree root.
            archived_path: Path of the subtree root under the archive root.
            new_id: Id after the move, if the provider changed it.

        Returns:
            The archived entries, subtree root first.
        """
        path = tuple(path)
        archived_path = tuple(archived_path)
        now = _now()
        moved = []
        for entry in self.remove_subtree(provider, path):
            relative = entry.path[len(path):]
            archived = replace(
                entry,
                path=archived_path + relative,
                archived_at=now,
                original_path=entry.path,
                id=new_id if (new_id and not relative) else entry.id,
            )
            self._archived[archived.key] = archived
            moved.append(archived)
        return moved

    def routing_keys(self, provider: str) -> dict[str, str]:
        """Flatten active entries of one provider to UPPER_SNAKE routing keys."""
        return routing_keys(self, provider).keys

    def to_dict(self) -> dict:
        return {
            "active": [e.to_dict() for e in self._active.values()],
            "archived": [e.to_dict() for e in self._archived.values()],
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "IdentifierMap":
        label_map = cls()
        data = data or {}
        for raw in data.get("active", []):
            entry = LabelMapEntry.from_dict(raw)
            label_map._active[entry.key] = entry
        for raw in data.get("archived", []):
            entry = LabelMapEntry.from_dict(raw)
            label_map._archived[entry.key] = entry
        return label_map

    def __iter__(self) -> Iterator[LabelMapEntry]:
        return iter(list(self._active.values()))


def _safe_name(user_id: str) -> str:
    return re.sub(r"[^A-Za-z0-9@._-]", "_", user_id.strip()) or "default"


class IdentifierMapStore:
    """Persists the identifier map and team snapshot for one user.

    State file format:
    {
        "version": 1,
        "user": "ops@acme-hvac.com",
        "last_run": "2024-01-15T10:30:00+00:00",
        "active": [{"provider": "gmail", "path": ["MANAGER"], "id": "Label_1", ...}],
        "archived": [...],
        "snapshot": {"managers": [...], "suppliers": [...]}
    }

    Example:
        store = IdentifierMapStore("ops@acme-hvac.com")
        with store.lock(timeout=5):
            label_map = store.load_map()
            # ... reconcile ...
            store.save(label_map, snapshot)
    """

    def __init__(self, user_id: str, state_dir: Path | None = None):
        """Initialize the store.

        Args:
            user_id: User the map belongs to (used for the file name).
            state_dir: Directory for map files. Defaults to LABEL_MAP_DIR.
        """
        self._user_id = user_id
        self._dir = Path(state_dir) if state_dir is not None else LABEL_MAP_DIR
        name = _safe_name(user_id)
        self._state_file = self._dir / f"{name}.json"
        self._lock_file = self._dir / f"{name}.lock"

    @property
    def state_file(self) -> Path:
        return self._state_file

    @property
    def lock_file(self) -> Path:
        return self._lock_file

    def _ensure_dir(self) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        self._dir.chmod(0o700)

    @contextmanager
    def lock(self, timeout: float = 0):
        """Hold the advisory run lock for this user.

        Args:
            timeout: Seconds to wait for another run to finish. 0 fails
                     immediately if the lock is held.

        Raises:
            RunInProgress: If the lock could not be acquired in time.
        """
        self._ensure_dir()
        lock = FileLock(str(self._lock_file), timeout=timeout)
        try:
            lock.acquire()
        except Timeout as e:
            raise RunInProgress(
                f"Another provisioning run is in progress for {self._user_id}"
            ) from e
        try:
            yield
        finally:
            lock.release()

    def load(self) -> dict | None:
        """Load the raw state file.

        Returns:
            State dict, or None if the file is missing or unreadable.
        """
        if not self._state_file.exists():
            return None

        try:
            return json.loads(self._state_file.read_text())
        except (json.JSONDecodeError, OSError):
            # Corrupted or unreadable file - treat as no state
            logger.warning("Ignoring unreadable label map %s", self._state_file)
            return None

    def load_map(self) -> IdentifierMap:
        try:
            return IdentifierMap.from_dict(self.load())
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed label map %s", self._state_file)
            return IdentifierMap()

    def load_snapshot(self) -> TeamSnapshot | None:
        state = self.load()
        if not state or state.get("snapshot") is None:
            return None
        try:
            return TeamSnapshot.from_dict(state["snapshot"])
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed team snapshot in %s", self._state_file)
            return None

    def get_last_run(self) -> datetime | None:
        state = self.load()
        if not state or not state.get("last_run"):
            return None
        return datetime.fromisoformat(state["last_run"])

    def save(self, label_map: IdentifierMap, snapshot: TeamSnapshot | None = None) -> None:
        """Write the map (and snapshot, if given) atomically.

        Without a snapshot the previously stored one is kept.
        """
        if snapshot is None:
            previous = self.load() or {}
            snapshot_data = previous.get("snapshot")
        else:
            snapshot_data = snapshot.to_dict()

        state = {
            "version": MAP_VERSION,
            "user": self._user_id,
            "last_run": _now().isoformat(),
            **label_map.to_dict(),
            "snapshot": snapshot_data,
        }

        self._ensure_dir()
        tmp_path = self._state_file.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(state, indent=2))
        tmp_path.chmod(0o600)
        os.replace(tmp_path, self._state_file)

    def save_map(self, label_map: IdentifierMap) -> None:
        self.save(label_map)

    def clear(self) -> None:
        """Delete the stored map (the next run provisions from scratch)."""
        if self._state_file.exists():
            self._state_file.unlink()

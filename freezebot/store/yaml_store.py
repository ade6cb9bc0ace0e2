"""Freeze storage as YAML files.

Layout under the store root:
    freezes/{id}.yaml                                  one file per freeze
    unlocked/{installation_id}/{owner}/{name}.yaml     unlock overrides of one repository

A single lock serializes every read-modify-write, so the overlap check and
the insert in create_freeze happen as one step within the process.
"""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from freezebot.errors import OverlapError, StoreError
from freezebot.models import FreezeRecord, FreezeStatus, UnlockedPr
from freezebot.store.base import FreezeStore

FREEZES_DIR = "freezes"
UNLOCKED_DIR = "unlocked"

BLOCKING_STATUSES = (FreezeStatus.ACTIVE, FreezeStatus.SCHEDULED)

LOG = logging.getLogger("freezebot.store.yaml_store")


def _dump(payload: Any) -> str:
    return yaml.dump(
        payload,
        default_flow_style=False,
        allow_unicode=True,
        sort_keys=False,
        width=1000,
    )


class YamlFreezeStore(FreezeStore):
    """Stores freezes and unlocks as YAML files under root_dir."""

    def __init__(self, root_dir: Path | str = ".freezebot") -> None:
        self._root = Path(root_dir)
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ #
    # Paths and raw IO                                                     #
    # ------------------------------------------------------------------ #

    def _freezes_dir(self) -> Path:
        return self._root / FREEZES_DIR

    def _freeze_path(self, freeze_id: str) -> Path:
        return self._freezes_dir() / f"{freeze_id}.yaml"

    def _unlock_path(self, installation_id: int, repository: str) -> Path:
        owner, _, name = repository.partition("/")
        return self._root / UNLOCKED_DIR / str(installation_id) / owner / f"{name}.yaml"

    def _read_yaml(self, path: Path) -> Any:
        try:
            return yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise StoreError(f"Failed to read {path}: {e}") from e

    def _write_yaml(self, path: Path, payload: Any) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".yaml.tmp")
            tmp.write_text(_dump(payload), encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            raise StoreError(f"Failed to write {path}: {e}") from e

    def _load_freeze(self, path: Path) -> FreezeRecord:
        data = self._read_yaml(path)
        try:
            return FreezeRecord.model_validate(data or {})
        except PydanticValidationError as e:
            raise StoreError(f"Invalid freeze file {path}: {e}") from e

    def _save_freeze(self, record: FreezeRecord) -> None:
        self._write_yaml(self._freeze_path(record.id), record.model_dump(mode="json"))
        LOG.debug("Saved freeze %s to %s", record.id, self._freeze_path(record.id))

    def _all_freezes(self) -> list[FreezeRecord]:
        base = self._freezes_dir()
        if not base.is_dir():
            return []
        return [self._load_freeze(f) for f in sorted(base.glob("*.yaml"))]

    def _load_unlocks(self, installation_id: int, repository: str) -> list[UnlockedPr]:
        path = self._unlock_path(installation_id, repository)
        if not path.is_file():
            return []
        data = self._read_yaml(path) or []
        try:
            return [UnlockedPr.model_validate(item) for item in data]
        except PydanticValidationError as e:
            raise StoreError(f"Invalid unlock file {path}: {e}") from e

    # ------------------------------------------------------------------ #
    # Freeze records                                                       #
    # ------------------------------------------------------------------ #

    def create_freeze(self, record: FreezeRecord) -> FreezeRecord:
        with self._lock:
            for existing in self._all_freezes():
                if (
                    existing.installation_id == record.installation_id
                    and existing.repository == record.repository
                    and existing.status in BLOCKING_STATUSES
                    and existing.overlaps(record.started_at, record.expires_at)
                ):
                    raise OverlapError(record.repository, existing.id)
            self._save_freeze(record)
        return record

    def get_freeze(self, freeze_id: str) -> FreezeRecord | None:
        path = self._freeze_path(freeze_id)
        with self._lock:
            if not path.is_file():
                return None
            return self._load_freeze(path)

    def list_freezes(
        self,
        installation_id: int | None = None,
        repository: str | None = None,
        active_only: bool = False,
    ) -> list[FreezeRecord]:
        with self._lock:
            records = self._all_freezes()
        if installation_id is not None:
            records = [r for r in records if r.installation_id == installation_id]
        if repository is not None:
            records = [r for r in records if r.repository == repository]
        if active_only:
            records = [r for r in records if r.status == FreezeStatus.ACTIVE]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def update_status(
        self,
        freeze_id: str,
        status: FreezeStatus,
        ended_by: str | None = None,
        ended_at: datetime | None = None,
    ) -> FreezeRecord | None:
        with self._lock:
            record = self.get_freeze(freeze_id)
            if record is None:
                return None
            updated = record.model_copy(update={"status": status, "ended_by": ended_by, "ended_at": ended_at})
            self._save_freeze(updated)
        LOG.info("Freeze %s status -> %s", freeze_id, status.value)
        return updated

    def delete_freeze(self, freeze_id: str) -> bool:
        path = self._freeze_path(freeze_id)
        with self._lock:
            if not path.is_file():
                return False
            try:
                path.unlink()
            except OSError as e:
                raise StoreError(f"Failed to delete {path}: {e}") from e
        return True

    # ------------------------------------------------------------------ #
    # Unlock overrides                                                     #
    # ------------------------------------------------------------------ #

    def upsert_unlock(self, unlock: UnlockedPr) -> None:
        with self._lock:
            unlocks = [
                u for u in self._load_unlocks(unlock.installation_id, unlock.repository)
                if u.pr_number != unlock.pr_number
            ]
            unlocks.append(unlock)
            unlocks.sort(key=lambda u: u.pr_number)
            self._write_yaml(
                self._unlock_path(unlock.installation_id, unlock.repository),
                [u.model_dump(mode="json") for u in unlocks],
            )

    def get_unlock(self, installation_id: int, repository: str, pr_number: int) -> UnlockedPr | None:
        with self._lock:
            for u in self._load_unlocks(installation_id, repository):
                if u.pr_number == pr_number:
                    return u
        return None

    def list_unlocked(self, installation_id: int, repository: str) -> list[UnlockedPr]:
        with self._lock:
            return self._load_unlocks(installation_id, repository)

    def clear_unlocks(self, installation_id: int, repository: str) -> int:
        path = self._unlock_path(installation_id, repository)
        with self._lock:
            count = len(self._load_unlocks(installation_id, repository))
            if path.is_file():
                try:
                    path.unlink()
                except OSError as e:
                    raise StoreError(f"Failed to delete {path}: {e}") from e
        return count

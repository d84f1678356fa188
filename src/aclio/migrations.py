# src/aclio/migrations.py

"""
Versioned data migrations over the key-value store.

The store remembers the last applied version under `aclio_data_version`.
Before migrating, the user data keys are snapshotted; if any step fails the
snapshot is restored (keys that did not exist before are removed again) and the
error propagates.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Protocol

from .core.ports import KVStore
from .errors import DataCorruptedError, MigrationError, MigrationFailedError
from .goals.models import ICON_COLOR_OPTIONS

logger = logging.getLogger(__name__)

VERSION_KEY = "aclio_data_version"
CURRENT_VERSION = 2

BACKUP_KEYS: tuple[str, ...] = (
    "aclio_goals",
    "aclio_profile",
    "aclio_points",
    "aclio_streak",
    "aclio_achievements",
    "aclio_expanded_steps",
)


class Migration(Protocol):
    version: int
    description: str

    def migrate(self, store: KVStore) -> None: ...


class MigrationV1:
    version = 1
    description = "Initial schema setup"

    def migrate(self, store: KVStore) -> None:
        # Baseline: only starts version tracking.
        return


class MigrationV2:
    version = 2
    description = "Add metadata fields to goals"

    def migrate(self, store: KVStore) -> None:
        if not store.has("aclio_goals"):
            return

        goals = store.get("aclio_goals")
        if not isinstance(goals, list):
            raise DataCorruptedError()

        default_color = ICON_COLOR_OPTIONS[0].to_dict()
        migrated: list[dict] = []
        for goal in goals:
            if not isinstance(goal, dict):
                raise DataCorruptedError()
            goal = dict(goal)
            goal.setdefault("createdAt", datetime.now().isoformat())
            goal.setdefault("completedSteps", [])
            goal.setdefault("iconKey", "target")
            goal.setdefault("iconColor", dict(default_color))
            migrated.append(goal)

        try:
            store.set("aclio_goals", migrated)
        except (TypeError, ValueError) as e:
            raise MigrationFailedError(self.version, "Failed to serialize migrated goals") from e


def default_migrations() -> list[Migration]:
    return [MigrationV1(), MigrationV2()]


class DataMigrationService:
    def __init__(
            self,
            store: KVStore,
            migrations: Iterable[Migration] | None = None,
            *,
            current_version: int = CURRENT_VERSION,
            backup_keys: Sequence[str] = BACKUP_KEYS,
    ) -> None:
        self.store = store
        self.current_version = current_version
        self.backup_keys = tuple(backup_keys)
        self._migrations: dict[int, Migration] = {
            m.version: m for m in (migrations if migrations is not None else default_migrations())
        }

    @property
    def last_migration_version(self) -> int:
        raw = self.store.get(VERSION_KEY, 0)
        return raw if isinstance(raw, int) else 0

    @last_migration_version.setter
    def last_migration_version(self, value: int) -> None:
        self.store.set(VERSION_KEY, int(value))

    @property
    def needs_migration(self) -> bool:
        return self.last_migration_version < self.current_version

    def _restore_backup(self, backup: dict) -> None:
        for key in self.backup_keys:
            if key in backup:
                self.store.set(key, backup[key])
            else:
                self.store.delete(key)

    def run_migrations_if_needed(self) -> None:
        if not self.needs_migration:
            logger.debug("Data already at version %d; no migration needed.", self.current_version)
            return

        start = self.last_migration_version
        logger.info("Running data migrations v%d -> v%d", start, self.current_version)
        backup = self.store.snapshot(self.backup_keys)

        try:
            for version in range(start + 1, self.current_version + 1):
                migration = self._migrations.get(version)
                if migration is None:
                    self.last_migration_version = version
                    continue
                logger.info("Migration v%d: %s", version, migration.description)
                migration.migrate(self.store)
                self.last_migration_version = version
        except Exception as e:
            logger.error("Migration failed; rolling back user data: %s", e)
            self._restore_backup(backup)
            if isinstance(e, MigrationError):
                raise
            raise MigrationFailedError(version, str(e) or e.__class__.__name__) from e

        logger.info("All data migrations completed (v%d).", self.current_version)

    def run_on_launch(self) -> bool:
        try:
            self.run_migrations_if_needed()
        except MigrationError as e:
            logger.error("Data migration error on launch: %s", e)
            return False
        return True

    def reset_migration_version(self) -> None:
        self.last_migration_version = 0

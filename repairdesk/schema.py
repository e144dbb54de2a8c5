"""
Remote schema initialization, default seeding, and local-to-remote migration.

Every step is idempotent so the initializer can run on each process start:

- tables are created with IF NOT EXISTS;
- the default administrator and technician roster are seeded only into empty
  collections, with plain inserts that never overwrite;
- migration inserts only entities whose key is absent remotely, checking
  immediately before each insert. A concurrent initializer winning the race
  shows up as a ConflictError and counts as already present.

Migration never deletes from the local cache.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from repairdesk.config import Settings, get_settings
from repairdesk.domain.models import Collection, Technician, UserAccount, UserRole
from repairdesk.errors import ConflictError, TransportError
from repairdesk.storage.abstract import RemoteStore
from repairdesk.storage.local import LocalCacheTier
from repairdesk.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_ADMIN_ID = "00000000-0000-0000-0000-000000000000"

# Technicians before repairs so migrated records find their soft references.
MIGRATION_ORDER = (Collection.TECHNICIANS, Collection.USERS, Collection.REPAIRS)


@dataclass
class MigrationReport:
    inserted: Dict[str, int] = field(default_factory=dict)
    skipped: Dict[str, int] = field(default_factory=dict)
    failed: Dict[str, int] = field(default_factory=dict)

    def count(self, outcome: str, collection: Collection) -> None:
        bucket: Dict[str, int] = getattr(self, outcome)
        bucket[collection.value] = bucket.get(collection.value, 0) + 1

    @property
    def total_inserted(self) -> int:
        return sum(self.inserted.values())

    @property
    def total_failed(self) -> int:
        return sum(self.failed.values())


@dataclass
class InitReport:
    seeded_admin: bool
    seeded_technicians: int
    migration: MigrationReport


class SchemaInitializer:
    def __init__(
        self,
        remote: RemoteStore,
        cache: LocalCacheTier,
        settings: Optional[Settings] = None,
    ) -> None:
        self.remote = remote
        self.cache = cache
        self.settings = settings or get_settings()

    async def ensure_schema(self) -> None:
        await self.remote.ensure_collections()

    async def seed_defaults(self) -> tuple[bool, int]:
        """
        Seed the admin account and technician roster into empty collections.

        Returns whether the admin was created and how many technicians were.
        """
        seeded_admin = False
        if not await self.remote.read(Collection.USERS):
            admin = UserAccount(
                id=DEFAULT_ADMIN_ID,
                username=self.settings.seed_admin_username,
                password=self.settings.seed_admin_password,
                name=self.settings.seed_admin_name,
                role=UserRole.ADMIN,
            )
            try:
                await self.remote.write(Collection.USERS, admin, overwrite=False)
                seeded_admin = True
                log.info("Default administrator created", extra={"username": admin.username})
            except ConflictError:
                log.info("Administrator already present; not seeding", extra={"username": admin.username})

        seeded_technicians = 0
        if not await self.remote.read(Collection.TECHNICIANS):
            for name in self.settings.seed_technicians:
                try:
                    await self.remote.write(Collection.TECHNICIANS, Technician(name=name), overwrite=False)
                    seeded_technicians += 1
                except ConflictError:
                    continue
            log.info("Default technicians created", extra={"count": seeded_technicians})

        return seeded_admin, seeded_technicians

    async def migrate(self) -> MigrationReport:
        """Insert every locally cached entity the remote store does not have."""
        report = MigrationReport()
        for collection in MIGRATION_ORDER:
            try:
                cached = await self.cache.read(collection)
            except (OSError, ValueError):
                log.exception("Could not read local cache for migration", extra={"collection": collection.value})
                continue

            for entity in cached:
                try:
                    if await self.remote.exists(collection, entity.key):
                        report.count("skipped", collection)
                        continue
                    await self.remote.write(collection, entity, overwrite=False)
                    report.count("inserted", collection)
                except ConflictError:
                    report.count("skipped", collection)
                except TransportError as exc:
                    report.count("failed", collection)
                    log.warning(
                        "Migration of cached entity failed",
                        extra={"collection": collection.value, "key": entity.key, "error": str(exc)},
                    )

            if cached:
                log.info(
                    "Migrated local cache to remote",
                    extra={
                        "collection": collection.value,
                        "inserted": report.inserted.get(collection.value, 0),
                        "skipped": report.skipped.get(collection.value, 0),
                        "failed": report.failed.get(collection.value, 0),
                    },
                )
        return report

    async def run(self) -> InitReport:
        """
        Ensure schema, seed defaults, migrate. TransportError propagates.
        """
        await self.ensure_schema()
        seeded_admin, seeded_technicians = await self.seed_defaults()
        migration = await self.migrate()
        return InitReport(
            seeded_admin=seeded_admin,
            seeded_technicians=seeded_technicians,
            migration=migration,
        )


__all__ = ["DEFAULT_ADMIN_ID", "InitReport", "MigrationReport", "SchemaInitializer"]

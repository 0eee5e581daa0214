# weblog_data/data/migrations.py
"""
Versioned, in-place schema migration.

Each store records its schema version in a single-row ``db_version`` record.
At start-up, the adapter hands the ``Migrator`` the steps it knows about; the
migrator applies the one step registered for the stored version, records the
version that step produced, and repeats until the store is current.
"""
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from weblog_data.core.errors import MigrationError

logger = logging.getLogger(__name__)

VERSIONS: Tuple[str, ...] = ("v2-rc1", "v2-rc2", "v2", "v2.1", "v2.1.1")
CURRENT_VERSION = VERSIONS[-1]


@dataclass(frozen=True)
class MigrationStep:
    from_version: str
    to_version: str
    description: str
    apply: Callable[[], Awaitable[None]]


async def no_changes() -> None:
    """A step that only advances the version label."""


def label_only(from_version: str, to_version: str) -> MigrationStep:
    return MigrationStep(from_version, to_version, "Setting database version; no migration required", no_changes)


def log_step(from_version: str, to_version: str, message: str) -> None:
    logger.info(f"Migrating {from_version} to {to_version}: {message}")


def backup_and_restore_required(from_version: str, to_version: str, web_logs: Iterable[Tuple[str, str]]) -> None:
    """
    Log the manual procedure for a version that cannot be migrated in place, then fail.

    ``web_logs`` holds the (url base, slug) of each web log in the store.
    """
    log_step(from_version, to_version, "Requires backup and restore")
    logger.warning(f"Upgrading from {from_version} to {to_version} requires a backup and restore of each web log:")
    steps = [
        f"- Back up each web log with version {from_version}:",
        *[f"    weblog-data backup {url_base} {slug}.json" for url_base, slug in web_logs],
        f"- Upgrade to {to_version} and start with an empty database",
        "- Restore each web log from its backup:",
        *[f"    weblog-data restore {slug}.json" for _, slug in web_logs],
    ]
    for line in steps:
        logger.warning(line)
    raise MigrationError(
        f"Database version {from_version} cannot be migrated to {to_version} in place; backup and restore required",
        version=from_version,
    )


class Migrator:
    """Runs registered steps from the stored version to the current one."""

    def __init__(
        self,
        steps: Sequence[MigrationStep],
        read_version: Callable[[], Awaitable[Optional[str]]],
        write_version: Callable[[str], Awaitable[None]],
        current_version: str = CURRENT_VERSION,
    ):
        self.steps: Dict[str, MigrationStep] = {step.from_version: step for step in steps}
        self.read_version = read_version
        self.write_version = write_version
        self.current_version = current_version

    async def migrate(self) -> List[str]:
        """
        Bring the store to the current version.

        Returns the versions stepped through (empty when already current). A
        failed step raises MigrationError and leaves the stored version at the
        last version completed.
        """
        version = await self.read_version()
        applied: List[str] = []

        if version == self.current_version:
            return applied

        if version not in self.steps:
            logger.warning(f"Unknown database version; assuming {self.current_version}")
            await self.write_version(self.current_version)
            return applied

        while version != self.current_version:
            step = self.steps.get(version)
            if step is None:
                raise MigrationError(f"No migration registered from version {version}", version=version)
            log_step(step.from_version, step.to_version, step.description)
            try:
                await step.apply()
            except MigrationError:
                raise
            except Exception as e:
                logger.error(f"Migration from {step.from_version} to {step.to_version} failed: {e}")
                raise MigrationError(
                    f"Migration from {step.from_version} to {step.to_version} failed: {e}",
                    version=step.from_version,
                ) from e
            await self.write_version(step.to_version)
            version = step.to_version
            applied.append(version)

        return applied

import pytest

from weblog_data.core.errors import MigrationError
from weblog_data.data.migrations import (
    CURRENT_VERSION, VERSIONS, MigrationStep, Migrator, backup_and_restore_required, label_only
)


class VersionStore:
    def __init__(self, version):
        self.version = version
        self.writes = []

    async def read(self):
        return self.version

    async def write(self, version):
        self.version = version
        self.writes.append(version)


def chain(applied, fail_at=None):
    def step(from_version, to_version):
        async def apply():
            if from_version == fail_at:
                raise RuntimeError("disk full")
            applied.append(from_version)
        return MigrationStep(from_version, to_version, f"step from {from_version}", apply)

    return [step(old, new) for old, new in zip(VERSIONS, VERSIONS[1:])]


class TestMigrator:
    async def test_current_store_is_untouched(self):
        store = VersionStore(CURRENT_VERSION)
        assert await Migrator(chain([]), store.read, store.write).migrate() == []
        assert store.writes == []

    async def test_walks_the_chain_in_order(self):
        applied = []
        store = VersionStore("v2-rc1")
        versions = await Migrator(chain(applied), store.read, store.write).migrate()
        assert applied == ["v2-rc1", "v2-rc2", "v2", "v2.1"]
        assert versions == ["v2-rc2", "v2", "v2.1", "v2.1.1"]
        assert store.version == CURRENT_VERSION

    async def test_starts_from_the_stored_version(self):
        applied = []
        store = VersionStore("v2")
        await Migrator(chain(applied), store.read, store.write).migrate()
        assert applied == ["v2", "v2.1"]

    async def test_unknown_version_is_assumed_current(self, caplog):
        store = VersionStore("v9-beta")
        assert await Migrator(chain([]), store.read, store.write).migrate() == []
        assert store.version == CURRENT_VERSION
        assert "Unknown database version" in caplog.text

    async def test_failed_step_keeps_last_completed_version(self):
        store = VersionStore("v2-rc1")
        with pytest.raises(MigrationError) as exc_info:
            await Migrator(chain([], fail_at="v2"), store.read, store.write).migrate()
        assert exc_info.value.version == "v2"
        assert store.version == "v2"
        assert "disk full" in str(exc_info.value)

    async def test_missing_step_is_an_error(self):
        store = VersionStore("v2-rc1")
        steps = [label_only("v2-rc1", "v2-rc2")]
        with pytest.raises(MigrationError):
            await Migrator(steps, store.read, store.write).migrate()
        assert store.version == "v2-rc2"


class TestBackupAndRestoreRequired:
    def test_logs_the_procedure_and_fails(self, caplog):
        with pytest.raises(MigrationError) as exc_info:
            backup_and_restore_required("v2", "v2.1", [("https://one.example.com", "one")])
        assert exc_info.value.version == "v2"
        assert "weblog-data backup https://one.example.com one.json" in caplog.text
        assert "weblog-data restore one.json" in caplog.text

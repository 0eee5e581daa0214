import json

import pytest

from weblog_data import maintenance
from weblog_data.core.config import Settings


@pytest.fixture(name="cli_settings")
def cli_settings_fixture(tmp_path):
    return Settings(_env_file=None, DATA_BACKEND="relational", DB_FILE=str(tmp_path / "weblog.db"))


class TestParser:
    def test_commands(self):
        parser = maintenance.build_parser()
        args = parser.parse_args(["backup", "https://one.example.com", "one.json"])
        assert args.handler is maintenance.backup
        assert (args.url_base, args.file) == ("https://one.example.com", "one.json")

        args = parser.parse_args(["restore", "one.json", "--url-base", "https://two.example.com"])
        assert args.handler is maintenance.restore
        assert args.url_base == "https://two.example.com"
        assert parser.parse_args(["restore", "one.json"]).url_base is None
        assert parser.parse_args(["upgrade"]).handler is maintenance.upgrade

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            maintenance.build_parser().parse_args([])


class TestRun:
    async def test_upgrade_creates_the_database(self, cli_settings, tmp_path):
        args = maintenance.build_parser().parse_args(["upgrade"])
        assert await maintenance.run(args, cli_settings) == 0
        assert (tmp_path / "weblog.db").exists()

    async def test_backup_of_unknown_web_log(self, cli_settings, tmp_path):
        target = tmp_path / "none.json"
        args = maintenance.build_parser().parse_args(["backup", "https://none.example.com", str(target)])
        assert await maintenance.run(args, cli_settings) == 1
        assert not target.exists()

    async def test_restore_then_backup(self, cli_settings, tmp_path):
        source = tmp_path / "in.json"
        source.write_text(json.dumps({
            "web_log": {"id": "wl1", "name": "One", "slug": "one", "url_base": "https://one.example.com"},
        }))
        parser = maintenance.build_parser()
        assert await maintenance.run(parser.parse_args(["restore", str(source)]), cli_settings) == 0

        target = tmp_path / "out.json"
        backup_args = parser.parse_args(["backup", "https://one.example.com", str(target)])
        assert await maintenance.run(backup_args, cli_settings) == 0
        assert json.loads(target.read_text())["web_log"]["name"] == "One"

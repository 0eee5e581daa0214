#!/usr/bin/env python3
"""
Maintenance commands for a web log database.

Usage:
    weblog-data upgrade
    weblog-data backup <url-base> <file>
    weblog-data restore <file> [--url-base URL]
    weblog-data import-links <url-base> <file>

The storage backend and its connection come from the environment (or a .env
file); see weblog_data.core.config.
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from weblog_data.backup import create_backup, import_prior_permalinks, read_archive, restore_backup, write_archive
from weblog_data.core.config import Settings
from weblog_data.core.errors import WebLogDataError
from weblog_data.data.interfaces import IData
from weblog_data.database.engine import create_data

logger = logging.getLogger("weblog_data.maintenance")


async def upgrade(data: IData, args: argparse.Namespace) -> int:
    # start_up has already migrated the store
    logger.info("Database is at the current version")
    return 0


async def backup(data: IData, args: argparse.Namespace) -> int:
    web_log = await data.web_log.find_by_host(args.url_base)
    if web_log is None:
        logger.error(f"No web log found at {args.url_base}")
        return 1
    archive = await create_backup(data, web_log.id)
    write_archive(archive, Path(args.file))
    logger.info(f"Backup written to {args.file}")
    return 0


async def restore(data: IData, args: argparse.Namespace) -> int:
    archive = read_archive(Path(args.file))
    web_log = await restore_backup(data, archive, args.url_base)
    logger.info(f"Web log {web_log.name} restored at {web_log.url_base}")
    return 0


async def import_links(data: IData, args: argparse.Namespace) -> int:
    lines = Path(args.file).read_text(encoding="utf-8").splitlines()
    updated = await import_prior_permalinks(data, args.url_base, lines)
    logger.info(f"Updated prior permalinks for {updated} posts")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="weblog-data", description="Web log database maintenance")
    commands = parser.add_subparsers(dest="command", required=True)

    upgrade_cmd = commands.add_parser("upgrade", help="Create missing tables and migrate to the current version")
    upgrade_cmd.set_defaults(handler=upgrade)

    backup_cmd = commands.add_parser("backup", help="Back up one web log to a JSON archive")
    backup_cmd.add_argument("url_base", help="URL base of the web log to back up")
    backup_cmd.add_argument("file", help="Archive file to write")
    backup_cmd.set_defaults(handler=backup)

    restore_cmd = commands.add_parser("restore", help="Restore a web log from a JSON archive")
    restore_cmd.add_argument("file", help="Archive file to read")
    restore_cmd.add_argument("--url-base", dest="url_base", default=None, help="Restore under a different URL base")
    restore_cmd.set_defaults(handler=restore)

    links_cmd = commands.add_parser("import-links", help='Import prior permalinks from lines of "<old> <new>"')
    links_cmd.add_argument("url_base", help="URL base of the web log")
    links_cmd.add_argument("file", help="Text file of permalink pairs")
    links_cmd.set_defaults(handler=import_links)

    return parser


async def run(args: argparse.Namespace, settings: Settings) -> int:
    data = create_data(settings)
    try:
        await data.start_up()
        return await args.handler(data, args)
    finally:
        await data.shut_down()


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    settings = Settings()
    logging.basicConfig(level=settings.LOG_LEVEL.upper())
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run(args, settings))
    except WebLogDataError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""Command-line utility for GDSC."""

import argparse
import asyncio
import getpass
import sys
from typing import List, Optional

from gdsc.config import Config
from gdsc.drive_client import AsyncDriveClient, DriveClient
from gdsc.errors import DriveError
from gdsc.logging_config import setup_logging
from gdsc.models import DirectoryEntry, TimeRange
from gdsc.reporting import count_kinds, format_size, summarize_activity
from gdsc.session import BrowseSession
from gdsc.validators import ItemCapValidator, ValidationError


def _print_error(error: DriveError) -> None:
    print(f"✗ {error}")
    print(f"  {error.hint}")


def _parse_cap(value: Optional[str], default: Optional[int]) -> Optional[int]:
    if value is None:
        return default
    cap = ItemCapValidator().validate(value)
    return None if cap == 'all' else cap


def _open_session(config: Config, args) -> Optional[BrowseSession]:
    """Build a session from config overridden by command-line options."""
    folder_id = args.folder or config.root_folder_id
    if not folder_id:
        print("Error: No root folder configured. Run 'gdsc config --set root_folder_id=<ID>'.")
        return None

    client = AsyncDriveClient(DriveClient(config.load_api_key(),
                                          max_connections=config.enrichment_batch_size))
    time_range = TimeRange.parse(args.days) if args.days else config.time_range
    return BrowseSession(
        client,
        root_id=folder_id,
        root_name=config.root_name,
        time_range=time_range,
        item_cap=_parse_cap(args.limit, config.item_cap),
        search_scope=getattr(args, 'scope', None) or config.search_scope,
        auto_widen=config.auto_widen,
        batch_size=config.enrichment_batch_size,
    )


async def _load(session: BrowseSession, search: Optional[str], counts: bool) -> List[DirectoryEntry]:
    if search:
        await session.set_search(search)
    else:
        await session.load()
    if counts and session.error is None:
        await session.enrich()
    return session.entries


def cmd_config(args):
    """Configure GDSC."""
    config = Config()

    if args.list:
        print("Current Configuration:")
        print("=" * 40)
        for key, value in sorted(config.items().items()):
            print(f"{key} = {value}")
        return 0

    if args.set:
        status = 0
        for item in args.set:
            if '=' not in item:
                print(f"Error: Invalid format '{item}'. Use key=value")
                status = 1
                continue

            key, value = item.split('=', 1)
            try:
                config.set(key.strip(), value.strip())
            except ValueError as e:
                print(f"✗ {key}: {e}")
                status = 1
                continue
            print(f"✓ Set {key} = {config.get(key.strip())}")

        return status

    print("Use --list to view config or --set key=value to change config")
    return 0


def cmd_set_key(args):
    """Store the Drive API key."""
    config = Config()
    if args.clear:
        config.clear_api_key()
        print("✓ API key removed")
        return 0

    api_key = getpass.getpass("Google API key: ")
    try:
        config.save_api_key(api_key)
    except ValueError as e:
        print(f"✗ {e}")
        return 1
    print("✓ API key saved")
    return 0


def cmd_status(args):
    """Show configuration status."""
    config = Config()

    print("Google Drive Sync Client Status")
    print("=" * 40)
    print(f"Root Folder: {config.root_folder_id or '(not set)'}")
    print(f"Time Range: {config.time_range.value}")
    print(f"Item Cap: {config.item_cap or 'all'}")
    print(f"Search Scope: {config.search_scope}")
    print(f"API Key: {'✓ Configured' if config.load_api_key() else '✗ Not configured'}")
    return 0


def cmd_list(args):
    """List a Drive folder."""
    config = Config()
    setup_logging(level=args.log_level or config.log_level, log_file=config.log_path)

    try:
        session = _open_session(config, args)
    except (ValueError, ValidationError) as e:
        print(f"Error: {e}")
        return 1
    if session is None:
        return 1

    requested_range = session.time_range
    try:
        entries = asyncio.run(_load(session, args.search, not args.no_counts))
    finally:
        session.close()
        session.client.close()

    if session.error is not None:
        _print_error(session.error)
        return 1

    if session.widen_suggestion is not None:
        print("No entries in the selected time range; use --days all to see older entries.")

    folders, files, total = count_kinds(entries)
    print(f"\n{' / '.join(session.path.names())} ({folders} folders, {files} files)")
    print("=" * 60)
    for entry in entries:
        modified = entry.last_modified.strftime('%Y-%m-%d %H:%M')
        if entry.is_folder:
            count = session.folder_count(entry.id)
            detail = f"{count} subfolders" if count is not None else ""
            print(f"[D] {entry.name:40s} {detail:>15s}  {modified}")
        else:
            size = format_size(entry.size_bytes) if entry.size_bytes is not None else ""
            print(f"    {entry.name:40s} {size:>15s}  {modified}")

    if requested_range is not TimeRange.ALL and session.time_range is TimeRange.ALL:
        print("\nNothing matched the time range; showing all history instead.")
    if session.truncated:
        print(f"\nStopped at {total} entries (limit reached).")
    return 0


def cmd_report(args):
    """Show an activity report for a Drive folder."""
    config = Config()
    setup_logging(level=args.log_level or config.log_level, log_file=config.log_path)

    try:
        session = _open_session(config, args)
    except (ValueError, ValidationError) as e:
        print(f"Error: {e}")
        return 1
    if session is None:
        return 1

    try:
        entries = asyncio.run(_load(session, None, False))
    finally:
        session.close()
        session.client.close()

    if session.error is not None:
        _print_error(session.error)
        return 1

    range_days = TimeRange.parse(args.window).days
    report = summarize_activity(entries, range_days)

    print(f"Activity for {' / '.join(session.path.names())} ({args.window} days)")
    print("=" * 40)
    print(f"New folders:     {report.new_folders}")
    print(f"Updated folders: {report.updated_folders}")
    print(f"Total size:      {format_size(report.total_size)}")
    print(f"Images: {report.image_count}  Videos: {report.video_count}  Other: {report.other_count}")
    for day in report.daily:
        print(f"  {day.day.strftime('%d/%m/%Y')}  new={day.new_count:<4d} updated={day.updated_count:<4d}")
    return 0


def _add_listing_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--folder', help='Folder ID to list (defaults to the configured root)')
    parser.add_argument('--days', choices=[r.value for r in TimeRange],
                        help='Only entries modified in the last N days, or "all"')
    parser.add_argument('--limit', help='Maximum number of entries, or "all"')
    parser.add_argument('--log-level', help='Log level for this run')


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Google Drive Sync Client (GDSC) - Command-line utility'
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    config_parser = subparsers.add_parser('config', help='Configure GDSC')
    config_parser.add_argument('--list', action='store_true', help='List configuration')
    config_parser.add_argument('--set', nargs='+', help='Set config (key=value)')
    config_parser.set_defaults(func=cmd_config)

    key_parser = subparsers.add_parser('set-key', help='Store the Google API key')
    key_parser.add_argument('--clear', action='store_true', help='Remove the stored key')
    key_parser.set_defaults(func=cmd_set_key)

    status_parser = subparsers.add_parser('status', help='Show configuration status')
    status_parser.set_defaults(func=cmd_status)

    list_parser = subparsers.add_parser('list', help='List a Drive folder')
    _add_listing_args(list_parser)
    list_parser.add_argument('--search', help='Only entries whose name contains TEXT')
    list_parser.add_argument('--scope', choices=['current', 'global'], help='Search scope')
    list_parser.add_argument('--no-counts', action='store_true', help='Skip subfolder counts')
    list_parser.set_defaults(func=cmd_list)

    report_parser = subparsers.add_parser('report', help='Show folder activity report')
    _add_listing_args(report_parser)
    report_parser.add_argument('--window', default='14', choices=[r.value for r in TimeRange],
                               help='Report window in days, or "all"')
    report_parser.set_defaults(func=cmd_report)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())

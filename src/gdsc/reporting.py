#!/usr/bin/env python3
"""Activity report over a loaded listing."""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from .models import DirectoryEntry

# Unbounded and long windows only chart the most recent active days
MAX_CHART_DAYS = 15
LONG_WINDOW_DAYS = 90


@dataclass
class DailyActivity:
    day: date
    new_count: int = 0
    updated_count: int = 0

    @property
    def total(self) -> int:
        return self.new_count + self.updated_count


@dataclass
class ActivityReport:
    new_folders: int = 0
    updated_folders: int = 0
    total_size: int = 0
    image_count: int = 0
    video_count: int = 0
    other_count: int = 0
    daily: List[DailyActivity] = field(default_factory=list)


def count_kinds(entries: Iterable[DirectoryEntry]) -> Tuple[int, int, int]:
    """Return (folders, files, total)."""
    folders = files = 0
    for entry in entries:
        if entry.is_folder:
            folders += 1
        else:
            files += 1
    return folders, files, folders + files


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def summarize_activity(entries: Iterable[DirectoryEntry], range_days: Optional[int] = 14,
                       now: Optional[datetime] = None) -> ActivityReport:
    """Summarize what changed inside a window.

    Only entries modified inside the window count. Folders created inside the
    window are "new"; older folders modified inside it are "updated". An
    entry without a creation time is treated as created when last modified.

    Args:
        entries: Loaded entries
        range_days: Window length in days, None for everything
        now: Reference time (defaults to the current UTC time)

    Returns:
        ActivityReport
    """
    now = _utc(now or datetime.now(timezone.utc))
    if range_days is None:
        start = datetime.fromtimestamp(0, tz=timezone.utc)
    else:
        start_day = (now - timedelta(days=range_days)).date()
        start = datetime.combine(start_day, time.min, tzinfo=timezone.utc)

    report = ActivityReport()
    daily: Dict[date, DailyActivity] = {}
    if range_days is not None:
        for offset in range(range_days):
            day = (now - timedelta(days=offset)).date()
            daily[day] = DailyActivity(day)

    for entry in entries:
        modified = _utc(entry.last_modified)
        if modified < start:
            continue

        if entry.size_bytes:
            report.total_size += entry.size_bytes

        if not entry.is_folder:
            content_type = entry.content_type or ''
            if content_type.startswith('image/'):
                report.image_count += 1
            elif content_type.startswith('video/'):
                report.video_count += 1
            else:
                report.other_count += 1
            continue

        created = _utc(entry.created_at) if entry.created_at else modified
        is_new = created >= start
        if is_new:
            report.new_folders += 1
        else:
            report.updated_folders += 1

        day = modified.date()
        bucket = daily.get(day)
        if bucket is None:
            if range_days is not None:
                continue
            bucket = daily[day] = DailyActivity(day)
        if is_new:
            bucket.new_count += 1
        else:
            bucket.updated_count += 1

    series = sorted(daily.values(), key=lambda d: d.day)
    if range_days is None or range_days >= LONG_WINDOW_DAYS:
        series = [d for d in series if d.total > 0][-MAX_CHART_DAYS:]
    report.daily = series
    return report


def format_size(size: int) -> str:
    """Human readable byte count (1024 based)."""
    if size < 1024:
        return f"{size} B"
    value = float(size)
    for unit in ('KB', 'MB', 'GB', 'TB'):
        value /= 1024
        if value < 1024 or unit == 'TB':
            return f"{value:.1f} {unit}"
    return f"{size} B"

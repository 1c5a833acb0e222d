"""
RouterOS DNS log parser.

RouterOS logs aren't consistent - what a line looks like depends on whether it
came from `/log print`, a remote syslog target, or a disk action with a date
prefix. So each known shape gets its own little matcher, and a line goes
through them in order until one bites. Lines nobody claims are counted as
skipped (routers log plenty of non-DNS chatter too).

RouterOS never says whether a query was blocked, so status is always unknown.
"""

import ipaddress
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Iterator, NamedTuple

from dns_log_analyzer.exceptions import SourceUnavailableError
from dns_log_analyzer.models import (
    SOURCE_ROUTEROS,
    STATUS_UNKNOWN,
    LogRecord,
    SourceTally,
    make_record,
)

logger = logging.getLogger(__name__)

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

# "query from 192.168.88.20: #41 example.com. A" - the tail every dns-topic line shares
_QUERY_TAIL = (
    r"query from (?P<client>[^\s#]+?):?\s+(?:#\d+\s+)?"
    r"(?P<domain>\S+)\s+(?P<qtype>[A-Za-z0-9]+)\b"
)
_ISO_TS = r"(?P<ts>\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}:\d{2})\S*"

ISO_PATTERN = re.compile(rf"^{_ISO_TS}\s+.*?{_QUERY_TAIL}", re.IGNORECASE)
SYSLOG_PATTERN = re.compile(
    r"^(?P<mon>[A-Za-z]{3})\s+(?P<day>\d{1,2})\s+(?P<time>\d{2}:\d{2}:\d{2})\s+.*?"
    + _QUERY_TAIL,
    re.IGNORECASE,
)
CONSOLE_PATTERN = re.compile(
    r"^(?P<mon>[A-Za-z]{3})/(?P<day>\d{1,2})(?:/(?P<year>\d{4}))?\s+"
    r"(?P<time>\d{2}:\d{2}:\d{2})\s+.*?" + _QUERY_TAIL,
    re.IGNORECASE,
)
COMPACT_PATTERN = re.compile(
    rf"^{_ISO_TS}\s+(?P<client>[0-9A-Fa-f:.]+)\s+(?P<domain>\S+)\s+(?P<qtype>[A-Za-z0-9]+)\s*$"
)


class LineMatch(NamedTuple):
    timestamp: datetime
    client_ip: str
    domain: str
    query_type: str


def _iso_timestamp(value: str) -> datetime:
    return datetime.strptime(value.replace("T", " "), "%Y-%m-%d %H:%M:%S")


def _month_day_timestamp(mon: str, day: str, time_str: str, year: int) -> datetime:
    month = MONTHS.get(mon.lower())
    if not month:
        raise ValueError(f"unknown month {mon!r}")
    return datetime.strptime(
        f"{year}-{month:02d}-{int(day):02d} {time_str}", "%Y-%m-%d %H:%M:%S"
    )


def match_iso(line: str, year: int) -> LineMatch | None:
    m = ISO_PATTERN.match(line)
    if not m:
        return None
    try:
        ts = _iso_timestamp(m.group("ts"))
    except ValueError:
        return None
    return LineMatch(ts, m.group("client"), m.group("domain"), m.group("qtype"))


def match_syslog(line: str, year: int) -> LineMatch | None:
    m = SYSLOG_PATTERN.match(line)
    if not m:
        return None
    try:
        ts = _month_day_timestamp(m.group("mon"), m.group("day"), m.group("time"), year)
    except ValueError:
        return None
    return LineMatch(ts, m.group("client"), m.group("domain"), m.group("qtype"))


def match_console(line: str, year: int) -> LineMatch | None:
    """`/log print` style: 'mar/01 10:15:02' (current year) or 'mar/01/2024 10:15:02'."""
    m = CONSOLE_PATTERN.match(line)
    if not m:
        return None
    line_year = int(m.group("year")) if m.group("year") else year
    try:
        ts = _month_day_timestamp(m.group("mon"), m.group("day"), m.group("time"), line_year)
    except ValueError:
        return None
    return LineMatch(ts, m.group("client"), m.group("domain"), m.group("qtype"))


def match_compact(line: str, year: int) -> LineMatch | None:
    """Bare columns: timestamp, client, domain, type - as written by some export scripts."""
    m = COMPACT_PATTERN.match(line)
    if not m:
        return None
    try:
        ipaddress.ip_address(m.group("client"))
        ts = _iso_timestamp(m.group("ts"))
    except ValueError:
        return None
    return LineMatch(ts, m.group("client"), m.group("domain"), m.group("qtype"))


# order matters - first matcher to return something wins
LINE_MATCHERS: tuple[Callable[[str, int], LineMatch | None], ...] = (
    match_iso,
    match_syslog,
    match_console,
    match_compact,
)


def match_line(line: str, year: int | None = None) -> LineMatch | None:
    """Runs a line through LINE_MATCHERS and returns the first hit."""
    year = year or datetime.now().year
    for matcher in LINE_MATCHERS:
        hit = matcher(line, year)
        if hit is not None:
            return hit
    return None


def iter_routeros(
    lines: Iterable[str],
    tally: SourceTally,
    year: int | None = None,
) -> Iterator[LogRecord]:
    """
    Lazily turns RouterOS log lines into records, keeping score in `tally`.

    `year` fills in the year for formats that leave it out (syslog and
    short console dates); defaults to the current year.
    """
    year = year or datetime.now().year
    for line_no, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line:
            continue
        tally.lines += 1

        hit = match_line(line, year)
        if hit is None:
            tally.skipped += 1
            logger.debug("routeros line %d: no pattern matched: %.120s", line_no, line)
            continue

        record = make_record(
            timestamp=hit.timestamp,
            raw_domain=hit.domain,
            client_ip=hit.client_ip,
            query_type=hit.query_type,
            status=STATUS_UNKNOWN,
            source=SOURCE_ROUTEROS,
        )
        if record is None:
            tally.dropped += 1
            continue

        tally.parsed += 1
        yield record


def read_routeros(path: Path, year: int | None = None) -> tuple[list[LogRecord], SourceTally]:
    """Reads a whole RouterOS log file. Raises SourceUnavailableError if it can't be opened."""
    tally = SourceTally(source=SOURCE_ROUTEROS, path=path)
    try:
        with path.open("r", encoding="utf-8", errors="replace") as fh:
            records = list(iter_routeros(fh, tally, year=year))
    except OSError as exc:
        raise SourceUnavailableError(
            f"Cannot read RouterOS log {path}: {exc}",
            details={"path": str(path)},
        ) from exc

    logger.info(
        "RouterOS %s: %d records from %d lines", path, tally.parsed, tally.lines
    )
    if tally.skipped:
        logger.warning("RouterOS %s: skipped %d unrecognised lines", path, tally.skipped)
    return records, tally

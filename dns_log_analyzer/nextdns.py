"""
NextDNS CSV export parser.

Polars does the actual CSV reading, so quoted fields with commas in them stay
in one piece. Everything is read as strings and we do our own typing per row,
which means one wonky row costs us one row, not the whole file.
"""

import io
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Iterator

import polars as pl

from dns_log_analyzer.exceptions import SourceFormatError, SourceUnavailableError
from dns_log_analyzer.models import (
    SOURCE_NEXTDNS,
    STATUS_ALLOWED,
    STATUS_BLOCKED,
    STATUS_UNKNOWN,
    LogRecord,
    SourceTally,
    make_record,
)

logger = logging.getLogger(__name__)

# header names we accept for each field, compared lower-cased and stripped
COLUMN_ALIASES = {
    "timestamp": ("timestamp", "time", "date", "datetime"),
    "domain": ("domain", "query value", "query_value", "query_domain", "query", "name"),
    "client_ip": ("client_ip", "client ip", "clientip", "client"),
    "query_type": ("query_type", "query type", "querytype", "type", "qtype"),
    "status": ("status", "action"),
}
REQUIRED_COLUMNS = ("timestamp", "domain", "client_ip")

# status spellings seen in exports, folded before anything gets counted
BLOCKED_VALUES = frozenset({"blocked", "block", "denied", "deny", "true", "yes", "1"})
ALLOWED_VALUES = frozenset({
    "allowed", "allow", "default", "ok", "resolved", "relayed", "false", "no", "0",
})


def normalize_status(raw: str | None) -> str:
    """Folds whatever the export says into allowed / blocked / unknown."""
    if raw is None:
        return STATUS_UNKNOWN
    value = raw.strip().lower()
    if value in BLOCKED_VALUES:
        return STATUS_BLOCKED
    if value in ALLOWED_VALUES:
        return STATUS_ALLOWED
    return STATUS_UNKNOWN


def parse_timestamp(raw: str | None) -> datetime:
    """
    ISO 8601 (with or without 'Z') or epoch seconds/milliseconds.
    Aware values come back as naive UTC. Raises ValueError on anything else.
    """
    if raw is None or not raw.strip():
        raise ValueError("empty timestamp")
    text = raw.strip()

    if text.isdigit():
        seconds = int(text)
        if seconds > 10**11:  # milliseconds
            seconds //= 1000
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError) as exc:
            raise ValueError(f"epoch value out of range: {text}") from exc

    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"
    ts = datetime.fromisoformat(text)
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


def resolve_columns(header: list[str]) -> dict[str, str]:
    """
    Maps our field names onto the file's header. Raises SourceFormatError when
    a required column is nowhere to be found.
    """
    lookup = {name.strip().lower(): name for name in header}
    resolved = {}
    for field_name, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in lookup:
                resolved[field_name] = lookup[alias]
                break

    missing = [name for name in REQUIRED_COLUMNS if name not in resolved]
    if missing:
        raise SourceFormatError(
            f"NextDNS export is missing required columns: {', '.join(missing)}",
            details={"header": header, "missing": missing},
        )
    return resolved


def load_nextdns_frame(source: Path | IO[bytes] | bytes) -> pl.DataFrame:
    """
    Reads the export with every column as a string.
    Ragged rows are truncated rather than rejected; an empty file is an empty frame.

    A stray unbalanced quote makes the strict read give up on the whole file,
    so in that case we read it again with quoting switched off. Rows that relied
    on quoted commas may then come out shifted, but the rest survive.
    """
    if isinstance(source, bytes):
        source = io.BytesIO(source)
    try:
        return _read_csv(source, quote_char='"')
    except pl.exceptions.NoDataError:
        return pl.DataFrame()
    except pl.exceptions.ComputeError as exc:
        logger.warning("NextDNS CSV has broken quoting (%s), re-reading without quotes", exc)

    if hasattr(source, "seek"):
        source.seek(0)
    try:
        return _read_csv(source, quote_char=None)
    except pl.exceptions.ComputeError as exc:
        raise SourceFormatError(f"Unreadable NextDNS CSV: {exc}") from exc


def _read_csv(source: Path | IO[bytes], quote_char: str | None) -> pl.DataFrame:
    return pl.read_csv(
        source,
        infer_schema_length=0,
        quote_char=quote_char,
        truncate_ragged_lines=True,
        encoding="utf8-lossy",
    )


def iter_nextdns(frame: pl.DataFrame, tally: SourceTally) -> Iterator[LogRecord]:
    """Lazily turns export rows into records, keeping score in `tally`."""
    if frame.width == 0:
        return

    columns = resolve_columns(frame.columns)
    rows = frame.select(
        [pl.col(columns[name]).alias(name) for name in COLUMN_ALIASES if name in columns]
    )

    for row_no, row in enumerate(rows.iter_rows(named=True), start=2):  # row 1 is the header
        tally.lines += 1
        try:
            ts = parse_timestamp(row["timestamp"])
        except ValueError as exc:
            tally.skipped += 1
            logger.debug("nextdns row %d: bad timestamp %r (%s)", row_no, row["timestamp"], exc)
            continue

        record = make_record(
            timestamp=ts,
            raw_domain=row["domain"],
            client_ip=row["client_ip"],
            query_type=row.get("query_type"),
            status=normalize_status(row.get("status")),
            source=SOURCE_NEXTDNS,
        )
        if record is None:
            tally.dropped += 1
            continue

        tally.parsed += 1
        yield record


def read_nextdns(path: Path) -> tuple[list[LogRecord], SourceTally]:
    """Reads a whole NextDNS export. Raises SourceUnavailableError if it can't be opened."""
    tally = SourceTally(source=SOURCE_NEXTDNS, path=path)
    if not path.is_file():
        raise SourceUnavailableError(
            f"NextDNS export not found: {path}", details={"path": str(path)}
        )
    try:
        frame = load_nextdns_frame(path)
    except OSError as exc:
        raise SourceUnavailableError(
            f"Cannot read NextDNS export {path}: {exc}",
            details={"path": str(path)},
        ) from exc

    records = list(iter_nextdns(frame, tally))
    logger.info("NextDNS %s: %d records from %d rows", path, tally.parsed, tally.lines)
    if tally.skipped or tally.dropped:
        logger.warning(
            "NextDNS %s: skipped %d malformed rows, dropped %d incomplete rows",
            path, tally.skipped, tally.dropped,
        )
    return records, tally

"""
Data shapes shared across the analyzer.

LogRecord is what every parser emits. The aggregation types are built once by
aggregate() and never touched again; the serializer only renames fields.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from dns_log_analyzer.domains import clean_query, extract_base_domain

# --- vocabularies ---
STATUS_ALLOWED = "allowed"
STATUS_BLOCKED = "blocked"
STATUS_UNKNOWN = "unknown"
STATUSES = (STATUS_ALLOWED, STATUS_BLOCKED, STATUS_UNKNOWN)

SOURCE_ROUTEROS = "routeros"
SOURCE_NEXTDNS = "nextdns"
SOURCES = (SOURCE_ROUTEROS, SOURCE_NEXTDNS)

QUERY_TYPE_UNKNOWN = "unknown"


@dataclass(frozen=True)
class LogRecord:
    """One normalized DNS query, whatever log it came from."""

    timestamp: datetime
    query_domain: str
    base_domain: str
    client_ip: str
    query_type: str
    status: str
    source: str
    matched_pattern: str | None = None  # set by the blocklist annotation step


@dataclass
class SourceTally:
    """
    Per-file bookkeeping, handed to a parser and returned alongside its records.

    lines   - non-blank lines (or CSV rows) looked at
    parsed  - records that made it out
    skipped - malformed lines we could not make sense of
    dropped - rows missing the query domain or client IP
    """

    source: str
    path: Path | None = None
    lines: int = 0
    parsed: int = 0
    skipped: int = 0
    dropped: int = 0
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


# --- aggregation output ---

@dataclass(frozen=True)
class TimeRange:
    start: datetime | None
    end: datetime | None
    duration_hours: float


@dataclass(frozen=True)
class StatsOverview:
    total_queries: int
    unique_domains: int
    unique_base_domains: int
    unique_ips: int
    source_distribution: tuple[tuple[str, int], ...]
    status_distribution: tuple[tuple[str, int], ...]
    query_type_distribution: tuple[tuple[str, int], ...]
    time_range: TimeRange


@dataclass(frozen=True)
class Device:
    ip: str
    query_count: int
    unique_domains: int
    blocked_count: int
    blocked_percentage: float


@dataclass(frozen=True)
class IpDomains:
    """Which base domains one client looked up, busiest first."""

    ip: str
    domains: tuple[tuple[str, int], ...]
    total_lookups: int
    unique_domains: int


@dataclass(frozen=True)
class DomainIps:
    """Which clients looked up one base domain, busiest first."""

    domain: str
    ips: tuple[tuple[str, int], ...]
    total_lookups: int
    unique_ips: int


@dataclass(frozen=True)
class TimeSeries:
    hourly: tuple[tuple[datetime, int], ...]
    query_types: tuple[tuple[str, int], ...]
    statuses: tuple[tuple[str, int], ...]


@dataclass(frozen=True)
class SuspiciousQuery:
    domain: str
    timestamp: datetime
    source_ip: str
    status: str
    matched_pattern: str


@dataclass(frozen=True)
class AggregationResult:
    stats: StatsOverview
    devices: tuple[Device, ...] = ()
    ip_to_domains: tuple[IpDomains, ...] = ()
    domain_to_ips: tuple[DomainIps, ...] = ()
    time_series: TimeSeries = field(default_factory=lambda: TimeSeries((), (), ()))
    suspicious_domains: tuple[SuspiciousQuery, ...] = ()


def make_record(
    timestamp: datetime,
    raw_domain: str | None,
    client_ip: str | None,
    query_type: str | None,
    status: str,
    source: str,
) -> LogRecord | None:
    """
    Builds a LogRecord from loosely-typed parser output.

    Returns None when the query domain or client IP is missing - those rows
    can't be attributed to anything, so they never reach the aggregator.
    """
    query_domain = clean_query(raw_domain)
    client = (client_ip or "").strip()
    if not query_domain or not client:
        return None

    qtype = (query_type or "").strip().upper() or QUERY_TYPE_UNKNOWN
    return LogRecord(
        timestamp=timestamp,
        query_domain=query_domain,
        base_domain=extract_base_domain(query_domain),
        client_ip=client,
        query_type=qtype,
        status=status,
        source=source,
    )

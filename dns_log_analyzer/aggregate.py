"""
Aggregation - turns the merged record stream into every view the dashboard needs.

All of it hangs off one polars DataFrame built from the records, so each count
is a group_by over the same rows. Nothing gets incremented on the side, which
is how the old "blocked count stuck at zero" class of bug crept in.
"""

from datetime import datetime
from typing import Iterable

import polars as pl

from dns_log_analyzer.models import (
    STATUS_BLOCKED,
    AggregationResult,
    Device,
    DomainIps,
    IpDomains,
    LogRecord,
    StatsOverview,
    SuspiciousQuery,
    TimeRange,
    TimeSeries,
)

SCHEMA = {
    "timestamp": pl.Datetime("us"),
    "query_domain": pl.String,
    "base_domain": pl.String,
    "client_ip": pl.String,
    "query_type": pl.String,
    "status": pl.String,
    "source": pl.String,
    "matched_pattern": pl.String,
}


def records_to_frame(records: Iterable[LogRecord]) -> pl.DataFrame:
    """Column-wise copy of the records into a typed DataFrame."""
    columns: dict[str, list] = {name: [] for name in SCHEMA}
    for record in records:
        for name in SCHEMA:
            columns[name].append(getattr(record, name))
    return pl.DataFrame(columns, schema=SCHEMA)


def aggregate(records: Iterable[LogRecord], sources: Iterable[str] = ()) -> AggregationResult:
    """
    Crunches all the numbers in one go.

    `sources` lists every source that was attempted; any of them that produced
    nothing still shows up in the source distribution with a zero count.
    """
    df = records_to_frame(records)

    return AggregationResult(
        stats=_overview(df, sources),
        devices=_devices(df),
        ip_to_domains=_ip_to_domains(df),
        domain_to_ips=_domain_to_ips(df),
        time_series=_time_series(df),
        suspicious_domains=_suspicious(df),
    )


def _ranked_counts(df: pl.DataFrame, column: str) -> tuple[tuple[str, int], ...]:
    """(value, count) pairs, busiest first, ties alphabetical."""
    counts = (
        df.group_by(column)
        .agg(pl.len().alias("count"))
        .sort(["count", column], descending=[True, False])
    )
    return tuple((value, count) for value, count in counts.iter_rows())


def _overview(df: pl.DataFrame, sources: Iterable[str]) -> StatsOverview:
    source_counts = dict(_ranked_counts(df, "source"))
    for source in sources:
        source_counts.setdefault(source, 0)
    source_distribution = tuple(
        sorted(source_counts.items(), key=lambda item: (-item[1], item[0]))
    )

    return StatsOverview(
        total_queries=df.height,
        unique_domains=df["query_domain"].n_unique(),
        unique_base_domains=df["base_domain"].n_unique(),
        unique_ips=df["client_ip"].n_unique(),
        source_distribution=source_distribution,
        status_distribution=_ranked_counts(df, "status"),
        query_type_distribution=_ranked_counts(df, "query_type"),
        time_range=_time_range(df),
    )


def _time_range(df: pl.DataFrame) -> TimeRange:
    if df.is_empty():
        return TimeRange(start=None, end=None, duration_hours=0.0)

    start: datetime = df["timestamp"].min()
    end: datetime = df["timestamp"].max()
    hours = (end - start).total_seconds() / 3600
    return TimeRange(start=start, end=end, duration_hours=round(hours, 2))


def _devices(df: pl.DataFrame) -> tuple[Device, ...]:
    # one row per client IP - blocked counts come off the normalised status column
    device_stats = (
        df.group_by("client_ip")
        .agg(
            pl.len().alias("query_count"),
            pl.col("base_domain").n_unique().alias("unique_domains"),
            (pl.col("status") == STATUS_BLOCKED).sum().alias("blocked_count"),
        )
        .with_columns(
            pl.when(pl.col("query_count") > 0)
            .then(pl.col("blocked_count") / pl.col("query_count") * 100)
            .otherwise(0.0)
            .round(2)
            .alias("blocked_percentage")
        )
        .sort(["query_count", "client_ip"], descending=[True, False])
    )

    return tuple(
        Device(
            ip=row["client_ip"],
            query_count=row["query_count"],
            unique_domains=row["unique_domains"],
            blocked_count=row["blocked_count"],
            blocked_percentage=float(row["blocked_percentage"]),
        )
        for row in device_stats.iter_rows(named=True)
    )


def _pair_counts(df: pl.DataFrame, key: str, other: str) -> dict[str, list[tuple[str, int]]]:
    """For each `key` value, its `other` counterparts with counts, busiest first."""
    pairs = (
        df.group_by(key, other)
        .agg(pl.len().alias("count"))
        .sort(["count", other], descending=[True, False])
    )
    grouped: dict[str, list[tuple[str, int]]] = {}
    for key_value, other_value, count in pairs.iter_rows():
        grouped.setdefault(key_value, []).append((other_value, count))
    return grouped


def _totals(df: pl.DataFrame, key: str, other: str) -> pl.DataFrame:
    return (
        df.group_by(key)
        .agg(
            pl.len().alias("total_lookups"),
            pl.col(other).n_unique().alias("unique"),
        )
        .sort(["total_lookups", key], descending=[True, False])
    )


def _ip_to_domains(df: pl.DataFrame) -> tuple[IpDomains, ...]:
    pairs = _pair_counts(df, "client_ip", "base_domain")
    return tuple(
        IpDomains(
            ip=ip,
            domains=tuple(pairs[ip]),
            total_lookups=total,
            unique_domains=unique,
        )
        for ip, total, unique in _totals(df, "client_ip", "base_domain").iter_rows()
    )


def _domain_to_ips(df: pl.DataFrame) -> tuple[DomainIps, ...]:
    pairs = _pair_counts(df, "base_domain", "client_ip")
    return tuple(
        DomainIps(
            domain=domain,
            ips=tuple(pairs[domain]),
            total_lookups=total,
            unique_ips=unique,
        )
        for domain, total, unique in _totals(df, "base_domain", "client_ip").iter_rows()
    )


def _time_series(df: pl.DataFrame) -> TimeSeries:
    # hourly activity - bucket key is the timestamp truncated to the hour
    hourly = (
        df.with_columns(pl.col("timestamp").dt.truncate("1h").alias("hour"))
        .group_by("hour")
        .agg(pl.len().alias("count"))
        .sort("hour")
    )
    return TimeSeries(
        hourly=tuple(hourly.iter_rows()),
        query_types=_ranked_counts(df, "query_type"),
        statuses=_ranked_counts(df, "status"),
    )


def _suspicious(df: pl.DataFrame) -> tuple[SuspiciousQuery, ...]:
    hits = (
        df.filter(pl.col("matched_pattern").is_not_null())
        .sort(["timestamp", "client_ip", "query_domain", "matched_pattern", "status"])
    )
    return tuple(
        SuspiciousQuery(
            domain=row["query_domain"],
            timestamp=row["timestamp"],
            source_ip=row["client_ip"],
            status=row["status"],
            matched_pattern=row["matched_pattern"],
        )
        for row in hits.iter_rows(named=True)
    )

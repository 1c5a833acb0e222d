"""
Shapes an AggregationResult into the JSON document the dashboard reads.

No counting happens here, only renaming and nesting. Key order is fixed so
the same analysis always produces the same bytes.
"""

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path

from dns_log_analyzer.models import AggregationResult, StatsOverview, TimeSeries


def _iso(ts: datetime | None) -> str:
    return ts.isoformat() if ts is not None else ""


def _pairs(items, key: str) -> list[dict]:
    return [{key: value, "count": count} for value, count in items]


def _stats(stats: StatsOverview) -> dict:
    return {
        "total_queries": stats.total_queries,
        "unique_domains": stats.unique_domains,
        "unique_base_domains": stats.unique_base_domains,
        "unique_ips": stats.unique_ips,
        "source_distribution": _pairs(stats.source_distribution, "source"),
        "status_distribution": _pairs(stats.status_distribution, "status"),
        "query_type_distribution": _pairs(stats.query_type_distribution, "type"),
        "time_range": {
            "start": _iso(stats.time_range.start),
            "end": _iso(stats.time_range.end),
            "duration_hours": stats.time_range.duration_hours,
        },
    }


def _time_series(series: TimeSeries) -> dict:
    return {
        "hourly_distribution": [
            {"hour": _iso(hour), "count": count} for hour, count in series.hourly
        ],
        "query_type_distribution": _pairs(series.query_types, "type"),
        "status_distribution": _pairs(series.statuses, "status"),
    }


def to_document(result: AggregationResult) -> dict:
    """Builds the output document - stats, devices, time_series, suspicious_domains, relationships."""
    return {
        "stats": _stats(result.stats),
        "devices": {
            "devices": [
                {
                    "ip": device.ip,
                    "query_count": device.query_count,
                    "unique_domains": device.unique_domains,
                    "blocked_count": device.blocked_count,
                    "blocked_percentage": device.blocked_percentage,
                }
                for device in result.devices
            ]
        },
        "time_series": _time_series(result.time_series),
        "suspicious_domains": [
            {
                "domain": hit.domain,
                "timestamp": _iso(hit.timestamp),
                "source_ip": hit.source_ip,
                "status": hit.status,
                "matchedPattern": hit.matched_pattern,
            }
            for hit in result.suspicious_domains
        ],
        "relationships": {
            "ip_to_domains": [
                {
                    "ip": entry.ip,
                    "domains": _pairs(entry.domains, "domain"),
                    "total_lookups": entry.total_lookups,
                    "unique_domains": entry.unique_domains,
                }
                for entry in result.ip_to_domains
            ],
            "domain_to_ips": [
                {
                    "domain": entry.domain,
                    "ips": _pairs(entry.ips, "ip"),
                    "total_lookups": entry.total_lookups,
                    "unique_ips": entry.unique_ips,
                }
                for entry in result.domain_to_ips
            ],
        },
    }


def dumps_document(document: dict) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


def write_document(document: dict, output_path: Path) -> None:
    """
    Writes the document via a temp file in the same directory, then swaps it
    into place. A run that dies halfway leaves no half-written JSON behind.
    """
    payload = dumps_document(document)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{output_path.name}.", suffix=".tmp", dir=output_path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(payload)
        os.replace(tmp_name, output_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

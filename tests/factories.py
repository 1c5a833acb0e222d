"""Builders for records used across the tests."""

import dataclasses
from datetime import datetime

from dns_log_analyzer.models import SOURCE_NEXTDNS, STATUS_UNKNOWN, LogRecord, make_record


def record(
    domain: str,
    ip: str,
    when: datetime = datetime(2024, 3, 1, 10, 0, 0),
    status: str = STATUS_UNKNOWN,
    query_type: str = "A",
    source: str = SOURCE_NEXTDNS,
    matched_pattern: str | None = None,
) -> LogRecord:
    built = make_record(when, domain, ip, query_type, status, source)
    assert built is not None
    return dataclasses.replace(built, matched_pattern=matched_pattern)

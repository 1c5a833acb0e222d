"""Tests for the NextDNS CSV reader and status folding."""

import io
from datetime import datetime

import pytest

from dns_log_analyzer.exceptions import SourceFormatError, SourceUnavailableError
from dns_log_analyzer.models import (
    SOURCE_NEXTDNS,
    STATUS_ALLOWED,
    STATUS_BLOCKED,
    STATUS_UNKNOWN,
    SourceTally,
)
from dns_log_analyzer.nextdns import (
    iter_nextdns,
    load_nextdns_frame,
    normalize_status,
    parse_timestamp,
    read_nextdns,
    resolve_columns,
)


def frame_from(text: str):
    return load_nextdns_frame(io.BytesIO(text.encode("utf-8")))


class TestNormalizeStatus:

    @pytest.mark.parametrize("raw", ["blocked", "Blocked", "BLOCKED", " blocked ", "true", "1"])
    def test_blocked_spellings(self, raw):
        assert normalize_status(raw) == STATUS_BLOCKED

    @pytest.mark.parametrize("raw", ["allowed", "Default", "false", "0", "relayed"])
    def test_allowed_spellings(self, raw):
        assert normalize_status(raw) == STATUS_ALLOWED

    @pytest.mark.parametrize("raw", [None, "", "weird", "error"])
    def test_everything_else_is_unknown(self, raw):
        assert normalize_status(raw) == STATUS_UNKNOWN


class TestParseTimestamp:

    def test_zulu_becomes_naive_utc(self):
        assert parse_timestamp("2024-03-01T10:15:02.123Z") == datetime(2024, 3, 1, 10, 15, 2, 123000)

    def test_offset_is_converted_to_utc(self):
        assert parse_timestamp("2024-03-01T12:15:02+02:00") == datetime(2024, 3, 1, 10, 15, 2)

    def test_epoch_seconds_and_millis(self):
        assert parse_timestamp("1709288102") == datetime(2024, 3, 1, 10, 15, 2)
        assert parse_timestamp("1709288102000") == datetime(2024, 3, 1, 10, 15, 2)

    @pytest.mark.parametrize("raw", [None, "", "not-a-time", "99999999999999999999"])
    def test_garbage_raises(self, raw):
        with pytest.raises(ValueError):
            parse_timestamp(raw)


class TestResolveColumns:

    def test_aliases_are_case_insensitive(self):
        columns = resolve_columns(["Timestamp", "Query Value", "Client IP", "Query Type"])
        assert columns == {
            "timestamp": "Timestamp",
            "domain": "Query Value",
            "client_ip": "Client IP",
            "query_type": "Query Type",
        }

    def test_missing_required_column(self):
        with pytest.raises(SourceFormatError) as excinfo:
            resolve_columns(["timestamp", "domain"])
        assert excinfo.value.details["missing"] == ["client_ip"]


class TestIterNextdns:

    def test_quoted_comma_does_not_shift_columns(self):
        frame = frame_from(
            "timestamp,domain,reasons,status,client_ip\n"
            '2024-03-01T10:15:02Z,ads.example.com,"note, with comma",Blocked,10.0.0.5\n'
        )
        tally = SourceTally(source=SOURCE_NEXTDNS)
        (rec,) = list(iter_nextdns(frame, tally))

        assert rec.query_domain == "ads.example.com"
        assert rec.status == STATUS_BLOCKED
        assert rec.client_ip == "10.0.0.5"

    def test_sample_export(self, nextdns_file):
        frame = load_nextdns_frame(nextdns_file)
        tally = SourceTally(source=SOURCE_NEXTDNS)
        records = list(iter_nextdns(frame, tally))

        assert [r.query_domain for r in records] == [
            "ads.doubleclick.net",
            "www.example.com",
            "cdn.example.com",
            "tracker.example.org",
        ]
        assert [r.status for r in records] == [
            STATUS_BLOCKED, STATUS_ALLOWED, STATUS_BLOCKED, STATUS_BLOCKED,
        ]
        assert records[0].base_domain == "doubleclick.net"
        assert records[0].timestamp == datetime(2024, 3, 1, 10, 15, 2)
        assert records[1].query_type == "AAAA"
        assert tally.lines == 6
        assert tally.parsed == 4
        assert tally.skipped == 1
        assert tally.dropped == 1

    def test_missing_query_type_is_unknown(self):
        frame = frame_from("timestamp,domain,client_ip\n2024-03-01T10:15:02Z,example.com,10.0.0.5\n")
        (rec,) = list(iter_nextdns(frame, SourceTally(source=SOURCE_NEXTDNS)))
        assert rec.query_type == "unknown"
        assert rec.status == STATUS_UNKNOWN

    def test_out_of_range_epoch_skips_only_that_row(self):
        frame = frame_from(
            "timestamp,domain,client_ip,status\n"
            "99999999999999999999,huge.example.com,10.0.0.1,blocked\n"
            "2024-03-01T10:15:02Z,ok.example.com,10.0.0.2,allowed\n"
        )
        tally = SourceTally(source=SOURCE_NEXTDNS)
        (rec,) = list(iter_nextdns(frame, tally))

        assert rec.query_domain == "ok.example.com"
        assert tally.parsed == 1
        assert tally.skipped == 1

    def test_header_only_export(self):
        frame = frame_from("timestamp,domain,client_ip,status\n")
        tally = SourceTally(source=SOURCE_NEXTDNS)
        assert list(iter_nextdns(frame, tally)) == []
        assert tally.lines == 0


class TestReadNextdns:

    def test_reads_file(self, nextdns_file):
        records, tally = read_nextdns(nextdns_file)
        assert len(records) == 4
        assert tally.source == SOURCE_NEXTDNS

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceUnavailableError):
            read_nextdns(tmp_path / "missing.csv")

    def test_wrong_header(self, tmp_path):
        path = tmp_path / "other.csv"
        path.write_text("foo,bar\n1,2\n", encoding="utf-8")
        with pytest.raises(SourceFormatError):
            read_nextdns(path)

    def test_unbalanced_quote_keeps_the_other_rows(self, tmp_path):
        path = tmp_path / "broken.csv"
        path.write_text(
            "timestamp,domain,client_ip,status\n"
            '2024-03-01T10:00:00Z,"a.example.com,10.0.0.1,blocked\n'
            "2024-03-01T11:00:00Z,b.example.com,10.0.0.2,allowed\n"
            "2024-03-01T12:00:00Z,c.example.com,10.0.0.3,blocked\n",
            encoding="utf-8",
        )
        records, tally = read_nextdns(path)

        by_domain = {r.query_domain: r for r in records}
        assert by_domain["b.example.com"].client_ip == "10.0.0.2"
        assert by_domain["c.example.com"].status == STATUS_BLOCKED
        assert tally.lines == 3

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("", encoding="utf-8")
        records, tally = read_nextdns(path)
        assert records == []
        assert tally.lines == 0

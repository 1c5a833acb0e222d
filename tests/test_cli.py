"""Tests for the command line entry point."""

import json

from dns_log_analyzer.cli import build_specs, find_log_file, main, parse_args
from dns_log_analyzer.models import SOURCE_NEXTDNS
from dns_log_analyzer.pipeline import DEFAULT_WORKERS


def test_writes_analysis_and_report(tmp_path, routeros_file, nextdns_file, blocklist_file, capsys):
    output = tmp_path / "analysis.json"
    report = tmp_path / "summary.txt"

    code = main([
        "--routeros", str(routeros_file),
        "--nextdns", str(nextdns_file),
        "--blocklist", str(blocklist_file),
        "--year", "2024",
        "--output", str(output),
        "--report", str(report),
        "--quiet",
    ])

    assert code == 0
    document = json.loads(output.read_text(encoding="utf-8"))
    assert document["stats"]["total_queries"] == 8
    assert len(document["suspicious_domains"]) == 3

    summary = report.read_text(encoding="utf-8")
    assert "2 skipped" in summary
    assert "1 patterns discarded" in summary
    assert "Done! Analysis saved to" in capsys.readouterr().out


def test_missing_blocklist_is_fatal(tmp_path, nextdns_file):
    output = tmp_path / "analysis.json"

    code = main([
        "--nextdns", str(nextdns_file),
        "--blocklist", str(tmp_path / "nope.txt"),
        "--output", str(output),
        "--quiet",
    ])

    assert code == 1
    assert not output.exists()


def test_no_readable_source_writes_nothing(tmp_path):
    output = tmp_path / "analysis.json"
    code = main(["--routeros", str(tmp_path / "missing.log"), "-o", str(output), "--quiet"])
    assert code == 1
    assert not output.exists()


def test_no_sources_at_all(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert main(["--quiet"]) == 1
    assert "No log files" in capsys.readouterr().out


def test_autodetects_csv_in_working_directory(nextdns_file, monkeypatch):
    monkeypatch.chdir(nextdns_file.parent)

    assert find_log_file().name == nextdns_file.name
    specs = build_specs(parse_args([]))
    assert [s.source for s in specs] == [SOURCE_NEXTDNS]


def test_match_on_option():
    args = parse_args(["--match-on", "base", "-n", "x.csv"])
    assert args.match_on == "base"
    assert args.workers == 1


def test_report_parent_directory_is_created(tmp_path, nextdns_file):
    output = tmp_path / "analysis.json"
    report = tmp_path / "reports" / "nested" / "summary.txt"

    code = main(["--nextdns", str(nextdns_file), "-o", str(output), "--report", str(report), "--quiet"])

    assert code == 0
    assert output.exists()
    assert "DNS LOG ANALYSIS SUMMARY" in report.read_text(encoding="utf-8")


def test_workers_default_follows_pipeline():
    assert parse_args([]).workers == DEFAULT_WORKERS

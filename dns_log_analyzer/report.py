"""
End-of-run summary - what got read, what got skipped, who the chattiest devices were.
"""

from datetime import datetime, timezone

from dns_log_analyzer.pipeline import AnalysisRun

TOP_N = 10  # how many devices/domains the summary lists


def render_summary(run: AnalysisRun) -> str:
    """Plain text summary of a run, for the console and the optional --report file."""
    lines = []

    def w(text=""):
        lines.append(text)

    stats = run.result.stats
    time_range = stats.time_range

    w("=" * 80)
    w("DNS LOG ANALYSIS SUMMARY")
    if time_range.start is not None:
        w(f"Date Range: {time_range.start} to {time_range.end} "
          f"({time_range.duration_hours:.1f} h)")
    w(f"Generated: {datetime.now(timezone.utc).isoformat()}")
    w(f"Total Queries: {stats.total_queries:,}")
    w(f"Unique Domains: {stats.unique_domains:,} "
      f"({stats.unique_base_domains:,} base domains)")
    w(f"Devices: {stats.unique_ips:,}")
    w("=" * 80)
    w()

    w("SOURCES")
    w("-" * 40)
    for tally in run.tallies:
        if tally.failed:
            w(f"  {tally.source:<9} {tally.path} -- FAILED: {tally.error}")
            continue
        w(f"  {tally.source:<9} {tally.path}")
        w(f"            {tally.parsed:>8,} parsed, {tally.skipped:,} skipped, "
          f"{tally.dropped:,} dropped of {tally.lines:,} lines")
    w()

    w("BLOCKLIST")
    w("-" * 40)
    w(f"  {len(run.blocklist.patterns):>8,} patterns loaded")
    w(f"  {len(run.blocklist.rejected):>8,} patterns discarded")
    for rejected in run.blocklist.rejected:
        w(f"           {rejected.source!r}: {rejected.error}")
    w(f"  {len(run.result.suspicious_domains):>8,} suspicious queries")
    w()

    w(f"TOP {TOP_N} DEVICES")
    w("-" * 40)
    for device in run.result.devices[:TOP_N]:
        w(f"  {device.query_count:>8,} queries "
          f"({device.blocked_percentage:>5.1f}% blocked) -- {device.ip}")
    w()

    w(f"TOP {TOP_N} BASE DOMAINS")
    w("-" * 40)
    for entry in run.result.domain_to_ips[:TOP_N]:
        w(f"  {entry.total_lookups:>8,} lookups from {entry.unique_ips:,} devices -- {entry.domain}")
    w("=" * 80)

    return "\n".join(lines)

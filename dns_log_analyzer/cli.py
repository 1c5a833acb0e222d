"""
DNS Log Analyzer - command line entry point.

Point it at RouterOS logs and/or NextDNS CSV exports (plus an optional regex
blocklist) and it writes one JSON analysis for the dashboard to pick up.
"""

import argparse
import glob
import logging
import sys
from datetime import datetime
from pathlib import Path

from dns_log_analyzer.blocklist import CompiledBlocklist, MatchTarget, read_blocklist
from dns_log_analyzer.exceptions import AnalyzerError
from dns_log_analyzer.models import SOURCE_NEXTDNS, SOURCE_ROUTEROS
from dns_log_analyzer.pipeline import DEFAULT_WORKERS, AnalyzerOptions, SourceSpec, run_analysis
from dns_log_analyzer.report import render_summary
from dns_log_analyzer.serialize import to_document, write_document

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def find_log_file() -> Path | None:
    """
    Sniffs out the first CSV in the current directory.
    NextDNS exports tend to be short hex names like 'a1b2c3.csv'.
    """
    csv_files = sorted(glob.glob("*.csv"))
    return Path(csv_files[0]) if csv_files else None


def parse_args(argv=None):
    """Sets up the command line arguments, nothing fancy."""
    parser = argparse.ArgumentParser(
        prog="dns-log-analyzer",
        description="Analyse RouterOS and NextDNS query logs into a JSON report",
    )
    parser.add_argument(
        "--routeros", "-r",
        type=Path,
        action="append",
        default=[],
        metavar="PATH",
        help="RouterOS log file (repeatable)",
    )
    parser.add_argument(
        "--nextdns", "-n",
        type=Path,
        action="append",
        default=[],
        metavar="PATH",
        help="NextDNS CSV export (repeatable; auto-detects a *.csv if no source given)",
    )
    parser.add_argument(
        "--blocklist", "-b",
        type=Path,
        help="File with one regex per line; '#' starts a comment",
    )
    parser.add_argument(
        "--output", "-o",
        type=Path,
        help="Output JSON path (auto-generated if not specified)",
    )
    parser.add_argument(
        "--match-on",
        choices=[target.value for target in MatchTarget],
        default=MatchTarget.QUERY.value,
        help="Match the blocklist against the full query, the base domain, or both "
             "(default: query)",
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=DEFAULT_WORKERS,
        help=f"Parse this many files in parallel (default: {DEFAULT_WORKERS})",
    )
    parser.add_argument(
        "--year",
        type=int,
        help="Year for RouterOS lines that don't carry one (default: current year)",
    )
    parser.add_argument(
        "--report",
        type=Path,
        help="Also save the end-of-run summary to this text file",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    verbosity.add_argument("--quiet", "-q", action="store_true", help="Warnings and errors only")
    return parser.parse_args(argv)


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def build_specs(args) -> list[SourceSpec]:
    specs = [SourceSpec(SOURCE_ROUTEROS, path) for path in args.routeros]
    specs += [SourceSpec(SOURCE_NEXTDNS, path) for path in args.nextdns]
    if not specs:
        found = find_log_file()
        if found:
            specs.append(SourceSpec(SOURCE_NEXTDNS, found))
    return specs


def main(argv=None):
    """Entry point - parses args, loads logs, writes the analysis."""
    args = parse_args(argv)
    setup_logging(args.verbose, args.quiet)

    specs = build_specs(args)
    if not specs:
        print("Error: No log files given and no CSV found. Use --routeros or --nextdns.")
        return 1

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M")
    output_file = args.output or Path(f"DNS_Analysis_{timestamp}.json")

    options = AnalyzerOptions(
        match_on=MatchTarget(args.match_on),
        workers=max(1, args.workers),
        routeros_year=args.year,
    )

    try:
        blocklist = read_blocklist(args.blocklist) if args.blocklist else CompiledBlocklist()

        for spec in specs:
            print(f"Loading {spec.source} log {spec.path}...")
        print("Analysing logs...")
        run = run_analysis(specs, blocklist, options)

        print("Writing analysis...")
        write_document(to_document(run.result), output_file)
    except AnalyzerError as exc:
        logger.debug("Run failed: %s", exc.to_dict())
        print(f"Error: {exc.message}")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted - nothing written.")
        return 130

    summary = render_summary(run)
    print(summary)
    if args.report:
        try:
            args.report.parent.mkdir(parents=True, exist_ok=True)
            args.report.write_text(summary + "\n", encoding="utf-8")
        except OSError as exc:
            logger.error("Could not save summary to %s: %s", args.report, exc)
            print(f"Warning: summary not saved to {args.report}: {exc}")

    print(f"Done! Analysis saved to: {output_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

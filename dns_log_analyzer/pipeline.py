"""
Glues the pieces together: parse every source, merge, tag against the
blocklist, aggregate.

Sources are parsed independently (in threads if asked) and only merged once
they are all done, so there is no shared accumulator to guard and no result
that depends on which file finished first.
"""

import dataclasses
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

from dns_log_analyzer.aggregate import aggregate
from dns_log_analyzer.blocklist import CompiledBlocklist, MatchTarget, match
from dns_log_analyzer.exceptions import (
    NoUsableSourceError,
    SourceFormatError,
    SourceUnavailableError,
)
from dns_log_analyzer.models import (
    SOURCE_NEXTDNS,
    SOURCE_ROUTEROS,
    AggregationResult,
    LogRecord,
    SourceTally,
)
from dns_log_analyzer.nextdns import read_nextdns
from dns_log_analyzer.routeros import read_routeros

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 1


@dataclass(frozen=True)
class SourceSpec:
    source: str  # 'routeros' or 'nextdns'
    path: Path


@dataclass(frozen=True)
class AnalyzerOptions:
    match_on: MatchTarget = MatchTarget.QUERY
    workers: int = DEFAULT_WORKERS
    routeros_year: int | None = None  # year for RouterOS lines that omit it


@dataclass
class AnalysisRun:
    result: AggregationResult
    tallies: list[SourceTally]
    blocklist: CompiledBlocklist = field(default_factory=CompiledBlocklist)


def load_source(spec: SourceSpec, options: AnalyzerOptions) -> tuple[list[LogRecord], SourceTally]:
    """
    Parses one file. A file we can't read costs us that source only -
    the error lands in the tally and the run carries on without it.
    """
    try:
        if spec.source == SOURCE_ROUTEROS:
            return read_routeros(spec.path, year=options.routeros_year)
        if spec.source == SOURCE_NEXTDNS:
            return read_nextdns(spec.path)
    except (SourceUnavailableError, SourceFormatError) as exc:
        logger.error("Skipping %s source %s: %s", spec.source, spec.path, exc.message)
        return [], SourceTally(source=spec.source, path=spec.path, error=exc.message)

    raise ValueError(f"Unsupported log source: {spec.source}")


def collect_records(
    specs: Sequence[SourceSpec], options: AnalyzerOptions
) -> tuple[list[LogRecord], list[SourceTally]]:
    """Parses every source, in parallel when workers > 1, then merges in the order given."""
    if options.workers > 1 and len(specs) > 1:
        with ThreadPoolExecutor(max_workers=options.workers) as pool:
            outcomes = list(pool.map(lambda spec: load_source(spec, options), specs))
    else:
        outcomes = [load_source(spec, options) for spec in specs]

    records: list[LogRecord] = []
    tallies: list[SourceTally] = []
    for source_records, tally in outcomes:
        records.extend(source_records)
        tallies.append(tally)
    return records, tallies


def match_record(
    record: LogRecord, blocklist: CompiledBlocklist, match_on: MatchTarget
) -> str | None:
    """Checks one record against the blocklist using the configured target."""
    if match_on == MatchTarget.BASE:
        return match(record.base_domain, blocklist)
    hit = match(record.query_domain, blocklist)
    if hit is None and match_on == MatchTarget.BOTH:
        hit = match(record.base_domain, blocklist)
    return hit


def annotate(
    records: Iterable[LogRecord],
    blocklist: CompiledBlocklist,
    match_on: MatchTarget = MatchTarget.QUERY,
) -> list[LogRecord]:
    """Returns copies of the records with matched_pattern filled in where the blocklist hits."""
    if not blocklist.patterns:
        return list(records)
    return [
        dataclasses.replace(record, matched_pattern=match_record(record, blocklist, match_on))
        for record in records
    ]


def run_analysis(
    specs: Sequence[SourceSpec],
    blocklist: CompiledBlocklist | None = None,
    options: AnalyzerOptions | None = None,
) -> AnalysisRun:
    """
    The whole batch: parse, merge, annotate, aggregate.

    Raises NoUsableSourceError when every source failed - an analysis built
    from nothing would just look like a quiet network.
    """
    options = options or AnalyzerOptions()
    if blocklist is None:
        blocklist = CompiledBlocklist()

    records, tallies = collect_records(specs, options)
    if tallies and all(tally.failed for tally in tallies):
        raise NoUsableSourceError(
            "None of the log sources could be read",
            details={"errors": [tally.error for tally in tallies]},
        )

    records = annotate(records, blocklist, options.match_on)
    logger.info(
        "Aggregating %d records from %d sources", len(records), len(tallies)
    )
    result = aggregate(records, sources=[spec.source for spec in specs])
    return AnalysisRun(result=result, tallies=tallies, blocklist=blocklist)

"""
Blocklist matching.

Patterns are plain regexes, compiled once, tried in the order they were given.
The first hit wins and its original text is what ends up in the report as
the "matchedPattern".
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable

from dns_log_analyzer.exceptions import BlocklistError

logger = logging.getLogger(__name__)

COMMENT_MARKER = "#"


class MatchTarget(str, Enum):
    """Which part of a query gets tested against the blocklist."""

    QUERY = "query"  # full query domain
    BASE = "base"  # reduced base domain
    BOTH = "both"  # full query first, then base domain


@dataclass(frozen=True)
class BlocklistPattern:
    source: str
    regex: re.Pattern


@dataclass(frozen=True)
class RejectedPattern:
    source: str
    error: str


@dataclass(frozen=True)
class CompiledBlocklist:
    patterns: tuple[BlocklistPattern, ...] = ()
    rejected: tuple[RejectedPattern, ...] = ()

    def __len__(self) -> int:
        return len(self.patterns)


def load_blocklist(patterns: Iterable[str]) -> CompiledBlocklist:
    """
    Compiles the given patterns, keeping their order.

    A broken regex doesn't sink the whole list - it gets reported, set aside
    in `rejected`, and the remaining patterns still load.
    """
    compiled = []
    rejected = []
    for source in patterns:
        try:
            regex = re.compile(source, re.IGNORECASE)
        except re.error as exc:
            logger.warning("Discarding invalid blocklist pattern %r: %s", source, exc)
            rejected.append(RejectedPattern(source=source, error=str(exc)))
            continue
        compiled.append(BlocklistPattern(source=source, regex=regex))

    return CompiledBlocklist(patterns=tuple(compiled), rejected=tuple(rejected))


def read_blocklist(path: Path) -> CompiledBlocklist:
    """One regex per line; blank lines and '#' comments are ignored."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise BlocklistError(
            f"Cannot read blocklist {path}: {exc}",
            details={"path": str(path)},
        ) from exc

    lines = (line.strip() for line in text.splitlines())
    blocklist = load_blocklist(
        line for line in lines if line and not line.startswith(COMMENT_MARKER)
    )
    logger.info(
        "Loaded %d blocklist patterns from %s (%d discarded)",
        len(blocklist.patterns), path, len(blocklist.rejected),
    )
    return blocklist


def match(domain: str | None, blocklist: CompiledBlocklist) -> str | None:
    """Returns the text of the first pattern that matches `domain`, or None."""
    if not domain:
        return None
    for pattern in blocklist.patterns:
        if pattern.regex.search(domain):
            return pattern.source
    return None

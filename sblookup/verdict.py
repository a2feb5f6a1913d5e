"""
Verdict formatting for sblookup.

Turns a per-URL LookupOutcome into the line a user sees: Safe and Unsafe
verdicts go to standard output, lookup failures go to standard error.
"""

from __future__ import annotations

from typing import Iterable, TextIO

from .outcomes import LookupFailed, LookupOutcome, Safe, ThreatMatch, Unsafe


def format_matches(matches: Iterable[ThreatMatch]) -> str:
    """Render the full match list, keeping the order the service returned."""
    return "[" + " ".join(str(m) for m in matches) + "]"


def verdict_line(url: str, outcome: LookupOutcome) -> str:
    if isinstance(outcome, Safe):
        return f"Safe URL: {url}"
    if isinstance(outcome, Unsafe):
        return f"Unsafe URL: {format_matches(outcome.matches)}"
    if isinstance(outcome, LookupFailed):
        return f"Lookup error: {outcome.error}"
    raise TypeError(f"unknown lookup outcome: {outcome!r}")


def emit_verdict(url: str, outcome: LookupOutcome, out: TextIO, err: TextIO) -> None:
    """
    Print the verdict for one URL.

    A failed lookup prints nothing to `out`; its diagnostic goes to `err`.
    """
    stream = err if isinstance(outcome, LookupFailed) else out
    print(verdict_line(url, outcome), file=stream)

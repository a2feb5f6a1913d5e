"""
Lookup outcomes and run-level aggregation for sblookup.

Each URL read from the input produces exactly one LookupOutcome. The run
keeps a single RunOutcome that only ever moves towards the more severe
state, and its final value is the process exit code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from functools import reduce
from typing import Iterable, List, Union

from pydantic import BaseModel


class RunOutcome(IntEnum):
    """Worst outcome seen so far. Values double as exit codes."""

    ALL_SAFE = 0
    SOME_UNSAFE = 1
    SOME_LOOKUP_FAILED = 128

    @property
    def exit_code(self) -> int:
        return int(self)


class ThreatMatch(BaseModel):
    """One reason the lookup service considers a URL unsafe."""

    pattern: str
    threat_type: str
    platform_type: str
    threat_entry_type: str

    def __str__(self) -> str:
        return (
            f"{{{self.pattern} "
            f"{{{self.threat_type} {self.platform_type} {self.threat_entry_type}}}}}"
        )


@dataclass(frozen=True)
class Safe:
    severity: RunOutcome = field(default=RunOutcome.ALL_SAFE, init=False)


@dataclass(frozen=True)
class Unsafe:
    matches: List[ThreatMatch]
    severity: RunOutcome = field(default=RunOutcome.SOME_UNSAFE, init=False)


@dataclass(frozen=True)
class LookupFailed:
    error: Exception
    severity: RunOutcome = field(default=RunOutcome.SOME_LOOKUP_FAILED, init=False)


LookupOutcome = Union[Safe, Unsafe, LookupFailed]


def merge_outcome(state: RunOutcome, observed: RunOutcome) -> RunOutcome:
    """Most severe wins: SOME_LOOKUP_FAILED > SOME_UNSAFE > ALL_SAFE."""
    return max(state, observed)


def fold_outcomes(severities: Iterable[RunOutcome]) -> RunOutcome:
    """Fold observed severities, in any order, into the final run outcome."""
    return reduce(merge_outcome, severities, RunOutcome.ALL_SAFE)

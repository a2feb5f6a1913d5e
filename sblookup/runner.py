from __future__ import annotations

import logging
from typing import BinaryIO, Iterator, TextIO, Union

from .lookup import ThreatLookup, lookup_url
from .outcomes import RunOutcome, fold_outcomes
from .reader import InputReadError, read_urls
from .verdict import emit_verdict

logger = logging.getLogger(__name__)


def _severities(
    stream: Union[BinaryIO, TextIO], client: ThreatLookup, out: TextIO, err: TextIO
) -> Iterator[RunOutcome]:
    try:
        for url in read_urls(stream):
            outcome = lookup_url(client, url)
            emit_verdict(url, outcome, out, err)
            yield outcome.severity
    except InputReadError as exc:
        print(f"Unable to read input: {exc}", file=err)
        yield RunOutcome.SOME_LOOKUP_FAILED


def check_stream(
    stream: Union[BinaryIO, TextIO], client: ThreatLookup, out: TextIO, err: TextIO
) -> RunOutcome:
    """
    Check every URL in `stream`, in order, one at a time.

    Returns the run outcome whose value is the process exit code.
    """
    state = fold_outcomes(_severities(stream, client, out, err))
    logger.debug("Run outcome %s", state.name)
    return state

from __future__ import annotations

from typing import List, Protocol, Sequence

from sblookup.outcomes import LookupFailed, LookupOutcome, Safe, ThreatMatch, Unsafe
from sblookup.safebrowsing.client import SafeBrowsingError


class ThreatLookup(Protocol):
    def lookup_urls(self, urls: Sequence[str]) -> List[List[ThreatMatch]]:
        ...


def lookup_url(client: ThreatLookup, url: str) -> LookupOutcome:
    """
    Look up a single URL and classify the response.

    Returns:
        Safe            -- the service returned no matches
        Unsafe(matches) -- one or more matches, in service order
        LookupFailed    -- the call itself failed
    """
    try:
        results = client.lookup_urls([url])
    except SafeBrowsingError as exc:
        return LookupFailed(error=exc)

    if len(results) != 1:
        return LookupFailed(
            error=SafeBrowsingError(
                f"expected 1 result for 1 URL, got {len(results)}"
            )
        )

    matches = list(results[0])
    if matches:
        return Unsafe(matches=matches)
    return Safe()

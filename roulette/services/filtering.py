# roulette/services/filtering.py
# Price-range filter and name dedup, both order-preserving.

from typing import Iterable, List, Optional

from roulette.models.dto import Candidate, PriceRange


def filter_by_price(candidates: Iterable[Candidate], price_range: Optional[PriceRange]) -> List[Candidate]:
    """Keep candidates whose price level is within the inclusive range. No range, no filtering."""
    if price_range is None:
        return list(candidates)
    return [c for c in candidates if price_range.contains(c.price_level)]


def dedupe_by_name(candidates: Iterable[Candidate]) -> List[Candidate]:
    """First occurrence of each name wins; later duplicates are dropped."""
    seen = set()
    out: List[Candidate] = []
    for candidate in candidates:
        if candidate.name not in seen:
            seen.add(candidate.name)
            out.append(candidate)
    return out


def filter_and_dedupe(candidates: Iterable[Candidate], price_range: Optional[PriceRange]) -> List[Candidate]:
    return dedupe_by_name(filter_by_price(candidates, price_range))

from __future__ import annotations

import asyncio
import re
from typing import Iterable

from loguru import logger

from life_encyclopedia.config import settings
from life_encyclopedia.models.person import YEAR_PATTERN, DatePrecision
from life_encyclopedia.models.research import EventVerification
from life_encyclopedia.services import source_filter
from life_encyclopedia.tools import tavily_search
from life_encyclopedia.tools.tavily_search import SearchResult

MONTH_NAMES = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)
APPROXIMATE_MARKERS = ("circa", "around", "approximately", "~")
DAY_PATTERN = re.compile(r"\b[0-9]{1,2}\b")


def extract_year(date: str) -> str:
    """First plausible year in `date`, or the date itself when it has none."""
    match = YEAR_PATTERN.search(date)
    return match.group(0) if match else date


def determine_date_precision(date: str) -> DatePrecision:
    trimmed = date.strip().lower()

    if "s" in trimmed and len(trimmed) <= 6:
        return DatePrecision.DECADE
    if any(marker in trimmed for marker in APPROXIMATE_MARKERS):
        return DatePrecision.APPROXIMATE

    has_month = any(month in trimmed for month in MONTH_NAMES)
    has_day = DAY_PATTERN.search(trimmed) is not None
    has_year = YEAR_PATTERN.search(trimmed) is not None

    if has_month and has_day and has_year:
        return DatePrecision.EXACT
    if has_month and has_year:
        return DatePrecision.MONTH_YEAR
    if has_year:
        return DatePrecision.YEAR_ONLY
    return DatePrecision.UNKNOWN


def count_date_matches(results: Iterable[SearchResult], date: str) -> int:
    year = extract_year(date)
    literal = date.lower()
    count = 0
    for result in results:
        content = result.content.lower()
        if year in content or literal in content:
            count += 1
    return count


def calculate_confidence(total_sources: int, date_matches: int) -> float:
    if total_sources <= 0:
        return 0.0

    confidence = settings.confidence_match_weight * (date_matches / total_sources)

    if date_matches >= 3:
        confidence += settings.confidence_bonus_three_matches
    elif date_matches == 2:
        confidence += settings.confidence_bonus_two_matches
    elif date_matches == 1:
        confidence += settings.confidence_bonus_one_match

    if total_sources >= settings.confidence_breadth_min_sources:
        confidence += settings.confidence_breadth_bonus

    return round(min(1.0, confidence), 4)


def find_date_discrepancies(results: Iterable[SearchResult], expected_date: str) -> list[str]:
    expected_year = extract_year(expected_date)
    if not expected_year.isdigit():
        return []
    expected = int(expected_year)
    window = settings.discrepancy_window_years

    discrepancies: list[str] = []
    for result in results:
        for match in YEAR_PATTERN.finditer(result.content):
            found = int(match.group(0))
            if found == expected or abs(found - expected) > window:
                continue
            message = f"Source '{result.title}' mentions year {found} instead of {expected_year}"
            if message not in discrepancies:
                discrepancies.append(message)
    return discrepancies[: settings.max_discrepancies]


class FactVerifier:
    """Re-checks generated events against an independent search pass."""

    name = "verifier"

    async def verify_event(self, name: str, title: str, date: str) -> EventVerification:
        results = await tavily_search.search(
            f"{name} {title} {date}",
            search_depth="advanced",
            max_results=settings.verification_max_results,
        )

        authoritative = source_filter.filter_authoritative(results)
        sources = source_filter.deduplicate(source_filter.results_to_sources(authoritative))

        confidence = calculate_confidence(len(authoritative), count_date_matches(results, date))
        discrepancies = find_date_discrepancies(results, date)

        return EventVerification(
            event=title,
            date=date,
            is_verified=confidence >= settings.verified_confidence_threshold and not discrepancies,
            confidence=confidence,
            matching_sources=sources,
            date_precision=determine_date_precision(date),
            discrepancies=discrepancies,
        )

    async def batch_verify(
        self,
        name: str,
        events: list[tuple[str, str]],
    ) -> list[EventVerification]:
        """Verify `(title, date)` pairs in fixed-size concurrent batches.

        Results come back in input order. A failing call inside a batch
        propagates; the pipeline treats that as a degraded verification stage.
        """
        batch_size = max(settings.verification_batch_size, 1)
        verifications: list[EventVerification] = []

        for start in range(0, len(events), batch_size):
            batch = events[start : start + batch_size]
            try:
                async with asyncio.TaskGroup() as group:
                    tasks = [
                        group.create_task(self.verify_event(name, title, date))
                        for title, date in batch
                    ]
            except ExceptionGroup as errors:
                # Siblings are already cancelled; surface the first failure.
                raise errors.exceptions[0]
            verifications.extend(task.result() for task in tasks)
            if start + batch_size < len(events):
                await asyncio.sleep(settings.verification_batch_delay_seconds)

        accepted = sum(1 for v in verifications if v.is_verified)
        logger.debug(f"Verified {len(verifications)} event(s) for {name}: {accepted} accepted")
        return verifications

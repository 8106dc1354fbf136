from __future__ import annotations

import re

from loguru import logger

from life_encyclopedia import llm_client
from life_encyclopedia.agents.discovery import STRONG_FICTIONAL_CUES
from life_encyclopedia.config import settings
from life_encyclopedia.models.person import PersonCandidate
from life_encyclopedia.services.json_repair import parse_json_object
from life_encyclopedia.services.prompt_store import render_prompt
from life_encyclopedia.tools import tavily_search
from life_encyclopedia.tools.tavily_search import SearchResult

WIKIPEDIA_DOMAINS = ["en.wikipedia.org", "wikipedia.org"]
TITLE_SEPARATORS = (" - ", " | ", " — ", " – ", ":")
DESCRIPTION_CHARS = 200
SUMMARY_CHARS = 220

DISALLOWED_NAME_TERMS = (
    "wikipedia",
    "list of",
    "history of",
    "dynasty",
    "timeline",
    "category:",
    "portal:",
)

FICTIONAL_QUALIFIERS = (
    "(hero)",
    "(character)",
    "(comics)",
    "(fiction)",
    "(novel)",
    "(film)",
    "(tv series)",
    "(anime)",
    "(manga)",
    "(video game)",
    "(mythology)",
    "(folklore)",
    "(fairy tale)",
    "(legend)",
    "(marvel)",
    "(dc comics)",
    "(disney)",
    "(star wars)",
)

NON_PERSON_INDICATORS = (
    "is a city",
    "is a town",
    "is a village",
    "is a county",
    "is a municipality",
    "is a country",
    "is a state",
    "is a province",
    "is a region",
    "is a district",
    "is a river",
    "is a mountain",
    "is a lake",
    "is a building",
    "is a company",
    "is a brand",
    "is a band",
    "is a song",
    "is a film",
    "is a book",
    "is a novel",
    "is an album",
    "is a television",
    "is a tv",
    "is a genus",
    "is a species",
    "is a type of",
    "is a family of",
    "is a term",
    "is a concept",
    "is an event",
    "is a holiday",
    "is a celebration",
    "is an organization",
    "is a school",
    "is a university",
    "is a college",
    "is a hospital",
    "census-designated place",
    "unincorporated community",
    "populated place",
    "geographic",
    "coordinates",
)

PERSON_INDICATORS = (
    "was born", "born on", "born in", "(born ", "date of birth",
    "died on", "died in", "date of death", "(died ",
    "biography", "early life", "personal life", "later life",
    "career", "education",
    "was a ", "was an ", "is a ", "is an ",
    "graduated from", "attended", "married", "children",
    "politician", "scientist", "artist", "author", "writer",
    "musician", "composer", "actor", "actress", "director",
    "philosopher", "mathematician", "physicist", "chemist",
    "engineer", "architect", "physician", "surgeon", "nurse",
    "general", "admiral", "colonel", "soldier", "military",
    "king", "queen", "emperor", "empress", "prince", "princess",
    "president", "prime minister", "governor", "senator", "mayor",
    "journalist", "explorer", "inventor", "entrepreneur",
    "businessman", "businesswoman", "industrialist",
    "athlete", "player", "coach", "boxer", "wrestler",
    "painter", "sculptor", "photographer",
    "theologian", "priest", "bishop", "pope", "rabbi", "imam",
    "activist", "reformer", "revolutionary",
    "professor", "researcher", "historian", "economist",
    "lawyer", "judge", "chief justice",
    "philanthropist", "humanitarian",
    "singer", "rapper", "guitarist", "drummer",
    "ceo of", "founder of", "co-founder",
    "nobel", "pulitzer", "grammy", "oscar", "emmy", "award",
)

DESCRIPTION_VERBS = ("was ", "is ", "were ", "served ", "became ", "founded ", "known ", "regarded ")

_DASH = r"[–\-—]"
_LIFESPAN_PATTERNS = (
    (re.compile(rf"\(\s*(\d{{3,4}})\s*{_DASH}\s*(\d{{3,4}})\s*\)", re.IGNORECASE), "range"),
    (re.compile(rf"\(\s*(\d{{3,4}})\s*{_DASH}\s*present\s*\)", re.IGNORECASE), "present"),
    (re.compile(r"born\s+(\d{3,4}).*?died\s+(\d{3,4})", re.IGNORECASE | re.DOTALL), "range"),
    (re.compile(r"\(born\s+(\d{3,4})\)", re.IGNORECASE), "born"),
    (
        re.compile(
            rf"\b(\d{{3,4}})\s*(BCE?|CE|BC|AD)\s*{_DASH}\s*(\d{{3,4}})\s*(BCE?|CE|BC|AD)?\b",
            re.IGNORECASE,
        ),
        "era",
    ),
)
_SENTENCE_END = re.compile(r"(?<=[.!?])")
_WHITESPACE = re.compile(r"\s+")


def candidate_name(title: str) -> str | None:
    candidate = title.strip()
    if not candidate:
        return None
    for separator in TITLE_SEPARATORS:
        if separator in candidate:
            candidate = candidate.split(separator, 1)[0]
            break
    candidate = candidate.replace('"', "").strip()
    return candidate if len(candidate) >= 3 else None


def is_likely_person_name(value: str) -> bool:
    lowered = value.strip().lower()
    if len(lowered) < 3:
        return False
    if any(term in lowered for term in DISALLOWED_NAME_TERMS):
        return False
    return not any(qualifier in lowered for qualifier in FICTIONAL_QUALIFIERS)


def is_likely_person_result(text: str) -> bool:
    """`text` is the lower-cased title and content of one hit."""
    if any(indicator in text for indicator in NON_PERSON_INDICATORS):
        return False
    return any(indicator in text for indicator in PERSON_INDICATORS)


def extract_lifespan(content: str) -> str | None:
    for pattern, kind in _LIFESPAN_PATTERNS:
        match = pattern.search(content)
        if not match:
            continue
        if kind == "range":
            return f"{match.group(1)} – {match.group(2)}"
        if kind == "present":
            return f"{match.group(1)} – present"
        if kind == "born":
            return f"b. {match.group(1)}"
        closing_era = f" {match.group(4).upper()}" if match.group(4) else ""
        return f"{match.group(1)} {match.group(2).upper()} – {match.group(3)}{closing_era}"
    return None


def _clip(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit].strip() + "..."


def extract_description(content: str, name: str) -> str:
    """First descriptive sentence mentioning the person, else a clipped snippet."""
    cleaned = _WHITESPACE.sub(" ", content.replace("\n", " ")).strip()
    sentences = [s.strip() for s in _SENTENCE_END.split(cleaned) if s.strip()]

    full_name = name.lower()
    last_name = full_name.split()[-1] if full_name.split() else full_name

    def mentions(sentence: str) -> bool:
        lowered = sentence.lower()
        return full_name in lowered or last_name in lowered

    for sentence in sentences:
        lowered = sentence.lower()
        if mentions(sentence) and len(sentence) >= 20 and any(v in lowered for v in DESCRIPTION_VERBS):
            return _clip(sentence, DESCRIPTION_CHARS)

    for sentence in sentences:
        if mentions(sentence) and len(sentence) >= 15:
            return _clip(sentence, DESCRIPTION_CHARS)

    return _clip(cleaned, SUMMARY_CHARS)


def relevance_score(name: str, query: str, source_score: float) -> float:
    normalized_name = name.lower()
    normalized_query = query.lower()
    score = source_score
    if normalized_name == normalized_query:
        score += 2.0
    if normalized_name.startswith(normalized_query):
        score += 1.2
    if normalized_query in normalized_name:
        score += 0.7
    return score


def normalize_name(name: str) -> str:
    return _WHITESPACE.sub(" ", name.strip().lower())


def _prefer(candidate: PersonCandidate, existing: PersonCandidate) -> bool:
    if candidate.relevance_score != existing.relevance_score:
        return candidate.relevance_score > existing.relevance_score
    if bool(candidate.years) != bool(existing.years):
        return bool(candidate.years)
    if len(candidate.summary) != len(existing.summary):
        return len(candidate.summary) > len(existing.summary)
    return candidate.name.lower() < existing.name.lower()


def deduplicate_by_name(candidates: list[PersonCandidate]) -> list[PersonCandidate]:
    by_name: dict[str, PersonCandidate] = {}
    for candidate in candidates:
        key = normalize_name(candidate.name)
        if not key:
            continue
        existing = by_name.get(key)
        if existing is None or _prefer(candidate, existing):
            by_name[key] = candidate
    return list(by_name.values())


def build_candidates(results: list[SearchResult], query: str) -> list[PersonCandidate]:
    lowered_query = query.lower()
    by_id: dict[str, PersonCandidate] = {}

    for result in results:
        if "wikipedia.org" not in result.url.lower():
            continue
        if lowered_query not in result.title.lower() and lowered_query not in result.content.lower():
            continue

        name = candidate_name(result.title)
        if name is None or not is_likely_person_name(name):
            continue

        text = f"{result.title} {result.content}".lower()
        if any(cue in text for cue in STRONG_FICTIONAL_CUES):
            continue
        if not is_likely_person_result(text):
            continue

        candidate = PersonCandidate(
            name=name,
            url=result.url,
            years=extract_lifespan(result.content),
            summary=extract_description(result.content, name),
            relevance_score=relevance_score(name, query, result.score),
        )
        existing = by_id.get(candidate.id)
        if existing is not None and existing.relevance_score >= candidate.relevance_score:
            continue
        by_id[candidate.id] = candidate

    unique = deduplicate_by_name(list(by_id.values()))
    return sorted(unique, key=lambda c: (-c.relevance_score, c.name.lower()))


async def search_people_candidates(query: str, limit: int = 20) -> list[PersonCandidate]:
    """Possible people matching an ambiguous name, best match first."""
    trimmed = query.strip()
    if not trimmed:
        return []

    safe_limit = max(1, min(limit, settings.candidate_max_results))
    results = await tavily_search.search(
        f"{trimmed} person biography",
        search_depth="basic",
        max_results=safe_limit * 2,
        include_domains=WIKIPEDIA_DOMAINS,
    )
    return build_candidates(results, trimmed)[:safe_limit]


async def generate_descriptions(candidates: list[PersonCandidate]) -> dict[str, str]:
    """Map of lower-cased name to a one-sentence description; empty on any failure."""
    if not candidates:
        return {}

    listing = "\n".join(
        f"{index}. {candidate.name}: {candidate.summary}"
        for index, candidate in enumerate(candidates, start=1)
    )
    try:
        text = await llm_client.generate(
            render_prompt("candidates.system_prompt"),
            render_prompt("candidates.user_prompt", candidates=listing),
            max_tokens=settings.description_max_tokens,
            caller="candidates",
            model=settings.classifier_model or None,
        )
        payload = parse_json_object(text)
    except Exception as exc:
        logger.warning(f"Candidate descriptions unavailable: {exc}")
        return {}

    descriptions: dict[str, str] = {}
    for item in payload.get("descriptions") or []:
        if not isinstance(item, dict):
            continue
        name = str(item.get("name") or "").strip().lower()
        description = str(item.get("description") or "").strip()
        if name and description:
            descriptions[name] = description
    return descriptions


async def search_with_descriptions(query: str, limit: int = 20) -> list[PersonCandidate]:
    """Candidate search with model descriptions filled in where available."""
    candidates = await search_people_candidates(query, limit)
    descriptions = await generate_descriptions(candidates)
    return [
        candidate.model_copy(update={"description": descriptions.get(candidate.name.strip().lower())})
        for candidate in candidates
    ]

from __future__ import annotations

from life_encyclopedia import llm_client
from life_encyclopedia.config import settings
from life_encyclopedia.models.person import FilterMetadata, Person
from life_encyclopedia.services.json_repair import parse_json_object
from life_encyclopedia.services.prompt_store import render_prompt

MAX_EVENTS_IN_PROMPT = 10


def build_user_prompt(person: Person, additional_context: str = "") -> str:
    events = ""
    if person.events:
        lines = [f"- {event.date}: {event.title}" for event in person.events[:MAX_EVENTS_IN_PROMPT]]
        events = "\nKey Life Events:\n" + "\n".join(lines)

    context = f"\nAdditional Context:\n{additional_context}" if additional_context else ""

    return render_prompt(
        "classifier.user_prompt",
        name=person.name,
        birth=person.birth_date or "Unknown",
        death=person.death_date or "Living/Unknown",
        summary=person.summary,
        events=events,
        context=context,
    )


class FilterClassifier:
    """Assigns browse/filter metadata to a finished person record.

    Errors propagate; the pipeline treats classification as optional.
    """

    name = "classifier"

    def __init__(self, model: str | None = None):
        self.model = model or settings.classifier_model or None

    async def classify(self, person: Person, additional_context: str = "") -> FilterMetadata:
        text = await llm_client.generate(
            render_prompt("classifier.system_prompt"),
            build_user_prompt(person, additional_context),
            max_tokens=settings.classifier_max_tokens,
            caller=self.name,
            model=self.model,
        )
        return FilterMetadata.model_validate(parse_json_object(text))

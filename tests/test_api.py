"""Tests for API routes."""
import json
from unittest.mock import AsyncMock, patch

import pytest

from life_encyclopedia.errors import (
    FictionalSubjectError,
    RateLimitExceededError,
    StorageNotConfiguredError,
    StorageRequestError,
)
from life_encyclopedia.agents.classifier import FilterClassifier
from life_encyclopedia.models.filters import Domain
from life_encyclopedia.models.person import FilterMetadata, Person, PersonCandidate
from life_encyclopedia.models.research import ResearchSummary, VerifiedPerson
from life_encyclopedia.models.schemas import PeoplePage
from life_encyclopedia.services import streaming


@pytest.fixture
def app():
    from life_encyclopedia.main import app
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient
    return TestClient(app)


class _FakePipeline:
    def __init__(self, events):
        self.events = events
        self.calls = []

    async def stream(self, name, config=None, cancel_token=None, *, preset="default"):
        self.calls.append((name, config, preset))
        for event in self.events:
            yield event


def _sse_events(body: str) -> list[tuple[str, dict]]:
    events = []
    for block in body.replace("\r\n", "\n").split("\n\n"):
        fields = dict(line.split(": ", 1) for line in block.splitlines() if ": " in line)
        if "event" in fields:
            events.append((fields["event"], json.loads(fields["data"])))
    return events


def _verified(name: str = "Ada Lovelace") -> VerifiedPerson:
    return VerifiedPerson(
        person=Person(name=name, summary="Mathematician."),
        all_sources=[],
        research_summary=ResearchSummary(0, 0, 0, 0),
    )


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "life-encyclopedia"


def test_research_streams_pipeline_events(app, client):
    from life_encyclopedia.api.deps import get_pipeline

    pipeline = _FakePipeline(
        [streaming.research_started("Ada Lovelace", "quick"), streaming.research_complete(_verified(), 12)]
    )
    app.dependency_overrides[get_pipeline] = lambda: pipeline

    response = client.post("/api/research", json={"name": " Ada Lovelace ", "preset": "quick"})

    assert response.status_code == 200
    events = _sse_events(response.text)
    assert [e for e, _ in events] == ["research_started", "research_complete"]
    assert events[1][1]["person"]["name"] == "Ada Lovelace"
    assert pipeline.calls[0][0] == "Ada Lovelace"
    assert pipeline.calls[0][2] == "quick"


def test_research_saves_completed_person(app, client):
    from life_encyclopedia.api.deps import get_pipeline

    app.dependency_overrides[get_pipeline] = lambda: _FakePipeline([streaming.research_complete(_verified())])
    stored = Person(id="uuid-1", name="Ada Lovelace", summary="Mathematician.")

    with patch("life_encyclopedia.api.routes.research.db.save_person", new=AsyncMock(return_value=stored)) as save:
        response = client.post("/api/research", json={"name": "Ada Lovelace", "save": True})

    save.assert_awaited_once()
    events = _sse_events(response.text)
    assert events[-1] == ("person_saved", {"id": "uuid-1", "name": "Ada Lovelace"})


def test_research_reports_storage_failure_as_event(app, client):
    from life_encyclopedia.api.deps import get_pipeline

    app.dependency_overrides[get_pipeline] = lambda: _FakePipeline([streaming.research_complete(_verified())])

    with patch(
        "life_encyclopedia.api.routes.research.db.save_person",
        new=AsyncMock(side_effect=StorageNotConfiguredError()),
    ):
        response = client.post("/api/research", json={"name": "Ada Lovelace", "save": True})

    event, data = _sse_events(response.text)[-1]
    assert event == "error"
    assert data["kind"] == "storage"


def test_research_streams_abort_errors(app, client):
    from life_encyclopedia.api.deps import get_pipeline

    error = streaming.research_error(FictionalSubjectError("Sherlock Holmes"))
    app.dependency_overrides[get_pipeline] = lambda: _FakePipeline([error])

    response = client.post("/api/research", json={"name": "Sherlock Holmes"})

    assert _sse_events(response.text)[-1][1]["kind"] == "fictional_subject"


def test_research_rejects_unknown_preset(app, client):
    from life_encyclopedia.api.deps import get_pipeline

    app.dependency_overrides[get_pipeline] = lambda: _FakePipeline([])

    response = client.post("/api/research", json={"name": "Ada Lovelace", "preset": "exhaustive"})
    assert response.status_code == 422


def test_candidates(client):
    found = [PersonCandidate(name="Ada Lovelace", url="https://en.wikipedia.org/wiki/Ada_Lovelace", years="1815 – 1852")]
    with patch(
        "life_encyclopedia.api.routes.research.candidate_search.search_with_descriptions",
        new=AsyncMock(return_value=found),
    ):
        response = client.get("/api/research/candidates", params={"q": "Lovelace", "limit": 5})

    assert response.status_code == 200
    data = response.json()
    assert data["query"] == "Lovelace"
    assert data["candidates"][0]["years"] == "1815 – 1852"


def test_candidates_rate_limited(client):
    with patch(
        "life_encyclopedia.api.routes.research.candidate_search.search_with_descriptions",
        new=AsyncMock(side_effect=RateLimitExceededError("Tavily")),
    ):
        response = client.get("/api/research/candidates", params={"q": "Lovelace"})

    assert response.status_code == 429


def test_list_people_passes_filters(client):
    page = PeoplePage(people=[Person(name="Ada Lovelace", summary="")], page=1, page_size=30, total_count=1, has_more=False)
    with patch("life_encyclopedia.api.routes.people.db.fetch_people", new=AsyncMock(return_value=page)) as fetch:
        response = client.get("/api/people", params=[("eras", "modern"), ("domains", "science"), ("domains", "arts")])

    assert response.status_code == 200
    assert response.json()["people"][0]["name"] == "Ada Lovelace"
    query = fetch.await_args.args[0]
    assert [e.value for e in query.eras] == ["modern"]
    assert [d.value for d in query.domains] == ["science", "arts"]


def test_list_people_rejects_unknown_filter_values(client):
    response = client.get("/api/people", params={"eras": "jurassic"})
    assert response.status_code == 422


def test_list_people_without_storage_config(client):
    with patch(
        "life_encyclopedia.api.routes.people.db.fetch_people",
        new=AsyncMock(side_effect=StorageNotConfiguredError()),
    ):
        response = client.get("/api/people")

    assert response.status_code == 503


def test_get_person_not_found(client):
    with patch("life_encyclopedia.api.routes.people.db.get_person", new=AsyncMock(return_value=None)):
        response = client.get("/api/people/missing")

    assert response.status_code == 404


def test_suggestions(client):
    people = [Person(name="Marie Curie", summary="")]
    with patch(
        "life_encyclopedia.api.routes.people.db.search_name_suggestions",
        new=AsyncMock(return_value=people),
    ) as suggest:
        response = client.get("/api/people/suggestions", params={"q": "curie"})

    assert response.status_code == 200
    assert response.json()[0]["name"] == "Marie Curie"
    suggest.assert_awaited_once_with("curie", 12)


def test_record_view(client):
    with patch("life_encyclopedia.api.routes.people.db.increment_view_count", new=AsyncMock(return_value=3)):
        response = client.post("/api/people/uuid-1/view")

    assert response.json() == {"id": "uuid-1", "view_count": 3}


def test_record_view_missing_person(client):
    with patch(
        "life_encyclopedia.api.routes.people.db.increment_view_count",
        new=AsyncMock(side_effect=StorageRequestError(404, "Person missing not found.")),
    ):
        response = client.post("/api/people/missing/view")

    assert response.status_code == 404


def test_delete_person_upstream_failure(client):
    with patch(
        "life_encyclopedia.api.routes.people.db.delete_person",
        new=AsyncMock(side_effect=StorageRequestError(500, "boom")),
    ):
        response = client.delete("/api/people/uuid-1")

    assert response.status_code == 502


def test_classify_person_persists_metadata(client):
    person = Person(id="uuid-1", name="Marie Curie", summary="Physicist and chemist.")
    metadata = FilterMetadata(birth_year=1867, primary_domain=Domain.SCIENCE)
    with patch("life_encyclopedia.api.routes.people.db.get_person", new=AsyncMock(return_value=person)), patch.object(
        FilterClassifier, "classify", new=AsyncMock(return_value=metadata)
    ), patch(
        "life_encyclopedia.api.routes.people.db.update_filter_metadata", new=AsyncMock()
    ) as update:
        response = client.post("/api/people/uuid-1/classify")

    assert response.status_code == 200
    assert response.json()["primaryDomain"] == "science"
    update.assert_awaited_once_with("uuid-1", metadata)


def test_classify_person_model_failure(client):
    person = Person(id="uuid-1", name="Marie Curie", summary="")
    with patch("life_encyclopedia.api.routes.people.db.get_person", new=AsyncMock(return_value=person)), patch.object(
        FilterClassifier, "classify", new=AsyncMock(side_effect=RuntimeError("model offline"))
    ), patch("life_encyclopedia.api.routes.people.db.update_filter_metadata", new=AsyncMock()) as update:
        response = client.post("/api/people/uuid-1/classify")

    assert response.status_code == 502
    update.assert_not_awaited()


def test_classify_missing_person(client):
    with patch("life_encyclopedia.api.routes.people.db.get_person", new=AsyncMock(return_value=None)):
        response = client.post("/api/people/missing/classify")

    assert response.status_code == 404

from __future__ import annotations

import asyncio
import time
from typing import AsyncGenerator
from uuid import uuid4

from loguru import logger

from life_encyclopedia.agents.citations import CitationEnricher, with_prepared_sources
from life_encyclopedia.agents.classifier import FilterClassifier
from life_encyclopedia.agents.discovery import PersonDiscoveryOrchestrator
from life_encyclopedia.agents.synthesizer import EventSynthesizer, build_context_document
from life_encyclopedia.agents.verifier import FactVerifier
from life_encyclopedia.errors import (
    FictionalSubjectError,
    NoSourcesError,
    PersonNotFoundError,
    ResearchCancelledError,
    ResearchError,
)
from life_encyclopedia.models.events import SSEEvent
from life_encyclopedia.models.person import HistoricalEvent, Person
from life_encyclopedia.models.research import (
    MAJOR_EVENT_TYPES,
    DiscoveryOutcome,
    EventVerification,
    PipelineConfig,
    PipelineProgress,
    PipelineStage,
    ResearchSummary,
    VerifiedPerson,
)
from life_encyclopedia.models.sources import Source
from life_encyclopedia.services import logger as log_service
from life_encyclopedia.services import source_filter, streaming
from life_encyclopedia.services.deep_links import prepare_citations

MAX_COLLECTED_SOURCES = 15
CLASSIFIER_CONTEXT_SOURCES = 5


class CancellationToken:
    """Cooperative cancellation flag, checked between pipeline stages."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self, stage: PipelineStage | None = None) -> None:
        if self._cancelled:
            raise ResearchCancelledError(stage.display_name if stage else None)


class ProgressReporter:
    """Publishes PipelineProgress snapshots to an optional subscriber queue."""

    def __init__(self, run_id: str, queue: asyncio.Queue | None = None):
        self.run_id = run_id
        self.queue = queue
        self.sources_collected = 0
        self.events_generated = 0
        self.events_verified = 0

    def report(self, stage: PipelineStage, progress: float, message: str) -> PipelineProgress:
        snapshot = PipelineProgress(
            stage=stage,
            stage_progress=progress,
            message=message,
            sources_collected=self.sources_collected,
            events_generated=self.events_generated,
            events_verified=self.events_verified,
        )
        if self.queue is not None:
            self.queue.put_nowait(snapshot)
        log_service.log_research_step(
            self.run_id,
            stage.value,
            "running" if progress < 1.0 else "completed",
            {"progress": round(progress, 4), "message": message},
        )
        return snapshot


def _normalized(value: str) -> str:
    return value.strip().casefold()


def verification_matches(event: HistoricalEvent, verification: EventVerification) -> bool:
    """Whether the verifier's echoed title and date are exactly the event's, after normalization."""
    return _normalized(verification.event) == _normalized(event.title) and _normalized(
        verification.date
    ) == _normalized(event.date)


def build_research_summary(events: list[HistoricalEvent], sources: list[Source]) -> ResearchSummary:
    return ResearchSummary(
        total_events=len(events),
        events_with_sources=sum(1 for event in events if event.sources),
        total_sources=len(sources),
        authoritative_sources=sum(1 for s in sources if source_filter.is_registered_domain(s.url)),
    )


class ResearchPipeline:
    """Runs Discovery, SourceCollection, EventGeneration, FactVerification and
    Enrichment in strict order, followed by optional filter classification.

    Only the abort errors (not found, fictional subject, no sources, failed
    generation, cancellation, primary rate limit) escape `research_person`;
    every other failure degrades to the previous stage's output.
    """

    def __init__(
        self,
        *,
        orchestrator: PersonDiscoveryOrchestrator | None = None,
        synthesizer: EventSynthesizer | None = None,
        verifier: FactVerifier | None = None,
        enricher: CitationEnricher | None = None,
        classifier: FilterClassifier | None = None,
        classify: bool = True,
        model: str | None = None,
    ):
        self.orchestrator = orchestrator or PersonDiscoveryOrchestrator()
        self.synthesizer = synthesizer or EventSynthesizer(model=model)
        self.verifier = verifier or FactVerifier()
        self.enricher = enricher or CitationEnricher()
        self.classifier = classifier or FilterClassifier()
        self.classify = classify

    async def research_person(
        self,
        name: str,
        config: PipelineConfig | None = None,
        *,
        cancel_token: CancellationToken | None = None,
        progress: asyncio.Queue | None = None,
    ) -> VerifiedPerson:
        config = config or PipelineConfig.default()
        token = cancel_token or CancellationToken()
        reporter = ProgressReporter(uuid4().hex[:8], progress)
        logger.info(f"Starting research for {name!r} (run {reporter.run_id})")

        token.raise_if_cancelled(PipelineStage.DISCOVERY)
        outcome = await self._discover(name, reporter)

        token.raise_if_cancelled(PipelineStage.SOURCE_COLLECTION)
        sources = self._collect_sources(name, outcome, reporter)

        token.raise_if_cancelled(PipelineStage.EVENT_GENERATION)
        person = await self._generate(name, outcome, sources, reporter)

        token.raise_if_cancelled(PipelineStage.FACT_VERIFICATION)
        events = await self._verify(name, person.events, config, reporter)

        token.raise_if_cancelled(PipelineStage.ENRICHMENT)
        events = await self._enrich(name, events, config, reporter)
        person = person.model_copy(update={"events": events})

        if self.classify:
            token.raise_if_cancelled(PipelineStage.ENRICHMENT)
            person = await self._classify(person, sources, reporter)

        summary = build_research_summary(events, sources)
        reporter.report(PipelineStage.ENRICHMENT, 1.0, "Research complete!")
        logger.info(
            f"Research complete for {name!r}: {summary.total_events} events, "
            f"{summary.total_sources} sources"
        )
        return VerifiedPerson(person=person, all_sources=sources, research_summary=summary)

    # --- Stage 1 ---

    async def _discover(self, name: str, reporter: ProgressReporter) -> DiscoveryOutcome:
        reporter.report(PipelineStage.DISCOVERY, 0.0, "Starting discovery...")
        reporter.report(PipelineStage.DISCOVERY, 0.3, "Searching biographical sources...")

        outcome = await self.orchestrator.discover(name)
        discovery = outcome.discovery
        if discovery.is_fictional:
            raise FictionalSubjectError(name)
        if not discovery.is_verified:
            raise PersonNotFoundError(name)

        reporter.sources_collected = len(discovery.sources)
        reporter.report(PipelineStage.DISCOVERY, 1.0, f"Found {len(discovery.sources)} sources")
        return outcome

    # --- Stage 2 ---

    def _collect_sources(
        self,
        name: str,
        outcome: DiscoveryOutcome,
        reporter: ProgressReporter,
    ) -> list[Source]:
        reporter.report(PipelineStage.SOURCE_COLLECTION, 0.3, "Deduplicating sources...")
        unique = source_filter.deduplicate(outcome.discovery.sources)

        reporter.report(PipelineStage.SOURCE_COLLECTION, 0.6, "Scoring reliability...")
        top = source_filter.top_sources(unique, MAX_COLLECTED_SOURCES)
        if not top:
            raise NoSourcesError(name)

        reporter.sources_collected = len(top)
        reporter.report(
            PipelineStage.SOURCE_COLLECTION, 1.0, f"Collected {len(top)} authoritative sources"
        )
        return prepare_citations(top)

    # --- Stage 3 ---

    async def _generate(
        self,
        name: str,
        outcome: DiscoveryOutcome,
        sources: list[Source],
        reporter: ProgressReporter,
    ) -> Person:
        reporter.report(PipelineStage.EVENT_GENERATION, 0.2, "Preparing context...")
        document = build_context_document(outcome.structured_context, sources)

        reporter.report(
            PipelineStage.EVENT_GENERATION,
            0.4,
            f"Generating events from {len(sources)} sources...",
        )
        person = await self.synthesizer.synthesize(name, document, source_pool=sources)

        reporter.events_generated = len(person.events)
        reporter.report(
            PipelineStage.EVENT_GENERATION, 1.0, f"Generated {len(person.events)} events"
        )
        return person

    # --- Stage 4 ---

    async def _verify(
        self,
        name: str,
        events: list[HistoricalEvent],
        config: PipelineConfig,
        reporter: ProgressReporter,
    ) -> list[HistoricalEvent]:
        reporter.report(PipelineStage.FACT_VERIFICATION, 0.0, "Verifying facts...")

        if config.verify_all_events:
            targets = list(events)
        else:
            targets = [event for event in events if event.event_type in MAJOR_EVENT_TYPES]

        try:
            verifications = await self.verifier.batch_verify(
                name, [(event.title, event.date) for event in targets]
            )
        except Exception as exc:
            logger.warning(f"Verification degraded for {name!r}, keeping original events: {exc}")
            reporter.report(PipelineStage.FACT_VERIFICATION, 1.0, "Verification unavailable")
            return [with_prepared_sources(event) for event in events]

        accepted: dict[str, EventVerification] = {}
        for event, verification in zip(targets, verifications):
            if not verification_matches(event, verification):
                logger.warning(
                    f"Skipping mismatched verification for {event.title!r}: "
                    f"got {verification.event!r} / {verification.date!r}"
                )
                continue
            if verification.confidence < config.min_confidence_threshold:
                logger.debug(
                    f"Low-confidence verification for {event.title!r}: {verification.confidence:.2f}"
                )
            accepted[event.id] = verification

        total = max(len(targets), 1)
        verified_events: list[HistoricalEvent] = []
        for event in events:
            verification = accepted.get(event.id)
            if verification is None:
                verified_events.append(with_prepared_sources(event))
                continue

            verified = event.model_copy(update={"date_precision": verification.date_precision})
            if verification.matching_sources:
                verified = verified.model_copy(
                    update={"sources": prepare_citations(verification.matching_sources)}
                )
            else:
                verified = with_prepared_sources(verified)
            verified_events.append(verified)

            reporter.events_verified += 1
            reporter.report(
                PipelineStage.FACT_VERIFICATION,
                reporter.events_verified / total,
                f"Verified {reporter.events_verified}/{len(targets)} events",
            )

        reporter.report(PipelineStage.FACT_VERIFICATION, 1.0, "Verification complete")
        return verified_events

    # --- Stage 5 ---

    async def _enrich(
        self,
        name: str,
        events: list[HistoricalEvent],
        config: PipelineConfig,
        reporter: ProgressReporter,
    ) -> list[HistoricalEvent]:
        reporter.report(PipelineStage.ENRICHMENT, 0.0, "Enriching citations...")

        async def on_progress(done: int, total: int) -> None:
            # Leave headroom for classification at 0.8.
            reporter.report(
                PipelineStage.ENRICHMENT,
                0.7 * done / total,
                f"Enriched {done}/{total} events",
            )

        return await self.enricher.enrich(events, name, config, on_progress=on_progress)

    async def _classify(
        self,
        person: Person,
        sources: list[Source],
        reporter: ProgressReporter,
    ) -> Person:
        reporter.report(PipelineStage.ENRICHMENT, 0.8, "Classifying for filters...")
        context = "\n".join(
            s.content_snippet for s in sources[:CLASSIFIER_CONTEXT_SOURCES] if s.content_snippet
        )
        try:
            metadata = await self.classifier.classify(person, context)
        except Exception as exc:
            logger.warning(f"Filter classification failed for {person.name!r}: {exc}")
            return person
        return person.with_filter_metadata(metadata)

    # --- Streaming ---

    async def stream(
        self,
        name: str,
        config: PipelineConfig | None = None,
        cancel_token: CancellationToken | None = None,
        *,
        preset: str = "default",
    ) -> AsyncGenerator[SSEEvent, None]:
        """Run `research_person` and yield its progress as SSE events.

        The final event is `research_complete` or `error`. Closing the
        generator early cancels the run.
        """
        token = cancel_token or CancellationToken()
        queue: asyncio.Queue[PipelineProgress | None] = asyncio.Queue()
        completed: set[PipelineStage] = set()
        t0 = time.monotonic()

        task = asyncio.create_task(
            self.research_person(name, config, cancel_token=token, progress=queue)
        )
        task.add_done_callback(lambda _: queue.put_nowait(None))

        yield streaming.research_started(name, preset)
        try:
            while (snapshot := await queue.get()) is not None:
                yield streaming.stage_progress(snapshot)
                if snapshot.stage_progress >= 1.0 and snapshot.stage not in completed:
                    completed.add(snapshot.stage)
                    yield streaming.stage_completed(snapshot.stage, message=snapshot.message)
            result = task.result()
        except ResearchError as exc:
            logger.info(f"Research for {name!r} ended: {exc.kind}")
            yield streaming.research_error(exc)
            return
        except Exception as exc:
            logger.exception(f"Research for {name!r} failed unexpectedly")
            yield streaming.error(str(exc))
            return
        finally:
            if not task.done():
                token.cancel()
                task.cancel()

        yield streaming.research_complete(result, int((time.monotonic() - t0) * 1000))

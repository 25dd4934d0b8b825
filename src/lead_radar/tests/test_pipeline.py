# src/lead_radar/tests/test_pipeline.py
"""
Unit tests for the Lead Radar pipelines.

Tests cover:
- Google Maps run: zone errors, cross-zone dedup, persistence of
  contact-worthy leads, skip of persisted leads
- Per-item errors vs fatal configuration errors
- Cancellation
- Feed run: SKIP replies, dedup and persisted fields
- Single-lead qualification, message recording and audits
- Credential check before any lookup, in-run feed dedup, store cleanup
"""
import asyncio
from datetime import datetime, timezone

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from lead_radar.config import ConfigError
from lead_radar.events import ProgressChannel
from lead_radar.models import (
    EstimatedSize,
    EventType,
    FeedItem,
    GeneratedMessage,
    MessageInput,
    PlaceRecord,
    QualificationResult,
    RawLead,
    ScoringResult,
    Segment,
    Verdict,
    WebsiteSignals,
)
from lead_radar.llm_client import LLMClient
from lead_radar.message_generator import MessageGenerator
from lead_radar.pipeline import LeadRadarPipeline
from lead_radar.scorer import BusinessScorer
from lead_radar.sources.feed import FeedResult
from lead_radar.sources.places import PlacesError
from lead_radar.storage import (
    CODEUR_PROJECTS,
    GOOGLE_MAPS_LEADS,
    LEADS,
    MESSAGES,
    LeadStore,
)


def make_place(place_id, website=None, reviews=120, rating=4.5):
    return PlaceRecord(
        place_id=place_id,
        name=f"Restaurant {place_id}",
        address="Lyon",
        website=website,
        rating=rating,
        review_count=reviews,
        types=["restaurant"],
    )


def worthy(score=8):
    return ScoringResult(
        score=score,
        estimated_size=EstimatedSize.MEDIUM,
        reasoning="Bon potentiel",
        message="Bonjour, ...",
    )


@pytest.fixture
def store():
    lead_store = LeadStore("sqlite://")
    yield lead_store
    lead_store.close()


@pytest.fixture
def mock_scorer():
    scorer = MagicMock()
    scorer.threshold = 6
    scorer.score = AsyncMock(return_value=worthy())
    return scorer


@pytest.fixture
def mock_analyzer():
    analyzer = MagicMock()
    analyzer.detect = AsyncMock(
        return_value=WebsiteSignals(
            exists=True,
            has_ssl=False,
            issues=("Pas de certificat SSL (HTTP au lieu de HTTPS)",),
            opportunities=("Migration vers HTTPS pour la sécurité",),
        )
    )
    return analyzer


@pytest.fixture
def mock_places():
    places = MagicMock()
    places.search_zone = AsyncMock(return_value=[])
    return places


def make_pipeline(store, **kwargs):
    return LeadRadarPipeline(
        store=store, item_delay=0, zone_delay=0, **kwargs
    )


class TestRunMaps:
    """Tests for LeadRadarPipeline.run_maps()."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_persists_contact_worthy_leads(
        self, store, mock_scorer, mock_analyzer, mock_places
    ):
        mock_places.search_zone.side_effect = [
            [make_place("a", website="http://a.fr"), make_place("b")],
            [make_place("a", website="http://a.fr")],
        ]
        pipeline = make_pipeline(
            store,
            scorer=mock_scorer,
            analyzer=mock_analyzer,
            places_client=mock_places,
            zones=["Lyon 1", "Lyon 2"],
        )
        channel = ProgressChannel()

        summary = await pipeline.run_maps(channel)

        assert summary.total == 2
        assert summary.matched == 2
        assert summary.qualified == 2
        assert summary.error is None
        mock_analyzer.detect.assert_awaited_once_with("http://a.fr")

        record = store.get(GOOGLE_MAPS_LEADS, "a")
        assert record["business_name"] == "Restaurant a"
        assert record["score"] == 8
        assert record["estimated_size"] == "medium"
        assert record["has_website"] is True
        assert record["website_analysis"]["has_ssl"] is False
        assert record["message_generated"] == "Bonjour, ..."
        assert store.get(GOOGLE_MAPS_LEADS, "b")["website_analysis"] is None

        assert channel.events[-1].type == EventType.COMPLETE
        assert channel.events[-1].data["qualified"] == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_low_score_not_persisted(self, store, mock_scorer, mock_places):
        mock_places.search_zone.return_value = [make_place("a")]
        mock_scorer.score.return_value = ScoringResult(score=4, message="SKIP")
        pipeline = make_pipeline(
            store, scorer=mock_scorer, places_client=mock_places, zones=["Lyon"]
        )

        summary = await pipeline.run_maps()

        assert summary.rejected == 1
        assert summary.qualified == 0
        assert store.exists(GOOGLE_MAPS_LEADS, "a") is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_persisted_leads_are_skipped(self, store, mock_scorer, mock_places):
        store.upsert(GOOGLE_MAPS_LEADS, {"google_place_id": "a"}, "google_place_id")
        mock_places.search_zone.return_value = [make_place("a"), make_place("b")]
        pipeline = make_pipeline(
            store, scorer=mock_scorer, places_client=mock_places, zones=["Lyon"]
        )

        summary = await pipeline.run_maps()

        assert summary.skipped == 1
        assert summary.processed == 1
        assert mock_scorer.score.await_count == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_irrelevant_places_filtered(self, store, mock_scorer, mock_places):
        mock_places.search_zone.return_value = [
            make_place("a"),
            make_place("few", reviews=2),
        ]
        pipeline = make_pipeline(
            store, scorer=mock_scorer, places_client=mock_places, zones=["Lyon"]
        )

        summary = await pipeline.run_maps()

        assert summary.total == 2
        assert summary.matched == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_zone_error_continues(self, store, mock_scorer, mock_places):
        mock_places.search_zone.side_effect = [
            PlacesError("Impossible de géocoder: Atlantis"),
            [make_place("a")],
        ]
        pipeline = make_pipeline(
            store,
            scorer=mock_scorer,
            places_client=mock_places,
            zones=["Atlantis", "Lyon"],
        )
        channel = ProgressChannel()

        summary = await pipeline.run_maps(channel)

        assert summary.qualified == 1
        assert any("Atlantis" in e.message for e in channel.of_type(EventType.WARNING))

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_item_error_is_counted(self, store, mock_scorer, mock_places):
        mock_places.search_zone.return_value = [make_place("a"), make_place("b")]
        mock_scorer.score.side_effect = [RuntimeError("model down"), worthy()]
        pipeline = make_pipeline(
            store, scorer=mock_scorer, places_client=mock_places, zones=["Lyon"]
        )

        summary = await pipeline.run_maps()

        assert summary.errors == 1
        assert summary.qualified == 1
        assert summary.error is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_model_reply_is_rejected(self, store, mock_places):
        mock_places.search_zone.return_value = [make_place("a")]
        llm_client = MagicMock()
        llm_client.acomplete = AsyncMock(return_value="")
        pipeline = make_pipeline(
            store,
            scorer=BusinessScorer(llm_client=llm_client),
            places_client=mock_places,
            zones=["Lyon"],
        )

        summary = await pipeline.run_maps()

        assert summary.rejected == 1
        assert summary.errors == 0
        assert store.exists(GOOGLE_MAPS_LEADS, "a") is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_config_error_aborts_run(self, store, mock_scorer, mock_places):
        mock_places.search_zone.return_value = [make_place("a"), make_place("b")]
        mock_scorer.score.side_effect = ConfigError("OPENAI_API_KEY is required")
        pipeline = make_pipeline(
            store, scorer=mock_scorer, places_client=mock_places, zones=["Lyon"]
        )
        channel = ProgressChannel()

        summary = await pipeline.run_maps(channel)

        assert summary.error == "OPENAI_API_KEY is required"
        assert mock_scorer.score.await_count == 1
        assert channel.of_type(EventType.ERROR)
        assert channel.events[-1].type == EventType.COMPLETE

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_api_key_stops_before_places_search(self, store, mock_places):
        llm_client = LLMClient(base_url="https://llm.test/v1")
        llm_client._api_key = ""
        analyzer = MagicMock()
        analyzer.detect = AsyncMock()
        pipeline = make_pipeline(
            store,
            scorer=BusinessScorer(llm_client=llm_client),
            analyzer=analyzer,
            places_client=mock_places,
            zones=["Lyon 1", "Lyon 2", "Lyon 3"],
        )
        channel = ProgressChannel()

        summary = await pipeline.run_maps(channel)

        assert "OPENAI_API_KEY" in summary.error
        mock_places.search_zone.assert_not_awaited()
        analyzer.detect.assert_not_awaited()
        assert channel.events[-1].type == EventType.COMPLETE

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unexpected_error_completes_then_raises(
        self, store, mock_scorer, mock_places
    ):
        mock_places.search_zone.side_effect = RuntimeError("boom")
        pipeline = make_pipeline(
            store, scorer=mock_scorer, places_client=mock_places, zones=["Lyon"]
        )
        channel = ProgressChannel()

        with pytest.raises(RuntimeError):
            await pipeline.run_maps(channel)

        assert channel.events[-1].type == EventType.COMPLETE
        assert channel.events[-1].data["error"] == "boom"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancellation(self, store, mock_scorer, mock_places):
        mock_places.search_zone.return_value = [make_place("a")]
        cancel_event = asyncio.Event()
        cancel_event.set()
        pipeline = make_pipeline(
            store, scorer=mock_scorer, places_client=mock_places, zones=["Lyon"]
        )

        summary = await pipeline.run_maps(cancel_event=cancel_event)

        assert summary.cancelled is True
        mock_places.search_zone.assert_not_awaited()


class TestRunFeed:
    """Tests for LeadRadarPipeline.run_feed()."""

    @pytest.fixture
    def projects(self):
        published = datetime(2024, 5, 14, 11, 0, tzinfo=timezone.utc)
        return [
            FeedItem(
                title="SaaS de réservation",
                description="Plateforme de réservation en ligne",
                link="https://www.codeur.com/projects/1",
                published_at=published,
            ),
            FeedItem(
                title="Site vitrine",
                description="Site pour un cabinet",
                link="https://www.codeur.com/projects/2",
                published_at=published,
            ),
        ]

    @pytest.fixture
    def mock_feed(self, projects):
        feed = MagicMock()
        feed.fetch.return_value = FeedResult(items=projects + [projects[0]])
        feed.filter_items.return_value = projects
        return feed

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_persists_answered_projects(self, store, mock_feed):
        generator = MagicMock()
        generator.generate = AsyncMock(
            side_effect=[
                GeneratedMessage(content="Bonjour, je propose...", score=8),
                GeneratedMessage(content="SKIP", score=3),
            ]
        )
        pipeline = make_pipeline(
            store, feed_source=mock_feed, message_generator=generator
        )

        summary = await pipeline.run_feed()

        assert summary.total == 3
        assert summary.matched == 2
        assert summary.qualified == 1
        assert summary.rejected == 1

        record = store.get(CODEUR_PROJECTS, "https://www.codeur.com/projects/1")
        assert record["title"] == "SaaS de réservation"
        assert record["matched"] is True
        assert record["message_generated"] == "Bonjour, je propose..."
        assert record["score"] == 8
        assert store.exists(CODEUR_PROJECTS, "https://www.codeur.com/projects/2") is False

        data = generator.generate.await_args_list[0].args[0]
        assert data.segment == Segment.FREELANCE_SME
        assert data.problem_detected == "Plateforme de réservation en ligne"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_known_projects_skipped(self, store, mock_feed):
        store.upsert(CODEUR_PROJECTS, {"url": "https://www.codeur.com/projects/1"}, "url")
        generator = MagicMock()
        generator.generate = AsyncMock(return_value=GeneratedMessage(content="SKIP"))
        pipeline = make_pipeline(
            store, feed_source=mock_feed, message_generator=generator
        )

        summary = await pipeline.run_feed()

        assert summary.skipped == 1
        assert generator.generate.await_count == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_repeated_link_processed_once(self, store, mock_feed, projects):
        mock_feed.filter_items.return_value = [projects[0], projects[0]]
        generator = MagicMock()
        generator.generate = AsyncMock(return_value=GeneratedMessage(content="SKIP"))
        pipeline = make_pipeline(
            store, feed_source=mock_feed, message_generator=generator
        )

        summary = await pipeline.run_feed()

        assert generator.generate.await_count == 1
        assert summary.processed == 2
        assert summary.rejected == 1
        assert summary.skipped == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_api_key_stops_before_fetch(self, store, mock_feed):
        llm_client = LLMClient(base_url="https://llm.test/v1")
        llm_client._api_key = ""
        pipeline = make_pipeline(
            store,
            feed_source=mock_feed,
            message_generator=MessageGenerator(llm_client=llm_client),
        )

        summary = await pipeline.run_feed()

        assert "OPENAI_API_KEY" in summary.error
        mock_feed.fetch.assert_not_called()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_feed_failure_warns_and_completes(self, store):
        feed = MagicMock()
        feed.fetch.return_value = FeedResult(success=False, error_message="503")
        feed.filter_items.return_value = []
        pipeline = make_pipeline(store, feed_source=feed, message_generator=MagicMock())
        channel = ProgressChannel()

        summary = await pipeline.run_feed(channel)

        assert summary.total == 0
        assert any("503" in e.message for e in channel.of_type(EventType.WARNING))
        assert channel.events[-1].type == EventType.COMPLETE


class TestSingleLeadOperations:
    """Tests for qualification, message recording and audits."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_qualify_lead_persists_status(self, store):
        qualifier = MagicMock()
        qualifier.qualify = AsyncMock(
            return_value=QualificationResult(
                score=3,
                verdict=Verdict.IGNORE,
                segment=Segment.ARTISAN,
                justification="Trop petit",
            )
        )
        pipeline = make_pipeline(store, qualifier=qualifier)

        record = await pipeline.qualify_lead(RawLead(company_name="Atelier", city="Lyon"))

        assert record["status"] == "archived"
        assert record["verdict"] == "IGNORER"
        assert store.query(LEADS, company_name="Atelier") == [record]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_generate_message_recorded(self, store):
        generator = MagicMock()
        generator.generate = AsyncMock(return_value=GeneratedMessage(content="Bonjour"))
        pipeline = make_pipeline(store, message_generator=generator)

        message = await pipeline.generate_message(
            MessageInput(company_name="Atelier", segment=Segment.ARTISAN),
            lead_id="lead-1",
        )

        assert message.content == "Bonjour"
        stored = store.query(MESSAGES, lead_id="lead-1")
        assert stored[0]["content"] == "Bonjour"
        assert stored[0]["channel"] == "email"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_build_audit_from_stored_lead(
        self, store, mock_scorer, mock_analyzer, mock_places
    ):
        mock_places.search_zone.return_value = [make_place("a", website="http://a.fr")]
        pipeline = make_pipeline(
            store,
            scorer=mock_scorer,
            analyzer=mock_analyzer,
            places_client=mock_places,
            zones=["Lyon"],
        )
        await pipeline.run_maps()

        payload = pipeline.build_audit("a")

        assert payload["businessName"] == "Restaurant a"
        assert payload["website"] == "http://a.fr"
        assert len(payload["improvements"]) == 5
        assert payload["improvements"][0]["title"] == "Google cache votre site à vos clients"

    @pytest.mark.unit
    def test_build_audit_unknown_place(self, store):
        with pytest.raises(KeyError):
            make_pipeline(store).build_audit("inconnu")


class TestLifecycle:
    """Tests for collaborator cleanup."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_close_disposes_owned_store(self):
        owned = MagicMock()

        with patch("lead_radar.pipeline.LeadStore", return_value=owned):
            async with LeadRadarPipeline() as pipeline:
                assert pipeline.store is owned

        owned.close.assert_called_once()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_close_keeps_injected_store(self):
        injected = MagicMock()

        async with LeadRadarPipeline(store=injected):
            pass

        injected.close.assert_not_called()

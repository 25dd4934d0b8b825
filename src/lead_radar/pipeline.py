# pipeline.py
"""Lead Radar pipelines.

Two sequential, rate-limited runs share the same shape:
    1. Fetch candidates (Google Maps zones, or the freelance RSS feed)
    2. Filter them
    3. Skip candidates already persisted
    4. Score or draft a message with the language model
    5. Persist contact-worthy leads
    6. Emit a terminal summary folded from per-item outcomes

Configuration errors abort a run; any other per-item failure is reported
and the run moves on.
"""

import asyncio
from typing import Any, Dict, List, Optional, Set

from .config import ConfigError, config
from .events import ProgressChannel
from .improvements import build_audit_payload
from .logging_utils import get_logger
from .message_generator import MessageGenerator
from .models import (
    GeneratedMessage,
    ItemOutcome,
    MessageInput,
    PlaceRecord,
    RawLead,
    RunSummary,
    Segment,
    WebsiteSignals,
    utcnow,
)
from .qualifier import LeadQualifier
from .scorer import BusinessScorer
from .sources.feed import FeedSource
from .sources.places import PlacesClient, PlacesError, filter_relevant_businesses
from .storage import CODEUR_PROJECTS, GOOGLE_MAPS_LEADS, LEADS, MESSAGES, LeadStore
from .website_analyzer import WebsiteAnalyzer, summarize_opportunities

NO_WEBSITE_SUMMARY = "Pas de site web détecté"

FEED_COMPANY_NAME = "Client Codeur"
FEED_BUSINESS_ANGLE = "développement de sites web, SaaS ou applications sur mesure"


class LeadRadarPipeline:
    """Orchestrator for the Google Maps and freelance feed runs.

    Every collaborator can be injected; missing ones are created lazily
    from config on first use.
    """

    def __init__(
        self,
        store: Optional[LeadStore] = None,
        analyzer: Optional[WebsiteAnalyzer] = None,
        scorer: Optional[BusinessScorer] = None,
        qualifier: Optional[LeadQualifier] = None,
        message_generator: Optional[MessageGenerator] = None,
        places_client: Optional[PlacesClient] = None,
        feed_source: Optional[FeedSource] = None,
        zones: Optional[List[str]] = None,
        item_delay: Optional[float] = None,
        zone_delay: Optional[float] = None,
    ):
        self.logger = get_logger(__name__)

        self._store = store
        self._analyzer = analyzer
        self._scorer = scorer
        self._qualifier = qualifier
        self._message_generator = message_generator
        self._places_client = places_client
        self._feed_source = feed_source

        self._owns_store = store is None
        self._owns_analyzer = analyzer is None
        self._owns_scorer = scorer is None
        self._owns_qualifier = qualifier is None
        self._owns_message_generator = message_generator is None
        self._owns_places_client = places_client is None
        self._owns_feed_source = feed_source is None

        self.zones = zones or config.SEARCH_ZONES
        self.item_delay = (
            item_delay if item_delay is not None else config.ITEM_DELAY_MS / 1000
        )
        self.zone_delay = (
            zone_delay if zone_delay is not None else config.ZONE_DELAY_MS / 1000
        )

    @property
    def store(self) -> LeadStore:
        if self._store is None:
            self._store = LeadStore()
        return self._store

    @property
    def analyzer(self) -> WebsiteAnalyzer:
        if self._analyzer is None:
            self._analyzer = WebsiteAnalyzer()
        return self._analyzer

    @property
    def scorer(self) -> BusinessScorer:
        if self._scorer is None:
            self._scorer = BusinessScorer()
        return self._scorer

    @property
    def qualifier(self) -> LeadQualifier:
        if self._qualifier is None:
            self._qualifier = LeadQualifier()
        return self._qualifier

    @property
    def message_generator(self) -> MessageGenerator:
        if self._message_generator is None:
            self._message_generator = MessageGenerator()
        return self._message_generator

    @property
    def places_client(self) -> PlacesClient:
        if self._places_client is None:
            self._places_client = PlacesClient()
        return self._places_client

    @property
    def feed_source(self) -> FeedSource:
        if self._feed_source is None:
            self._feed_source = FeedSource()
        return self._feed_source

    # ------------------------------------------------------------------
    # Google Maps run
    # ------------------------------------------------------------------

    async def run_maps(
        self,
        channel: Optional[ProgressChannel] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RunSummary:
        """Search every zone, then score and persist relevant businesses.

        Args:
            channel: Progress channel; a private one is used when omitted.
            cancel_event: When set, the run stops before the next zone or item.

        Returns:
            The run summary, also carried by the terminal ``complete`` event.
        """
        channel = channel or ProgressChannel()
        outcomes: List[ItemOutcome] = []
        total = matched = 0
        cancelled = False
        fatal: Optional[str] = None

        try:
            channel.info("Démarrage de la recherche Google Maps...")
            # Credentials are checked before any Places quota is spent
            self.scorer.ensure_ready()
            places_client = self.places_client

            found: Dict[str, PlaceRecord] = {}
            for index, zone in enumerate(self.zones, start=1):
                if _is_cancelled(cancel_event):
                    cancelled = True
                    break
                channel.info(f"[{index}/{len(self.zones)}] Recherche dans {zone}...")
                try:
                    zone_places = await places_client.search_zone(zone)
                except PlacesError as e:
                    channel.warning(f"Erreur sur {zone}: {e}")
                    continue

                for place in zone_places:
                    found.setdefault(place.place_id, place)
                channel.success(f"{len(zone_places)} entreprises trouvées dans {zone}")
                await asyncio.sleep(self.zone_delay)

            total = len(found)
            channel.success(f"TOTAL: {total} entreprises uniques trouvées")

            relevant = filter_relevant_businesses(list(found.values()))
            matched = len(relevant)
            channel.success(f"{matched} entreprises pertinentes")

            for index, place in enumerate(relevant, start=1):
                if cancelled or _is_cancelled(cancel_event):
                    cancelled = True
                    break
                channel.info(f"[{index}/{matched}] Analyse de: {place.name}")
                outcome = await self.process_place(place, channel)
                outcomes.append(outcome)
                if outcome != ItemOutcome.SKIPPED_DUPLICATE:
                    await asyncio.sleep(self.item_delay)

        except ConfigError as e:
            fatal = str(e)
            channel.error(f"Erreur: {e}")
        except Exception as e:
            fatal = str(e)
            self.logger.exception("Google Maps run failed")
            channel.error(f"Erreur: {e}")
            raise
        finally:
            summary = self._finish(channel, outcomes, total, matched, cancelled, fatal)

        return summary

    async def process_place(
        self, place: PlaceRecord, channel: ProgressChannel
    ) -> ItemOutcome:
        """Analyze, score and persist one business.

        Raises:
            ConfigError: If scoring is not configured.
        """
        try:
            if self.store.exists(GOOGLE_MAPS_LEADS, place.place_id):
                channel.warning("Déjà analysée, passage au suivant")
                return ItemOutcome.SKIPPED_DUPLICATE

            signals: Optional[WebsiteSignals] = None
            summary = NO_WEBSITE_SUMMARY
            if place.website:
                channel.info("Analyse du site web...")
                signals = await self.analyzer.detect(place.website)
                summary = summarize_opportunities(signals)
                channel.success(
                    f"Site analysé: {len(signals.issues)} problème(s) détecté(s)"
                )
            else:
                channel.info("Pas de site web")

            entity = place.to_business_entity(signals, summary)
            scoring = await self.scorer.score(entity)
            channel.info(
                f"Score: {scoring.score}/10 (Taille: {scoring.estimated_size.value})"
            )

            if not scoring.is_contact_worthy(self.scorer.threshold):
                channel.warning("Score trop faible, skip")
                return ItemOutcome.SKIPPED_LOW_SCORE

            self.store.upsert(
                GOOGLE_MAPS_LEADS,
                {
                    "google_place_id": place.place_id,
                    "business_name": place.name,
                    "address": place.address,
                    "phone": place.phone,
                    "website": place.website,
                    "google_rating": place.rating,
                    "reviews_count": place.review_count,
                    "category": place.primary_type,
                    "types": place.types,
                    "estimated_size": scoring.estimated_size.value,
                    "has_website": bool(place.website),
                    "website_analysis": (
                        signals.model_dump(mode="json") if signals else None
                    ),
                    "score": scoring.score,
                    "reasoning": scoring.reasoning,
                    "message_generated": scoring.message,
                    "fetched_at": utcnow().isoformat(),
                },
                "google_place_id",
            )
            channel.success(
                "Lead qualifié !", {"name": place.name, "score": scoring.score}
            )
            return ItemOutcome.QUALIFIED

        except ConfigError:
            raise
        except Exception as e:
            self.logger.warning(
                f"Processing failed for {place.name}",
                extra={"place_id": place.place_id, "error": str(e)},
            )
            channel.error(f"Erreur sur {place.name}: {e}")
            return ItemOutcome.ERROR

    # ------------------------------------------------------------------
    # Freelance feed run
    # ------------------------------------------------------------------

    async def run_feed(
        self,
        channel: Optional[ProgressChannel] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RunSummary:
        """Fetch the project feed and draft answers for matching projects."""
        channel = channel or ProgressChannel()
        outcomes: List[ItemOutcome] = []
        total = matched = 0
        cancelled = False
        fatal: Optional[str] = None

        try:
            channel.info("Démarrage de la recherche Codeur.com...")
            self.message_generator.ensure_ready()
            channel.info("Récupération du flux RSS...")

            loop = asyncio.get_event_loop()
            result = await loop.run_in_executor(None, self.feed_source.fetch)
            if not result.success:
                channel.warning(f"Flux RSS indisponible: {result.error_message}")

            total = result.total_found
            channel.success(f"{total} projets trouvés dans le flux RSS")

            projects = self.feed_source.filter_items(result.items)
            matched = len(projects)
            channel.info(f"{matched} projets pertinents")

            seen: Set[str] = set()
            for project in projects:
                if _is_cancelled(cancel_event):
                    cancelled = True
                    break
                if project.link in seen:
                    outcomes.append(ItemOutcome.SKIPPED_DUPLICATE)
                    continue
                seen.add(project.link)
                channel.info(f'Analyse du projet: "{project.title[:50]}..."')
                outcome = await self.process_project(project, channel)
                outcomes.append(outcome)
                if outcome != ItemOutcome.SKIPPED_DUPLICATE:
                    await asyncio.sleep(self.item_delay)

        except ConfigError as e:
            fatal = str(e)
            channel.error(f"Erreur: {e}")
        except Exception as e:
            fatal = str(e)
            self.logger.exception("Feed run failed")
            channel.error(f"Erreur: {e}")
            raise
        finally:
            summary = self._finish(channel, outcomes, total, matched, cancelled, fatal)

        return summary

    async def process_project(self, project, channel: ProgressChannel) -> ItemOutcome:
        """Draft and persist an answer to one freelance project.

        Raises:
            ConfigError: If the language model is not configured.
        """
        try:
            if self.store.exists(CODEUR_PROJECTS, project.link):
                channel.warning("Déjà analysé, passage au suivant")
                return ItemOutcome.SKIPPED_DUPLICATE

            channel.info("Génération de la réponse par IA...")
            message = await self.message_generator.generate(
                MessageInput(
                    company_name=FEED_COMPANY_NAME,
                    segment=Segment.FREELANCE_SME,
                    city="",
                    problem_detected=project.description,
                    business_angle=FEED_BUSINESS_ANGLE,
                )
            )

            if message.is_skip:
                channel.warning("IA a décidé de skipper ce projet")
                return ItemOutcome.SKIPPED_LOW_SCORE

            self.store.upsert(
                CODEUR_PROJECTS,
                {
                    "url": project.link,
                    "title": project.title,
                    "description": project.description,
                    "matched": True,
                    "message_generated": message.content,
                    "score": message.score,
                    "published_at": (
                        project.published_at.isoformat()
                        if project.published_at
                        else None
                    ),
                    "fetched_at": utcnow().isoformat(),
                },
                "url",
            )
            channel.success(
                f"Projet qualifié ! Score: {message.score}/10",
                {"score": message.score, "title": project.title[:60]},
            )
            return ItemOutcome.QUALIFIED

        except ConfigError:
            raise
        except Exception as e:
            self.logger.warning(
                "Project processing failed",
                extra={"link": project.link, "error": str(e)},
            )
            channel.error(f"Erreur sur le projet: {e}")
            return ItemOutcome.ERROR

    # ------------------------------------------------------------------
    # Single-lead operations
    # ------------------------------------------------------------------

    async def qualify_lead(self, lead: RawLead) -> Dict[str, Any]:
        """Qualify a lead and persist it with its verdict.

        Raises:
            InvalidModelResponseError: If the reply lacks a mandatory field.
        """
        result = await self.qualifier.qualify(lead)
        return self.store.insert(
            LEADS,
            {
                **lead.model_dump(mode="json"),
                "score": result.score,
                "verdict": result.verdict.value,
                "segment": result.segment.value,
                "justification": result.justification,
                "status": result.status,
            },
        )

    async def generate_message(
        self, data: MessageInput, lead_id: Optional[str] = None
    ) -> GeneratedMessage:
        """Generate a message for a lead and record it."""
        message = await self.message_generator.generate(data)
        self.store.insert(
            MESSAGES,
            {"lead_id": lead_id, "content": message.content, "channel": "email"},
        )
        return message

    def build_audit(self, place_id: str) -> Dict[str, Any]:
        """Build the PDF audit document of a persisted Google Maps lead.

        Raises:
            KeyError: If no lead is stored for the place.
        """
        record = self.store.get(GOOGLE_MAPS_LEADS, place_id)
        if record is None:
            raise KeyError(f"Unknown place: {place_id}")

        place = PlaceRecord(
            place_id=record["google_place_id"],
            name=record["business_name"],
            address=record.get("address") or "",
            phone=record.get("phone"),
            website=record.get("website"),
            rating=record.get("google_rating"),
            review_count=record.get("reviews_count"),
            types=record.get("types") or [],
        )
        analysis = record.get("website_analysis")
        signals = WebsiteSignals(**analysis) if analysis else None
        return build_audit_payload(place, place.to_business_entity(signals))

    # ------------------------------------------------------------------

    def _finish(
        self,
        channel: ProgressChannel,
        outcomes: List[ItemOutcome],
        total: int,
        matched: int,
        cancelled: bool,
        fatal: Optional[str],
    ) -> RunSummary:
        summary = RunSummary.from_outcomes(outcomes, total=total, matched=matched)
        summary = summary.model_copy(update={"cancelled": cancelled, "error": fatal})

        if cancelled:
            channel.warning("Recherche annulée")
        elif fatal is None:
            channel.success("Recherche terminée !")
        channel.complete(summary)

        self.logger.info("Run completed", extra=summary.model_dump())
        return summary

    async def close(self) -> None:
        """Release the collaborators created by this pipeline."""
        if self._owns_analyzer and self._analyzer is not None:
            await self._analyzer.close()
        if self._owns_scorer and self._scorer is not None:
            self._scorer.close()
        if self._owns_qualifier and self._qualifier is not None:
            self._qualifier.close()
        if self._owns_message_generator and self._message_generator is not None:
            self._message_generator.close()
        if self._owns_places_client and self._places_client is not None:
            self._places_client.close()
        if self._owns_feed_source and self._feed_source is not None:
            self._feed_source.close()
        if self._owns_store and self._store is not None:
            self._store.close()

        self.logger.debug("Pipeline resources closed")

    async def __aenter__(self) -> "LeadRadarPipeline":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def _is_cancelled(cancel_event: Optional[asyncio.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()

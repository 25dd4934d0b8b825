# website_analyzer.py
"""Website signal detection for prospect businesses.

A single GET is issued against the business site; the response time and
the parsed markup are turned into a :class:`WebsiteSignals` record whose
issue and opportunity labels feed the improvement selector and the
scoring prompts.
"""

import time
from typing import List, Optional

import httpx
from bs4 import BeautifulSoup

from .config import config
from .logging_utils import get_logger
from .models import WebsiteSignals

USER_AGENT = "Mozilla/5.0 (compatible; BusinessAnalyzer/1.0)"

MIN_TITLE_LENGTH = 10

BUILD_FROM_SCRATCH = "Création d'un site web professionnel depuis zéro"

FRAMEWORK_FINGERPRINTS = ("react", "vue", "tailwind", "bootstrap")

SOCIAL_LINK_SELECTOR = ", ".join(
    f'a[href*="{network}"]'
    for network in ("facebook", "instagram", "linkedin", "tiktok", "youtube")
)

CONTACT_LINK_SELECTOR = 'a[href*="contact"], a[href*="mailto:"]'


class WebsiteAnalyzer:
    """Fetches a website once and derives quality signals from it.

    Attributes:
        timeout_ms: Fetch timeout in milliseconds.
        slow_threshold_ms: Load time above which the site is flagged slow.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout_ms: Optional[int] = None,
        slow_threshold_ms: Optional[int] = None,
    ):
        self.logger = get_logger(__name__)
        self.timeout_ms = (
            timeout_ms if timeout_ms is not None else config.WEBSITE_FETCH_TIMEOUT_MS
        )
        self.slow_threshold_ms = (
            slow_threshold_ms
            if slow_threshold_ms is not None
            else config.SLOW_SITE_THRESHOLD_MS
        )

        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_ms / 1000),
                headers={"User-Agent": USER_AGENT},
                follow_redirects=True,
            )
        return self._client

    async def detect(self, url: str) -> WebsiteSignals:
        """Analyze a website and return its signals.

        Never raises: fetch or parse failures degrade to a non-existent
        site with a single explanatory issue.

        Args:
            url: Website URL to analyze.

        Returns:
            WebsiteSignals for the URL.
        """
        has_ssl = url.startswith("https://")

        try:
            started = time.monotonic()
            response = await self.client.get(
                url,
                headers={"User-Agent": USER_AGENT},
                timeout=self.timeout_ms / 1000,
                follow_redirects=True,
            )
            load_time_ms = int((time.monotonic() - started) * 1000)

            if not response.is_success:
                self.logger.info(
                    "Website returned an error status",
                    extra={"url": url, "status_code": response.status_code},
                )
                return WebsiteSignals(
                    exists=False,
                    has_ssl=has_ssl,
                    load_time_ms=load_time_ms,
                    issues=(
                        f"Site inaccessible ou erreur HTTP ({response.status_code})",
                    ),
                    opportunities=(BUILD_FROM_SCRATCH,),
                )

            return self._analyze_markup(
                response.text, has_ssl=has_ssl, load_time_ms=load_time_ms
            )

        except Exception as e:
            reason = str(e) or type(e).__name__
            self.logger.warning(
                "Website analysis failed",
                extra={"url": url, "error": reason},
            )
            return WebsiteSignals(
                exists=False,
                has_ssl=has_ssl,
                issues=(f"Impossible d'analyser le site: {reason}",),
                opportunities=(BUILD_FROM_SCRATCH,),
            )

    def _analyze_markup(
        self, html: str, has_ssl: bool, load_time_ms: int
    ) -> WebsiteSignals:
        soup = BeautifulSoup(html, "html.parser")
        issues: List[str] = []
        opportunities: List[str] = []

        page_title = soup.title.get_text().strip() if soup.title else ""

        meta_tag = soup.select_one('meta[name="description"]')
        meta_description = (meta_tag.get("content") or "").strip() if meta_tag else ""

        viewport_tag = soup.select_one('meta[name="viewport"]')
        has_viewport = bool(viewport_tag and viewport_tag.get("content"))

        has_contact = bool(
            soup.find("form") or soup.select_one(CONTACT_LINK_SELECTOR)
        )

        markup = html.lower()
        has_framework = any(marker in markup for marker in FRAMEWORK_FINGERPRINTS)

        has_social = soup.select_one(SOCIAL_LINK_SELECTOR) is not None

        # Check order is the priority order used downstream
        if not has_ssl:
            issues.append("Pas de certificat SSL (HTTP au lieu de HTTPS)")
            opportunities.append("Migration vers HTTPS pour la sécurité")

        if len(page_title) < MIN_TITLE_LENGTH:
            issues.append("Titre de page manquant ou trop court")
            opportunities.append("Optimisation SEO du titre")

        if not meta_description:
            issues.append("Meta description manquante")
            opportunities.append("Ajout de meta descriptions pour le SEO")

        if load_time_ms > self.slow_threshold_ms:
            issues.append(f"Site lent ({load_time_ms}ms)")
            opportunities.append(
                "Optimisation des performances et vitesse de chargement"
            )

        if not has_viewport:
            issues.append("Pas de viewport mobile détecté")
            opportunities.append("Création d'une version mobile responsive")

        if not has_contact:
            issues.append("Aucun formulaire ni lien de contact détecté")
            opportunities.append(
                "Ajout d'un formulaire de contact pour générer des leads"
            )

        if not has_framework:
            issues.append("Aucun framework front-end moderne détecté")
            opportunities.append("Refonte avec un design moderne et attractif")

        if not has_social:
            issues.append("Aucun lien vers les réseaux sociaux")
            opportunities.append(
                "Intégration des réseaux sociaux pour plus de visibilité"
            )

        self.logger.debug(
            "Website analyzed",
            extra={"issue_count": len(issues), "load_time_ms": load_time_ms},
        )

        return WebsiteSignals(
            exists=True,
            load_time_ms=load_time_ms,
            has_mobile_viewport=has_viewport,
            has_ssl=has_ssl,
            page_title=page_title or None,
            meta_description=meta_description or None,
            has_contact_affordance=has_contact,
            issues=tuple(issues),
            opportunities=tuple(opportunities),
        )

    async def close(self) -> None:
        """Close the HTTP client if it was created by this analyzer."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "WebsiteAnalyzer":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def summarize_opportunities(signals: Optional[WebsiteSignals]) -> str:
    """Summarize website signals as French text for scoring prompts."""
    if signals is None or not signals.exists:
        return (
            "Cette entreprise n'a pas de site web. "
            "Opportunité de créer un site professionnel complet."
        )

    problems = ", ".join(signals.issues)
    opportunities = ", ".join(signals.opportunities)
    return (
        f"Site existant avec {len(signals.issues)} problème(s) détecté(s): "
        f"{problems}. Opportunités: {opportunities}"
    )

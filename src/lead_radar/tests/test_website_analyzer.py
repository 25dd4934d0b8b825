# src/lead_radar/tests/test_website_analyzer.py
"""
Unit tests for Lead Radar website signal detection.

Tests cover:
- Healthy sites with no findings
- Each missing-signal issue and its opportunity
- Non-2xx responses and transport failures
- Slow sites
- Opportunity summaries for prompts
"""
import httpx
import pytest

from lead_radar.models import WebsiteSignals
from lead_radar.website_analyzer import (
    BUILD_FROM_SCRATCH,
    WebsiteAnalyzer,
    summarize_opportunities,
)


HEALTHY_HTML = """
<html>
<head>
  <title>Boulangerie Martin - Lyon 3</title>
  <meta name="description" content="Pains et viennoiseries artisanales">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <link rel="stylesheet" href="/css/bootstrap.min.css">
</head>
<body>
  <a href="/contact">Nous contacter</a>
  <a href="https://www.instagram.com/boulangerie">Instagram</a>
</body>
</html>
"""

BARE_HTML = "<html><head><title>Accueil</title></head><body>Bienvenue</body></html>"


def make_analyzer(handler, slow_threshold_ms=3000):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WebsiteAnalyzer(
        client=client, timeout_ms=5000, slow_threshold_ms=slow_threshold_ms
    )


def html_handler(body, status_code=200):
    def handler(request):
        return httpx.Response(status_code, text=body)

    return handler


class TestDetect:
    """Tests for WebsiteAnalyzer.detect()."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_healthy_site_has_no_findings(self):
        analyzer = make_analyzer(html_handler(HEALTHY_HTML))

        signals = await analyzer.detect("https://boulangerie-martin.fr")

        assert signals.exists is True
        assert signals.has_ssl is True
        assert signals.has_mobile_viewport is True
        assert signals.has_contact_affordance is True
        assert signals.page_title == "Boulangerie Martin - Lyon 3"
        assert signals.meta_description == "Pains et viennoiseries artisanales"
        assert signals.issues == ()
        assert signals.opportunities == ()
        assert signals.has_findings() is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_bare_site_reports_issues_in_order(self):
        analyzer = make_analyzer(html_handler(BARE_HTML))

        signals = await analyzer.detect("http://vieux-site.fr")

        assert signals.exists is True
        assert signals.has_ssl is False
        assert signals.issues == (
            "Pas de certificat SSL (HTTP au lieu de HTTPS)",
            "Titre de page manquant ou trop court",
            "Meta description manquante",
            "Pas de viewport mobile détecté",
            "Aucun formulaire ni lien de contact détecté",
            "Aucun framework front-end moderne détecté",
            "Aucun lien vers les réseaux sociaux",
        )
        assert len(signals.opportunities) == len(signals.issues)
        assert signals.opportunities[0] == "Migration vers HTTPS pour la sécurité"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_form_counts_as_contact_affordance(self):
        body = HEALTHY_HTML.replace(
            '<a href="/contact">Nous contacter</a>', "<form></form>"
        )
        analyzer = make_analyzer(html_handler(body))

        signals = await analyzer.detect("https://boulangerie-martin.fr")

        assert signals.has_contact_affordance is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_slow_site_flagged(self):
        analyzer = make_analyzer(html_handler(HEALTHY_HTML), slow_threshold_ms=-1)

        signals = await analyzer.detect("https://boulangerie-martin.fr")

        assert len(signals.issues) == 1
        assert signals.issues[0].startswith("Site lent (")
        assert signals.opportunities == (
            "Optimisation des performances et vitesse de chargement",
        )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_error_status_means_no_site(self):
        analyzer = make_analyzer(html_handler("Not found", status_code=404))

        signals = await analyzer.detect("https://disparu.fr")

        assert signals.exists is False
        assert signals.has_ssl is True
        assert signals.issues == ("Site inaccessible ou erreur HTTP (404)",)
        assert signals.opportunities == (BUILD_FROM_SCRATCH,)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout_degrades_to_single_issue(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        analyzer = make_analyzer(handler)

        signals = await analyzer.detect("http://lent.fr")

        assert signals.exists is False
        assert signals.has_ssl is False
        assert len(signals.issues) == 1
        assert signals.issues[0].startswith("Impossible d'analyser le site")
        assert signals.opportunities == (BUILD_FROM_SCRATCH,)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(html_handler("")))
        analyzer = WebsiteAnalyzer(client=client)

        await analyzer.close()

        assert client.is_closed is False
        await client.aclose()


class TestSummarizeOpportunities:
    """Tests for summarize_opportunities()."""

    @pytest.mark.unit
    def test_no_site(self):
        summary = summarize_opportunities(None)
        assert "pas de site web" in summary

    @pytest.mark.unit
    def test_existing_site_mentions_problems(self):
        signals = WebsiteSignals(
            exists=True,
            issues=("Meta description manquante",),
            opportunities=("Ajout de meta descriptions pour le SEO",),
        )
        summary = summarize_opportunities(signals)

        assert "1 problème(s)" in summary
        assert "Meta description manquante" in summary
        assert "Ajout de meta descriptions pour le SEO" in summary

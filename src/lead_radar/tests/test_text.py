# src/lead_radar/tests/test_text.py
"""
Unit tests for Lead Radar text normalization.

Tests cover:
- Entity decoding and tag removal
- Whitespace collapsing and trimming
- Malformed and unterminated markup
- Empty input and idempotence
"""
import pytest

from lead_radar.text import normalize, strip_tags


class TestStripTags:
    """Tests for strip_tags()."""

    @pytest.mark.unit
    def test_removes_simple_tags(self):
        assert strip_tags("<p>Bonjour <b>Lyon</b></p>") == "Bonjour Lyon"

    @pytest.mark.unit
    def test_unterminated_tag_runs_to_end(self):
        assert strip_tags("Projet <a href='x' sans fin") == "Projet "


class TestNormalize:
    """Tests for normalize()."""

    @pytest.mark.unit
    def test_decodes_entities_and_removes_tags(self):
        raw = "<p>Cr&eacute;ation d&#39;un site &amp; SEO</p>"
        assert normalize(raw) == "Création d'un site & SEO"

    @pytest.mark.unit
    def test_escaped_markup_is_removed(self):
        raw = "&lt;p&gt;Refonte &lt;strong&gt;vitrine&lt;/strong&gt;&lt;/p&gt;"
        assert normalize(raw) == "Refonte vitrine"

    @pytest.mark.unit
    def test_collapses_whitespace(self):
        raw = "  Application\n\n\tmobile   iOS \r\n Android  "
        assert normalize(raw) == "Application mobile iOS Android"

    @pytest.mark.unit
    def test_empty_and_none(self):
        assert normalize("") == ""
        assert normalize(None) == ""

    @pytest.mark.unit
    def test_malformed_markup_does_not_raise(self):
        assert normalize("Budget <br 3000 euros") == "Budget"

    @pytest.mark.unit
    def test_idempotent(self):
        raw = "&amp;lt;div&amp;gt; Site   e-commerce &amp;amp; paiement"
        once = normalize(raw)
        assert normalize(once) == once

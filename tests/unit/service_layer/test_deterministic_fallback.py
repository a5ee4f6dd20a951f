"""
Unit Tests for the Deterministic Fallback Generator
"""

import pytest

from tests.test_fixtures.request_factory import RequestFactory
from tutor_gateway.llm_stream.models.topic import TopicContext
from tutor_gateway.llm_stream.services.deterministic_fallback import (
    CLOSING_PARAGRAPH,
    extract_key_sentences,
    fold_accents,
    generate_fallback_expansion,
    resolve_topic,
)

QUESTION = "¿Cómo ajusto la PEEP?"


@pytest.mark.unit
class TestFallbackExplanation:
    """Test the rendered markdown explanation."""

    def test_full_context_sections(self):
        expansion = generate_fallback_expansion(RequestFactory.topic_context(), QUESTION)
        text = expansion.expanded_explanation

        assert text.startswith("## Parámetros ventilatorios\n")
        assert "En el contexto de **Ventilación con PEEP**" in text
        assert "### Respuesta a tu pregunta" in text
        assert f"**{QUESTION}**" in text
        assert "### Información clave" in text
        assert "- La presión positiva al final de la espiración evita el colapso alveolar." in text
        assert "### Consideraciones importantes" in text
        assert text.endswith(CLOSING_PARAGRAPH)

    def test_section_order(self):
        text = generate_fallback_expansion(RequestFactory.topic_context(), QUESTION).expanded_explanation

        positions = [
            text.index("## Parámetros"),
            text.index("### Respuesta a tu pregunta"),
            text.index("### Información clave"),
            text.index("### Consideraciones importantes"),
            text.index("### Para profundizar"),
        ]
        assert positions == sorted(positions)

    def test_minimal_context(self):
        text = generate_fallback_expansion(TopicContext(lesson_id="l1")).expanded_explanation

        assert text.startswith("## este tema")
        assert "En el contexto de" not in text
        assert "### Respuesta a tu pregunta" not in text
        assert "### Información clave" not in text
        assert "### Para profundizar" in text

    def test_selection_wins_topic(self):
        context = RequestFactory.topic_context(user_selection="auto-PEEP")
        assert resolve_topic(context) == "auto-PEEP"
        assert generate_fallback_expansion(context).expanded_explanation.startswith("## auto-PEEP")

    def test_objectives_used_when_longer_than_content(self):
        context = RequestFactory.topic_context(section_content="Breve.")
        objectives = [
            "Identificar los efectos hemodinámicos de una PEEP elevada",
            "Seleccionar la PEEP óptima según la curva presión-volumen",
        ]

        text = generate_fallback_expansion(context, objectives=objectives).expanded_explanation

        assert "- Identificar los efectos hemodinámicos de una PEEP elevada." in text

    @pytest.mark.parametrize(
        "section_title,heading",
        [
            ("Modos de ventilación", "### Aspectos clave"),
            ("Configuración inicial", "### Puntos a considerar"),
            ("PARÁMETROS básicos", "### Consideraciones importantes"),
        ],
    )
    def test_category_notes_match_accent_insensitively(self, section_title, heading):
        context = RequestFactory.topic_context(section_title=section_title)
        assert heading in generate_fallback_expansion(context).expanded_explanation

    def test_no_category_for_unrelated_title(self):
        context = RequestFactory.topic_context(section_title="Historia clínica")
        text = generate_fallback_expansion(context).expanded_explanation
        assert "### Aspectos clave" not in text
        assert "### Consideraciones importantes" not in text

    def test_markup_in_context_is_sanitized(self):
        context = TopicContext(lesson_id="l1", section_title="<script>alert(1)</script>PEEP")
        assert generate_fallback_expansion(context).expanded_explanation.startswith("## PEEP")

    def test_output_is_deterministic(self):
        context = RequestFactory.topic_context()
        assert generate_fallback_expansion(context, QUESTION) == generate_fallback_expansion(context, QUESTION)


@pytest.mark.unit
class TestFallbackStructuredFields:
    """Test key points, references and links."""

    def test_key_points_capped_at_six(self):
        expansion = generate_fallback_expansion(RequestFactory.topic_context(), QUESTION)

        assert len(expansion.key_points) == 6
        assert expansion.key_points[0] == "Parámetros ventilatorios es un concepto fundamental en ventilación mecánica."
        assert expansion.key_points[1] == "Este tema forma parte de Ventilación con PEEP."

    def test_key_points_without_titles(self):
        assert len(generate_fallback_expansion(TopicContext(lesson_id="l1")).key_points) == 3

    def test_references_follow_topic_keyword(self):
        expansion = generate_fallback_expansion(RequestFactory.topic_context())
        assert expansion.suggested_references == [
            "Guía de parámetros de ventilación mecánica",
            "Principios de ajuste de parámetros ventilatorios",
            "Protocolos de ventilación mecánica",
            "Evidencia actual en cuidados respiratorios",
        ]

    def test_references_from_lesson_title(self):
        context = TopicContext(lesson_id="l1", lesson_title="Fisiología pulmonar")
        assert generate_fallback_expansion(context).suggested_references[0] == "Fisiología respiratoria aplicada"

    def test_default_references(self):
        expansion = generate_fallback_expansion(TopicContext(lesson_id="l1"))
        assert expansion.suggested_references[:2] == [
            "Guía de ventilación mecánica básica",
            "Principios de fisiología respiratoria",
        ]

    def test_internal_links(self):
        links = generate_fallback_expansion(RequestFactory.topic_context()).internal_links

        assert [(link.url, link.description) for link in links] == [
            ("/teaching/module-vm-basics/lesson-peep-01", "Ver lección completa"),
            ("/teaching/module-vm-basics", "Ver módulo completo"),
        ]
        assert links[0].title == "Ventilación con PEEP"

    def test_no_links_without_module(self):
        context = RequestFactory.topic_context(module_id=None)
        assert generate_fallback_expansion(context).internal_links == []

    def test_source_is_fallback(self):
        expansion = generate_fallback_expansion(TopicContext(lesson_id="l1"))
        assert expansion.source == "fallback"
        assert expansion.provider is None


@pytest.mark.unit
class TestHelpers:
    def test_fold_accents(self):
        assert fold_accents("Ventilación MECÁNICA") == "ventilacion mecanica"

    def test_short_text_has_no_key_sentences(self):
        assert extract_key_sentences("Texto corto sobre la PEEP.") == []

    def test_key_sentences_capped_at_five(self):
        text = " ".join(f"Esta es la oración número {i} del contenido." for i in range(8))
        assert len(extract_key_sentences(text)) == 5

    def test_short_fragments_skipped(self):
        text = "Ver figura. " + "La compliance estática refleja la elasticidad del sistema respiratorio."
        assert extract_key_sentences(text) == [
            "La compliance estática refleja la elasticidad del sistema respiratorio"
        ]

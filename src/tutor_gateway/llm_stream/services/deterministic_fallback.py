"""
Deterministic Fallback Generator

Builds a templated, LLM-free TopicExpansion from whatever reading context
is available. Used whenever no vendor can answer (nothing configured,
nothing resolvable, or an empty upstream that survived retries) so the
learner always receives a usable answer.

The output is a pure function of its inputs: the same context and
question always render the same text.

Author: System Architect
Date: 2025-12-09
"""

import re
import unicodedata

from tutor_gateway.core.config.constants import MAX_INTERNAL_LINKS, MAX_KEY_POINTS, MAX_REFERENCES
from tutor_gateway.llm_stream.models.topic import InternalLink, TopicContext, TopicExpansion
from tutor_gateway.llm_stream.services.text_sanitizer import sanitize_text

DEFAULT_TOPIC = "este tema"

MIN_CONTEXT_CHARS = 50
MIN_SENTENCE_CHARS = 20
MAX_CONTEXT_SENTENCES = 5

_SENTENCE_SPLIT = re.compile(r"[.!?]+")

# (section-title keywords, heading, bullet lines)
CATEGORY_NOTES: tuple[tuple[tuple[str, ...], str, tuple[str, ...]], ...] = (
    (
        ("parametro", "paramentro"),
        "### Consideraciones importantes",
        (
            "Los parámetros de ventilación mecánica deben ajustarse según las necesidades del paciente.",
            "Es fundamental monitorear la respuesta del paciente a los cambios.",
            "La interpretación debe considerar el contexto clínico completo.",
        ),
    ),
    (
        ("modo", "ventilacion"),
        "### Aspectos clave",
        (
            "Cada modo de ventilación tiene indicaciones específicas.",
            "La selección del modo depende de la condición del paciente.",
            "Es importante comprender los principios fisiológicos subyacentes.",
        ),
    ),
    (
        ("configuracion", "ajuste"),
        "### Puntos a considerar",
        (
            "La configuración inicial debe basarse en parámetros estándar.",
            "Los ajustes deben realizarse de forma gradual y monitoreada.",
            "Documentar todos los cambios en los parámetros.",
        ),
    ),
)

# (topic keywords, keyword-specific reference pair)
REFERENCE_PAIRS: tuple[tuple[tuple[str, ...], tuple[str, str]], ...] = (
    (
        ("parametro", "paramentro"),
        ("Guía de parámetros de ventilación mecánica", "Principios de ajuste de parámetros ventilatorios"),
    ),
    (
        ("modo", "ventilacion"),
        ("Manual de modos de ventilación mecánica", "Fundamentos de ventilación mecánica"),
    ),
    (
        ("fisiologia",),
        ("Fisiología respiratoria aplicada", "Principios de mecánica respiratoria"),
    ),
)
DEFAULT_REFERENCE_PAIR = ("Guía de ventilación mecánica básica", "Principios de fisiología respiratoria")
GENERIC_REFERENCES = ("Protocolos de ventilación mecánica", "Evidencia actual en cuidados respiratorios")

CLOSING_PARAGRAPH = (
    "Este tema requiere estudio continuo y práctica clínica supervisada. Te recomendamos revisar "
    "los recursos adicionales disponibles en la plataforma y consultar con profesionales "
    "experimentados cuando sea necesario."
)


def fold_accents(text: str) -> str:
    """Lower-case and strip combining marks ("Ventilación" -> "ventilacion")."""
    decomposed = unicodedata.normalize("NFD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _clean(value: str | None) -> str:
    return (value or "").strip()


def resolve_topic(context: TopicContext) -> str:
    return (
        _clean(context.user_selection)
        or _clean(context.section_title)
        or _clean(context.lesson_title)
        or DEFAULT_TOPIC
    )


def _longest_context_text(context: TopicContext) -> str:
    candidates = [
        _clean(context.section_content),
        _clean(context.visible_text),
    ]
    return max(candidates, key=len)


def extract_key_sentences(text: str) -> list[str]:
    """First sentences of the context text that carry real content."""
    if len(text) <= MIN_CONTEXT_CHARS:
        return []
    pieces = (piece.strip() for piece in _SENTENCE_SPLIT.split(text))
    return [piece for piece in pieces if len(piece) > MIN_SENTENCE_CHARS][:MAX_CONTEXT_SENTENCES]


def _build_explanation(context: TopicContext, question: str | None, objectives_text: str) -> str:
    topic = resolve_topic(context)
    lesson_title = _clean(context.lesson_title)
    question = _clean(question)

    lines = [f"## {topic}", ""]

    if lesson_title:
        lines += [
            f"En el contexto de **{lesson_title}**, este tema es fundamental para comprender "
            "los principios de ventilación mecánica.",
            "",
        ]

    if question:
        lines += [
            "### Respuesta a tu pregunta",
            "",
            f"**{question}**",
            "",
            f"Para responder esta pregunta sobre {topic}, es importante considerar:",
            "",
        ]

    source_text = max(_longest_context_text(context), objectives_text, key=len)
    sentences = extract_key_sentences(source_text)
    if sentences:
        lines += ["### Información clave", ""]
        lines += [f"- {sentence}." for sentence in sentences]
        lines.append("")

    section_title = fold_accents(_clean(context.section_title))
    if section_title:
        for keywords, heading, bullets in CATEGORY_NOTES:
            if any(keyword in section_title for keyword in keywords):
                lines += [heading, ""]
                lines += [f"- {bullet}" for bullet in bullets]
                lines.append("")
                break

    lines += ["### Para profundizar", "", CLOSING_PARAGRAPH, ""]
    return "\n".join(lines)


def _build_key_points(context: TopicContext, question: str | None) -> list[str]:
    points: list[str] = []
    if _clean(context.section_title):
        points.append(f"{_clean(context.section_title)} es un concepto fundamental en ventilación mecánica.")
    if _clean(context.lesson_title):
        points.append(f"Este tema forma parte de {_clean(context.lesson_title)}.")

    points += [
        "La comprensión de los principios básicos es esencial para la práctica clínica.",
        "Los parámetros deben ajustarse según las necesidades individuales del paciente.",
        "El monitoreo continuo es fundamental para evaluar la respuesta del paciente.",
    ]

    if _clean(question):
        points += [
            "La respuesta debe considerar el contexto clínico completo.",
            "Es importante consultar fuentes actualizadas y evidencia científica.",
        ]
    return points[:MAX_KEY_POINTS]


def _build_references(context: TopicContext) -> list[str]:
    topic = fold_accents(_clean(context.section_title) or _clean(context.lesson_title))
    pair = DEFAULT_REFERENCE_PAIR
    for keywords, candidate in REFERENCE_PAIRS:
        if any(keyword in topic for keyword in keywords):
            pair = candidate
            break
    return [*pair, *GENERIC_REFERENCES][:MAX_REFERENCES]


def _build_links(context: TopicContext) -> list[InternalLink]:
    links: list[InternalLink] = []
    if not (context.module_id and context.lesson_id):
        return links

    if _clean(context.lesson_title):
        links.append(
            InternalLink(
                title=_clean(context.lesson_title),
                url=f"/teaching/{context.module_id}/{context.lesson_id}",
                description="Ver lección completa",
            )
        )
    if _clean(context.module_title):
        links.append(
            InternalLink(
                title=_clean(context.module_title),
                url=f"/teaching/{context.module_id}",
                description="Ver módulo completo",
            )
        )
    return links[:MAX_INTERNAL_LINKS]


def generate_fallback_expansion(
    context: TopicContext,
    question: str | None = None,
    objectives: list[str] | None = None,
) -> TopicExpansion:
    """
    Render the deterministic expansion.

    STAGE-5.1: Deterministic fallback

    Args:
        context: Reading context (only lesson_id is required)
        question: Optional learner question, echoed in bold
        objectives: Lesson objectives, used as context text when longer
            than the section content

    Returns:
        TopicExpansion with source="fallback"
    """
    objectives_text = ". ".join(o.strip() for o in objectives or [] if o.strip())

    return TopicExpansion(
        expanded_explanation=sanitize_text(_build_explanation(context, question, objectives_text)),
        key_points=[sanitize_text(point) for point in _build_key_points(context, question)],
        suggested_references=[sanitize_text(ref) for ref in _build_references(context)],
        internal_links=[
            InternalLink(
                title=sanitize_text(link.title),
                url=sanitize_text(link.url),
                description=sanitize_text(link.description),
            )
            for link in _build_links(context)
        ],
        source="fallback",
    )

"""
Prompt Builders and Suggestion Templates

Minimal, static prompt text for the two tutor flows plus the follow-up
question templates shown after every answer. Bump PROMPT_TEMPLATE_VERSION
whenever the text here changes so cached answers are not reused.
"""

from tutor_gateway.core.config.constants import (
    MAX_HISTORY_MESSAGES,
    MAX_PROMPT_CONTENT_CHARS,
    MAX_PROMPT_SELECTION_CHARS,
    MAX_SUGGESTIONS,
    LessonType,
)
from tutor_gateway.llm_stream.models.stream_request import ChatMessage
from tutor_gateway.llm_stream.models.topic import TopicContext
from tutor_gateway.llm_stream.models.tutor import LessonContext
from tutor_gateway.llm_stream.services.text_sanitizer import limit_length, sanitize_pii

# ============================================================================
# Tutor conversation
# ============================================================================

TUTOR_BASE_PROMPT = """Eres un tutor experto en ventilación mecánica que ayuda a estudiantes a comprender conceptos complejos de manera clara y práctica.

Contexto de la lección:
Título: {title}{objectives}{tags}

Instrucciones:
- Responde de manera clara, concisa y didáctica
- Usa ejemplos clínicos cuando sea relevante
- Si no estás seguro de algo, admítelo y sugiere consultar fuentes adicionales
- Mantén un tono profesional pero accesible"""

LESSON_TYPE_FOCUS = {
    LessonType.TEORIA: "Tipo de lección: Teoría\n- Explica conceptos fundamentales de manera estructurada",
    LessonType.CASO_CLINICO: "Tipo de lección: Caso clínico\n- Enfócate en la aplicación práctica de conceptos",
    LessonType.SIMULACION: "Tipo de lección: Simulación\n- Explica las relaciones causa-efecto entre parámetros",
    LessonType.EVALUACION: "Tipo de lección: Evaluación\n- Proporciona retroalimentación constructiva",
}


def build_tutor_system_prompt(context: LessonContext) -> str:
    objectives = ""
    if context.objectives:
        objectives = "\nObjetivos de aprendizaje:\n" + "\n".join(f"- {o}" for o in context.objectives)
    tags = f"\nTemas relacionados: {', '.join(context.tags)}" if context.tags else ""

    base = TUTOR_BASE_PROMPT.format(title=context.title, objectives=objectives, tags=tags)
    return f"{base}\n\n{LESSON_TYPE_FOCUS[context.lesson_type]}"


def trim_history(history: list[ChatMessage], max_messages: int = MAX_HISTORY_MESSAGES) -> list[ChatMessage]:
    """Keep the first turn plus the most recent ``max_messages - 1``."""
    if len(history) <= max_messages:
        return list(history)
    return [history[0], *history[-(max_messages - 1):]]


# ============================================================================
# Follow-up suggestions
# ============================================================================

SUGGESTION_TEMPLATES = {
    LessonType.CASO_CLINICO: (
        "¿Qué ajuste de PEEP justificarías si la compliancia cae a 25 mL/cmH₂O?",
        "¿Cómo interpretarías una curva de presión que muestra auto-PEEP?",
        "¿Qué modalidad ventilatoria elegirías para este caso y por qué?",
        "¿Qué parámetros monitorearías para evaluar la respuesta del paciente?",
    ),
    LessonType.SIMULACION: (
        "¿Qué ocurre si aumento la PEEP manteniendo el volumen tidal constante?",
        "¿Cómo afecta el tiempo inspiratorio a la presión media?",
        "¿Qué pasa con el volumen minuto si cambio la frecuencia respiratoria?",
        "¿Cómo se relacionan la compliance y la presión plateau?",
    ),
    LessonType.EVALUACION: (
        "¿Puedes explicar por qué esta respuesta es correcta?",
        "¿Qué conceptos clave debo repasar?",
        "¿Hay algún error común que debo evitar?",
        "¿Qué ejercicios adicionales me recomiendas?",
    ),
}


def _theory_suggestions(context: LessonContext) -> list[str]:
    if context.objectives:
        return [
            f'¿Puedes explicar "{context.objectives[0]}" con un ejemplo numérico sencillo?',
            "¿Cómo se relaciona este concepto con la práctica clínica?",
            "¿Qué diferencias hay entre los distintos modos ventilatorios?",
            "¿Puedes darme una analogía para entender mejor este concepto?",
        ]
    return [
        f'¿Puedes explicar "{context.title}" con un ejemplo práctico?',
        "¿Cómo se aplica esto en la práctica clínica?",
        "¿Qué parámetros son más importantes en este contexto?",
        "¿Puedes ayudarme a entender la relación entre estos conceptos?",
    ]


def generate_suggestions(context: LessonContext) -> list[str]:
    """Four templates for the lesson type plus up to two tag-based questions."""
    if context.lesson_type in SUGGESTION_TEMPLATES:
        suggestions = list(SUGGESTION_TEMPLATES[context.lesson_type])
    else:
        suggestions = _theory_suggestions(context)

    suggestions += [f'¿Cómo se relaciona "{tag}" con este tema?' for tag in context.tags[:2]]
    return suggestions[:MAX_SUGGESTIONS]


# ============================================================================
# Topic expansion
# ============================================================================

EXPAND_TOPIC_SYSTEM_PROMPT = """Eres un tutor clínico-educativo especializado en ventilación mecánica. Generas expansiones de temas educativos en lenguaje claro, sin proporcionar recomendaciones médicas para pacientes reales.

Responde únicamente con un JSON con esta estructura:

{
  "expandedExplanation": "Explicación ampliada (400-600 palabras)",
  "keyPoints": ["punto clave 1", "..."],
  "furtherReading": ["recurso 1", "..."],
  "internalLinks": [{"title": "Título", "route": "/teaching/...", "description": "Opcional"}]
}

No inventes DOIs ni referencias específicas."""


def build_expand_user_prompt(context: TopicContext, question: str | None) -> str:
    """
    Describe the learner's reading position for the expansion prompt.

    Lesson content and selection are PII-sanitized and capped before they
    leave the process.
    """
    parts: list[str] = []

    crumbs = [c for c in context.breadcrumbs if c] or [
        t for t in (context.module_title, context.lesson_title, context.section_title) if t
    ]
    if crumbs:
        parts.append(f"Ruta: {' > '.join(crumbs)}")
    parts.append("")

    if context.module_title:
        parts.append(f"Módulo: {context.module_title}")
    if context.lesson_title:
        parts.append(f"Lección: {context.lesson_title}")
    if context.section_title:
        parts.append(f"Sección: {context.section_title}")
    parts.append("")

    content = context.section_content or context.visible_text
    if content:
        parts += ["Contenido de la sección:", limit_length(sanitize_pii(content), MAX_PROMPT_CONTENT_CHARS), ""]

    if context.user_selection:
        selection = limit_length(sanitize_pii(context.user_selection), MAX_PROMPT_SELECTION_CHARS)
        parts += [f'Texto seleccionado por el usuario: "{selection}"', ""]

    if question and question.strip():
        parts += [f"Pregunta del usuario: {sanitize_pii(question.strip())}", ""]

    parts.append("Genera una expansión del tema siguiendo la estructura JSON indicada.")
    return "\n".join(parts)

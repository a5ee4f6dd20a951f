"""
Response Fingerprints

Cache keys for tutor answers. Two questions that differ only in case,
accents or spacing map to the same fingerprint; changing the lesson, the
provider or the prompt template version always changes it.
"""

import hashlib
import re
import unicodedata

from tutor_gateway.core.config.constants import PROMPT_TEMPLATE_VERSION

_WHITESPACE = re.compile(r"\s+")


def normalize_question(question: str) -> str:
    """Lower-case, strip accents (NFD + drop combining marks) and collapse whitespace."""
    decomposed = unicodedata.normalize("NFD", question.lower().strip())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", stripped).strip()


def build_fingerprint(
    question: str,
    lesson_id: str,
    provider_name: str,
    template_version: str = PROMPT_TEMPLATE_VERSION,
) -> str:
    """
    sha256 over ``normalized question | lesson id | provider | template version``.

    Returns:
        64-character hex digest
    """
    material = f"{normalize_question(question)}|{lesson_id}|{provider_name}|{template_version}"
    return hashlib.sha256(material.encode("utf-8")).hexdigest()

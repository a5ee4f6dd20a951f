"""
Text Sanitization

Pure ``text -> text`` helpers applied to anything that leaves the gateway
(answers, key points, links) and to lesson content before it is sent to a
vendor.
"""

import re

_DANGEROUS_TAGS = ("script", "iframe", "object", "embed", "link", "meta")
_TAG_PATTERNS = [
    re.compile(rf"<{tag}\b[^<]*(?:(?!</{tag}>)<[^<]*)*</{tag}>", re.IGNORECASE) for tag in _DANGEROUS_TAGS
]
# Void forms (<meta ...>, <link ...>) carry no closing tag
_VOID_TAG = re.compile(r"<(?:link|meta|embed)\b[^>]*/?>", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"""\bon\w+\s*=\s*(?:"[^"]*"|'[^']*')""", re.IGNORECASE)
_JS_PROTOCOL = re.compile(r"javascript:", re.IGNORECASE)

_EMAIL = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_LONG_ID = re.compile(r"\b\d{8,15}\b")
_PHONE = re.compile(r"(\+?\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")
_URL = re.compile(r"https?://\S+")
_PUBLIC_RESOURCE = re.compile(r"\.(edu|org|gov|com)/")
_WHITESPACE = re.compile(r"\s+")

_SENTENCE_ENDINGS = ".!?"


def sanitize_text(text: str | None) -> str:
    """Remove executable markup (script-like tags, inline handlers, javascript: URLs) and trim."""
    if not text:
        return ""
    sanitized = text
    for pattern in _TAG_PATTERNS:
        sanitized = pattern.sub("", sanitized)
    sanitized = _VOID_TAG.sub("", sanitized)
    sanitized = _EVENT_HANDLER.sub("", sanitized)
    sanitized = _JS_PROTOCOL.sub("", sanitized)
    return sanitized.strip()


def _mask_url(match: re.Match) -> str:
    url = match.group(0)
    return url if _PUBLIC_RESOURCE.search(url) else "[url]"


def sanitize_pii(text: str | None) -> str:
    """
    Mask personal data before text is sent to a vendor.

    Emails, long numeric identifiers, phone numbers and non-public URLs are
    replaced with placeholders; whitespace is collapsed.
    """
    if not text:
        return ""
    sanitized = _EMAIL.sub("[email]", text)
    sanitized = _LONG_ID.sub("[id]", sanitized)
    sanitized = _PHONE.sub("[phone]", sanitized)
    sanitized = _URL.sub(_mask_url, sanitized)
    return _WHITESPACE.sub(" ", sanitized).strip()


def limit_length(text: str, max_length: int) -> str:
    """Hard cut with an ellipsis marker."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def truncate_at_boundary(text: str, max_length: int, min_ratio: float = 0.8) -> str:
    """
    Truncate to ``max_length`` at a clean boundary.

    Prefers the last sentence end, then the last space, as long as it lies
    beyond ``min_ratio`` of the limit; otherwise cuts hard. "..." is appended
    whenever text was removed.
    """
    if len(text) <= max_length:
        return text

    head = text[:max_length]
    threshold = int(max_length * min_ratio)

    sentence_end = max(head.rfind(ch) for ch in _SENTENCE_ENDINGS)
    if sentence_end >= threshold:
        return head[: sentence_end + 1] + "..."

    space = head.rfind(" ")
    if space >= threshold:
        return head[:space].rstrip() + "..."

    return head + "..."

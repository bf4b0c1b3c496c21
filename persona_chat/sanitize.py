"""Response sanitizer: clean raw backend text before it is persisted.

Steps, in order:
  1. Trim surrounding whitespace.
  2. Drop bracketed meta-commentary ("[smiles]", "[Stay in character...]").
  3. Drop a leading role prefix (Assistant:, AI:, Bot:; any case).
  4. Unwrap markdown bold (**text** → text).
  Steps 2-4 repeat until the text stops changing, so "**Bot:** hi" and
  stacked prefixes ("Assistant: AI: hi") come out clean in one call.
  5. Under MIN_LENGTH characters → FALLBACK_REPLY.
     Over MAX_LENGTH → whole sentences while under TRUNCATE_AT, else a hard
     cut at TRUNCATE_AT plus "...".

The result is never shorter than MIN_LENGTH and never longer than
TRUNCATE_AT + len("..."), and sanitizing it again returns it unchanged.
"""

import re

MIN_LENGTH = 10
MAX_LENGTH = 1000
TRUNCATE_AT = 800

FALLBACK_REPLY = (
    "I appreciate you reaching out, but I'm having trouble formulating a "
    "proper response right now. Could you try rephrasing your message?"
)

_BRACKETED = re.compile(r"\[.*?\]")
_ROLE_PREFIX = re.compile(r"^(?:Assistant|AI|Bot):\s*", re.IGNORECASE)
_BOLD = re.compile(r"\*\*(.*?)\*\*")
_SENTENCE = re.compile(r"[^.!?]+[.!?]*|[.!?]+")


def sanitize_response(raw: str) -> str:
    cleaned = _strip_markup(raw.strip())

    if len(cleaned) < MIN_LENGTH:
        return FALLBACK_REPLY

    if len(cleaned) > MAX_LENGTH:
        cleaned = _truncate(cleaned)

    return cleaned


def _strip_markup(text: str) -> str:
    # every pass that changes the text makes it shorter, so this terminates
    while True:
        cleaned = _BRACKETED.sub("", text).strip()
        cleaned = _ROLE_PREFIX.sub("", cleaned)
        cleaned = _BOLD.sub(r"\1", cleaned).strip()
        if cleaned == text:
            return cleaned
        text = cleaned


def _truncate(text: str) -> str:
    """Keep whole sentences while the running length stays under TRUNCATE_AT."""
    kept = ""
    for sentence in _SENTENCE.findall(text):
        if len(kept + sentence) >= TRUNCATE_AT:
            break
        kept += sentence
    kept = kept.strip()
    if len(kept) < MIN_LENGTH:
        return text[:TRUNCATE_AT] + "..."
    return kept

"""Match evaluation for new posts."""

from __future__ import annotations

import re

# Solana mint: base58, 32-44 chars
_MINT = r"[1-9A-HJ-NP-Za-km-z]{32,44}"
_TOKEN_PATTERNS = [
    re.compile(rf"\bca\s*[:;]?\s*({_MINT})\b", re.IGNORECASE),
    re.compile(rf"\b({_MINT})\b"),
]


def matches(text: str, keyword: str) -> bool:
    """Blank keyword matches any post; otherwise case-insensitive substring."""
    if keyword.strip() == "":
        return True
    return keyword.lower() in (text or "").lower()


def match_reason(keyword: str) -> str:
    if keyword.strip() == "":
        return "any post (no keyword filter)"
    return f'contains keyword "{keyword}"'


def extract_token_address(text: str) -> str | None:
    """First mint address in the post, preferring one labelled ``CA:``."""
    for pattern in _TOKEN_PATTERNS:
        found = pattern.search(text or "")
        if found:
            return found.group(1)
    return None

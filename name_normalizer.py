"""
Name canonicalization for matching spreadsheet names against the registry.

Attendance sheets are typed by hand, so the same person shows up as
"山田 太郎", "山田　太郎" (full-width space) or "山田 太郎" (pasted NBSP).
normalize_name() folds all of those onto one key.

Deliberately conservative: no NFKC, no case folding, no space removal.
Registered names are compared against this key, so anything more aggressive
would merge people the registry keeps apart.
"""

from __future__ import annotations

import re

_RE_MULTI_WS = re.compile(r"\s+")


def normalize_name(raw) -> str:
    """
    - U+3000 (full-width space) -> ' '
    - U+00A0 (no-break space)   -> ' '
    - collapse whitespace runs to a single space
    - strip leading/trailing space

    Total and idempotent.
    """
    if raw is None:
        return ""
    s = str(raw)
    s = s.replace("\u3000", " ").replace("\u00a0", " ")
    s = _RE_MULTI_WS.sub(" ", s)
    return s.strip()

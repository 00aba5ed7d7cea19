# application/services/cookie_diff.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Set, Tuple

CookieKey = Tuple[str, str, str]


def _cookie_index(items: List[Dict[str, Any]]) -> Dict[CookieKey, Dict[str, Any]]:
    """
    Key by (name, domain, path). Value is full cookie dict (value included).
    """
    idx: Dict[CookieKey, Dict[str, Any]] = {}
    for c in items or []:
        idx[(str(c.get("name", "")), str(c.get("domain", "")), str(c.get("path", "")))] = c
    return idx


@dataclass(frozen=True)
class CookieDiff:
    added: Set[str]
    removed: Set[str]
    changed: Set[str]

    @property
    def empty(self) -> bool:
        return not (self.added or self.removed or self.changed)


def diff_cookies(before: List[Dict[str, Any]], after: List[Dict[str, Any]]) -> CookieDiff:
    """Names only; values are compared but never reported."""
    b = _cookie_index(before)
    a = _cookie_index(after)

    changed = {k[0] for k in a.keys() & b.keys() if a[k].get("value") != b[k].get("value")}
    return CookieDiff(
        added={k[0] for k in a.keys() - b.keys()},
        removed={k[0] for k in b.keys() - a.keys()},
        changed=changed,
    )

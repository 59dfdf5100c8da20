from __future__ import annotations

from typing import Iterable


# Canonical label -> known alias spellings. Any member of a group expands to the whole group.
CONTRAINDICATION_ALIASES: dict[str, tuple[str, ...]] = {
    "diastasis-risk": ("diastasis", "diastasis-recti", "core-pressure", "abdominal-separation"),
    "knee-stress": ("knee", "knee-impact", "high-impact", "knee-pain", "chondromalacia", "knee-chondromalacia"),
    "back-strain": ("back", "lower-back", "spine-compression"),
    "high-impact": ("impact", "jumping", "plyometric"),
}


def _clean_label(label: str) -> str:
    return str(label or "").strip().lower()


def _build_alias_index(groups: dict[str, tuple[str, ...]]) -> dict[str, frozenset[str]]:
    """
    Map every spelling to its equivalence class.

    Groups sharing a spelling ("high-impact" is both a knee-stress alias and a
    canonical id) are merged, so each class is closed and normalizing is idempotent.
    """
    classes: list[set[str]] = []
    for canonical, aliases in groups.items():
        members = {_clean_label(canonical), *(_clean_label(a) for a in aliases)}
        overlapping = [c for c in classes if c & members]
        for c in overlapping:
            members |= c
            classes.remove(c)
        classes.append(members)

    index: dict[str, frozenset[str]] = {}
    for members in classes:
        frozen = frozenset(members)
        for member in members:
            index[member] = frozen
    return index


_ALIAS_INDEX = _build_alias_index(CONTRAINDICATION_ALIASES)


def expand_label(label: str) -> frozenset[str]:
    """Return the equivalence class of a single label, always including the label itself."""
    cleaned = _clean_label(label)
    return _ALIAS_INDEX.get(cleaned, frozenset()) | {cleaned}


def normalize_constraints(labels: Iterable[str] | None) -> frozenset[str]:
    """
    Expand raw constraint or contraindication labels into their full alias classes.

    Labels are trimmed and lower-cased. Every non-blank label maps to a set that
    contains at least itself; unknown labels pass through as themselves.

    Empty or whitespace-only labels are the one exception to that totality:
    they are dropped rather than kept as "", so a stray blank entry on a
    profile or exercise can never match another blank entry.
    """
    normalized: set[str] = set()
    for label in labels or ():
        cleaned = _clean_label(label)
        if not cleaned:
            continue
        normalized.update(expand_label(cleaned))
    return frozenset(normalized)

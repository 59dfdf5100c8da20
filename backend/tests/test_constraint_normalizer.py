from __future__ import annotations

import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.constraint_normalizer import CONTRAINDICATION_ALIASES, expand_label, normalize_constraints  # noqa: E402


def test_unknown_label_passes_through_trimmed_and_lowercased():
    assert normalize_constraints(["  Wrist-Stress "]) == {"wrist-stress"}


def test_alias_expands_to_whole_class():
    result = normalize_constraints(["diastasis"])
    assert {"diastasis-risk", "diastasis", "diastasis-recti", "core-pressure", "abdominal-separation"} <= result


def test_canonical_and_alias_normalize_to_overlapping_sets():
    for canonical, aliases in CONTRAINDICATION_ALIASES.items():
        for alias in aliases:
            assert normalize_constraints([canonical]) & normalize_constraints([alias])
            assert canonical in normalize_constraints([alias])


def test_normalization_is_idempotent():
    once = normalize_constraints(["Knee", "back", "wrist-stress"])
    assert normalize_constraints(once) == once


def test_label_in_two_groups_unions_both():
    # high-impact is an alias of knee-stress and a canonical id of its own.
    result = expand_label("high-impact")
    assert "knee-stress" in result
    assert "plyometric" in result


def test_empty_and_blank_inputs():
    assert normalize_constraints([]) == frozenset()
    assert normalize_constraints(None) == frozenset()
    assert normalize_constraints(["", "   "]) == frozenset()


def test_duplicates_collapse():
    assert normalize_constraints(["neck-strain", "NECK-STRAIN", " neck-strain"]) == {"neck-strain"}


def test_blank_labels_are_dropped_but_every_real_label_survives():
    result = normalize_constraints(["  ", "Shoulder-Stress", ""])
    assert result == {"shoulder-stress"}
    assert "" not in normalize_constraints(["", "knee"])
    assert "knee" in normalize_constraints(["", "knee"])

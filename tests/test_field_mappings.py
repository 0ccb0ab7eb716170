"""
Tests for body diagram regions, case notes splitting and action lists
"""

import pytest

from field_mappings import (
    BODY_PART_REGIONS,
    DEFAULT_REGION,
    body_side_id,
    join_actions,
    join_notes,
    normalize_body_side,
    regions_for,
    regions_or_default,
    split_actions,
    split_notes,
)


# =============================================================================
# BODY REGIONS
# =============================================================================

def test_knee_left_only_left_regions():
    regions = regions_for("Knee", "Left")
    assert regions == ["front-knee-left"]
    assert all(not r.endswith("-right") for r in regions)


def test_knee_right_by_side_id():
    assert regions_for("knee", 2) == ["front-knee-right"]


def test_unsided_regions_pass_through_side_filter():
    assert regions_for("Head", "left") == ["front-head", "back-head"]


def test_both_sides_keeps_everything():
    assert regions_for("Shoulder", "both") == BODY_PART_REGIONS["Shoulder"]


def test_overlapping_parts_deduplicated():
    regions = regions_for("Leg")
    assert len(regions) == len(set(regions))


@pytest.mark.parametrize("part", sorted(BODY_PART_REGIONS))
def test_every_known_part_has_regions_unsided(part):
    assert regions_for(part, "not_applicable")


@pytest.mark.parametrize("part", sorted(BODY_PART_REGIONS))
def test_matching_side_never_empty(part):
    for side in ("left", "right"):
        tagged = [r for r in BODY_PART_REGIONS[part] if r.endswith(f"-{side}")]
        untagged = [r for r in BODY_PART_REGIONS[part] if not r.endswith(("-left", "-right"))]
        if tagged or untagged:
            assert regions_for(part, side)


def test_unknown_part_empty_with_default_fallback():
    assert regions_for("Tail", "left") == []
    assert regions_for(None) == []
    assert regions_or_default("Tail") == [DEFAULT_REGION]


def test_body_side_codes():
    assert normalize_body_side(1) == "left"
    assert normalize_body_side("3") == "both"
    assert normalize_body_side("RIGHT") == "right"
    assert normalize_body_side("sideways") == "not_applicable"
    assert body_side_id("left") == 1
    assert body_side_id("not_applicable") is None


# =============================================================================
# CASE NOTES
# =============================================================================

@pytest.mark.parametrize("combined", [
    "Worker called in.\n\nTranscript:\nAgent: Hello\nUser: Hi",
    "Transcript:\nAgent: Hello",
    "Line one\nLine two\n\n\nTranscript:\nCaller: I hurt my hand",
])
def test_marker_form_round_trips(combined):
    notes, transcript = split_notes(combined)
    assert transcript
    assert join_notes(notes, transcript) == combined


def test_split_marker_form():
    notes, transcript = split_notes("Follow up booked.\n\nTranscript:\nAgent: Hello\nUser: Hi")
    assert notes == "Follow up booked."
    assert transcript == "Agent: Hello\nUser: Hi"


def test_heuristic_split_without_marker_does_not_round_trip():
    combined = "Spoke with worker.\nAgent: How are you?\nWorker: Sore."
    notes, transcript = split_notes(combined)
    assert notes == "Spoke with worker."
    assert transcript == "Agent: How are you?\nWorker: Sore."
    # Joining adds a marker the input never had
    assert join_notes(notes, transcript) != combined
    assert join_notes(notes, transcript) == "Spoke with worker.\n\nTranscript:\nAgent: How are you?\nWorker: Sore."


def test_plain_notes_untouched():
    assert split_notes("Just notes") == ("Just notes", "")
    assert split_notes("") == ("", "")
    assert join_notes("Just notes", "") == "Just notes"


def test_inline_marker_word_is_not_a_marker():
    assert split_notes("See Transcript: attached") == ("See Transcript: attached", "")


# =============================================================================
# ACTIONS
# =============================================================================

def test_actions_split_and_join():
    assert split_actions("Area cordoned off; Toolbox talk held;") == ["Area cordoned off", "Toolbox talk held"]
    assert join_actions(["Area cordoned off", " ", "Toolbox talk held"]) == "Area cordoned off; Toolbox talk held"
    assert split_actions(None) == []
    assert join_actions([]) == ""

"""
Field mappings for the incident report form

Pure helpers, no state:
- Body part / side codes -> body diagram region identifiers
- Combined case notes <-> (notes, call transcript)
- Actions column <-> ordered action list
"""

import re
from typing import List, Optional, Tuple, Union


# =============================================================================
# BODY DIAGRAM REGIONS
# =============================================================================

# Body part name -> diagram region ids. Side-tagged ids end in -left/-right.
BODY_PART_REGIONS = {
    'Head': ['front-head', 'back-head'],
    'Neck': ['front-neck', 'back-neck'],
    'Chest': ['front-chest'],
    'Abdomen': ['front-abdomen'],
    'Upper Back': ['back-upperback'],
    'Lower Back': ['back-lowerback'],
    'Pelvis': ['front-pelvis'],
    'Groin': ['front-pelvis'],
    'Glutes': ['back-glutes'],
    'Shoulder': ['front-shoulder-left', 'front-shoulder-right', 'back-shoulder-left', 'back-shoulder-right'],
    'Left Shoulder': ['front-shoulder-left', 'back-shoulder-left'],
    'Right Shoulder': ['front-shoulder-right', 'back-shoulder-right'],
    'Upper Arm': ['front-upperarm-left', 'front-upperarm-right', 'back-upperarm-left', 'back-upperarm-right'],
    'Left Upper Arm': ['front-upperarm-left', 'back-upperarm-left'],
    'Right Upper Arm': ['front-upperarm-right', 'back-upperarm-right'],
    'Forearm': ['front-forearmhand-left', 'front-forearmhand-right', 'back-forearmhand-left', 'back-forearmhand-right'],
    'Left Forearm': ['front-forearmhand-left', 'back-forearmhand-left'],
    'Right Forearm': ['front-forearmhand-right', 'back-forearmhand-right'],
    'Hand': ['front-forearmhand-left', 'front-forearmhand-right', 'back-forearmhand-left', 'back-forearmhand-right'],
    'Left Hand': ['front-forearmhand-left', 'back-forearmhand-left'],
    'Right Hand': ['front-forearmhand-right', 'back-forearmhand-right'],
    'Thigh': ['front-thigh-left', 'front-thigh-right', 'back-thigh-left', 'back-thigh-right'],
    'Left Thigh': ['front-thigh-left', 'back-thigh-left'],
    'Right Thigh': ['front-thigh-right', 'back-thigh-right'],
    'Knee': ['front-knee-left', 'front-knee-right'],
    'Left Knee': ['front-knee-left'],
    'Right Knee': ['front-knee-right'],
    'Shin': ['front-shin-left', 'front-shin-right'],
    'Left Shin': ['front-shin-left'],
    'Right Shin': ['front-shin-right'],
    'Calf': ['back-calf-left', 'back-calf-right'],
    'Left Calf': ['back-calf-left'],
    'Right Calf': ['back-calf-right'],
    'Foot': ['front-foot-left', 'front-foot-right', 'back-foot-left', 'back-foot-right'],
    'Left Foot': ['front-foot-left', 'back-foot-left'],
    'Right Foot': ['front-foot-right', 'back-foot-right'],
    'Ankle': ['front-foot-left', 'front-foot-right', 'back-foot-left', 'back-foot-right'],
    'Left Ankle': ['front-foot-left', 'back-foot-left'],
    'Right Ankle': ['front-foot-right', 'back-foot-right'],
    'Arm': ['front-upperarm-left', 'front-upperarm-right', 'front-forearmhand-left', 'front-forearmhand-right',
            'back-upperarm-left', 'back-upperarm-right', 'back-forearmhand-left', 'back-forearmhand-right'],
    'Leg': ['front-thigh-left', 'front-thigh-right', 'front-knee-left', 'front-knee-right',
            'front-shin-left', 'front-shin-right', 'front-foot-left', 'front-foot-right',
            'back-thigh-left', 'back-thigh-right', 'back-calf-left', 'back-calf-right',
            'back-foot-left', 'back-foot-right'],
    'Back': ['back-upperback', 'back-lowerback'],
    'Trunk': ['front-chest', 'front-abdomen', 'back-upperback', 'back-lowerback'],
}

_REGIONS_BY_KEY = {name.lower(): regions for name, regions in BODY_PART_REGIONS.items()}

# Rendered when a part can't be mapped
DEFAULT_REGION = 'front-chest'

SIDE_LEFT = 'left'
SIDE_RIGHT = 'right'
SIDE_BOTH = 'both'
SIDE_NOT_APPLICABLE = 'not_applicable'

# body_sides.body_side_id -> side name
BODY_SIDE_IDS = {1: SIDE_LEFT, 2: SIDE_RIGHT, 3: SIDE_BOTH}


def normalize_body_side(code: Union[str, int, None]) -> str:
    """Map a side name (any case) or body_side_id to a side name"""
    if code is None or code == '':
        return SIDE_NOT_APPLICABLE
    if isinstance(code, int) or (isinstance(code, str) and code.strip().isdigit()):
        return BODY_SIDE_IDS.get(int(code), SIDE_NOT_APPLICABLE)
    side = code.strip().lower().replace(' ', '_')
    if side in (SIDE_LEFT, SIDE_RIGHT, SIDE_BOTH):
        return side
    return SIDE_NOT_APPLICABLE


def body_side_id(side: Optional[str]) -> Optional[int]:
    """Inverse of BODY_SIDE_IDS; None for not_applicable"""
    side = normalize_body_side(side)
    for side_id, name in BODY_SIDE_IDS.items():
        if name == side:
            return side_id
    return None


def _region_side(region: str) -> Optional[str]:
    if region.endswith('-left'):
        return SIDE_LEFT
    if region.endswith('-right'):
        return SIDE_RIGHT
    return None


def regions_for(body_part: Optional[str], body_side: Union[str, int, None] = None) -> List[str]:
    """
    Diagram region ids for a body part, filtered by side.

    A left/right side keeps only regions tagged with that side; unsided
    regions (head, chest, ...) pass through. Unknown parts give [].
    """
    if not body_part:
        return []
    regions = _REGIONS_BY_KEY.get(str(body_part).strip().lower())
    if not regions:
        return []

    side = normalize_body_side(body_side)
    result = []
    for region in regions:
        region_side = _region_side(region)
        if side in (SIDE_LEFT, SIDE_RIGHT) and region_side and region_side != side:
            continue
        if region not in result:
            result.append(region)
    return result


def regions_or_default(body_part: Optional[str], body_side: Union[str, int, None] = None) -> List[str]:
    """regions_for, falling back to DEFAULT_REGION so the diagram always renders something"""
    return regions_for(body_part, body_side) or [DEFAULT_REGION]


# =============================================================================
# CASE NOTES / CALL TRANSCRIPT
# =============================================================================

TRANSCRIPT_MARKER = 'Transcript:'

# Marker line at the start of the text or after a blank line
_MARKER_RE = re.compile(r'(?:\A|\n\n)' + re.escape(TRANSCRIPT_MARKER) + r'\n')

# Turn-taking prefixes used by voice agent transcripts
_TURN_RE = re.compile(r'^(?:Agent|User|Caller|AI|Assistant|Worker)\s*:', re.MULTILINE)


def split_notes(combined: Optional[str]) -> Tuple[str, str]:
    """
    Split a combined case notes field into (notes, transcript).

    Marker form: "<notes>\\n\\nTranscript:\\n<transcript>".
    Without the marker, text from the first turn-taking line onward
    ("Agent: ...", "User: ...") is treated as the transcript. That
    fallback is lossy: join_notes will add a marker the input never had.
    """
    if not combined:
        return '', ''

    match = _MARKER_RE.search(combined)
    if match:
        return combined[:match.start()], combined[match.end():]

    turn = _TURN_RE.search(combined)
    if turn:
        return combined[:turn.start()].rstrip(), combined[turn.start():]

    return combined, ''


def join_notes(notes: Optional[str], transcript: Optional[str]) -> str:
    """Inverse of split_notes for marker-form text"""
    notes = notes or ''
    if not transcript:
        return notes
    if not notes:
        return f"{TRANSCRIPT_MARKER}\n{transcript}"
    return f"{notes}\n\n{TRANSCRIPT_MARKER}\n{transcript}"


# =============================================================================
# ACTIONS
# =============================================================================

ACTIONS_SEPARATOR = '; '


def split_actions(actions: Optional[str]) -> List[str]:
    """incidents.actions "a; b" -> ["a", "b"]"""
    if not actions:
        return []
    return [a.strip() for a in actions.split(';') if a.strip()]


def join_actions(actions: Optional[List[str]]) -> str:
    if not actions:
        return ''
    return ACTIONS_SEPARATOR.join(a.strip() for a in actions if a and a.strip())

"""Synthetic hand poses in normalized image coordinates.

Used by the ``simulate`` and ``benchmark`` commands to drive a session
without a camera. Poses are schematic (straight fingers, y growing
downward) but satisfy the classifier heuristics and the default pose
templates.
"""

from __future__ import annotations

from typing import Iterable

import numpy as np

from swarm_engine.gestures import GestureState
from swarm_engine.landmarks import INDEX_TIP, THUMB_TIP

LONG_FINGERS = ("index", "middle", "ring", "pinky")
# Order in which fingers are raised when building a count
RAISE_ORDER = ("index", "middle", "ring", "pinky", "thumb")

_FINGER_X = {"index": -0.045, "middle": -0.015, "ring": 0.015, "pinky": 0.045}
_FINGER_BASE = {"index": 5, "middle": 9, "ring": 13, "pinky": 17}


def make_hand(up: Iterable[str] = (), center: tuple[float, float] = (0.5, 0.5)) -> np.ndarray:
    """Build a (21, 3) hand with the named digits extended, the rest curled."""
    up = set(up)
    cx, cy = center
    lm = np.zeros((21, 3), dtype=np.float32)
    lm[0] = [cx, cy + 0.2, 0]

    # Thumb: CMC, MCP, IP, tip; extended continues the MCP->IP line sideways.
    # Curled folds back toward the wrist, clear of the pinch distance to the
    # curled index tip.
    lm[1] = [cx - 0.05, cy + 0.15, 0]
    lm[2] = [cx - 0.08, cy + 0.10, 0]
    lm[3] = [cx - 0.10, cy + 0.07, 0]
    lm[4] = [cx - 0.14, cy + 0.01, 0] if "thumb" in up else [cx - 0.09, cy + 0.14, 0]

    for finger in LONG_FINGERS:
        base = _FINGER_BASE[finger]
        x = cx + _FINGER_X[finger]
        lm[base] = [x, cy + 0.05, 0]      # MCP
        lm[base + 1] = [x, cy, 0]         # PIP
        if finger in up:
            lm[base + 2] = [x, cy - 0.03, 0]
            lm[base + 3] = [x, cy - 0.06, 0]
        else:
            lm[base + 2] = [x + 0.005, cy + 0.02, 0]
            lm[base + 3] = [x + 0.008, cy + 0.04, 0]

    return lm


def make_count_hand(count: int, center: tuple[float, float] = (0.5, 0.5)) -> np.ndarray:
    """A hand showing ``count`` (0-5) extended digits."""
    return make_hand(RAISE_ORDER[:max(0, min(count, 5))], center)


def make_pinch(center: tuple[float, float] = (0.5, 0.5)) -> np.ndarray:
    """Thumb tip touching index tip with the other fingers curled."""
    lm = make_hand(("thumb",), center)
    cx, cy = center
    lm[THUMB_TIP] = [cx - 0.06, cy - 0.01, 0]
    lm[INDEX_TIP] = [cx - 0.05, cy - 0.01, 0]
    return lm


def make_heart() -> list[np.ndarray]:
    """Two hands whose thumb tips and index tips meet between them."""
    left = make_hand((), (0.4, 0.5))
    right = make_hand((), (0.6, 0.5))
    for hand in (left, right):
        hand[THUMB_TIP] = [0.5, 0.55, 0]
        hand[INDEX_TIP] = [0.5, 0.45, 0]
    return [left, right]


def hands_for(gesture: GestureState | str) -> list[np.ndarray]:
    """Observations that classify as ``gesture``."""
    gesture = GestureState(gesture)

    if gesture == GestureState.IDLE:
        return []
    if gesture == GestureState.FIST:
        return [make_count_hand(0)]
    if gesture == GestureState.PINCH:
        return [make_pinch()]
    if gesture == GestureState.FACE_REVEAL:
        return [make_count_hand(2, (0.3, 0.5)), make_count_hand(2, (0.7, 0.5))]
    if gesture == GestureState.DOUBLE_LOVE:
        return make_heart()

    count = gesture.finger_count
    if count <= 5:
        return [make_count_hand(count)]
    return [make_count_hand(5, (0.3, 0.5)), make_count_hand(count - 5, (0.7, 0.5))]

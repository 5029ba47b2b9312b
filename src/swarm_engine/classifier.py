"""Gesture classification from raw per-frame hand landmarks.

Heuristics operate on normalized MediaPipe coordinates (y grows downward).
When several signals qualify, the first match in this order wins:

1. two-hand face reveal (two peace signs)
2. two-hand heart
3. single-hand pinch
4. single-hand template match above the acceptance threshold
5. total finger count across all hands, capped at 10
6. no hands -> idle
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from swarm_engine.gestures import GestureState
from swarm_engine.landmarks import (
    FINGER_JOINTS,
    INDEX_TIP,
    MIDDLE_PIP,
    MIDDLE_TIP,
    PINKY_PIP,
    PINKY_TIP,
    RING_PIP,
    RING_TIP,
    THUMB_IP,
    THUMB_TIP,
    WRIST,
    MalformedObservation,
    as_observation,
    to_pixel_space,
)
from swarm_engine.templates import TEMPLATE_GESTURES, NullMatcher, TemplateMatcher

logger = logging.getLogger("swarm_engine.classifier")

PINCH_THRESHOLD = 0.08
HEART_THRESHOLD = 0.15
THUMB_EXTENSION_RATIO = 1.1
MAX_FINGERS = 10


@dataclass(frozen=True)
class FingerCount:
    """Extended-digit summary for one hand."""
    count: int
    thumb_up: bool
    index_up: bool
    middle_up: bool
    ring_up: bool
    pinky_up: bool

    @property
    def per_finger_up(self) -> tuple[bool, bool, bool, bool, bool]:
        return (self.thumb_up, self.index_up, self.middle_up, self.ring_up, self.pinky_up)


@dataclass
class GestureResult:
    """Classification outcome for one tracking update."""
    gesture: GestureState
    source: str  # "face_reveal", "heart", "pinch", "template", "count", "none"
    hand_count: int
    confidence: float = 1.0
    finger_count: Optional[int] = None


def finger_state(hand: np.ndarray) -> FingerCount:
    """Count extended digits.

    Long fingers are up when the tip sits above (smaller y than) the PIP
    joint. The thumb moves sideways, so it is up when its tip reaches
    further from the wrist horizontally than 1.1x the IP joint does.
    """
    up = {
        name: bool(hand[tip][1] < hand[base][1])
        for name, (tip, base) in FINGER_JOINTS.items()
    }

    wrist_x = hand[WRIST][0]
    tip_dist = abs(hand[THUMB_TIP][0] - wrist_x)
    ip_dist = abs(hand[THUMB_IP][0] - wrist_x)
    thumb_up = bool(tip_dist > ip_dist * THUMB_EXTENSION_RATIO)

    count = int(thumb_up) + sum(up.values())
    return FingerCount(
        count=count,
        thumb_up=thumb_up,
        index_up=up["index"],
        middle_up=up["middle"],
        ring_up=up["ring"],
        pinky_up=up["pinky"],
    )


def _distance_2d(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.hypot(a[0] - b[0], a[1] - b[1]))


def is_pinch(hand: np.ndarray) -> bool:
    """Thumb and index tips touching while the other three fingers are curled."""
    pinch_dist = _distance_2d(hand[THUMB_TIP], hand[INDEX_TIP])
    curled = (
        hand[MIDDLE_TIP][1] > hand[MIDDLE_PIP][1]
        and hand[RING_TIP][1] > hand[RING_PIP][1]
        and hand[PINKY_TIP][1] > hand[PINKY_PIP][1]
    )
    return bool(pinch_dist < PINCH_THRESHOLD and curled)


def is_heart_shape(hand_a: np.ndarray, hand_b: np.ndarray) -> bool:
    """Both thumb tips and both index tips close together."""
    thumb_dist = _distance_2d(hand_a[THUMB_TIP], hand_b[THUMB_TIP])
    index_dist = _distance_2d(hand_a[INDEX_TIP], hand_b[INDEX_TIP])
    return thumb_dist < HEART_THRESHOLD and index_dist < HEART_THRESHOLD


def is_face_reveal(count_a: int, count_b: int) -> bool:
    """Two peace signs."""
    return count_a == 2 and count_b == 2


class GestureClassifier:
    """Turns the hands seen in one tracking update into a GestureState.

    The optional template matcher is consulted for single-hand frames only
    and overrides the finger count when its confidence is strictly above
    ``template_threshold``. Matcher errors never escape: the count-based
    result is used instead.
    """

    def __init__(
        self,
        matcher: Optional[TemplateMatcher] = None,
        template_threshold: float = 0.8,
        video_size: tuple[int, int] = (640, 480),
    ):
        self.matcher = matcher or NullMatcher()
        self.template_threshold = template_threshold
        self.video_size = video_size

    def _valid_hands(self, hands: Sequence) -> list[np.ndarray]:
        valid = []
        for i, hand in enumerate(hands or []):
            try:
                valid.append(as_observation(hand))
            except MalformedObservation as e:
                logger.debug("Rejected hand %d: %s", i, e)
        return valid

    def _match_template(self, hand: np.ndarray) -> Optional[tuple[GestureState, float]]:
        width, height = self.video_size
        pixels = to_pixel_space(hand, width, height)
        try:
            result = self.matcher.try_classify(pixels)
        except Exception as e:
            logger.warning("Template matcher failed, using finger count: %s", e)
            return None

        if result is None:
            return None

        try:
            name, confidence = result
            confidence = float(confidence)
            gesture = TEMPLATE_GESTURES.get(name)
        except (TypeError, ValueError) as e:
            logger.warning("Malformed template result %r, using finger count: %s", result, e)
            return None

        # NaN fails the comparison and is rejected with it
        if gesture is None or not confidence > self.template_threshold:
            return None
        return GestureState(gesture), confidence

    def classify(self, hands: Sequence) -> GestureResult:
        """Classify every hand observed in one tracking update."""
        valid = self._valid_hands(hands)
        if not valid:
            return GestureResult(GestureState.IDLE, source="none", hand_count=0)

        counts = [finger_state(hand).count for hand in valid]

        if len(valid) >= 2:
            if is_face_reveal(counts[0], counts[1]):
                return GestureResult(
                    GestureState.FACE_REVEAL, source="face_reveal", hand_count=len(valid)
                )
            if is_heart_shape(valid[0], valid[1]):
                return GestureResult(
                    GestureState.DOUBLE_LOVE, source="heart", hand_count=len(valid)
                )

        if len(valid) == 1:
            if is_pinch(valid[0]):
                return GestureResult(GestureState.PINCH, source="pinch", hand_count=1)

            matched = self._match_template(valid[0])
            if matched is not None:
                gesture, confidence = matched
                return GestureResult(
                    gesture,
                    source="template",
                    hand_count=1,
                    confidence=confidence,
                    finger_count=gesture.finger_count,
                )

        total = min(sum(counts), MAX_FINGERS)
        return GestureResult(
            GestureState.for_finger_count(total),
            source="count",
            hand_count=len(valid),
            finger_count=total,
        )

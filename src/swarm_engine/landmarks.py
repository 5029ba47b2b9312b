"""Hand landmark layout and observation validation."""

from __future__ import annotations

import numpy as np

# MediaPipe hand landmark indices
WRIST = 0
THUMB_CMC, THUMB_MCP, THUMB_IP, THUMB_TIP = 1, 2, 3, 4
INDEX_MCP, INDEX_PIP, INDEX_DIP, INDEX_TIP = 5, 6, 7, 8
MIDDLE_MCP, MIDDLE_PIP, MIDDLE_DIP, MIDDLE_TIP = 9, 10, 11, 12
RING_MCP, RING_PIP, RING_DIP, RING_TIP = 13, 14, 15, 16
PINKY_MCP, PINKY_PIP, PINKY_DIP, PINKY_TIP = 17, 18, 19, 20

NUM_LANDMARKS = 21
LANDMARK_DIM = 3  # x, y, z

# (tip, base joint) for the four long fingers
FINGER_JOINTS = {
    "index": (INDEX_TIP, INDEX_PIP),
    "middle": (MIDDLE_TIP, MIDDLE_PIP),
    "ring": (RING_TIP, RING_PIP),
    "pinky": (PINKY_TIP, PINKY_PIP),
}


class MalformedObservation(ValueError):
    """A hand observation that does not carry 21 (x, y, z) landmarks."""


def as_observation(hand) -> np.ndarray:
    """Coerce ``hand`` into a float32 array of shape (21, 3).

    Accepts numpy arrays, nested sequences, or sequences of objects with
    ``x``/``y``/``z`` attributes (MediaPipe landmark protos).

    Raises:
        MalformedObservation: fewer than 21 landmarks or not 3-D.
    """
    if hand is None:
        raise MalformedObservation("observation is None")

    if not isinstance(hand, np.ndarray):
        try:
            items = list(hand)
        except TypeError:
            raise MalformedObservation(f"not a landmark sequence: {type(hand).__name__}") from None
        if items and hasattr(items[0], "x"):
            items = [[lm.x, lm.y, getattr(lm, "z", 0.0)] for lm in items]
        try:
            hand = np.asarray(items, dtype=np.float32)
        except (TypeError, ValueError) as e:
            raise MalformedObservation(str(e)) from None

    if hand.ndim != 2 or hand.shape[1] != LANDMARK_DIM:
        raise MalformedObservation(f"expected (21, 3) landmarks, got shape {hand.shape}")
    if hand.shape[0] < NUM_LANDMARKS:
        raise MalformedObservation(f"expected 21 landmarks, got {hand.shape[0]}")

    return hand[:NUM_LANDMARKS].astype(np.float32, copy=False)


def to_pixel_space(
    hand: np.ndarray,
    width: int = 640,
    height: int = 480,
    depth_scale: float = 100.0,
) -> np.ndarray:
    """Rescale normalized landmarks to video pixel space (x*w, y*h, z*100)."""
    scale = np.array([width, height, depth_scale], dtype=np.float32)
    return hand * scale

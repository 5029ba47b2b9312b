"""Gesture states driving the particle swarm."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class GestureState(str, Enum):
    """Closed set of states; exactly one is active at any time."""
    IDLE = "idle"
    FIST = "fist"
    PINCH = "pinch"
    FACE_REVEAL = "face_reveal"
    DOUBLE_LOVE = "double_love"
    FINGER_1 = "finger_1"
    FINGER_2 = "finger_2"
    FINGER_3 = "finger_3"
    FINGER_4 = "finger_4"
    FINGER_5 = "finger_5"
    FINGER_6 = "finger_6"
    FINGER_7 = "finger_7"
    FINGER_8 = "finger_8"
    FINGER_9 = "finger_9"
    FINGER_10 = "finger_10"

    @classmethod
    def for_finger_count(cls, count: int) -> GestureState:
        """Map a total finger count to its state; 0 is a fist, counts cap at 10."""
        count = min(int(count), 10)
        if count <= 0:
            return cls.FIST
        return cls(f"finger_{count}")

    @property
    def finger_count(self) -> Optional[int]:
        if self.value.startswith("finger_"):
            return int(self.value.split("_")[1])
        return None

    def __str__(self) -> str:
        return self.value

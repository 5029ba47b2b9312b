"""MediaPipe hand tracker adapter.

Turns a camera frame into the list of hand observations the session
consumes. Tracker failures are reported as "no hands" so the animation
falls back to idle instead of stopping.
"""

from __future__ import annotations

import logging

import numpy as np

from swarm_engine.landmarks import NUM_LANDMARKS

try:
    import mediapipe as mp
except ImportError:
    mp = None

logger = logging.getLogger("swarm_engine.detector")


class HandDetector:
    """Extracts 21 normalized (x, y, z) landmarks per hand with MediaPipe Hands.

    Landmarks are left in image-normalized coordinates (x, y in [0, 1],
    y growing downward) because the gesture heuristics depend on them.
    """

    def __init__(
        self,
        max_hands: int = 2,
        min_detection_confidence: float = 0.6,
        min_tracking_confidence: float = 0.6,
        model_complexity: int = 1,
        static_image_mode: bool = False,
    ):
        if mp is None:
            raise ImportError(
                "mediapipe is required for hand tracking. Install with: pip install mediapipe"
            )

        self.max_hands = max_hands
        self._hands = mp.solutions.hands.Hands(
            static_image_mode=static_image_mode,
            max_num_hands=max_hands,
            model_complexity=model_complexity,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

    @classmethod
    def from_config(cls, config) -> HandDetector:
        return cls(
            max_hands=config.max_hands,
            min_detection_confidence=config.min_detection_confidence,
            min_tracking_confidence=config.min_tracking_confidence,
        )

    def detect(self, frame_rgb: np.ndarray) -> list[np.ndarray]:
        """Detect hands in an RGB frame.

        Returns:
            List of landmark arrays, each shape (21, 3). Empty when no hand
            is found or the tracker fails on this frame.
        """
        try:
            results = self._hands.process(frame_rgb)
        except Exception as e:
            logger.warning("Hand tracking failed on frame: %s", e)
            return []

        if not results.multi_hand_landmarks:
            return []

        hands = []
        for hand_landmarks in results.multi_hand_landmarks:
            landmarks = np.array(
                [[lm.x, lm.y, lm.z] for lm in hand_landmarks.landmark],
                dtype=np.float32,
            )
            if len(landmarks) == NUM_LANDMARKS:
                hands.append(landmarks)

        return hands

    def close(self):
        """Release MediaPipe resources."""
        self._hands.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

"""Pose template matching, the optional second-opinion classifier.

Templates describe a hand pose as a required curl per finger (no curl, half
curl, full curl) plus optional geometric constraints. Curl is estimated from
the angle each finger bends at its middle joint, so templates work on
pixel-space landmarks without normalization.

The classifier only needs something with ``try_classify``; ``NullMatcher``
stands in when no matcher is configured.
"""

from __future__ import annotations

import json
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

import numpy as np

logger = logging.getLogger("swarm_engine.templates")


class FingerCurl(Enum):
    NO_CURL = "no_curl"
    HALF_CURL = "half_curl"
    FULL_CURL = "full_curl"
    ANY = "any"  # don't care


FINGERS = ("thumb", "index", "middle", "ring", "pinky")

# (base, middle, tip) joints used to measure each finger's bend
_CURL_JOINTS = {
    "thumb": (2, 3, 4),
    "index": (5, 6, 8),
    "middle": (9, 10, 12),
    "ring": (13, 14, 16),
    "pinky": (17, 18, 20),
}

# Interior angle limits in degrees: above NO_CURL is straight, above HALF_CURL is bent
_NO_CURL_LIMIT = 130.0
_HALF_CURL_LIMIT = 60.0
_THUMB_NO_CURL_LIMIT = 150.0
_THUMB_HALF_CURL_LIMIT = 110.0

# Template names understood by the gesture classifier
TEMPLATE_GESTURES = {
    "one_finger": "finger_1",
    "two_finger": "finger_2",
    "three_finger": "finger_3",
    "four_finger": "finger_4",
    "five_finger": "finger_5",
    "fist": "fist",
    "pinch": "pinch",
}


def _joint_angle(landmarks: np.ndarray, a: int, b: int, c: int) -> float:
    """Interior angle at vertex B of triangle A-B-C, in degrees."""
    ba = landmarks[a] - landmarks[b]
    bc = landmarks[c] - landmarks[b]
    cos_angle = np.dot(ba, bc) / (np.linalg.norm(ba) * np.linalg.norm(bc) + 1e-8)
    return math.degrees(math.acos(float(np.clip(cos_angle, -1.0, 1.0))))


def estimate_curls(landmarks: np.ndarray) -> dict[str, FingerCurl]:
    """Estimate the curl of every finger from its middle-joint angle."""
    curls = {}
    for finger, (a, b, c) in _CURL_JOINTS.items():
        angle = _joint_angle(landmarks, a, b, c)
        if finger == "thumb":
            no_curl, half_curl = _THUMB_NO_CURL_LIMIT, _THUMB_HALF_CURL_LIMIT
        else:
            no_curl, half_curl = _NO_CURL_LIMIT, _HALF_CURL_LIMIT

        if angle > no_curl:
            curls[finger] = FingerCurl.NO_CURL
        elif angle > half_curl:
            curls[finger] = FingerCurl.HALF_CURL
        else:
            curls[finger] = FingerCurl.FULL_CURL
    return curls


@dataclass
class PoseTemplate:
    """A hand pose defined by per-finger curl and optional constraints.

    Each finger's requirement carries a weight; an exact curl match earns the
    full weight and a neighbouring curl (half vs. full/none) earns half.
    """

    name: str
    thumb: FingerCurl = FingerCurl.ANY
    index: FingerCurl = FingerCurl.ANY
    middle: FingerCurl = FingerCurl.ANY
    ring: FingerCurl = FingerCurl.ANY
    pinky: FingerCurl = FingerCurl.ANY
    weights: dict[str, float] = field(default_factory=dict)
    min_confidence: float = 0.75
    constraints: list[dict] = field(default_factory=list)

    def match(self, landmarks: np.ndarray) -> tuple[bool, float]:
        """Check landmarks against this template.

        Returns:
            (matched, confidence) tuple, confidence in [0, 1].
        """
        curls = estimate_curls(landmarks)

        earned = 0.0
        possible = 0.0
        for finger in FINGERS:
            expected = getattr(self, finger)
            if expected == FingerCurl.ANY:
                continue
            weight = self.weights.get(finger, 1.0)
            possible += weight
            actual = curls[finger]
            if actual == expected:
                earned += weight
            elif FingerCurl.HALF_CURL in (actual, expected):
                earned += 0.5 * weight

        curl_confidence = earned / possible if possible > 0 else 1.0

        if self.constraints:
            confidence = 0.7 * curl_confidence + 0.3 * self._check_constraints(landmarks)
        else:
            confidence = curl_confidence

        return confidence >= self.min_confidence, confidence

    def _check_constraints(self, landmarks: np.ndarray) -> float:
        """Evaluate geometric constraints. Returns score in [0, 1]."""
        scores = []
        for constraint in self.constraints:
            kind = constraint.get("type")

            if kind == "distance":
                a, b = constraint["landmarks"]
                dist = float(np.linalg.norm(landmarks[a][:2] - landmarks[b][:2]))
                lo, hi = constraint.get("min", 0), constraint.get("max", float("inf"))
                scores.append(1.0 if lo <= dist <= hi else 0.0)

            elif kind == "above":
                # Landmark A higher on screen (smaller y) than landmark B
                a, b = constraint["landmarks"]
                scores.append(1.0 if landmarks[a][1] < landmarks[b][1] else 0.0)

            elif kind == "angle":
                a, b, c = constraint["landmarks"]
                angle = _joint_angle(landmarks, a, b, c)
                lo = constraint.get("min_angle", 0)
                hi = constraint.get("max_angle", 180)
                scores.append(1.0 if lo <= angle <= hi else 0.0)

        return sum(scores) / len(scores) if scores else 1.0

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "fingers": {finger: getattr(self, finger).value for finger in FINGERS},
            "weights": dict(self.weights),
            "min_confidence": self.min_confidence,
            "constraints": self.constraints,
        }

    @classmethod
    def from_dict(cls, data: dict) -> PoseTemplate:
        fingers = data.get("fingers", {})
        return cls(
            name=data["name"],
            **{finger: FingerCurl(fingers.get(finger, "any")) for finger in FINGERS},
            weights=data.get("weights", {}),
            min_confidence=data.get("min_confidence", 0.75),
            constraints=data.get("constraints", []),
        )


class TemplateMatcher(ABC):
    """Optional oracle consulted for single-hand frames."""

    @abstractmethod
    def try_classify(self, landmarks: np.ndarray) -> Optional[tuple[str, float]]:
        """Return (template_name, confidence) or None.

        Args:
            landmarks: Pixel-space landmarks, shape (21, 3).
        """


class NullMatcher(TemplateMatcher):
    """Matcher used when no template matcher is available."""

    def try_classify(self, landmarks: np.ndarray) -> Optional[tuple[str, float]]:
        return None


class PoseTemplateMatcher(TemplateMatcher):
    """Registry of pose templates; returns the most confident match."""

    def __init__(self, templates: Optional[list[PoseTemplate]] = None):
        self._templates: list[PoseTemplate] = list(templates or [])

    def register(self, template: PoseTemplate):
        self._templates.append(template)

    def try_classify(self, landmarks: np.ndarray) -> Optional[tuple[str, float]]:
        best: Optional[tuple[str, float]] = None

        for template in self._templates:
            matched, confidence = template.match(landmarks)
            if matched and (best is None or confidence > best[1]):
                best = (template.name, confidence)

        return best

    def load_from_file(self, path: str | Path):
        """Load templates from a JSON file."""
        with open(path) as f:
            data = json.load(f)

        for entry in data.get("templates", []):
            self.register(PoseTemplate.from_dict(entry))
        logger.info("Loaded %d pose templates from %s", len(self), path)

    def save_to_file(self, path: str | Path):
        data = {"templates": [t.to_dict() for t in self._templates]}
        with open(path, "w") as f:
            json.dump(data, f, indent=2)

    @classmethod
    def with_defaults(cls) -> PoseTemplateMatcher:
        """Templates for one to five fingers, fist and pinch."""
        C = FingerCurl
        matcher = cls()

        matcher.register(PoseTemplate(
            name="one_finger",
            index=C.NO_CURL, middle=C.FULL_CURL, ring=C.FULL_CURL, pinky=C.FULL_CURL,
            constraints=[{"type": "above", "landmarks": [8, 5]}],
        ))
        matcher.register(PoseTemplate(
            name="two_finger",
            index=C.NO_CURL, middle=C.NO_CURL, ring=C.FULL_CURL, pinky=C.FULL_CURL,
        ))
        matcher.register(PoseTemplate(
            name="three_finger",
            index=C.NO_CURL, middle=C.NO_CURL, ring=C.NO_CURL, pinky=C.FULL_CURL,
        ))
        matcher.register(PoseTemplate(
            name="four_finger",
            thumb=C.HALF_CURL,
            index=C.NO_CURL, middle=C.NO_CURL, ring=C.NO_CURL, pinky=C.NO_CURL,
            weights={"thumb": 0.5},
        ))
        matcher.register(PoseTemplate(
            name="five_finger",
            thumb=C.NO_CURL,
            index=C.NO_CURL, middle=C.NO_CURL, ring=C.NO_CURL, pinky=C.NO_CURL,
        ))
        matcher.register(PoseTemplate(
            name="fist",
            thumb=C.FULL_CURL,
            index=C.FULL_CURL, middle=C.FULL_CURL, ring=C.FULL_CURL, pinky=C.FULL_CURL,
        ))
        matcher.register(PoseTemplate(
            name="pinch",
            thumb=C.NO_CURL,
            index=C.HALF_CURL, middle=C.FULL_CURL, ring=C.FULL_CURL, pinky=C.FULL_CURL,
            weights={"thumb": 0.8, "index": 0.8},
        ))

        return matcher

    def __len__(self) -> int:
        return len(self._templates)

    def __iter__(self):
        return iter(self._templates)

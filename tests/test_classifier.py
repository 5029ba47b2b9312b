"""Tests for the geometric gesture heuristics and their priority order."""

from types import SimpleNamespace

import numpy as np
import pytest

from swarm_engine.classifier import (
    GestureClassifier,
    finger_state,
    is_face_reveal,
    is_heart_shape,
    is_pinch,
)
from swarm_engine.gestures import GestureState
from swarm_engine.synthetic import make_count_hand, make_hand, make_heart, make_pinch
from swarm_engine.templates import TemplateMatcher


def make_open_hand(center=(0.5, 0.5)):
    return make_hand(("thumb", "index", "middle", "ring", "pinky"), center)


def make_fist(center=(0.5, 0.5)):
    return make_hand((), center)


def make_peace(center=(0.5, 0.5)):
    return make_hand(("index", "middle"), center)


class RecordingMatcher(TemplateMatcher):
    """Returns a fixed answer and remembers what it was asked."""

    def __init__(self, result):
        self.result = result
        self.calls = []

    def try_classify(self, landmarks):
        self.calls.append(landmarks.copy())
        return self.result


class BrokenMatcher(TemplateMatcher):
    def try_classify(self, landmarks):
        raise RuntimeError("model not loaded")


class TestFingerState:
    def test_open_hand(self):
        state = finger_state(make_open_hand())
        assert state.count == 5
        assert state.per_finger_up == (True, True, True, True, True)

    def test_fist(self):
        state = finger_state(make_fist())
        assert state.count == 0
        assert not any(state.per_finger_up)

    def test_peace(self):
        state = finger_state(make_peace())
        assert state.count == 2
        assert state.index_up and state.middle_up
        assert not (state.thumb_up or state.ring_up or state.pinky_up)

    def test_finger_up_means_tip_above_pip(self):
        hand = make_fist()
        hand[16] = [hand[14][0], hand[14][1] - 0.01, 0]  # ring tip just above PIP
        state = finger_state(hand)
        assert state.ring_up
        assert state.count == 1

    def test_thumb_uses_horizontal_extension(self):
        hand = make_fist()
        hand[0] = [0.5, 0.7, 0]   # wrist
        hand[3] = [0.4, 0.55, 0]  # IP, 0.1 from wrist horizontally

        hand[4] = [0.38, 0.2, 0]  # 0.12 > 1.1 * 0.1
        assert finger_state(hand).thumb_up

        hand[4] = [0.395, 0.2, 0]  # 0.105 < 1.1 * 0.1
        assert not finger_state(hand).thumb_up

    def test_thumb_ignores_vertical_position(self):
        hand = make_fist()
        hand[0] = [0.5, 0.7, 0]
        hand[3] = [0.4, 0.55, 0]
        hand[4] = [0.40, 0.9, 0]  # far below, barely sideways
        assert not finger_state(hand).thumb_up

    def test_works_for_left_and_right_hands(self):
        hand = make_open_hand()
        mirrored = hand.copy()
        mirrored[:, 0] = 1.0 - mirrored[:, 0]
        assert finger_state(mirrored).count == 5


class TestPinch:
    def test_pinch(self):
        assert is_pinch(make_pinch())

    def test_open_fingers_not_pinch(self):
        hand = make_pinch()
        hand[12] = [hand[10][0], hand[10][1] - 0.05, 0]  # middle finger raised
        assert not is_pinch(hand)

    def test_distance_threshold(self):
        hand = make_pinch()
        hand[4] = [0.40, 0.49, 0]
        hand[8] = [0.49, 0.49, 0]  # 0.09 apart
        assert not is_pinch(hand)

        hand[8] = [0.47, 0.49, 0]  # 0.07 apart
        assert is_pinch(hand)

    def test_depth_ignored(self):
        hand = make_pinch()
        hand[4, 2] = -1.0
        assert is_pinch(hand)

    def test_curled_thumb_clear_of_curled_index(self):
        fist = make_fist()
        assert np.hypot(*(fist[4, :2] - fist[8, :2])) > 0.08
        assert not is_pinch(fist)

    @pytest.mark.parametrize("count", range(5))
    def test_count_hands_not_pinch(self, count):
        assert not is_pinch(make_count_hand(count))


class TestTwoHandChecks:
    def test_heart(self):
        left, right = make_heart()
        assert is_heart_shape(left, right)

    def test_hands_apart_not_heart(self):
        assert not is_heart_shape(make_fist((0.2, 0.5)), make_fist((0.8, 0.5)))

    def test_heart_needs_both_pairs_close(self):
        left, right = make_heart()
        right[8] = [0.8, 0.45, 0]
        assert not is_heart_shape(left, right)

    def test_face_reveal_counts(self):
        assert is_face_reveal(2, 2)
        assert not is_face_reveal(2, 3)
        assert not is_face_reveal(0, 0)


class TestPriority:
    def test_no_hands_is_idle(self):
        result = GestureClassifier().classify([])
        assert result.gesture == GestureState.IDLE
        assert result.hand_count == 0

    def test_none_is_idle(self):
        assert GestureClassifier().classify(None).gesture == GestureState.IDLE

    def test_fist_resolves_to_fist(self):
        assert GestureClassifier().classify([make_fist()]).gesture == GestureState.FIST

    def test_face_reveal_beats_heart(self):
        left = make_peace((0.45, 0.5))
        right = make_peace((0.55, 0.5))
        for hand in (left, right):
            hand[4] = [0.5, 0.55, 0]
            hand[8] = [0.5, 0.40, 0]

        assert finger_state(left).count == 2
        assert finger_state(right).count == 2
        assert is_heart_shape(left, right)

        result = GestureClassifier().classify([left, right])
        assert result.gesture == GestureState.FACE_REVEAL

    def test_heart_is_double_love(self):
        result = GestureClassifier().classify(make_heart())
        assert result.gesture == GestureState.DOUBLE_LOVE
        assert result.source == "heart"

    def test_single_hand_pinch(self):
        result = GestureClassifier().classify([make_pinch()])
        assert result.gesture == GestureState.PINCH

    def test_pinch_ignored_with_two_hands(self):
        result = GestureClassifier().classify([make_pinch((0.3, 0.5)), make_fist((0.8, 0.5))])
        assert result.gesture != GestureState.PINCH
        assert result.source == "count"

    def test_pinch_beats_template(self):
        matcher = RecordingMatcher(("five_finger", 0.99))
        result = GestureClassifier(matcher).classify([make_pinch()])
        assert result.gesture == GestureState.PINCH
        assert matcher.calls == []

    @pytest.mark.parametrize("count", [1, 2, 3, 4, 5])
    def test_single_hand_count(self, count):
        result = GestureClassifier().classify([make_count_hand(count)])
        assert result.gesture == GestureState(f"finger_{count}")
        assert result.finger_count == count

    def test_counts_sum_across_hands(self):
        hands = [make_open_hand((0.25, 0.5)), make_count_hand(3, (0.75, 0.5))]
        assert GestureClassifier().classify(hands).gesture == GestureState.FINGER_8

    def test_total_capped_at_ten(self):
        hands = [make_open_hand((x, 0.5)) for x in (0.2, 0.5, 0.8)]
        result = GestureClassifier().classify(hands)
        assert result.gesture == GestureState.FINGER_10
        assert result.finger_count == 10

    def test_extra_hands_ignored_for_two_hand_gestures(self):
        hands = [make_peace((0.2, 0.5)), make_peace((0.5, 0.5)), make_open_hand((0.8, 0.5))]
        assert GestureClassifier().classify(hands).gesture == GestureState.FACE_REVEAL

    def test_third_hand_counts_toward_total(self):
        hands = [make_fist((0.2, 0.5)), make_fist((0.5, 0.5)), make_count_hand(3, (0.8, 0.5))]
        assert GestureClassifier().classify(hands).gesture == GestureState.FINGER_3


class TestTemplateMatcher:
    def test_confident_match_overrides_count(self):
        matcher = RecordingMatcher(("three_finger", 0.95))
        result = GestureClassifier(matcher).classify([make_fist()])
        assert result.gesture == GestureState.FINGER_3
        assert result.source == "template"
        assert result.confidence == pytest.approx(0.95)

    def test_low_confidence_falls_back(self):
        matcher = RecordingMatcher(("three_finger", 0.7))
        result = GestureClassifier(matcher).classify([make_fist()])
        assert result.gesture == GestureState.FIST
        assert result.source == "count"

    def test_threshold_is_exclusive(self):
        matcher = RecordingMatcher(("three_finger", 0.8))
        result = GestureClassifier(matcher, template_threshold=0.8).classify([make_fist()])
        assert result.gesture == GestureState.FIST

    def test_no_match_falls_back(self):
        matcher = RecordingMatcher(None)
        result = GestureClassifier(matcher).classify([make_count_hand(4)])
        assert result.gesture == GestureState.FINGER_4

    def test_unknown_template_name_ignored(self):
        matcher = RecordingMatcher(("thumbs_up", 0.99))
        result = GestureClassifier(matcher).classify([make_count_hand(2)])
        assert result.gesture == GestureState.FINGER_2

    def test_matcher_error_falls_back(self):
        result = GestureClassifier(BrokenMatcher()).classify([make_open_hand()])
        assert result.gesture == GestureState.FINGER_5

    @pytest.mark.parametrize("bad", [
        ("one_finger", None),
        ("one_finger", "high"),
        ("one_finger", float("nan")),
        (["one_finger"], 0.99),
        ("one_finger",),
        "one_finger",
        42,
    ])
    def test_malformed_matcher_result_falls_back(self, bad):
        result = GestureClassifier(RecordingMatcher(bad)).classify([make_count_hand(3)])
        assert result.gesture == GestureState.FINGER_3
        assert result.source == "count"

    def test_numeric_string_confidence_coerced(self):
        result = GestureClassifier(RecordingMatcher(("one_finger", "0.9"))).classify([make_fist()])
        assert result.gesture == GestureState.FINGER_1
        assert result.confidence == pytest.approx(0.9)

    def test_matcher_gets_pixel_space_landmarks(self):
        matcher = RecordingMatcher(None)
        hand = make_open_hand()
        GestureClassifier(matcher).classify([hand])

        assert len(matcher.calls) == 1
        np.testing.assert_allclose(matcher.calls[0], hand * [640, 480, 100], rtol=1e-6)

    def test_matcher_only_consulted_for_one_hand(self):
        matcher = RecordingMatcher(("fist", 0.99))
        hands = [make_count_hand(3, (0.2, 0.5)), make_count_hand(1, (0.8, 0.5))]
        result = GestureClassifier(matcher).classify(hands)
        assert matcher.calls == []
        assert result.gesture == GestureState.FINGER_4


class TestMalformedInput:
    def test_short_hand_rejected(self):
        hand = make_open_hand()[:20]
        assert GestureClassifier().classify([hand]).gesture == GestureState.IDLE

    def test_wrong_dimension_rejected(self):
        hand = make_open_hand()[:, :2]
        assert GestureClassifier().classify([hand]).gesture == GestureState.IDLE

    def test_malformed_hand_dropped_from_pair(self):
        result = GestureClassifier().classify([make_open_hand()[:5], make_count_hand(3)])
        assert result.gesture == GestureState.FINGER_3
        assert result.hand_count == 1

    def test_none_entry_dropped(self):
        result = GestureClassifier().classify([None, make_fist()])
        assert result.gesture == GestureState.FIST

    def test_landmark_objects_accepted(self):
        hand = [SimpleNamespace(x=float(x), y=float(y), z=float(z)) for x, y, z in make_open_hand()]
        assert GestureClassifier().classify([hand]).gesture == GestureState.FINGER_5

    def test_nested_lists_accepted(self):
        hand = make_peace().tolist()
        assert GestureClassifier().classify([hand]).gesture == GestureState.FINGER_2

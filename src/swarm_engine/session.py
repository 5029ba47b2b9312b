"""Animation session: gesture state machine plus the tick loop.

Two callbacks drive a session, both on the same thread:

    session = AnimationSession()

    # whenever the tracker reports (irregular cadence)
    session.on_hands(hands)

    # every render frame
    session.tick()
    renderer.draw(session.field.position_buffer, session.field.color_buffer)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional, Sequence

import numpy as np

from swarm_engine.classifier import GestureClassifier, GestureResult
from swarm_engine.config import SwarmConfig, label_for
from swarm_engine.gestures import GestureState
from swarm_engine.particles import ParticleField
from swarm_engine.profiler import PipelineProfiler
from swarm_engine.shapes import generate_all_shapes
from swarm_engine.templates import TemplateMatcher

logger = logging.getLogger("swarm_engine.session")


@dataclass
class TransitionEvent:
    """Emitted whenever the active gesture state changes."""
    previous: GestureState
    current: GestureState
    time: float
    label: str = ""


@dataclass
class SessionStats:
    ticks: int
    time: float
    gesture: str
    transitions: int
    updates: int
    particle_count: int
    profiler_summary: dict = field(default_factory=dict)
    tick_ms: float = 0.0


class AnimationStateMachine:
    """Holds the active gesture, the animation clock and the reveal marker.

    The clock advances by a fixed ``time_step`` per tick rather than wall
    time. Every differing gesture replaces the current one immediately;
    entering ``face_reveal`` first stamps ``reveal_start_time``. With
    ``min_dwell_ticks`` > 0 a state must have been held that many ticks
    before it can be left.
    """

    def __init__(self, time_step: float = 0.01, min_dwell_ticks: int = 0):
        self.time_step = time_step
        self.min_dwell_ticks = min_dwell_ticks
        self.state = GestureState.IDLE
        self.time = 0.0
        self.reveal_start_time = 0.0
        self.ticks = 0
        self.ticks_in_state = 0
        self.transitions = 0

    def advance(self) -> float:
        self.time += self.time_step
        self.ticks += 1
        self.ticks_in_state += 1
        return self.time

    def update(self, gesture: GestureState | str) -> bool:
        """Apply a freshly classified gesture. Returns True if the state changed."""
        gesture = GestureState(gesture)
        if gesture == self.state:
            return False
        if self.ticks_in_state < self.min_dwell_ticks:
            return False

        if gesture == GestureState.FACE_REVEAL:
            self.reveal_start_time = self.time

        self.state = gesture
        self.ticks_in_state = 0
        self.transitions += 1
        return True

    @property
    def elapsed_since_reveal(self) -> float:
        return self.time - self.reveal_start_time

    def reset(self):
        self.state = GestureState.IDLE
        self.time = 0.0
        self.reveal_start_time = 0.0
        self.ticks = 0
        self.ticks_in_state = 0
        self.transitions = 0


class AnimationSession:
    """Everything one running animation owns: shapes, particles, state."""

    def __init__(
        self,
        config: Optional[SwarmConfig] = None,
        shapes: Optional[Mapping[str, np.ndarray]] = None,
        classifier: Optional[GestureClassifier] = None,
        matcher: Optional[TemplateMatcher] = None,
        rng: Optional[np.random.Generator] = None,
        enable_profiling: bool = True,
    ):
        self.config = config or SwarmConfig()
        if rng is None:
            rng = np.random.default_rng(self.config.seed)

        self.shapes = shapes if shapes is not None else generate_all_shapes(self.config, rng)
        self.field = ParticleField(self.config, rng)
        self.classifier = classifier or GestureClassifier(
            matcher=matcher,
            template_threshold=self.config.template_threshold,
            video_size=(self.config.video_width, self.config.video_height),
        )
        self.machine = AnimationStateMachine(
            time_step=self.config.time_step,
            min_dwell_ticks=self.config.min_dwell_ticks,
        )
        self.profiler = PipelineProfiler()
        self.profiler.enabled = enable_profiling

        self._callbacks: list[Callable[[TransitionEvent], None]] = []
        self._updates = 0
        self.last_result: Optional[GestureResult] = None

    @property
    def gesture(self) -> GestureState:
        return self.machine.state

    @property
    def label(self) -> str:
        return label_for(self.machine.state.value, self.config)

    def on_transition(self, callback: Callable[[TransitionEvent], None]):
        """Register a callback for gesture state changes."""
        self._callbacks.append(callback)

    def on_hands(self, hands: Sequence) -> GestureResult:
        """Classify one tracking update and apply it to the state machine."""
        self._updates += 1
        with self.profiler.stage("classification"):
            result = self.classifier.classify(hands)
        self.last_result = result

        previous = self.machine.state
        if self.machine.update(result.gesture):
            event = TransitionEvent(
                previous=previous,
                current=self.machine.state,
                time=self.machine.time,
                label=self.label,
            )
            logger.debug(
                "Gesture %s -> %s at t=%.2f (%s)",
                previous.value, event.current.value, event.time, result.source,
            )
            for cb in self._callbacks:
                cb(event)

        return result

    def tick(self) -> bool:
        """Advance the clock one step and move every particle.

        Returns whether the active mode produced new targets.
        """
        self.machine.advance()

        with self.profiler.stage("targets"):
            applied = self.field.update_targets(
                self.machine.state,
                self.shapes,
                self.machine.time,
                self.machine.reveal_start_time,
            )

        with self.profiler.stage("smoothing"):
            self.field.smooth()

        return applied

    @property
    def stats(self) -> SessionStats:
        return SessionStats(
            ticks=self.machine.ticks,
            time=self.machine.time,
            gesture=self.machine.state.value,
            transitions=self.machine.transitions,
            updates=self._updates,
            particle_count=self.field.count,
            profiler_summary=self.profiler.summary(),
            tick_ms=self.profiler.tick_ms(),
        )

    def reset(self):
        """Return to idle at t=0; particles keep their current positions."""
        self.machine.reset()
        self._updates = 0
        self.last_result = None
        self.profiler.reset()

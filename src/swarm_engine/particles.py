"""Particle field: per-mode target assignment and exponential smoothing.

Particles are stored as parallel (N, 3) float32 arrays. Every tick the
active mode writes ``targets`` and ``smooth`` moves ``positions`` a fixed
fraction of the way there. The smoothing step is not scaled by frame time;
motion speed assumes a roughly constant tick rate.

Each gesture state maps to a ``ModeDescriptor`` naming its shape, how
shape points are assigned to particles (``FillPolicy``), and the motion
applied on top.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Optional

import numpy as np

from swarm_engine import shapes as shape_names
from swarm_engine.config import SwarmConfig
from swarm_engine.gestures import GestureState

logger = logging.getLogger("swarm_engine.particles")

IDLE_ROTATION_SPEED = 0.3
IMPLOSION_SPIN = 2.0
REVEAL_DURATION = 1.5
REVEAL_START_RADIUS = 20.0
REVEAL_SPIN_START = 2.0
REVEAL_SPIN_END = 0.5
SCATTER_SIZE = 500.0
SCATTER_DEPTH = -500.0
INITIAL_SPREAD = 200.0


class FillPolicy(Enum):
    """How shape points are handed out to particles."""
    CYCLIC_FILL = "cyclic_fill"  # particle i takes point i mod L
    DIRECT_FILL_WITH_SCATTER = "direct_fill_with_scatter"  # i >= L scattered far away
    PROCEDURAL = "procedural"  # no shape


@dataclass
class ModeContext:
    """Per-tick inputs shared by all motion functions."""
    time: float
    reveal_start_time: float
    random_offsets: np.ndarray


Motion = Callable[[Optional[np.ndarray], np.ndarray, ModeContext], np.ndarray]


@dataclass(frozen=True)
class ModeDescriptor:
    name: str
    policy: FillPolicy
    motion: Motion
    shape: Optional[str] = None


def cyclic_indices(n: int, length: int) -> np.ndarray:
    """Shape index used by each of ``n`` particles under cyclic fill."""
    return np.arange(n) % length


def reveal_easing(elapsed: float) -> tuple[float, float, float]:
    """Face-reveal curve: (progress, cubic ease-out, spin speed)."""
    progress = min(max(elapsed / REVEAL_DURATION, 0.0), 1.0)
    ease = 1.0 - (1.0 - progress) ** 3
    spin = REVEAL_SPIN_START - progress * (REVEAL_SPIN_START - REVEAL_SPIN_END)
    return progress, ease, spin


def reveal_radius(shape_radius, ease: float):
    """Radius eased from the start radius (ease 0) to the shape's own (ease 1)."""
    return shape_radius * ease + REVEAL_START_RADIUS * (1.0 - ease)


def _tree_motion(points, idx, ctx):
    angle = ctx.time * IDLE_ROTATION_SPEED
    cos, sin = np.cos(angle), np.sin(angle)
    twinkle = np.sin(ctx.time * 3 + idx * 0.1) * 0.5

    out = np.empty((len(idx), 3), dtype=np.float64)
    out[:, 0] = points[:, 0] * cos - points[:, 2] * sin + twinkle
    out[:, 1] = points[:, 1]
    out[:, 2] = points[:, 0] * sin + points[:, 2] * cos
    return out


def _implosion_motion(points, idx, ctx):
    offsets = ctx.random_offsets[idx]
    angle = idx * 0.1 + ctx.time * IMPLOSION_SPIN
    radius = 2 + offsets[:, 0] * 3

    out = np.empty((len(idx), 3), dtype=np.float64)
    out[:, 0] = np.cos(angle) * radius
    out[:, 1] = np.sin(angle) * radius
    out[:, 2] = (offsets[:, 2] - 0.5) * 5
    return out


def _frame_motion(points, idx, ctx):
    t = ctx.time
    pulse = np.sin(t * 4) * 2
    sparkle = np.sin(t * 8 + idx * 0.3) * 1.5

    out = np.empty((len(idx), 3), dtype=np.float64)
    out[:, 0] = points[:, 0] + sparkle
    out[:, 1] = points[:, 1] + pulse * 0.3
    out[:, 2] = points[:, 2] + np.sin(t * 2 + idx * 0.1) * 3
    return out


def _vortex_motion(points, idx, ctx):
    t = ctx.time
    progress, ease, spin = reveal_easing(t - ctx.reveal_start_time)

    px = points[:, 0].astype(np.float64)
    py = points[:, 1].astype(np.float64)
    angle = np.arctan2(py, px) + t * spin
    r = reveal_radius(np.hypot(px, py), ease)
    sparkle = np.sin(t * 8 + idx * 0.5) * (1 - progress) * 15

    out = np.empty((len(idx), 3), dtype=np.float64)
    out[:, 0] = np.cos(angle) * (r + sparkle)
    out[:, 1] = np.sin(angle) * (r + sparkle)
    out[:, 2] = points[:, 2] + np.sin(t * 3 + idx) * 20 * (1 - progress)
    return out


def _wobble_motion(points, idx, ctx):
    t = ctx.time
    out = np.empty((len(idx), 3), dtype=np.float64)
    out[:, 0] = points[:, 0] + np.sin(t * 2 + idx) * 0.05
    out[:, 1] = points[:, 1] + np.cos(t * 1.5 + idx) * 0.05
    out[:, 2] = points[:, 2]
    return out


def _build_modes() -> dict[GestureState, ModeDescriptor]:
    modes = {
        GestureState.IDLE: ModeDescriptor(
            "idle", FillPolicy.CYCLIC_FILL, _tree_motion, shape_names.CHRISTMAS_TREE
        ),
        GestureState.FIST: ModeDescriptor("fist", FillPolicy.PROCEDURAL, _implosion_motion),
        GestureState.PINCH: ModeDescriptor(
            "pinch", FillPolicy.CYCLIC_FILL, _frame_motion, shape_names.PHOTO_FRAME
        ),
        GestureState.FACE_REVEAL: ModeDescriptor(
            "face_reveal", FillPolicy.CYCLIC_FILL, _vortex_motion, shape_names.VORTEX
        ),
        GestureState.DOUBLE_LOVE: ModeDescriptor(
            "double_love",
            FillPolicy.DIRECT_FILL_WITH_SCATTER,
            _wobble_motion,
            shape_names.SPECIAL_LOVE,
        ),
    }
    for count in range(1, 11):
        name = shape_names.finger_shape_name(count)
        modes[GestureState(name)] = ModeDescriptor(
            name, FillPolicy.DIRECT_FILL_WITH_SCATTER, _wobble_motion, name
        )
    return modes


MODES: dict[GestureState, ModeDescriptor] = _build_modes()


class ParticleField:
    """Owns the particle arrays for the lifetime of the process.

    ``position_buffer`` and ``color_buffer`` are flat float32 views of
    length 3N for the renderer; ``needs_update`` is raised after every tick
    and cleared by whoever consumes the positions.
    """

    def __init__(
        self,
        config: Optional[SwarmConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.config = config or SwarmConfig()
        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)
        self.count = self.config.particle_count
        self.smoothing = self.config.smoothing
        n = self.count

        self.positions = ((self.rng.random((n, 3)) - 0.5) * INITIAL_SPREAD).astype(np.float32)
        self.targets = self.positions.copy()
        self.random_offsets = self.rng.random((n, 3)).astype(np.float32)
        self.random_offsets.setflags(write=False)
        self.colors = self._make_colors(n)
        self.colors.setflags(write=False)

        self.needs_update = True
        self._index = np.arange(n)
        self._missing_reported: set[str] = set()

    def _make_colors(self, n: int) -> np.ndarray:
        start = np.array(self.config.start_rgb, dtype=np.float64)
        end = np.array(self.config.end_rgb, dtype=np.float64)
        mix = self.rng.random(n)[:, None]
        colors = (start + (end - start) * mix) * self.config.brightness_boost
        return np.minimum(colors, 1.0).astype(np.float32)

    @property
    def position_buffer(self) -> np.ndarray:
        return self.positions.reshape(-1)

    @property
    def color_buffer(self) -> np.ndarray:
        return self.colors.reshape(-1)

    def update_targets(
        self,
        gesture: GestureState | str,
        shapes: Mapping[str, np.ndarray],
        time: float,
        reveal_start_time: float = 0.0,
    ) -> bool:
        """Recompute every particle's target for the active mode.

        Returns False, leaving targets untouched, when the mode's shape is
        missing or empty.
        """
        mode = MODES.get(GestureState(gesture))
        if mode is None:
            return False

        ctx = ModeContext(
            time=time,
            reveal_start_time=reveal_start_time,
            random_offsets=self.random_offsets,
        )

        if mode.policy is FillPolicy.PROCEDURAL:
            self.targets[:] = mode.motion(None, self._index, ctx)
            return True

        shape = shapes.get(mode.shape)
        if shape is None or len(shape) == 0:
            if mode.shape not in self._missing_reported:
                logger.warning("Shape %r unavailable, %s mode holds targets", mode.shape, mode.name)
                self._missing_reported.add(mode.shape)
            return False

        length = len(shape)
        if mode.policy is FillPolicy.CYCLIC_FILL:
            points = shape[self._index % length]
            self.targets[:] = mode.motion(points, self._index, ctx)
            return True

        filled = min(length, self.count)
        idx = self._index[:filled]
        self.targets[:filled] = mode.motion(shape[:filled], idx, ctx)

        # Overflow particles are re-scattered every tick so they never settle.
        overflow = self.count - filled
        if overflow:
            self.targets[filled:, :2] = (self.rng.random((overflow, 2)) - 0.5) * SCATTER_SIZE
            self.targets[filled:, 2] = SCATTER_DEPTH
        return True

    def smooth(self):
        """Move positions a fixed fraction of the way to their targets."""
        self.positions += (self.targets - self.positions) * self.smoothing
        self.needs_update = True

    def tick(
        self,
        gesture: GestureState | str,
        shapes: Mapping[str, np.ndarray],
        time: float,
        reveal_start_time: float = 0.0,
    ) -> bool:
        applied = self.update_targets(gesture, shapes, time, reveal_start_time)
        self.smooth()
        return applied

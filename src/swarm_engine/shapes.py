"""Target shapes for the particle swarm.

Every shape is an ordered, read-only float32 array of world-space points,
shape (L, 3). Procedural shapes take an optional ``numpy.random.Generator``
so a seeded run reproduces exactly; text shapes are deterministic.
"""

from __future__ import annotations

import logging
import unicodedata
from collections.abc import Mapping
from typing import Iterator, Optional, Sequence

import cv2
import numpy as np

from swarm_engine.config import SwarmConfig

logger = logging.getLogger("swarm_engine.shapes")

# Shape names used by the particle field
VORTEX = "vortex"
CHRISTMAS_TREE = "christmas_tree"
PHOTO_FRAME = "photo_frame"
SPECIAL_LOVE = "special_love"
MISSING_PHOTO = "missing_photo"

# Text rasterization
CANVAS_WIDTH = 2048
CANVAS_HEIGHT = 1024
LINE_HEIGHT_RATIO = 1.2
TEXT_SCALE = 0.08
HIT_THRESHOLD = 128
_FONT = cv2.FONT_HERSHEY_SIMPLEX
_WHITE = (255, 255, 255)
# Unicode categories drawn with no advance: marks, format and control characters
_NO_ADVANCE = frozenset({"Mn", "Me", "Cf", "Cc"})

# Christmas tree
TREE_HEIGHT = 80.0
TREE_BASE_WIDTH = 50.0
TREE_LAYERS = 5
TRUNK_POINTS = 500
STAR_POINTS = 300

# Photo frame
FRAME_SIZE = 40.0
FRAME_THICKNESS = 8.0
FRAME_EDGE_SHARE = 0.7


def finger_shape_name(count: int) -> str:
    return f"finger_{count}"


def _freeze(points: np.ndarray) -> np.ndarray:
    points = np.ascontiguousarray(points, dtype=np.float32)
    points.setflags(write=False)
    return points


def _rng(rng: Optional[np.random.Generator]) -> np.random.Generator:
    return rng if rng is not None else np.random.default_rng()


def _unit_heart(samples: int = 96) -> np.ndarray:
    t = np.linspace(0, 2 * np.pi, samples, endpoint=False)
    x = 16 * np.sin(t) ** 3
    y = 13 * np.cos(t) - 5 * np.cos(2 * t) - 2 * np.cos(3 * t) - np.cos(4 * t)
    x = (x - x.min()) / (x.max() - x.min())
    y = (y.max() - y) / (y.max() - y.min())  # image rows grow downward
    return np.stack([x, y], axis=1)


_HEART = _unit_heart()
_HEART_CHARS = frozenset("\u2764\u2665")  # ❤ ♥


def _split_glyphs(text: str) -> list[tuple[str, str]]:
    """Split a line into ``("text", run)`` pieces the Hershey font can draw
    and ``("glyph", char)`` pieces it cannot.

    Variation selectors, joiners and control characters take no space.
    """
    pieces: list[tuple[str, str]] = []
    run = ""
    for ch in text:
        if " " <= ch <= "~":
            run += ch
            continue
        category = unicodedata.category(ch)
        if category == "Zs":
            run += " "
            continue
        if category in _NO_ADVANCE:
            continue
        if run:
            pieces.append(("text", run))
            run = ""
        pieces.append(("glyph", ch))
    if run:
        pieces.append(("text", run))
    return pieces


class _GlyphPainter:
    """Lays out one line of mixed Hershey text and drawn glyphs.

    Hearts are filled outlines. Any other character without a Hershey glyph
    becomes a box holding its code point in hex, so distinct characters
    never share a raster.
    """

    def __init__(self, font_size: int):
        self.thickness = max(2, int(font_size) // 8)
        self.scale = cv2.getFontScaleFromHeight(_FONT, max(1, int(font_size * 0.75)), self.thickness)
        (_, self.cap), _ = cv2.getTextSize("H", _FONT, self.scale, self.thickness)
        self.pad = max(1, self.cap // 6)
        self.code_thickness = max(1, self.thickness // 2)
        self.code_scale = cv2.getFontScaleFromHeight(
            _FONT, max(1, self.cap // 2), self.code_thickness
        )

    def _code_label(self, ch: str) -> tuple[str, int, int]:
        label = f"{ord(ch):X}"
        (w, h), _ = cv2.getTextSize(label, _FONT, self.code_scale, self.code_thickness)
        return label, w, h

    def advance(self, kind: str, piece: str) -> int:
        if kind == "text":
            (w, _), _ = cv2.getTextSize(piece, _FONT, self.scale, self.thickness)
            return w
        if piece in _HEART_CHARS:
            return self.cap + 2 * self.pad
        _, w, _ = self._code_label(piece)
        return w + 4 * self.pad

    def draw(self, canvas: np.ndarray, kind: str, piece: str, x: int, baseline: int):
        if kind == "text":
            cv2.putText(
                canvas, piece, (x, baseline), _FONT, self.scale, _WHITE, self.thickness, cv2.LINE_AA
            )
            return

        left, top = x + self.pad, baseline - self.cap
        if piece in _HEART_CHARS:
            outline = np.round(_HEART * self.cap + (left, top)).astype(np.int32)
            cv2.fillPoly(canvas, [outline], _WHITE, cv2.LINE_AA)
            return

        label, w, h = self._code_label(piece)
        right = left + w + 2 * self.pad
        cv2.rectangle(canvas, (left, top), (right, baseline), _WHITE, self.code_thickness, cv2.LINE_AA)
        cv2.putText(
            canvas, label, (left + self.pad, baseline - (self.cap - h) // 2),
            _FONT, self.code_scale, _WHITE, self.code_thickness, cv2.LINE_AA,
        )


def render_text(lines: Sequence[str], font_size: int) -> np.ndarray:
    """Render white, upper-cased, centered lines on a black BGR canvas.

    Printable ASCII is drawn with the Hershey simplex font. Hearts are drawn
    as filled outlines, other characters as boxed hex code points.
    """
    canvas = np.zeros((CANVAS_HEIGHT, CANVAS_WIDTH, 3), dtype=np.uint8)
    if not lines:
        return canvas

    painter = _GlyphPainter(font_size)
    line_height = font_size * LINE_HEIGHT_RATIO
    start_y = (CANVAS_HEIGHT - (len(lines) - 1) * line_height) / 2

    for i, line in enumerate(lines):
        pieces = _split_glyphs(line.upper())
        if not any(kind == "glyph" or piece.strip() for kind, piece in pieces):
            continue

        widths = [painter.advance(kind, piece) for kind, piece in pieces]
        center_y = start_y + i * line_height
        x = int(round(CANVAS_WIDTH / 2 - sum(widths) / 2))
        baseline = int(round(center_y + painter.cap / 2))
        for (kind, piece), width in zip(pieces, widths):
            painter.draw(canvas, kind, piece, x, baseline)
            x += width

    return canvas


def text_shape(lines: Sequence[str], font_size: int, stride: int = 3) -> np.ndarray:
    """Point cloud of rendered text, sampled every ``stride`` pixels.

    A sampled pixel is a hit when its red channel exceeds half intensity.
    Hits map to world space around the canvas center at 0.08 units per
    pixel, y flipped upward, z = 0, in row-major raster order.
    """
    canvas = render_text(lines, font_size)
    red = canvas[::stride, ::stride, 2]  # BGR
    rows, cols = np.nonzero(red > HIT_THRESHOLD)

    px = cols.astype(np.float32) * stride
    py = rows.astype(np.float32) * stride

    points = np.empty((len(px), 3), dtype=np.float32)
    points[:, 0] = (px - CANVAS_WIDTH / 2) * TEXT_SCALE
    points[:, 1] = -(py - CANVAS_HEIGHT / 2) * TEXT_SCALE
    points[:, 2] = 0.0
    return _freeze(points)


def vortex_shape(n: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Ten-turn spiral with a random band radius in [160, 260)."""
    rng = _rng(rng)
    i = np.arange(n, dtype=np.float64)
    angle = (i / n) * np.pi * 2 * 10
    r = 160 + rng.random(n) * 100

    points = np.empty((n, 3), dtype=np.float32)
    points[:, 0] = np.cos(angle) * r
    points[:, 1] = np.sin(angle) * r
    points[:, 2] = (rng.random(n) - 0.5) * 50
    return _freeze(points)


def christmas_tree_shape(n: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Layered cone with a trunk (first 500 points) and a star (next 300)."""
    rng = _rng(rng)

    layer = rng.integers(0, TREE_LAYERS, n).astype(np.float64)
    layer_y = TREE_HEIGHT / 2 - (layer / TREE_LAYERS) * TREE_HEIGHT
    layer_width = TREE_BASE_WIDTH * (1 - layer / TREE_LAYERS * 0.7)

    angle = rng.random(n) * np.pi * 2
    r = rng.random(n) * layer_width
    branch_noise = np.sin(angle * 8 + layer * 2) * 5

    points = np.empty((n, 3), dtype=np.float32)
    points[:, 0] = np.cos(angle) * (r + branch_noise)
    points[:, 1] = layer_y + (rng.random(n) - 0.5) * 10
    points[:, 2] = np.sin(angle) * (r + branch_noise)

    trunk = min(TRUNK_POINTS, n)
    points[:trunk, 0] = (rng.random(trunk) - 0.5) * 8
    points[:trunk, 1] = -TREE_HEIGHT / 2 - rng.random(trunk) * 15
    points[:trunk, 2] = (rng.random(trunk) - 0.5) * 8

    star_end = min(TRUNK_POINTS + STAR_POINTS, n)
    if star_end > TRUNK_POINTS:
        idx = np.arange(TRUNK_POINTS, star_end, dtype=np.float64)
        star_angle = (idx / 50) * np.pi * 2
        star_r = 3 + np.sin(star_angle * 5) * 2
        points[TRUNK_POINTS:star_end, 0] = np.cos(star_angle) * star_r
        points[TRUNK_POINTS:star_end, 1] = TREE_HEIGHT / 2 + 8
        points[TRUNK_POINTS:star_end, 2] = np.sin(star_angle) * star_r

    return _freeze(points)


def photo_frame_shape(n: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Square frame border (70% of points) with a loose halo around it."""
    rng = _rng(rng)
    i = np.arange(n, dtype=np.float64)
    t = i / n
    points = np.empty((n, 3), dtype=np.float32)

    edge = i < n * FRAME_EDGE_SHARE
    ne = int(edge.sum())

    side = np.floor(t[edge] * 4) % 4
    pos = (t[edge] * 4) % 1
    span = -FRAME_SIZE + pos * FRAME_SIZE * 2
    # top, right, bottom, left
    sides = [side == 0, side == 1, side == 2, side == 3]
    x = np.select(sides, [span, np.full(ne, FRAME_SIZE), -span, np.full(ne, -FRAME_SIZE)])
    y = np.select(sides, [np.full(ne, -FRAME_SIZE), span, np.full(ne, FRAME_SIZE), -span])
    sparkle = np.sin(i[edge] * 0.5) * 3
    points[edge, 0] = x + (rng.random(ne) - 0.5) * FRAME_THICKNESS
    points[edge, 1] = y + (rng.random(ne) - 0.5) * FRAME_THICKNESS
    points[edge, 2] = (rng.random(ne) - 0.5) * 10 + sparkle

    halo = ~edge
    nh = n - ne
    angle = rng.random(nh) * np.pi * 2
    r = FRAME_SIZE + 20 + rng.random(nh) * 40
    points[halo, 0] = np.cos(angle) * r
    points[halo, 1] = np.sin(angle) * r
    points[halo, 2] = (rng.random(nh) - 0.5) * 30

    return _freeze(points)


class ShapeLibrary(Mapping):
    """Read-only name -> shape mapping built once at startup."""

    def __init__(self, shapes: dict[str, np.ndarray]):
        self._shapes = {name: _freeze(points) for name, points in shapes.items()}

    def __getitem__(self, name: str) -> np.ndarray:
        return self._shapes[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._shapes)

    def __len__(self) -> int:
        return len(self._shapes)

    def summary(self) -> dict[str, dict]:
        """Point count and bounding box per shape."""
        result = {}
        for name, points in self._shapes.items():
            if len(points):
                lo, hi = points.min(axis=0), points.max(axis=0)
                bounds = [[round(float(a), 2), round(float(b), 2)] for a, b in zip(lo, hi)]
            else:
                bounds = []
            result[name] = {"points": len(points), "bounds": bounds}
        return result


def generate_all_shapes(
    config: Optional[SwarmConfig] = None,
    rng: Optional[np.random.Generator] = None,
) -> ShapeLibrary:
    """Build every procedural shape plus one text shape per configured message."""
    config = config or SwarmConfig()
    if rng is None:
        rng = np.random.default_rng(config.seed)
    n = config.particle_count
    stride = config.text_sample_stride

    shapes = {
        VORTEX: vortex_shape(n, rng),
        CHRISTMAS_TREE: christmas_tree_shape(n, rng),
        PHOTO_FRAME: photo_frame_shape(n, rng),
        SPECIAL_LOVE: text_shape(config.love_message.lines, config.love_message.font_size, stride),
        MISSING_PHOTO: text_shape(
            config.missing_photo_message.lines, config.missing_photo_message.font_size, stride
        ),
    }

    for count in range(1, 11):
        message = config.messages.get(count)
        if message:
            shapes[finger_shape_name(count)] = text_shape(message.lines, message.font_size, stride)

    library = ShapeLibrary(shapes)
    logger.info(
        "Generated %d shapes (%d particles, text stride %d)", len(library), n, stride
    )
    for name, points in library.items():
        logger.debug("  %-16s %6d points", name, len(points))
    return library

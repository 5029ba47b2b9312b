"""OpenCV preview of the particle buffers.

A stand-in for a real renderer: perspective-projects the position buffer
from a slowly swaying camera and splats the color buffer additively into a
BGR image.
"""

from __future__ import annotations

import math
from typing import Optional

import cv2
import numpy as np

CAMERA_FOV = 60.0
CAMERA_NEAR = 0.1
CAMERA_FAR = 1000.0
CAMERA_Z = 60.0
CAMERA_SWAY = 5.0


def camera_position(time: float, distance: float = CAMERA_Z) -> np.ndarray:
    """Camera eye for animation time ``time``; it drifts on a small circle."""
    return np.array([
        math.sin(time * 0.2) * CAMERA_SWAY,
        math.cos(time * 0.2) * CAMERA_SWAY,
        distance,
    ])


def project(
    points: np.ndarray,
    eye: np.ndarray,
    width: int,
    height: int,
    fov: float = CAMERA_FOV,
) -> tuple[np.ndarray, np.ndarray]:
    """Project world points looking from ``eye`` at the origin.

    Returns:
        (pixels, visible): integer pixel coords (N, 2) and a mask of points
        inside the view frustum.
    """
    forward = -eye / np.linalg.norm(eye)
    right = np.cross(forward, [0.0, 1.0, 0.0])
    right /= np.linalg.norm(right) + 1e-12
    up = np.cross(right, forward)

    rel = points.astype(np.float64) - eye
    x_c = rel @ right
    y_c = rel @ up
    depth = rel @ forward

    focal = (height / 2) / math.tan(math.radians(fov) / 2)
    safe_depth = np.where(depth > CAMERA_NEAR, depth, 1.0)
    u = width / 2 + focal * x_c / safe_depth
    v = height / 2 - focal * y_c / safe_depth

    pixels = np.stack([u, v], axis=-1)
    visible = (
        (depth > CAMERA_NEAR) & (depth < CAMERA_FAR)
        & (u >= 0) & (u < width) & (v >= 0) & (v < height)
    )
    pixels = np.where(visible[:, None], pixels, 0).astype(np.int32)
    return pixels, visible


class PreviewRenderer:
    """Splats particles into an image with additive blending and glow."""

    def __init__(
        self,
        width: int = 1280,
        height: int = 720,
        intensity: float = 0.35,
        glow: bool = True,
        point_size: int = 1,
    ):
        self.width = width
        self.height = height
        self.intensity = intensity
        self.glow = glow
        self.point_size = point_size
        self.frames = 0

    def render(
        self,
        position_buffer: np.ndarray,
        color_buffer: np.ndarray,
        time: float = 0.0,
        background: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """Render flat (3N) or (N, 3) buffers into a BGR uint8 frame."""
        positions = np.asarray(position_buffer).reshape(-1, 3)
        colors = np.asarray(color_buffer).reshape(-1, 3)

        pixels, visible = project(positions, camera_position(time), self.width, self.height)

        image = np.zeros((self.height, self.width, 3), dtype=np.float32)
        bgr = colors[visible][:, ::-1] * self.intensity
        np.add.at(image, (pixels[visible, 1], pixels[visible, 0]), bgr)

        if self.point_size > 1:
            kernel = np.ones((self.point_size, self.point_size), np.uint8)
            image = cv2.dilate(image, kernel)

        if self.glow:
            image = image + cv2.GaussianBlur(image, (0, 0), 3) * 0.8

        frame = (np.clip(image, 0.0, 1.0) * 255).astype(np.uint8)
        if background is not None:
            frame = cv2.add(cv2.resize(background, (self.width, self.height)), frame)

        self.frames += 1
        return frame


def draw_label(frame: np.ndarray, text: str, fps: Optional[float] = None) -> np.ndarray:
    """Status line in the top-left corner."""
    text = text.encode("ascii", "ignore").decode("ascii")
    if text:
        cv2.putText(frame, text, (20, 40), cv2.FONT_HERSHEY_SIMPLEX, 1.0, (255, 255, 255), 2)
    if fps is not None:
        cv2.putText(
            frame, f"FPS: {fps:.1f}", (20, 75),
            cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 255, 0), 2,
        )
    return frame

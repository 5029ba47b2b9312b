"""SwarmEngine CLI.

Usage:
    swarm-engine run         Webcam tracking with a live particle preview
    swarm-engine shapes      Generate every target shape and list them
    swarm-engine benchmark   Time the tick loop in every gesture mode
    swarm-engine simulate    Drive a session with synthetic hands
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import typer

from swarm_engine.config import ConfigError, SwarmConfig, load_config

app = typer.Typer(
    name="swarm-engine",
    help="Hand-gesture driven particle swarm.",
    add_completion=False,
)

logger = logging.getLogger("swarm_engine.cli")


def _setup(config_path: Optional[str], log_level: str) -> SwarmConfig:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    try:
        return load_config(config_path)
    except (OSError, ConfigError) as e:
        typer.echo(f"❌ Could not load config: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def run(
    camera: int = typer.Option(0, help="Camera device index"),
    width: int = typer.Option(1280, help="Preview width"),
    height: int = typer.Option(720, help="Preview height"),
    templates: bool = typer.Option(True, help="Consult pose templates for single hands"),
    show_camera: bool = typer.Option(False, help="Blend the camera image behind the particles"),
    config: Optional[str] = typer.Option(None, help="Path to YAML config"),
    log_level: str = typer.Option("info", help="Log level"),
):
    """Track hands from the camera and animate the swarm in a window."""
    import cv2
    from swarm_engine.detector import HandDetector
    from swarm_engine.preview import PreviewRenderer, draw_label
    from swarm_engine.session import AnimationSession
    from swarm_engine.templates import PoseTemplateMatcher

    cfg = _setup(config, log_level)

    try:
        detector = HandDetector.from_config(cfg)
    except ImportError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    cap = cv2.VideoCapture(camera)
    if not cap.isOpened():
        typer.echo(f"❌ Could not open camera {camera}", err=True)
        raise typer.Exit(1)
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, cfg.video_width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, cfg.video_height)

    typer.echo("✨ Generating shapes...")
    matcher = PoseTemplateMatcher.with_defaults() if templates else None
    session = AnimationSession(cfg, matcher=matcher)
    session.on_transition(lambda e: typer.echo(f"   🤚 {e.previous.value} → {e.current.value}: {e.label}"))
    renderer = PreviewRenderer(width, height)

    typer.echo("🎥 Running. Press 'q' or Esc to quit")
    frame_times: list[float] = []

    try:
        while True:
            t0 = time.perf_counter()
            ret, frame = cap.read()
            if not ret:
                continue

            frame = cv2.flip(frame, 1)
            hands = detector.detect(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
            session.on_hands(hands)
            session.tick()

            with session.profiler.stage("render"):
                image = renderer.render(
                    session.field.position_buffer,
                    session.field.color_buffer,
                    session.machine.time,
                    background=frame if show_camera else None,
                )
                session.field.needs_update = False

            frame_times.append(time.perf_counter() - t0)
            frame_times = frame_times[-60:]
            fps = len(frame_times) / sum(frame_times)
            cv2.imshow("SwarmEngine", draw_label(image, session.label, fps))

            if cv2.waitKey(1) & 0xFF in (ord("q"), 27):
                break
    except KeyboardInterrupt:
        pass
    finally:
        cap.release()
        detector.close()
        cv2.destroyAllWindows()

    stats = session.stats
    typer.echo(f"\n✅ {stats.ticks} ticks, {stats.transitions} gesture changes")
    for line in session.profiler.report():
        typer.echo(f"   {line}")


@app.command()
def shapes(
    config: Optional[str] = typer.Option(None, help="Path to YAML config"),
    seed: Optional[int] = typer.Option(None, help="Random seed for procedural shapes"),
    log_level: str = typer.Option("warning", help="Log level"),
):
    """Generate all target shapes and print their sizes and bounds."""
    import numpy as np
    from swarm_engine.shapes import generate_all_shapes

    cfg = _setup(config, log_level)
    rng = np.random.default_rng(seed if seed is not None else cfg.seed)

    t0 = time.perf_counter()
    library = generate_all_shapes(cfg, rng)
    elapsed = (time.perf_counter() - t0) * 1000

    typer.echo(f"🔷 {len(library)} shapes for {cfg.particle_count} particles ({elapsed:.0f} ms)\n")
    for name, info in library.summary().items():
        overflow = max(0, cfg.particle_count - info["points"])
        note = f"  ({overflow} overflow)" if name.startswith(("finger_", "special_")) and overflow else ""
        typer.echo(f"   {name:16s} {info['points']:7d} points{note}")


@app.command()
def benchmark(
    ticks: int = typer.Option(200, help="Ticks per gesture mode"),
    particles: Optional[int] = typer.Option(None, help="Override particle count"),
    config: Optional[str] = typer.Option(None, help="Path to YAML config"),
    log_level: str = typer.Option("warning", help="Log level"),
):
    """Time target assignment and smoothing for every gesture mode."""
    from swarm_engine.gestures import GestureState
    from swarm_engine.session import AnimationSession
    from swarm_engine.synthetic import hands_for

    cfg = _setup(config, log_level)
    if particles is not None:
        try:
            cfg = SwarmConfig.from_dict({**cfg.to_dict(), "particle_count": particles})
        except ConfigError as e:
            typer.echo(f"❌ {e}", err=True)
            raise typer.Exit(1)

    typer.echo(f"⚡ Benchmark: {cfg.particle_count} particles, {ticks} ticks per mode\n")
    session = AnimationSession(cfg)

    for gesture in GestureState:
        session.reset()
        session.on_hands(hands_for(gesture))
        t0 = time.perf_counter()
        for _ in range(ticks):
            session.tick()
        per_tick = (time.perf_counter() - t0) / ticks * 1000
        fps = 1000 / per_tick if per_tick > 0 else 0
        typer.echo(f"   {gesture.value:12s} {per_tick:7.3f} ms/tick  ({fps:6.0f} ticks/s)")

    typer.echo("\n📈 Stage breakdown:")
    for line in session.profiler.report():
        typer.echo(f"   {line}")


@app.command()
def simulate(
    script: str = typer.Argument(
        "idle,fist,finger_3,pinch,face_reveal,double_love,finger_10,idle",
        help="Comma-separated gesture states to act out",
    ),
    ticks: int = typer.Option(150, help="Ticks spent in each gesture"),
    templates: bool = typer.Option(False, help="Consult pose templates for single hands"),
    config: Optional[str] = typer.Option(None, help="Path to YAML config"),
    log_level: str = typer.Option("warning", help="Log level"),
):
    """Act out a gesture script with synthetic hands and report transitions."""
    from swarm_engine.gestures import GestureState
    from swarm_engine.session import AnimationSession
    from swarm_engine.synthetic import hands_for
    from swarm_engine.templates import PoseTemplateMatcher

    cfg = _setup(config, log_level)

    try:
        steps = [GestureState(name.strip()) for name in script.split(",") if name.strip()]
    except ValueError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    matcher = PoseTemplateMatcher.with_defaults() if templates else None
    session = AnimationSession(cfg, matcher=matcher)
    session.on_transition(
        lambda e: typer.echo(f"   t={e.time:6.2f}  {e.previous.value} → {e.current.value}  {e.label}")
    )

    typer.echo(f"▶️  Simulating {len(steps)} gestures, {ticks} ticks each")
    mismatches = 0
    for expected in steps:
        result = session.on_hands(hands_for(expected))
        if result.gesture != expected:
            mismatches += 1
            typer.echo(f"   ⚠️  expected {expected.value}, classified {result.gesture.value}")
        for _ in range(ticks):
            session.tick()

    stats = session.stats
    typer.echo(f"\n✅ {stats.ticks} ticks, {stats.transitions} transitions, {mismatches} mismatches")
    if mismatches:
        raise typer.Exit(1)


def main():
    app()


if __name__ == "__main__":
    main()

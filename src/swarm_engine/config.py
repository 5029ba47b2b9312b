"""SwarmEngine configuration.

All tunables live on a single ``SwarmConfig`` dataclass. Defaults reproduce
the stock installation; a YAML file can override any subset:

    particle_count: 12000
    smoothing: 0.08
    color_start: "#00aaff"
    messages:
      1:
        lines: ["HELLO"]
        font_size: 180
        label: "1 finger"
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional, Union

import yaml


class ConfigError(ValueError):
    """Raised for configuration values the engine cannot run with."""


@dataclass(frozen=True)
class FingerMessage:
    """Text rendered into a particle shape for one finger count."""
    lines: tuple[str, ...]
    font_size: int
    label: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> FingerMessage:
        if not isinstance(data, dict):
            raise ConfigError(f"Message must be a mapping, got {data!r}")
        lines = data.get("lines", data.get("text", []))
        if isinstance(lines, str):
            lines = [lines]
        try:
            return cls(
                lines=tuple(str(line) for line in lines),
                font_size=int(data.get("font_size", 120)),
                label=str(data.get("label", "")),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid message {data!r}: {e}") from e

    def to_dict(self) -> dict:
        return {"lines": list(self.lines), "font_size": self.font_size, "label": self.label}


DEFAULT_MESSAGES: dict[int, FingerMessage] = {
    1: FingerMessage(("HAII", "SAYANGGG"), 180, "1 Jari: Halo Sayang"),
    2: FingerMessage(("AKU MAU", "KASIH TAHU", "SESUATU..."), 140, "2 Jari: Ada sesuatu..."),
    3: FingerMessage(("AKU BANGGA", "BANGET SAMA", "KAMU SAYANG"), 130, "3 Jari: Bangga sama kamu"),
    4: FingerMessage(
        ("KAMU BAIK,", "CANTIK, HEBAT,", "BERANI MENCOBA", "HAL-HAL BARU"), 100, "4 Jari: Kamu hebat!"
    ),
    5: FingerMessage(("BEDA SAMA AKU", "YANG TAKUT", "NGELAKUIN", "SESUATU"), 110, "5 Jari: Kamu beda"),
    6: FingerMessage(
        ("AKU TAKUT GAGAL", "TAPI KAMU", "SELALU BERANI", "DAN KAMU HEBAT"), 100, "6 Jari: Kamu berani"
    ),
    7: FingerMessage(("BERUNTUNG", "BANGET AKU", "PUNYA KAMU"), 130, "7 Jari: Beruntung"),
    8: FingerMessage(("THANKS GOD", "FOR GIVE ME", "NAJMITA"), 130, "8 Jari: Thank You God"),
    9: FingerMessage(("DAN YANG", "TERAKHIR AKU", "MAU NGOMONG..."), 120, "9 Jari: Yang terakhir..."),
    10: FingerMessage(
        ("I LOVE YOUUU", "MOREEEE", "TUAN PUTRI", "NAJMITAAA \u2764"), 110, "10 Jari: I LOVE YOU!"
    ),
}

DEFAULT_SPECIAL_LABELS: dict[str, str] = {
    "idle": "Gerakkan Tangan...",
    "fist": "Genggaman (Black Hole)",
    "pinch": "Foto Diambil!",
    "face_reveal": "MUKA KITA",
    "double_love": "LOVEEE!!!",
}

DEFAULT_LOVE_MESSAGE = FingerMessage(("FOR YOU", "BEAUTIFUL WOMAN", "NAJMITA ZAHIRA"), 130)
DEFAULT_MISSING_PHOTO_MESSAGE = FingerMessage(("MASUKKAN FILE", "us.jpeg", "KE FOLDER"), 100)


def parse_color(value: Union[int, str, tuple, list]) -> tuple[float, float, float]:
    """Parse ``0x00aaff``, ``"#00aaff"`` or an RGB triple into floats in [0, 1]."""
    if isinstance(value, (tuple, list)):
        if len(value) != 3:
            raise ConfigError(f"Color triple needs 3 components, got {value!r}")
        rgb = tuple(float(c) for c in value)
        if any(c > 1.0 for c in rgb):
            rgb = tuple(c / 255.0 for c in rgb)
        return rgb  # type: ignore[return-value]

    if isinstance(value, str):
        text = value.strip().lstrip("#")
        if text.lower().startswith("0x"):
            text = text[2:]
        try:
            value = int(text, 16)
        except ValueError:
            raise ConfigError(f"Invalid color: {value!r}") from None

    if not 0 <= int(value) <= 0xFFFFFF:
        raise ConfigError(f"Color out of range: {value!r}")

    value = int(value)
    return (
        ((value >> 16) & 0xFF) / 255.0,
        ((value >> 8) & 0xFF) / 255.0,
        (value & 0xFF) / 255.0,
    )


@dataclass
class SwarmConfig:
    particle_count: int = 20000
    particle_size: float = 0.5
    color_start: Union[int, str] = 0x00AAFF
    color_end: Union[int, str] = 0xFF00AA
    brightness_boost: float = 1.5
    smoothing: float = 0.05
    time_step: float = 0.01
    text_sample_stride: int = 3
    seed: Optional[int] = None

    # Tracker / template matcher
    max_hands: int = 2
    min_detection_confidence: float = 0.6
    min_tracking_confidence: float = 0.6
    video_width: int = 640
    video_height: int = 480
    template_threshold: float = 0.8

    # Debounce for gesture flicker; 0 keeps every transition.
    min_dwell_ticks: int = 0

    messages: dict[int, FingerMessage] = field(default_factory=lambda: dict(DEFAULT_MESSAGES))
    special_labels: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SPECIAL_LABELS))
    love_message: FingerMessage = DEFAULT_LOVE_MESSAGE
    missing_photo_message: FingerMessage = DEFAULT_MISSING_PHOTO_MESSAGE

    def __post_init__(self):
        self.validate()

    def validate(self):
        if self.particle_count <= 0:
            raise ConfigError("particle_count must be positive")
        if not 0.0 < self.smoothing <= 1.0:
            raise ConfigError("smoothing must be in (0, 1]")
        if self.text_sample_stride <= 0:
            raise ConfigError("text_sample_stride must be positive")
        if self.time_step <= 0:
            raise ConfigError("time_step must be positive")
        if self.min_dwell_ticks < 0:
            raise ConfigError("min_dwell_ticks cannot be negative")
        for count in self.messages:
            if not 1 <= count <= 10:
                raise ConfigError(f"Finger message key out of range 1-10: {count}")
        parse_color(self.color_start)
        parse_color(self.color_end)

    @property
    def start_rgb(self) -> tuple[float, float, float]:
        return parse_color(self.color_start)

    @property
    def end_rgb(self) -> tuple[float, float, float]:
        return parse_color(self.color_end)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SwarmConfig:
        """Build a config from a plain dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}

        if "messages" in kwargs:
            overrides = kwargs["messages"] or {}
            if not isinstance(overrides, dict):
                raise ConfigError("messages must map finger counts to messages")
            messages = dict(DEFAULT_MESSAGES)
            for count, entry in overrides.items():
                try:
                    key = int(count)
                except (TypeError, ValueError):
                    raise ConfigError(f"Finger message key is not a number: {count!r}") from None
                messages[key] = FingerMessage.from_dict(entry)
            kwargs["messages"] = messages

        if "special_labels" in kwargs:
            labels = dict(DEFAULT_SPECIAL_LABELS)
            labels.update({str(k): str(v) for k, v in (kwargs["special_labels"] or {}).items()})
            kwargs["special_labels"] = labels

        for key in ("love_message", "missing_photo_message"):
            if isinstance(kwargs.get(key), dict):
                kwargs[key] = FingerMessage.from_dict(kwargs[key])

        try:
            return cls(**kwargs)
        except TypeError as e:
            # Wrong value types fail the comparisons in validate()
            raise ConfigError(f"Invalid config value: {e}") from e

    @classmethod
    def from_yaml(cls, path: str | Path) -> SwarmConfig:
        """Load a config from a YAML file."""
        with open(path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"{path}: not valid YAML: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: top level must be a mapping")
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["messages"] = {k: m.to_dict() for k, m in sorted(self.messages.items())}
        data["love_message"] = self.love_message.to_dict()
        data["missing_photo_message"] = self.missing_photo_message.to_dict()
        return data

    def to_yaml(self, path: str | Path):
        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)


def load_config(path: Optional[str | Path] = None) -> SwarmConfig:
    """Return the config at ``path``, or the defaults when no path is given."""
    if path is None:
        return SwarmConfig()
    return SwarmConfig.from_yaml(path)


def label_for(gesture: str, config: SwarmConfig) -> str:
    """Human-readable status line for a gesture state."""
    if gesture.startswith("finger_"):
        count = int(gesture.split("_")[1])
        message = config.messages.get(count)
        if message and message.label:
            return message.label
        return f"{count} Jari"
    return config.special_labels.get(gesture, gesture)

from __future__ import annotations
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

PROFILES_DIR = Path(__file__).resolve().parents[2] / "profiles"

# Accepted ranges for the strategy targets (inclusive).
EBU_TARGET_LEVEL_RANGE = (-70.0, -5.0)
EBU_LOUDNESS_RANGE_TARGET_RANGE = (1.0, 50.0)
EBU_TRUE_PEAK_RANGE = (-9.0, 0.0)
EBU_OFFSET_RANGE = (-99.0, 99.0)
LEVEL_TARGET_RANGE = (-99.0, 0.0)
DIALNORM_RANGE = (-31, -1)


@dataclass
class ToolsConfig:
    # None = ./ffmpeg in the working directory if present, otherwise PATH lookup
    ffmpeg: Optional[str] = None
    ffprobe: Optional[str] = None
    show_progress: bool = True


@dataclass
class EbuConfig:
    target_level: float = -23.0  # integrated loudness, LUFS
    loudness_range_target: float = 7.0  # LU
    true_peak: float = -2.0  # dBTP
    # Gain applied before the true-peak limiter in pass 1 only;
    # pass 2 uses the target_offset measured by pass 1.
    offset: float = 0.0


@dataclass
class LevelConfig:
    target_level: float = -23.0  # dB


@dataclass
class DialogueConfig:
    # -31 means no level change on playback
    target_level: int = -31


@dataclass
class Profile:
    name: str = "default"
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    ebu: EbuConfig = field(default_factory=EbuConfig)
    rms: LevelConfig = field(default_factory=LevelConfig)
    peak: LevelConfig = field(default_factory=LevelConfig)
    dialogue: DialogueConfig = field(default_factory=DialogueConfig)


def check_range(name: str, value, bounds) -> None:
    lo, hi = bounds
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if not (lo <= value <= hi):
        raise ValueError(f"{name}={value} is not in [{lo} .. {hi}]")


def validate_profile(p: Profile) -> None:
    for name in ("ffmpeg", "ffprobe"):
        value = getattr(p.tools, name)
        if value is not None and not isinstance(value, str):
            raise ValueError(f"tools.{name} must be a path, got {value!r}")
    if not isinstance(p.tools.show_progress, bool):
        raise ValueError(f"tools.show_progress must be true or false, got {p.tools.show_progress!r}")
    check_range("ebu.target_level", p.ebu.target_level, EBU_TARGET_LEVEL_RANGE)
    check_range("ebu.loudness_range_target", p.ebu.loudness_range_target, EBU_LOUDNESS_RANGE_TARGET_RANGE)
    check_range("ebu.true_peak", p.ebu.true_peak, EBU_TRUE_PEAK_RANGE)
    check_range("ebu.offset", p.ebu.offset, EBU_OFFSET_RANGE)
    check_range("rms.target_level", p.rms.target_level, LEVEL_TARGET_RANGE)
    check_range("peak.target_level", p.peak.target_level, LEVEL_TARGET_RANGE)
    if isinstance(p.dialogue.target_level, bool) or not isinstance(p.dialogue.target_level, int):
        raise ValueError(f"dialogue.target_level must be a whole number, got {p.dialogue.target_level!r}")
    check_range("dialogue.target_level", p.dialogue.target_level, DIALNORM_RANGE)


def _resolve_profile_path(name_or_path: str) -> Path:
    candidate = Path(name_or_path).expanduser()
    if candidate.is_file():
        return candidate
    path = PROFILES_DIR / f"{name_or_path}.yaml"
    if not path.exists():
        raise FileNotFoundError(f"Profile not found: {name_or_path} (looked in {PROFILES_DIR})")
    return path


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off", "")


def load_profile(name_or_path: Optional[str] = None) -> Profile:
    load_dotenv()
    name_or_path = name_or_path or os.getenv("AUDIONORM_PROFILE")

    p = Profile()
    if name_or_path:
        path = _resolve_profile_path(name_or_path)
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Profile {path} must be a mapping")
        p.name = data.get("name") or path.stem

        # Shallow per-section update; unknown keys are ignored.
        def update_dataclass(dc, section: str):
            upd = data.get(section)
            if upd is None:
                return
            if not isinstance(upd, dict):
                raise ValueError(f"Profile {path}: section '{section}' must be a mapping, got {upd!r}")
            for k, v in upd.items():
                if hasattr(dc, k):
                    setattr(dc, k, v)

        update_dataclass(p.tools, "tools")
        update_dataclass(p.ebu, "ebu")
        update_dataclass(p.rms, "rms")
        update_dataclass(p.peak, "peak")
        update_dataclass(p.dialogue, "dialogue")

    p.tools.ffmpeg = os.getenv("AUDIONORM_FFMPEG") or p.tools.ffmpeg
    p.tools.ffprobe = os.getenv("AUDIONORM_FFPROBE") or p.tools.ffprobe
    p.tools.show_progress = _env_flag("AUDIONORM_PROGRESS", p.tools.show_progress)

    validate_profile(p)
    return p

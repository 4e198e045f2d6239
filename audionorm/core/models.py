from __future__ import annotations
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .errors import MissingMeasurement


@dataclass(frozen=True)
class StreamInfo:
    codec_name: str
    duration: Optional[float] = None  # seconds
    bit_rate: Optional[int] = None  # bits/sec
    channels: Optional[str] = None
    channel_layout: Optional[str] = None
    sample_rate: Optional[str] = None

    @property
    def duration_text(self) -> str:
        if self.duration is None:
            return "N/A"
        total = int(self.duration)
        return f"{total // 3600:02d}:{total % 3600 // 60:02d}:{total % 60:02d}"

    @property
    def bit_rate_text(self) -> str:
        if self.bit_rate is None:
            return "N/A"
        return f"{self.bit_rate // 1000} kb/s"

    @property
    def sample_rate_text(self) -> str:
        try:
            return f"{float(self.sample_rate) / 1000.0:.1f} kHz"
        except (TypeError, ValueError):
            return "N/A"

    def describe(self) -> str:
        return (
            f"Codec: {self.codec_name}, Channels: {self.channels or 'N/A'}, "
            f"Channel-layout: {self.channel_layout or 'N/A'}, Duration: {self.duration_text}, "
            f"Bit-rate: {self.bit_rate_text}, Sample-rate: {self.sample_rate_text}"
        )


ANALYSIS_KEYS = ("input_i", "input_tp", "input_lra", "input_thresh", "target_offset")
FULL_KEYS = ANALYSIS_KEYS + (
    "output_i",
    "output_tp",
    "output_lra",
    "output_thresh",
    "normalization_type",
)


@dataclass(frozen=True)
class LoudnessReport:
    """Measurements printed by the loudnorm filter (print_format=json).

    Pass 1 reports only need the input_* fields and target_offset; pass 2
    reports carry all ten keys. Absent fields stay None.
    """

    input_i: Optional[float] = None
    input_lra: Optional[float] = None
    input_tp: Optional[float] = None
    input_thresh: Optional[float] = None
    output_i: Optional[float] = None
    output_lra: Optional[float] = None
    output_tp: Optional[float] = None
    output_thresh: Optional[float] = None
    normalization_type: Optional[str] = None
    target_offset: Optional[float] = None

    @property
    def field_count(self) -> int:
        return sum(1 for f in fields(self) if getattr(self, f.name) is not None)

    @property
    def is_full_shape(self) -> bool:
        return self.field_count == len(FULL_KEYS)

    def require(self, name: str):
        value = getattr(self, name, None)
        if value is None:
            raise MissingMeasurement(name)
        return value


@dataclass(frozen=True)
class EbuTargets:
    target_level: float = -23.0
    loudness_range_target: float = 7.0
    true_peak: float = -2.0
    offset: float = 0.0


@dataclass(frozen=True)
class LevelTarget:
    target_level: float = -23.0


@dataclass(frozen=True)
class DialnormTarget:
    target_level: int = -31


StrategyParams = Union[EbuTargets, LevelTarget, DialnormTarget]


@dataclass(frozen=True)
class NormalizationRequest:
    input_path: Path
    output_path: Path
    strategy: str  # ebu | rms | peak | dialogue
    params: StrategyParams
    overwrite: bool = False
    verbose: bool = False
    ffmpeg_args: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Elapsed:
    seconds: float


@dataclass(frozen=True)
class End:
    pass


ProgressEvent = Union[Elapsed, End]


@dataclass
class NormalizationResult:
    strategy: str
    input_path: Path
    output_path: Path
    stream: StreamInfo
    measured: Optional[LoudnessReport] = None
    applied: Optional[LoudnessReport] = None
    measured_level: Optional[float] = None
    volume_adjustment: Optional[float] = None
    warnings: List[str] = field(default_factory=list)

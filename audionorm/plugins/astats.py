"""Level measurement + static gain shared by the peak and RMS normalizers."""
from __future__ import annotations
import logging
import math
import re
from typing import Iterable, List

from ..core.config import ToolsConfig
from ..core.errors import MalformedMeasurement, NoMeasurements, NormalizationError, StageError
from ..core.models import LevelTarget, NormalizationRequest, NormalizationResult, StreamInfo
from .ffmpeg_tools import NULL_OUTPUT, base_command, common_args, output_args, run_ffmpeg

log = logging.getLogger(__name__)

# astats statistic name -> the label it prints in the "Overall" section
STATISTICS = {
    "Peak_level": re.compile(r"^.*\bPeak\s+level\s+dB\s*:\s*(\S+)\s*$"),
    "RMS_level": re.compile(r"^.*\bRMS\s+level\s+dB\s*:\s*(\S+)\s*$"),
}


def stats_filter(statistic: str) -> str:
    return f"astats=measure_overall={statistic}:measure_perchannel=0"


def parse_level(diagnostics: Iterable[str], statistic: str) -> float:
    pattern = STATISTICS[statistic]
    label = statistic.replace("_", " ")
    noise: List[str] = []
    found = None
    for line in diagnostics:
        m = pattern.match(line)
        if m:
            found = (line, m.group(1))
        else:
            noise.append(line)

    if found is None:
        raise NoMeasurements("\n".join(noise), what=label)
    line, raw = found
    try:
        value = float(raw)
    except ValueError as e:
        raise MalformedMeasurement(line.strip(), f"Failed to parse {label} value") from e
    if not math.isfinite(value):
        # astats prints -inf for digital silence; no gain can fix that
        raise MalformedMeasurement(line.strip(), f"{label} is not a finite number")
    return value


def volume_adjustment(target_level: float, measured_level: float) -> float:
    return target_level - measured_level


def volume_filter(adjustment: float) -> str:
    return f"volume={adjustment}dB"


def measure_level(request: NormalizationRequest, stream: StreamInfo, tools: ToolsConfig, statistic: str) -> float:
    cmd = base_command(request.input_path, tools.ffmpeg)
    cmd += ["-filter", stats_filter(statistic)]
    cmd += common_args(stream, request.ffmpeg_args)
    cmd += NULL_OUTPUT

    diagnostics = run_ffmpeg(
        cmd,
        "[1/2] Processing audio file to measure loudness values:",
        duration=stream.duration,
        verbose=request.verbose,
        show_progress=tools.show_progress,
    )
    level = parse_level(diagnostics, statistic)
    if request.verbose:
        log.info("  %s = %sdB", statistic.replace("_", " "), level)
    return level


def apply_gain(request: NormalizationRequest, stream: StreamInfo, tools: ToolsConfig, adjustment: float, title: str) -> None:
    cmd = base_command(request.input_path, tools.ffmpeg)
    cmd += ["-filter", volume_filter(adjustment)]
    cmd += common_args(stream, request.ffmpeg_args)
    cmd += output_args(request.output_path, request.overwrite)

    run_ffmpeg(
        cmd,
        f"[2/2] {title} Normalizing audio file:",
        duration=stream.duration,
        verbose=request.verbose,
        show_progress=tools.show_progress,
    )
    if request.verbose:
        log.info("  Volume adjustment = %sdB", adjustment)


def normalize_level(
    request: NormalizationRequest,
    stream: StreamInfo,
    tools: ToolsConfig,
    statistic: str,
    title: str,
) -> NormalizationResult:
    if not isinstance(request.params, LevelTarget):
        raise TypeError(f"{title} normalization needs LevelTarget, got {type(request.params).__name__}")

    result = NormalizationResult(
        strategy=request.strategy,
        input_path=request.input_path,
        output_path=request.output_path,
        stream=stream,
    )
    try:
        result.measured_level = measure_level(request, stream, tools, statistic)
    except NormalizationError as e:
        raise StageError("Failed to run pass 1 to measure loudness values") from e

    result.volume_adjustment = volume_adjustment(request.params.target_level, result.measured_level)
    try:
        apply_gain(request, stream, tools, result.volume_adjustment, title)
    except NormalizationError as e:
        raise StageError("Failed to run pass 2 to normalize audio file") from e
    return result

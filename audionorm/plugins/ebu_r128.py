"""Two-pass EBU R128 loudness normalization with ffmpeg's loudnorm filter.

Pass 1 only measures (output discarded). Pass 2 feeds the measured values
back so loudnorm can apply a single linear gain instead of its adaptive mode.
"""
from __future__ import annotations
import logging

from ..core.config import ToolsConfig
from ..core.errors import NormalizationError, ReportParseError, StageError
from ..core.models import EbuTargets, LoudnessReport, NormalizationRequest, NormalizationResult, StreamInfo
from .ffmpeg_tools import NULL_OUTPUT, base_command, common_args, output_args, run_ffmpeg
from .loudness_report import parse_loudness_report

log = logging.getLogger(__name__)

PASS1_REQUIRED = ("input_i", "input_lra", "input_tp", "input_thresh", "target_offset")


def analysis_filter(t: EbuTargets) -> str:
    return (
        f"loudnorm=i={t.target_level}:lra={t.loudness_range_target}:tp={t.true_peak}"
        f":offset={t.offset}:print_format=json"
    )


def apply_filter(t: EbuTargets, measured: LoudnessReport) -> str:
    # offset is the target_offset measured in pass 1, not the user's offset
    return (
        f"loudnorm=i={t.target_level}:lra={t.loudness_range_target}:tp={t.true_peak}"
        f":offset={measured.require('target_offset')}"
        f":measured_i={measured.require('input_i')}"
        f":measured_lra={measured.require('input_lra')}"
        f":measured_tp={measured.require('input_tp')}"
        f":measured_thresh={measured.require('input_thresh')}"
        f":linear=true:print_format=json"
    )


def measure(request: NormalizationRequest, stream: StreamInfo, tools: ToolsConfig) -> LoudnessReport:
    cmd = base_command(request.input_path, tools.ffmpeg)
    cmd += ["-filter", analysis_filter(request.params)]
    cmd += common_args(stream, request.ffmpeg_args)
    cmd += NULL_OUTPUT

    diagnostics = run_ffmpeg(
        cmd,
        "[1/2] Processing audio file to measure loudness values:",
        duration=stream.duration,
        verbose=request.verbose,
        show_progress=tools.show_progress,
    )
    report = parse_loudness_report(diagnostics)
    for name in PASS1_REQUIRED:
        report.require(name)

    if request.verbose:
        log.info(
            "  Measured: I=%s LUFS, LRA=%s LU, TP=%s dBTP, threshold=%s LUFS, target offset=%s LU",
            report.input_i, report.input_lra, report.input_tp, report.input_thresh, report.target_offset,
        )
    return report


def apply(
    request: NormalizationRequest,
    stream: StreamInfo,
    tools: ToolsConfig,
    measured: LoudnessReport,
    result: NormalizationResult,
) -> None:
    cmd = base_command(request.input_path, tools.ffmpeg)
    cmd += ["-filter", apply_filter(request.params, measured)]
    cmd += common_args(stream, request.ffmpeg_args)
    cmd += output_args(request.output_path, request.overwrite)

    diagnostics = run_ffmpeg(
        cmd,
        "[2/2] EBU R128 Normalizing audio file:",
        duration=stream.duration,
        verbose=request.verbose,
        show_progress=tools.show_progress,
    )

    # The output file exists at this point; the second report is informational.
    try:
        result.applied = parse_loudness_report(diagnostics)
    except ReportParseError as e:
        msg = f"Could not read pass 2 loudness statistics: {e}"
        result.warnings.append(msg)
        log.warning(msg)
        return

    if not result.applied.is_full_shape:
        msg = "Pass 2 did not report output loudness values"
        result.warnings.append(msg)
        log.warning(msg)
        return

    if request.verbose:
        r = result.applied
        log.info(
            "  Output: I=%s LUFS, LRA=%s LU, TP=%s dBTP, threshold=%s LUFS, type=%s",
            r.output_i, r.output_lra, r.output_tp, r.output_thresh, r.normalization_type,
        )


def normalize(request: NormalizationRequest, stream: StreamInfo, tools: ToolsConfig) -> NormalizationResult:
    if not isinstance(request.params, EbuTargets):
        raise TypeError(f"EBU normalization needs EbuTargets, got {type(request.params).__name__}")

    result = NormalizationResult(
        strategy="ebu",
        input_path=request.input_path,
        output_path=request.output_path,
        stream=stream,
    )
    try:
        result.measured = measure(request, stream, tools)
    except NormalizationError as e:
        raise StageError("Failed to run pass 1 to measure loudness values") from e

    try:
        apply(request, stream, tools, result.measured, result)
    except NormalizationError as e:
        raise StageError("Failed to run pass 2 to normalize audio file") from e
    return result

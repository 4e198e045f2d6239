from __future__ import annotations

from ..core.config import ToolsConfig
from ..core.errors import NormalizationError, StageError
from ..core.models import DialnormTarget, NormalizationRequest, NormalizationResult, StreamInfo
from .ffmpeg_tools import base_command, common_args, output_args, run_ffmpeg


def dialogue_args(params: DialnormTarget):
    # dialnorm is metadata for AC-3 style decoders; the samples are not touched
    return ["-dialnorm", str(int(params.target_level))]


def normalize(request: NormalizationRequest, stream: StreamInfo, tools: ToolsConfig) -> NormalizationResult:
    if not isinstance(request.params, DialnormTarget):
        raise TypeError(f"Dialogue normalization needs DialnormTarget, got {type(request.params).__name__}")

    cmd = base_command(request.input_path, tools.ffmpeg)
    cmd += dialogue_args(request.params)
    cmd += common_args(stream, request.ffmpeg_args)
    cmd += output_args(request.output_path, request.overwrite)
    try:
        run_ffmpeg(
            cmd,
            "[1/1] Dialogue Normalizing audio file:",
            duration=stream.duration,
            verbose=request.verbose,
            show_progress=tools.show_progress,
        )
    except NormalizationError as e:
        raise StageError("Failed to normalize audio file") from e

    return NormalizationResult(
        strategy="dialogue",
        input_path=request.input_path,
        output_path=request.output_path,
        stream=stream,
    )

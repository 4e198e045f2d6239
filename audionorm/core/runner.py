from __future__ import annotations
import logging
from typing import Callable, Dict

from .config import Profile
from .errors import NormalizationError, StageError
from .models import NormalizationRequest, NormalizationResult, StreamInfo
from ..plugins import dialogue, ebu_r128, peak, rms
from ..plugins.ffprobe_tools import probe_stream

log = logging.getLogger(__name__)

Normalizer = Callable[..., NormalizationResult]

STRATEGIES: Dict[str, Normalizer] = {
    "ebu": ebu_r128.normalize,
    "rms": rms.normalize,
    "peak": peak.normalize,
    "dialogue": dialogue.normalize,
}


def run_normalization(request: NormalizationRequest, profile: Profile) -> NormalizationResult:
    normalizer = STRATEGIES.get(request.strategy)
    if normalizer is None:
        raise ValueError(f"Unknown normalization strategy: {request.strategy!r}")

    # 1) Input file information
    try:
        stream = probe_stream(request.input_path, profile.tools.ffprobe)
    except NormalizationError as e:
        raise StageError("Failed to get input file information") from e
    _show_input(request, stream)

    # 2) Strategy passes
    result = normalizer(request, stream, profile.tools)

    log.info("Done. Output file: %s", request.output_path)
    return result


def _show_input(request: NormalizationRequest, stream: StreamInfo) -> None:
    log.info("Input audio file:\n %s\n %s", request.input_path, stream.describe())

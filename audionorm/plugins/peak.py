from __future__ import annotations

from ..core.config import ToolsConfig
from ..core.models import NormalizationRequest, NormalizationResult, StreamInfo
from .astats import normalize_level


def normalize(request: NormalizationRequest, stream: StreamInfo, tools: ToolsConfig) -> NormalizationResult:
    """Bring the overall sample peak to the target level (dBFS)."""
    return normalize_level(request, stream, tools, "Peak_level", "Peak")

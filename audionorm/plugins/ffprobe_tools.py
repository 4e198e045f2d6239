from __future__ import annotations
import json
import logging
import subprocess
from pathlib import Path
from typing import Optional

from ..core.errors import ProbeError
from ..core.models import StreamInfo
from .ffmpeg_tools import tool_path

log = logging.getLogger(__name__)


def probe_stream(path: Path, ffprobe: Optional[str] = None) -> StreamInfo:
    """Return stream information for the first audio stream of ``path``.

    Raises ProbeError if the file can't be opened, ffprobe can't be started or
    fails, or its output doesn't describe an audio stream.
    """
    try:
        with open(path, "rb"):
            pass
    except OSError as e:
        raise ProbeError(f"Can't open input file: {path}") from e

    cmd = [
        tool_path("ffprobe", ffprobe),
        "-i", str(path),
        "-loglevel", "error",
        "-print_format", "json",
        "-show_streams",
        "-select_streams", "a:0",
    ]
    log.debug("Running: %s", " ".join(cmd))
    try:
        p = subprocess.run(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as e:
        raise ProbeError(f"Failed to run ffprobe ({cmd[0]}). Install FFmpeg and ensure it's in PATH.") from e

    if p.returncode != 0:
        if p.returncode < 0:
            raise ProbeError(f"Failed to run ffprobe without exit code:\n{(p.stderr or '').strip()}")
        raise ProbeError(f"Failed to run ffprobe with exit code={p.returncode}:\n{(p.stderr or '').strip()}")

    return parse_probe_output(p.stdout)


def parse_probe_output(raw: str) -> StreamInfo:
    try:
        data = json.loads(raw or "")
    except json.JSONDecodeError as e:
        raise ProbeError("Failed to parse ffprobe output") from e

    streams = data.get("streams") if isinstance(data, dict) else None
    if not streams:
        raise ProbeError("ffprobe does not return audio stream information")
    s = streams[0]
    codec = s.get("codec_name")
    if not codec:
        raise ProbeError("ffprobe does not return the audio codec name")

    return StreamInfo(
        codec_name=str(codec),
        duration=_to_float(s.get("duration")),
        bit_rate=_to_int(s.get("bit_rate")),
        channels=_to_text(s.get("channels")),
        channel_layout=_to_text(s.get("channel_layout")),
        sample_rate=_to_text(s.get("sample_rate")),
    )


# ffprobe prints "N/A" (or omits the key) when a container doesn't know a value.

def _to_float(v) -> Optional[float]:
    try:
        return float(v) if v is not None else None
    except (TypeError, ValueError):
        return None


def _to_int(v) -> Optional[int]:
    try:
        return int(v) if v is not None else None
    except (TypeError, ValueError):
        return None


def _to_text(v) -> Optional[str]:
    if v is None or v == "N/A" or v == "":
        return None
    return str(v)

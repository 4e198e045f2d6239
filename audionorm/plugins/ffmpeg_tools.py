from __future__ import annotations
import logging
import os
import re
import subprocess
import sys
import threading
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from ..core.errors import ProcessExitError, ProcessSpawnError
from ..core.models import Elapsed, End, ProgressEvent, StreamInfo
from .progress import progress_bar

log = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]

RE_OUT_TIME = re.compile(r"^\s*out_time_ms\s*=\s*(\d+)")
RE_PROGRESS_END = re.compile(r"^\s*progress\s*=\s*end\s*$")

NULL_OUTPUT = ["-f", "null", "-"]


def tool_path(name: str, configured: Optional[str] = None) -> str:
    """Executable for ``name``: configured path, else ./<name> if present, else PATH lookup."""
    if configured:
        return configured
    exe = f"{name}.exe" if os.name == "nt" else name
    local = Path.cwd() / exe
    if local.exists():
        return str(local)
    return exe


def base_command(input_file: Path, ffmpeg: Optional[str] = None) -> List[str]:
    return [
        tool_path("ffmpeg", ffmpeg),
        # program-friendly progress on stdout
        "-progress", "-",
        "-nostats",
        "-nostdin",
        "-hide_banner",
        "-i", str(input_file),
    ]


def common_args(stream: StreamInfo, ffmpeg_args: Iterable[str] = ()) -> List[str]:
    # keep the source codec and bit rate unless the user overrides them
    args: List[str] = []
    if stream.bit_rate is not None:
        args += ["-b:a", str(stream.bit_rate)]
    args += ["-c:a", stream.codec_name]
    args += list(ffmpeg_args)
    return args


def output_args(output_path: Path, overwrite: bool) -> List[str]:
    return (["-y"] if overwrite else []) + [str(output_path)]


def parse_progress_line(line: str) -> Optional[ProgressEvent]:
    if RE_PROGRESS_END.match(line):
        return End()
    m = RE_OUT_TIME.match(line)
    if m:
        # despite the name, ffmpeg reports microseconds here
        return Elapsed(int(m.group(1)) / 1_000_000)
    return None


def _drain(stream, sink: List[str]) -> None:
    for line in stream:
        sink.append(line.rstrip("\r\n"))


def run_ffmpeg(
    cmd: List[str],
    label: str,
    *,
    duration: Optional[float] = None,
    verbose: bool = False,
    on_progress: Optional[ProgressCallback] = None,
    show_progress: bool = True,
) -> List[str]:
    """Run ffmpeg, tracking ``-progress -`` output on stdout.

    stderr is drained on its own thread so a full diagnostics pipe can never
    stall the child while we are reading progress lines. Returns all stderr
    lines on success; raises ProcessExitError (after relaying stderr) otherwise.
    """
    log.info(label)
    if verbose:
        log.info("Running ffmpeg with the following arguments:\n[ %s ]", " ".join(cmd))

    try:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as e:
        raise ProcessSpawnError(
            f"Failed to run ffmpeg ({cmd[0]}). Install FFmpeg and ensure it's in PATH."
        ) from e

    diagnostics: List[str] = []
    with proc:
        reader = threading.Thread(target=_drain, args=(proc.stderr, diagnostics), daemon=True)
        reader.start()

        if on_progress is not None:
            _track(proc.stdout, on_progress)
        else:
            with progress_bar(duration, enabled=show_progress) as bar:
                _track(proc.stdout, bar)

        returncode = proc.wait()
        reader.join()

    if returncode != 0:
        sys.stderr.write("\n".join(diagnostics) + ("\n" if diagnostics else ""))
        sys.stderr.flush()
        raise ProcessExitError(returncode if returncode > 0 else None, diagnostics)

    for line in diagnostics:
        log.debug("ffmpeg: %s", line)
    return diagnostics


def _track(stdout, on_progress: ProgressCallback) -> None:
    finished = False
    for line in stdout:
        if finished:
            # keep draining so the child never blocks on a full pipe
            continue
        event = parse_progress_line(line)
        if event is None:
            continue
        on_progress(event)
        if isinstance(event, End):
            finished = True

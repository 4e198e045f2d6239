import io
import logging

import pytest

from audionorm.core.config import ToolsConfig
from audionorm.core.models import StreamInfo

PASS1_REPORT = """\
[Parsed_loudnorm_0 @ 0x55d0c6a1c2c0]
{
\t"input_i" : "-31.5",
\t"input_tp" : "-9.2",
\t"input_lra" : "7.1",
\t"input_thresh" : "-42.0",
\t"target_offset" : "-1.0"
}
[out#0/null @ 0x55d0c6a1d100] video:0KiB audio:5168KiB
"""

PASS2_REPORT = """\
[Parsed_loudnorm_0 @ 0x5618e1c4f800]
{
\t"input_i" : "-31.50",
\t"input_tp" : "-9.20",
\t"input_lra" : "7.10",
\t"input_thresh" : "-42.00",
\t"output_i" : "-23.02",
\t"output_tp" : "-0.71",
\t"output_lra" : "6.90",
\t"output_thresh" : "-33.51",
\t"normalization_type" : "linear",
\t"target_offset" : "-0.98"
}
"""


class FakePopen:
    """Stand-in for subprocess.Popen with canned stdout/stderr text."""

    def __init__(self, stdout="", stderr="", returncode=0):
        self._stdout = stdout
        self._stderr = stderr
        self._returncode = returncode
        self.cmd = None
        self.kwargs = None

    def __call__(self, cmd, **kwargs):
        self.cmd = cmd
        self.kwargs = kwargs
        self.stdout = io.StringIO(self._stdout)
        self.stderr = io.StringIO(self._stderr)
        return self

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.stdout.close()
        self.stderr.close()
        self.wait()

    def wait(self):
        return self._returncode


@pytest.fixture
def stream():
    return StreamInfo(codec_name="flac", duration=2.0, bit_rate=320000, channels="2",
                      channel_layout="stereo", sample_rate="48000")


@pytest.fixture
def tools():
    return ToolsConfig(ffmpeg="ffmpeg", ffprobe="ffprobe", show_progress=False)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("AUDIONORM_PROFILE", "AUDIONORM_FFMPEG", "AUDIONORM_FFPROBE", "AUDIONORM_PROGRESS"):
        monkeypatch.delenv(name, raising=False)
    yield
    logger = logging.getLogger("audionorm")
    for h in list(logger.handlers):
        if getattr(h, "_audionorm", False):
            logger.removeHandler(h)

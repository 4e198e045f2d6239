from pathlib import Path

import pytest

from audionorm.core import runner
from audionorm.core.config import Profile
from audionorm.core.errors import ProbeError, StageError
from audionorm.core.models import LevelTarget, NormalizationRequest, NormalizationResult


def _request(strategy="peak"):
    return NormalizationRequest(
        input_path=Path("in.wav"),
        output_path=Path("out.wav"),
        strategy=strategy,
        params=LevelTarget(-1.0),
    )


def test_dispatches_to_strategy(monkeypatch, stream):
    seen = []

    def fake_peak(request, s, tools):
        seen.append((request.strategy, s, tools))
        return NormalizationResult("peak", request.input_path, request.output_path, s)

    monkeypatch.setattr(runner, "probe_stream", lambda path, ffprobe=None: stream)
    monkeypatch.setitem(runner.STRATEGIES, "peak", fake_peak)
    profile = Profile()

    result = runner.run_normalization(_request(), profile)

    assert result.strategy == "peak"
    assert seen == [("peak", stream, profile.tools)]


def test_probe_failure_is_wrapped(monkeypatch):
    def boom(path, ffprobe=None):
        raise ProbeError("Can't open input file: in.wav")

    monkeypatch.setattr(runner, "probe_stream", boom)
    with pytest.raises(StageError) as exc:
        runner.run_normalization(_request(), Profile())
    assert str(exc.value) == "Failed to get input file information"
    assert isinstance(exc.value.__cause__, ProbeError)


def test_unknown_strategy():
    with pytest.raises(ValueError):
        runner.run_normalization(_request("loudest"), Profile())

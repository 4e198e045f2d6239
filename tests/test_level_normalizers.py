from pathlib import Path

import pytest

from audionorm.core.errors import MalformedMeasurement, NoMeasurements, StageError, ProcessExitError
from audionorm.core.models import DialnormTarget, LevelTarget, NormalizationRequest
from audionorm.plugins import astats, dialogue, peak, rms
from audionorm.plugins.astats import parse_level, stats_filter, volume_adjustment, volume_filter

ASTATS = """\
[Parsed_astats_0 @ 0x5581] Channel: 1
[Parsed_astats_0 @ 0x5581] Peak level dB: -3.100000
[Parsed_astats_0 @ 0x5581] Overall
[Parsed_astats_0 @ 0x5581] Peak level dB: -1.500000
[Parsed_astats_0 @ 0x5581] RMS level dB: -20.250000
size=N/A time=00:00:02.00 bitrate=N/A speed= 500x
"""


class FakeRunner:
    def __init__(self, *outputs):
        self.outputs = list(outputs)
        self.calls = []

    def __call__(self, cmd, label, **kwargs):
        self.calls.append((cmd, label))
        out = self.outputs.pop(0)
        if isinstance(out, Exception):
            raise out
        return out.splitlines()


def _request(strategy, params):
    return NormalizationRequest(
        input_path=Path("in.flac"),
        output_path=Path("out.flac"),
        strategy=strategy,
        params=params,
        overwrite=True,
    )


def test_stats_filter():
    assert stats_filter("Peak_level") == "astats=measure_overall=Peak_level:measure_perchannel=0"


def test_parse_level_takes_overall_value():
    assert parse_level(ASTATS.splitlines(), "Peak_level") == -1.5
    assert parse_level(ASTATS.splitlines(), "RMS_level") == -20.25


def test_parse_level_silence_is_rejected():
    with pytest.raises(MalformedMeasurement):
        parse_level(["[Parsed_astats_0 @ 0x1] Peak level dB: -inf"], "Peak_level")


def test_parse_level_garbage_value():
    with pytest.raises(MalformedMeasurement):
        parse_level(["[Parsed_astats_0 @ 0x1] RMS level dB: loud"], "RMS_level")


def test_parse_level_missing():
    with pytest.raises(NoMeasurements) as exc:
        parse_level(["nothing here", "at all"], "RMS_level")
    assert exc.value.diagnostics == "nothing here\nat all"


def test_volume_adjustment_is_target_minus_measured():
    assert volume_adjustment(-1.0, -6.0) == 5.0
    assert volume_adjustment(-20.0, -12.5) == -7.5


def test_already_at_target_is_a_zero_gain():
    adj = volume_adjustment(-1.5, -1.5)
    assert adj == pytest.approx(0.0)
    assert volume_filter(adj) == "volume=0.0dB"


def test_peak_normalize(monkeypatch, stream, tools):
    runner = FakeRunner(ASTATS, "")
    monkeypatch.setattr(astats, "run_ffmpeg", runner)

    result = peak.normalize(_request("peak", LevelTarget(-1.0)), stream, tools)

    assert result.measured_level == -1.5
    assert result.volume_adjustment == pytest.approx(0.5)
    pass1, pass2 = runner.calls[0][0], runner.calls[1][0]
    assert stats_filter("Peak_level") in pass1
    assert pass1[-3:] == ["-f", "null", "-"]
    assert "volume=0.5dB" in pass2
    assert pass2[-2:] == ["-y", "out.flac"]
    assert runner.calls[1][1] == "[2/2] Peak Normalizing audio file:"


def test_rms_normalize(monkeypatch, stream, tools):
    runner = FakeRunner(ASTATS, "")
    monkeypatch.setattr(astats, "run_ffmpeg", runner)

    result = rms.normalize(_request("rms", LevelTarget(-23.0)), stream, tools)

    assert result.strategy == "rms"
    assert result.measured_level == -20.25
    assert result.volume_adjustment == pytest.approx(-2.75)
    assert stats_filter("RMS_level") in runner.calls[0][0]


def test_level_measure_failure_skips_second_pass(monkeypatch, stream, tools):
    runner = FakeRunner("no stats\n")
    monkeypatch.setattr(astats, "run_ffmpeg", runner)
    with pytest.raises(StageError) as exc:
        rms.normalize(_request("rms", LevelTarget(-23.0)), stream, tools)
    assert isinstance(exc.value.__cause__, NoMeasurements)
    assert len(runner.calls) == 1


def test_dialogue_args():
    assert dialogue.dialogue_args(DialnormTarget(-27)) == ["-dialnorm", "-27"]


def test_dialogue_single_pass(monkeypatch, stream, tools):
    runner = FakeRunner("")
    monkeypatch.setattr(dialogue, "run_ffmpeg", runner)

    result = dialogue.normalize(_request("dialogue", DialnormTarget(-27)), stream, tools)

    cmd = runner.calls[0][0]
    assert cmd[cmd.index("-dialnorm") + 1] == "-27"
    assert "-filter" not in cmd
    assert cmd.index("-dialnorm") < cmd.index("-c:a")
    assert result.strategy == "dialogue"
    assert len(runner.calls) == 1


def test_dialogue_failure_is_wrapped(monkeypatch, stream, tools):
    monkeypatch.setattr(dialogue, "run_ffmpeg", FakeRunner(ProcessExitError(1, [])))
    with pytest.raises(StageError):
        dialogue.normalize(_request("dialogue", DialnormTarget(-31)), stream, tools)

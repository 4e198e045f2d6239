"""Extract the loudnorm measurement block from ffmpeg's stderr.

With ``print_format=json`` the loudnorm filter prints, among ordinary log
chatter, a block such as::

    [Parsed_loudnorm_0 @ 0x55d0c6a1c2c0]
    {
        "input_i" : "-27.61",
        "input_tp" : "-4.47",
        ...
        "target_offset" : "0.39"
    }

Only the lines between a ``{`` line and a ``}`` line are treated as data.
"""
from __future__ import annotations
import json
import re
from typing import Iterable, List, Tuple, Union

from ..core.errors import IncompleteMeasurements, MalformedMeasurement, NoMeasurements
from ..core.models import ANALYSIS_KEYS, FULL_KEYS, LoudnessReport

RE_KEY_VALUE = re.compile(r'^\s*"(\S+)"\s*:\s*"(\S+)",?\s*$')

TEXT_KEYS = {"normalization_type"}


def split_report_block(lines: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Return (lines inside the first {...} block, every other line)."""
    inside: List[str] = []
    noise: List[str] = []
    state = "before"
    for line in lines:
        stripped = line.strip()
        if state == "before" and stripped == "{":
            state = "inside"
        elif state == "inside" and stripped == "}":
            state = "after"
        elif state == "inside":
            inside.append(line)
        else:
            noise.append(line)
    return inside, noise


def _no_duplicates(pairs):
    out = {}
    for k, v in pairs:
        if k in out:
            raise MalformedMeasurement(f'"{k}"', "Duplicate loudness value")
        out[k] = v
    return out


def parse_loudness_report(diagnostics: Union[str, Iterable[str]]) -> LoudnessReport:
    if isinstance(diagnostics, str):
        diagnostics = diagnostics.splitlines()
    inside, noise = split_report_block(diagnostics)

    entries = []
    for line in inside:
        if not line.strip():
            continue
        if not RE_KEY_VALUE.match(line):
            raise MalformedMeasurement(line.strip())
        entries.append(line.strip().rstrip(","))

    if not entries:
        raise NoMeasurements("\n".join(noise))

    try:
        raw = json.loads("{" + ",".join(entries) + "}", object_pairs_hook=_no_duplicates)
    except json.JSONDecodeError as e:
        raise MalformedMeasurement(str(e), "Invalid loudness block") from e

    values = {}
    for key, value in raw.items():
        if key not in FULL_KEYS:
            raise MalformedMeasurement(f'"{key}": "{value}"', "Unknown loudness value")
        if key in TEXT_KEYS:
            values[key] = value
            continue
        try:
            values[key] = float(value)
        except ValueError as e:
            raise MalformedMeasurement(f'"{key}": "{value}"', "Invalid loudness value") from e

    report = LoudnessReport(**values)
    if len(values) not in (len(ANALYSIS_KEYS), len(FULL_KEYS)):
        raise IncompleteMeasurements(len(values), report)
    return report

from __future__ import annotations
from typing import List, Optional


class NormalizationError(Exception):
    """Base class for every failure surfaced by the normalizer."""


class ProbeError(NormalizationError):
    pass


class ProcessSpawnError(NormalizationError):
    pass


class ProcessExitError(NormalizationError):
    def __init__(self, exit_code: Optional[int], diagnostics: List[str]):
        self.exit_code = exit_code
        self.diagnostics = diagnostics
        if exit_code is None:
            msg = "Failed to run ffmpeg without exit code"
        else:
            msg = f"Failed to run ffmpeg with exit code={exit_code}"
        super().__init__(msg)


class ReportParseError(NormalizationError):
    pass


class NoMeasurements(ReportParseError):
    def __init__(self, diagnostics: str, what: str = "loudness values"):
        self.diagnostics = diagnostics
        super().__init__(f"ffmpeg did not report any {what}:\n{diagnostics}")


class IncompleteMeasurements(ReportParseError):
    def __init__(self, count: int, report):
        self.count = count
        self.report = report
        super().__init__(
            f"ffmpeg returned {count} loudness value(s) instead of 5 or 10:\n{report!r}"
        )


class MalformedMeasurement(ReportParseError):
    def __init__(self, line: str, reason: str = "Failed to parse loudness value"):
        self.line = line
        super().__init__(f"{reason}: {line}")


class MissingMeasurement(NormalizationError):
    def __init__(self, field: str):
        self.field = field
        super().__init__(f"EBU normalization pass 1 does not return \"{field}\"")


class StageError(NormalizationError):
    """Context wrapper naming the pipeline stage that failed; the cause is chained."""

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(stage)


def format_error_chain(exc: BaseException) -> str:
    lines = [str(exc)]
    seen = {id(exc)}
    cur = exc.__cause__
    while cur is not None and id(cur) not in seen:
        seen.add(id(cur))
        lines.append(f"  caused by: {cur}")
        cur = cur.__cause__
    return "\n".join(lines)

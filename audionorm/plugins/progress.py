from __future__ import annotations
import contextlib
import logging
import sys
from typing import Optional

import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from ..core.models import Elapsed, End, ProgressEvent

BAR_FORMAT = "[{elapsed}] {bar:50} {percentage:3.0f}% (remaining: {remaining})"
SPINNER_FORMAT = "[{elapsed}] {postfix}"
SPINNER_FRAMES = "|/-\\"


class ProgressBar:
    """Progress callback for run_ffmpeg.

    With a known duration it shows a percentage bar; otherwise an
    indeterminate spinner that only advances on each progress line.
    """

    def __init__(self, duration: Optional[float], disable: bool = False):
        self.duration = duration if duration and duration > 0 else None
        if self.duration is not None:
            self._bar = tqdm.tqdm(total=self.duration, bar_format=BAR_FORMAT, disable=disable, leave=True)
        else:
            self._bar = tqdm.tqdm(total=None, bar_format=SPINNER_FORMAT, disable=disable, leave=True)
        self._ticks = 0
        self.finished = False

    def __call__(self, event: ProgressEvent) -> None:
        if self.finished:
            return
        if isinstance(event, End):
            if self.duration is not None:
                self._bar.n = self.duration
            self.finished = True
            self._bar.refresh()
            self._bar.close()
        elif isinstance(event, Elapsed):
            if self.duration is not None:
                self._bar.n = min(event.seconds, self.duration)
            else:
                self._ticks += 1
                self._bar.set_postfix_str(SPINNER_FRAMES[self._ticks % len(SPINNER_FRAMES)], refresh=False)
            self._bar.refresh()

    def close(self) -> None:
        if not self.finished:
            self.finished = True
            self._bar.close()


@contextlib.contextmanager
def progress_bar(duration: Optional[float], enabled: bool = True):
    """Yield a ProgressBar, hidden when stderr isn't a terminal.

    Log records are routed through tqdm while the bar is on screen so they
    don't break its line.
    """
    show = enabled and sys.stderr.isatty() and logging.getLogger("audionorm").isEnabledFor(logging.INFO)
    bar = ProgressBar(duration, disable=not show)
    try:
        if show:
            with logging_redirect_tqdm(loggers=[logging.getLogger("audionorm")]):
                yield bar
        else:
            yield bar
    finally:
        bar.close()

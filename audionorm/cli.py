import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import yaml

from .core.config import (
    DIALNORM_RANGE,
    EBU_LOUDNESS_RANGE_TARGET_RANGE,
    EBU_OFFSET_RANGE,
    EBU_TARGET_LEVEL_RANGE,
    EBU_TRUE_PEAK_RANGE,
    LEVEL_TARGET_RANGE,
    Profile,
    load_profile,
)
from .core.errors import NormalizationError, format_error_chain
from .core.models import DialnormTarget, EbuTargets, LevelTarget, NormalizationRequest
from .core.runner import run_normalization

__version__ = "1.2.0"

PASSTHROUGH_HELP = 'Custom ffmpeg arguments go after "--", e.g. -- -c:a ac3 -b:a 640k -ar 48000'


class TagFormatter(logging.Formatter):
    TAGS = {logging.DEBUG: "[debug] ", logging.WARNING: "[warn] ", logging.ERROR: "[error] ", logging.CRITICAL: "[error] "}

    def format(self, record):
        return self.TAGS.get(record.levelno, "") + super().format(record)


def setup_logging(verbose: bool) -> None:
    logger = logging.getLogger("audionorm")
    for h in list(logger.handlers):
        if getattr(h, "_audionorm", False):
            logger.removeHandler(h)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(TagFormatter("%(message)s"))
    handler._audionorm = True
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def ranged(kind, bounds):
    lo, hi = bounds

    def parse(raw: str):
        try:
            value = kind(raw)
        except ValueError:
            raise argparse.ArgumentTypeError(f"invalid {kind.__name__} value: {raw!r}")
        if not (lo <= value <= hi):
            raise argparse.ArgumentTypeError(f"{value} is not in [{lo} .. {hi}]")
        return value

    return parse


def split_passthrough(argv: Sequence[str]) -> Tuple[List[str], List[str]]:
    argv = list(argv)
    if "--" in argv:
        i = argv.index("--")
        return argv[:i], argv[i + 1:]
    return argv, []


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ffmpeg-audio-normalizer",
        description="Command line tool for normalizing audio files with ffmpeg.",
        epilog=PASSTHROUGH_HELP,
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--verbose", action="store_true", help="Verbose output")
    p.add_argument("-i", "--input-file", required=True, type=Path, help="Input audio file")
    p.add_argument("-o", "--output-file", required=True, type=Path, help="Output audio file after normalization")
    p.add_argument("--overwrite", action="store_true", help="Force overwrite existing output file")
    p.add_argument("--profile", default=None, help="Profile name (YAML in profiles/) or path to a YAML file")
    p.add_argument("--no-progress", action="store_true", help="Do not draw progress bars")

    sub = p.add_subparsers(dest="cmd", required=True)

    ebu = sub.add_parser("ebu", help="Two-pass loudness normalization according to EBU R128")
    ebu.add_argument(
        "--target-level", type=ranged(float, EBU_TARGET_LEVEL_RANGE), default=None,
        help="Integrated loudness target in LUFS, [-70.0 .. -5.0] (default -23.0)",
    )
    ebu.add_argument(
        "--loudness-range-target", type=ranged(float, EBU_LOUDNESS_RANGE_TARGET_RANGE), default=None,
        help="Loudness range target in LU, [1.0 .. 50.0] (default 7.0)",
    )
    ebu.add_argument(
        "--true-peak", type=ranged(float, EBU_TRUE_PEAK_RANGE), default=None,
        help="Maximum true peak in dBTP, [-9.0 .. 0.0] (default -2.0)",
    )
    ebu.add_argument(
        "--offset", type=ranged(float, EBU_OFFSET_RANGE), default=None,
        help="Offset gain applied before the true-peak limiter in pass 1, [-99.0 .. 99.0] (default 0.0). "
             "Pass 2 uses the offset measured by pass 1.",
    )

    rms = sub.add_parser("rms", help="Bring the input to the given RMS level")
    rms.add_argument(
        "--target-level", type=ranged(float, LEVEL_TARGET_RANGE), default=None,
        help="Target RMS level in dB, [-99.0 .. 0.0] (default -23.0)",
    )

    peak = sub.add_parser("peak", help="Bring the signal peak to the given level")
    peak.add_argument(
        "--target-level", type=ranged(float, LEVEL_TARGET_RANGE), default=None,
        help="Target peak level in dB, [-99.0 .. 0.0] (default -23.0)",
    )

    dialogue = sub.add_parser(
        "dialogue",
        help="Set dialogue normalization metadata (how far average dialogue sits below 0 dBFS)",
    )
    dialogue.add_argument(
        "--target-level", type=ranged(int, DIALNORM_RANGE), default=None,
        help="Whole number in [-31 .. -1]; -31 means no level change on playback (default -31)",
    )
    return p


def _pick(value, default):
    return default if value is None else value


def build_request(args: argparse.Namespace, ffmpeg_args: Sequence[str], profile: Profile) -> NormalizationRequest:
    if args.cmd == "ebu":
        params = EbuTargets(
            target_level=_pick(args.target_level, profile.ebu.target_level),
            loudness_range_target=_pick(args.loudness_range_target, profile.ebu.loudness_range_target),
            true_peak=_pick(args.true_peak, profile.ebu.true_peak),
            offset=_pick(args.offset, profile.ebu.offset),
        )
    elif args.cmd == "rms":
        params = LevelTarget(target_level=_pick(args.target_level, profile.rms.target_level))
    elif args.cmd == "peak":
        params = LevelTarget(target_level=_pick(args.target_level, profile.peak.target_level))
    else:
        params = DialnormTarget(target_level=_pick(args.target_level, profile.dialogue.target_level))

    return NormalizationRequest(
        input_path=args.input_file,
        output_path=args.output_file,
        strategy=args.cmd,
        params=params,
        overwrite=args.overwrite,
        verbose=args.verbose,
        ffmpeg_args=tuple(ffmpeg_args),
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    own_args, ffmpeg_args = split_passthrough(sys.argv[1:] if argv is None else argv)
    args = build_parser().parse_args(own_args)
    setup_logging(args.verbose)

    try:
        profile = load_profile(args.profile)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error: failed to load profile: {e}", file=sys.stderr)
        return 1
    if args.no_progress:
        profile.tools.show_progress = False

    request = build_request(args, ffmpeg_args, profile)
    try:
        run_normalization(request, profile)
    except NormalizationError as e:
        print(f"Error: {format_error_chain(e)}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

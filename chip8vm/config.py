"""Driver configuration and command line parsing."""

import argparse
import dataclasses
from typing import Optional, Sequence

from chip8vm.rendering import COLOR_SCHEMES


@dataclasses.dataclass(frozen=True)
class DriverConfig:
    """Settings for the interactive and headless drivers.

    Attributes:
        rom: Path to the CHIP-8 program to load
        scale: On-screen pixels per CHIP-8 pixel
        instructions_per_frame: Instructions executed per 60 Hz frame
        fps: Frame (and timer) rate
        color_scheme: Name of a rendering color scheme
        shift_from_vy: 8XY6/8XYE shift VY (True) or VX in place (False)
        seed: Seed of the PRNG key used by CXNN
        log_level: Console log level
        headless: Run without a window
        frames: Number of frames to run in headless mode
        screenshot: Optional image path for the last headless frame
        video: Optional MP4 path for all headless frames
        progress: Show a progress bar in headless mode
    """
    rom: str
    scale: int = 16
    instructions_per_frame: int = 10
    fps: int = 60
    color_scheme: str = "classic"
    shift_from_vy: bool = True
    seed: int = 0
    log_level: str = "INFO"
    headless: bool = False
    frames: int = 600
    screenshot: Optional[str] = None
    video: Optional[str] = None
    progress: bool = True

    @property
    def instruction_frequency(self) -> int:
        """Effective CPU speed in instructions per second."""
        return self.instructions_per_frame * self.fps


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CHIP-8 virtual machine")
    parser.add_argument("rom", help="Path to the CHIP-8 program")
    parser.add_argument("--scale", type=_positive_int, default=DriverConfig.scale,
                        help="Window pixels per CHIP-8 pixel")
    parser.add_argument("--ipf", dest="instructions_per_frame", type=_positive_int,
                        default=DriverConfig.instructions_per_frame,
                        help="Instructions executed per frame")
    parser.add_argument("--fps", type=_positive_int, default=DriverConfig.fps,
                        help="Frame and timer rate in Hz")
    parser.add_argument("--color-scheme", choices=sorted(COLOR_SCHEMES), default=DriverConfig.color_scheme)
    parser.add_argument("--shift-vx", dest="shift_from_vy", action="store_false",
                        help="Shift VX in place for 8XY6/8XYE instead of shifting VY")
    parser.add_argument("--seed", type=int, default=DriverConfig.seed)
    parser.add_argument("--log-level", default=DriverConfig.log_level,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], type=str.upper)
    parser.add_argument("--headless", action="store_true", help="Run without opening a window")
    parser.add_argument("--frames", type=_positive_int, default=DriverConfig.frames,
                        help="Frames to run in headless mode")
    parser.add_argument("--screenshot", help="Save the last headless frame to this image file")
    parser.add_argument("--video", help="Save all headless frames to this MP4 file")
    parser.add_argument("--no-progress", dest="progress", action="store_false",
                        help="Disable the headless progress bar")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> DriverConfig:
    """Parse command line arguments into a ``DriverConfig``."""
    args = build_parser().parse_args(argv)
    return DriverConfig(**vars(args))

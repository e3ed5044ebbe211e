"""Console logging for the CHIP-8 machine and its drivers.

``ConsoleLogger`` prints leveled, optionally colored lines; ``MachineLogger``
adds the machine lifecycle events. Long jitted runs report progress through a
tqdm bar driven from inside ``jax.lax.scan`` with ``io_callback``.
"""

import sys
import time
from typing import Callable, Optional, Tuple

import jax
from jax.experimental import io_callback

from tqdm import tqdm

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
_RESET = "\033[0m"


class ConsoleLogger:
    """Print-based logger with a level threshold and elapsed-time stamps.

    Args:
        name: Shown in brackets on every line
        log_level: Lowest level that is printed
        use_colors: Color the level tag when stdout is a terminal
        show_timestamps: Prefix lines with seconds since the logger was created
    """

    def __init__(
        self,
        name: str = "chip8vm",
        log_level: str = "INFO",
        use_colors: bool = True,
        show_timestamps: bool = True,
    ):
        self.name = name
        self.log_level = log_level.upper()
        self.threshold = LEVELS.index(self.log_level)
        isatty = getattr(sys.stdout, "isatty", None)
        self.use_colors = use_colors and bool(isatty and isatty())
        self.show_timestamps = show_timestamps
        self.start_time = time.time()

    def enabled(self, level: str) -> bool:
        return LEVELS.index(level.upper()) >= self.threshold

    def log(self, level: str, message: str):
        level = level.upper()
        if not self.enabled(level):
            return
        tag = f"[{level:>8s}]"
        if self.use_colors:
            tag = f"{_COLORS[level]}{tag}{_RESET}"
        stamp = f"[{time.time() - self.start_time:8.2f}s]" if self.show_timestamps else ""
        print(f"{stamp}{tag}[{self.name}] {message}", flush=True)

    def debug(self, message: str):
        self.log("DEBUG", message)

    def info(self, message: str):
        self.log("INFO", message)

    def warning(self, message: str):
        self.log("WARNING", message)

    def error(self, message: str):
        self.log("ERROR", message)

    def critical(self, message: str):
        self.log("CRITICAL", message)


class MachineLogger(ConsoleLogger):
    """Logger for machine lifecycle events and run statistics."""

    def __init__(self, name: str = "Machine", **kwargs):
        super().__init__(name, **kwargs)

    def log_program_loaded(self, name: str, size: int):
        self.info(f"Loaded {name} ({size} bytes)")

    def log_load_failed(self, error: Exception):
        self.error(f"Load failed: {error}")

    def log_reset(self, name: str):
        self.info(f"Reset {name}")

    def log_fault(self, error: Exception):
        """Log a machine fault; the message names the faulting instruction."""
        self.error(f"Halted: {error}")

    def log_run_summary(self, instructions: int, frames: int, elapsed: Optional[float] = None):
        """Log instruction/frame counts and effective speed."""
        if elapsed is None:
            elapsed = time.time() - self.start_time
        ips = instructions / elapsed if elapsed > 0 else 0.0
        self.info("=" * 60)
        self.info(f"Ran {instructions:,} instructions over {frames:,} frames in {elapsed:.2f}s")
        self.info(f"Effective speed: {ips:,.0f} instructions/s")
        self.info("=" * 60)


def build_tqdm_progress_bar(
    n: int,
    print_rate: Optional[int] = None,
    desc: Optional[str] = None,
    **kwargs,
) -> Tuple[Callable, Callable]:
    """Build host callbacks that drive a tqdm bar from inside a scan of length ``n``.

    The bar is advanced every ``print_rate`` iterations and once more for the
    remainder on the last iteration.

    Returns:
        ``(open_bar, advance_bar)``: call ``open_bar(i)`` before the scan body
        and ``advance_bar(result, i)`` on its result.
    """
    desc = desc or f"Running ({n:,} frames)"
    if print_rate is None:
        print_rate = min(max(1, n // 20), 50)
    print_rate = max(1, min(print_rate, n))
    for reserved in ("total", "unit"):
        kwargs.pop(reserved, None)

    bars = {}

    def _open():
        bars["bar"] = tqdm(total=n, desc=desc, unit="frame", **kwargs)

    def _advance(count):
        bars["bar"].update(int(count))

    def _close():
        bars.pop("bar").close()

    def open_bar(iter_num):
        jax.lax.cond(
            iter_num == 0,
            lambda _: io_callback(_open, None, ordered=True),
            lambda _: None,
            operand=None,
        )

    def advance_bar(result, iter_num):
        done = iter_num + 1
        # Frames since the previous update: print_rate, or the remainder at the end
        count = done - ((done - 1) // print_rate) * print_rate
        jax.lax.cond(
            (done % print_rate == 0) | (done == n),
            lambda c: io_callback(_advance, None, c, ordered=True),
            lambda c: None,
            count,
        )
        jax.lax.cond(
            done == n,
            lambda _: io_callback(_close, None, ordered=True),
            lambda _: None,
            operand=None,
        )
        return result

    return open_bar, advance_bar


def scan_with_progress(
    n: int,
    print_rate: Optional[int] = None,
    desc: Optional[str] = None,
    **tqdm_kwargs,
) -> Callable:
    """Decorate a scan body ``f(carry, i)`` scanned over ``jnp.arange(n)`` with a progress bar."""
    open_bar, advance_bar = build_tqdm_progress_bar(n, print_rate, desc, **tqdm_kwargs)

    def decorator(func):
        def wrapped(carry, x):
            iter_num = x[0] if isinstance(x, tuple) else x
            open_bar(iter_num)
            return advance_bar(func(carry, x), iter_num)

        return wrapped

    return decorator

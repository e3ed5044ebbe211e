"""Jitted execution loops and the headless driver."""

import time
from functools import partial
from typing import Optional

import jax
import jax.numpy as jnp

from chip8vm.config import DriverConfig
from chip8vm.emulator import load_rom, raise_for_fault, read_program, step, tick_timers
from chip8vm.errors import LoadError, MachineFault
from chip8vm.logging import MachineLogger, scan_with_progress
from chip8vm.rendering import create_video, save_screenshot
from chip8vm.state import EmulatorState, create_state


def run_instruction(state, _):
    return step(state), None


@partial(jax.jit, static_argnums=1)
def run_n_instructions(state: EmulatorState, n: int) -> EmulatorState:
    """Execute ``n`` instructions. Stops making progress once the state faults."""
    state, _ = jax.lax.scan(run_instruction, state, length=n)
    return state


@partial(jax.jit, static_argnums=1)
def run_frame(state: EmulatorState, instructions_per_frame: int) -> EmulatorState:
    """Execute one display frame: ``instructions_per_frame`` steps, then one timer tick."""
    state, _ = jax.lax.scan(run_instruction, state, length=instructions_per_frame)
    return tick_timers(state)


@partial(jax.jit, static_argnums=(1, 2, 3))
def _run_frames(state, num_frames, instructions_per_frame, progress):
    def frame(state, _):
        state = run_frame(state, instructions_per_frame)
        return state, state.display

    if progress:
        frame = scan_with_progress(num_frames)(frame)

    return jax.lax.scan(frame, state, jnp.arange(num_frames))


def run_frames(
    state: EmulatorState,
    num_frames: int,
    instructions_per_frame: int,
    progress: bool = True,
) -> tuple[EmulatorState, jnp.ndarray]:
    """Run ``num_frames`` frames in a single compiled scan.

    Returns:
        Tuple of the final state and the framebuffer after every frame,
        shaped (num_frames, 32, 64)
    """
    return _run_frames(state, num_frames, instructions_per_frame, progress)


def run_headless(config: DriverConfig, logger: Optional[MachineLogger] = None) -> EmulatorState:
    """Load ``config.rom``, run it without a window and write the requested outputs.

    Raises:
        LoadError: If the program cannot be loaded
    """
    logger = logger or MachineLogger(log_level=config.log_level)

    state = create_state(jax.random.PRNGKey(config.seed), shift_from_vy=config.shift_from_vy)
    try:
        rom_data = read_program(config.rom)
    except LoadError as e:
        logger.log_load_failed(e)
        raise
    state = load_rom(state, rom_data)
    logger.log_program_loaded(config.rom, len(rom_data))

    start_time = time.time()
    state, displays = run_frames(state, config.frames, config.instructions_per_frame, config.progress)
    state = jax.block_until_ready(state)
    elapsed = time.time() - start_time

    try:
        raise_for_fault(state)
    except MachineFault as e:
        logger.log_fault(e)

    logger.log_run_summary(config.frames * config.instructions_per_frame, config.frames, elapsed)

    if config.screenshot:
        save_screenshot(state.display, config.screenshot, config.scale, config.color_scheme)
        logger.info(f"Screenshot saved: {config.screenshot}")
    if config.video:
        create_video(displays, filename=config.video, fps=config.fps, scale=config.scale,
                     color_scheme=config.color_scheme)
        duration = config.frames / config.fps
        logger.info(f"Video saved: {config.video} ({config.frames} frames, {config.fps} FPS, {duration:.1f}s)")

    return state

"""Framebuffer rendering: color schemes, screenshots and MP4 recordings."""
from typing import Optional, Tuple

import cv2
import jax.numpy as jnp
import numpy as np
from PIL import Image

from chip8vm.constants import SCREEN_HEIGHT, SCREEN_WIDTH

Color = Tuple[int, int, int]

COLOR_SCHEMES = {
    "classic": ((0, 255, 0), (0, 0, 0)),  # Green on black
    "amber": ((255, 176, 0), (0, 0, 0)),  # Amber on black
    "white": ((255, 255, 255), (0, 0, 0)),  # White on black
    "blue": ((0, 255, 255), (0, 0, 64)),  # Cyan on dark blue
    "retro": ((255, 255, 0), (64, 0, 64)),  # Yellow on purple
    "sky": ((25, 25, 112), (173, 216, 230)),  # Navy on light blue
}


def create_color_scheme(scheme: str = "classic") -> Tuple[Color, Color]:
    """Return ``(on_color, off_color)`` for a named scheme.

    Raises:
        ValueError: If ``scheme`` is not in ``COLOR_SCHEMES``
    """
    if scheme not in COLOR_SCHEMES:
        raise ValueError(
            f"Unknown color scheme '{scheme}'. Available: {list(COLOR_SCHEMES)}"
        )
    return COLOR_SCHEMES[scheme]


def _colorize(intensity: np.ndarray, on_color: Color, off_color: Color, scale: int) -> np.ndarray:
    """Blend off/on colors by a (H, W) intensity in [0, 1] and upscale by nearest neighbor."""
    on = np.asarray(on_color, dtype=np.float32)
    off = np.asarray(off_color, dtype=np.float32)
    rgb = (off + intensity[..., None] * (on - off)).astype(np.uint8)
    if scale > 1:
        rgb = rgb.repeat(scale, axis=0).repeat(scale, axis=1)
    return rgb


def display_to_rgb(
    display: jnp.ndarray,
    scale: int = 8,
    on_color: Color = (0, 255, 0),
    off_color: Color = (0, 0, 0),
) -> np.ndarray:
    """Convert a (32, 64) boolean framebuffer to a (32*scale, 64*scale, 3) uint8 image."""
    pixels = np.asarray(display, dtype=np.float32)
    return _colorize(pixels, on_color, off_color, scale)


def save_screenshot(
    display: jnp.ndarray,
    filename: str,
    scale: int = 8,
    color_scheme: str = "classic",
) -> None:
    """Save a single framebuffer as an image file (format from the extension)."""
    on_color, off_color = create_color_scheme(color_scheme)
    Image.fromarray(display_to_rgb(display, scale, on_color, off_color)).save(filename)


def create_video(
    displays: jnp.ndarray,
    filename: Optional[str] = None,
    fps: float = 60.0,
    scale: int = 8,
    color_scheme: str = "classic",
    persistence: bool = True,
) -> None:
    """Write stacked framebuffers to an MP4 file.

    Args:
        displays: Frames of shape (N, 32, 64)
        filename: Output path; nothing is written when None
        fps: Video frame rate
        scale: Upscaling factor
        color_scheme: Name of a color scheme
        persistence: Simulate phosphor decay so flickering sprites stay visible
    """
    if filename is None:
        return
    displays = np.asarray(displays)
    if displays.ndim != 3 or displays.shape[1:] != (SCREEN_HEIGHT, SCREEN_WIDTH):
        raise ValueError(
            f"Expected display shape (N, {SCREEN_HEIGHT}, {SCREEN_WIDTH}), got {displays.shape}"
        )

    on_color, off_color = create_color_scheme(color_scheme)
    size = (SCREEN_WIDTH * scale, SCREEN_HEIGHT * scale)
    writer = cv2.VideoWriter(filename, cv2.VideoWriter_fourcc(*"mp4v"), fps, size)

    decay = 0.8
    glow = np.zeros((SCREEN_HEIGHT, SCREEN_WIDTH), dtype=np.float32)
    try:
        for frame in displays:
            lit = frame.astype(np.float32)
            glow = np.clip(glow * decay + lit, 0.0, 1.0) if persistence else lit
            rgb = _colorize(glow, on_color, off_color, scale)
            writer.write(cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR))
    finally:
        writer.release()

"""
Interactive CHIP-8 driver: pygame window, keyboard input and 60 Hz pacing.
"""

import dataclasses
import sys
import time

import pygame

from chip8vm import Machine, LoadError, MachineFault
from chip8vm.config import DriverConfig, parse_args
from chip8vm.constants import SCREEN_HEIGHT, SCREEN_WIDTH
from chip8vm.logging import MachineLogger
from chip8vm.rendering import create_color_scheme
from chip8vm.runner import run_headless

# Keyboard layout, keypad index 0x0-0xF in order:
#   1 2 3 4
#   Q W E R
#   A S D F
#   Z X C V
KEY_MAP = {
    pygame.K_1: 0x0, pygame.K_2: 0x1, pygame.K_3: 0x2, pygame.K_4: 0x3,
    pygame.K_q: 0x4, pygame.K_w: 0x5, pygame.K_e: 0x6, pygame.K_r: 0x7,
    pygame.K_a: 0x8, pygame.K_s: 0x9, pygame.K_d: 0xA, pygame.K_f: 0xB,
    pygame.K_z: 0xC, pygame.K_x: 0xD, pygame.K_c: 0xE, pygame.K_v: 0xF,
}

MIN_IPF = 1
MAX_IPF = 100


def draw_overlay_text(surface, text_lines, position, font, bg_color=(0, 0, 0), text_color=(255, 255, 255), alpha=120):
    """Draw lines of text over a translucent box"""
    if not text_lines:
        return

    line_height = font.get_height()
    width = max(font.size(line)[0] for line in text_lines) + 16
    height = len(text_lines) * line_height + 8

    box = pygame.Surface((width, height))
    box.set_alpha(alpha)
    box.fill(bg_color)
    surface.blit(box, position)

    left, top = position[0] + 8, position[1] + 4
    for row, line in enumerate(text_lines):
        surface.blit(font.render(line, True, text_color), (left, top + row * line_height))


def debug_lines(machine: Machine, ipf: int, fps: float, paused: bool):
    lines = [
        f"PC: 0x{machine.pc:03X}  {machine.current_instruction}",
        f"I: 0x{machine.index:03X}  SP: {machine.stack_depth}/{machine.stack_capacity}",
        f"DT: {machine.delay_timer}  ST: {machine.sound_timer}",
        f"IPF: {ipf}  FPS: {fps:.1f}",
    ]
    registers = machine.registers
    for i in range(0, 16, 4):
        lines.append(" ".join(f"V{j:X}:{registers[j]:02X}" for j in range(i, i + 4)))
    if machine.halted:
        lines.append("HALTED - F5 to reset")
    elif paused:
        lines.append("PAUSED - P to resume")
    return lines


class Driver:
    """Owns the window and feeds keyboard state and frames to a ``Machine``."""

    def __init__(self, machine: Machine, config: DriverConfig, logger: MachineLogger):
        self.machine = machine
        self.config = config
        self.logger = logger
        self.on_color, self.off_color = create_color_scheme(config.color_scheme)

        self.running = True
        self.paused = False
        self.show_debug = False

        self.frames = 0
        self.instructions = 0
        self.fps = float(config.fps)
        self._fps_frames = 0
        self._fps_since = time.time()

    @property
    def ipf(self) -> int:
        return self.config.instructions_per_frame

    def on_key_down(self, key):
        if key == pygame.K_ESCAPE:
            self.running = False
        elif key == pygame.K_p:
            self.paused = not self.paused
        elif key == pygame.K_TAB:
            self.show_debug = not self.show_debug
        elif key == pygame.K_F5:
            try:
                self.machine.reset()
            except LoadError:
                self.running = False
            self.paused = False
        elif key in (pygame.K_EQUALS, pygame.K_MINUS):
            step = 1 if key == pygame.K_EQUALS else -1
            ipf = min(MAX_IPF, max(MIN_IPF, self.ipf + step))
            self.config = dataclasses.replace(self.config, instructions_per_frame=ipf)
            self.logger.info(f"Speed: {ipf} IPF ({self.config.instruction_frequency} Hz)")
        elif key in KEY_MAP:
            self.machine.press_key(KEY_MAP[key])

    def handle_events(self):
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            elif event.type == pygame.KEYDOWN:
                self.on_key_down(event.key)
            elif event.type == pygame.KEYUP and event.key in KEY_MAP:
                self.machine.release_key(KEY_MAP[event.key])

    def advance(self):
        """Run one frame of instructions and one timer tick."""
        if self.paused or self.machine.halted:
            return
        try:
            self.machine.run_frame(self.ipf)
        except MachineFault:
            self.paused = True
            return
        self.frames += 1
        self.instructions += self.ipf

    def update_fps(self):
        self._fps_frames += 1
        now = time.time()
        if now - self._fps_since >= 1.0:
            self.fps = self._fps_frames / (now - self._fps_since)
            self._fps_frames = 0
            self._fps_since = now

    def draw(self, screen, font):
        scale = self.config.scale
        screen.fill(self.off_color)
        ys, xs = self.machine.framebuffer.nonzero()
        for y, x in zip(ys, xs):
            pygame.draw.rect(screen, self.on_color, pygame.Rect(x * scale, y * scale, scale, scale))
        if self.show_debug or self.machine.halted:
            lines = debug_lines(self.machine, self.ipf, self.fps, self.paused)
            draw_overlay_text(screen, lines, (5, 5), font, alpha=100)
        pygame.display.flip()

    def run(self):
        pygame.init()
        screen = pygame.display.set_mode((SCREEN_WIDTH * self.config.scale, SCREEN_HEIGHT * self.config.scale))
        pygame.display.set_caption(f"CHIP-8 - {self.machine.program_name}")
        clock = pygame.time.Clock()
        font = pygame.font.Font(None, 18)
        self.logger.info("Controls: ESC=Quit, P=Pause, F5=Reset, +/-=Speed, TAB=Debug")

        start_time = time.time()
        try:
            while self.running:
                clock.tick(self.config.fps)
                self.update_fps()
                self.handle_events()
                self.advance()
                self.draw(screen, font)
        finally:
            pygame.quit()
        self.logger.log_run_summary(self.instructions, self.frames, time.time() - start_time)


def run_emulator(config: DriverConfig) -> int:
    logger = MachineLogger(log_level=config.log_level)
    machine = Machine(seed=config.seed, shift_from_vy=config.shift_from_vy, logger=logger)
    try:
        machine.load_program(config.rom)
    except LoadError:
        return 1
    Driver(machine, config, logger).run()
    return 0


def main(argv=None) -> int:
    config = parse_args(argv)
    if not config.headless:
        return run_emulator(config)
    try:
        run_headless(config)
    except LoadError:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

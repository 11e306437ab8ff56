"""Pygame 2D visualization for the bee-health simulation.

Renders the lattice one cell per location: feral cavities in green,
domestic yards in amber, brightness scaled by the mean strength of the
living colonies there.  Empty or all-dead locations are drawn dark, and
queen breeders get an outline.  The simulation advances at a
configurable number of years per second while the display refreshes at
the Pygame frame rate.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

import numpy as np
import pygame

if TYPE_CHECKING:
    from beehealth.simulation.engine import SimulationEngine
    from beehealth.world.location import LocationRecord

# Colour palette
_BG = (25, 20, 15)
_DEAD = (55, 45, 40)
_BREEDER_OUTLINE = (240, 240, 240)
_TEXT = (200, 200, 200)

# Strength colour ranges (dim -> bright)
_FERAL_LO = np.array([20, 60, 15], dtype=np.float64)
_FERAL_HI = np.array([80, 230, 60], dtype=np.float64)
_DOMESTIC_LO = np.array([90, 60, 10], dtype=np.float64)
_DOMESTIC_HI = np.array([255, 190, 40], dtype=np.float64)


def cell_colour(record: LocationRecord, max_strength: float = 1.0) -> tuple[int, int, int]:
    """Return the fill colour for one location."""
    if record.live_colonies == 0:
        return _DEAD
    t = min(max(record.avg_live_strength / max_strength, 0.0), 1.0)
    lo, hi = (_DOMESTIC_LO, _DOMESTIC_HI) if record.domestic else (_FERAL_LO, _FERAL_HI)
    colour = lo + t * (hi - lo)
    return tuple(int(c) for c in colour)


class LatticeRenderer:
    """Renders a SimulationEngine state into a Pygame window.

    Attributes:
        engine: The simulation engine to visualise.
        cell_size: Pixel size of each lattice cell.
        screen: The Pygame display surface.
    """

    # Speed presets: years per second
    _SPEED_STEPS: ClassVar[list[float]] = [
        0.25,
        0.5,
        1.0,
        2.0,
        5.0,
        10.0,
        20.0,
    ]

    def __init__(
        self,
        engine: SimulationEngine,
        cell_size: int = 20,
        years_per_second: float = 1.0,
    ) -> None:
        """Initialise the renderer.

        Args:
            engine: The simulation engine to render.
            cell_size: Pixel width/height per lattice cell.
            years_per_second: Simulated years per real-time second.
        """
        self.engine = engine
        self.cell_size = cell_size
        self.years_per_second = years_per_second
        self._speed_index = self._nearest_speed(years_per_second)
        self._year_accumulator = 0.0

        side = engine.lattice.edge_length * cell_size
        self._panel_width = 260
        self._win_w = side + self._panel_width
        self._win_h = max(side, 360)

        pygame.init()
        self.screen = pygame.display.set_mode((self._win_w, self._win_h))
        pygame.display.set_caption("Bee health")
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("monospace", 14)
        self.running = True
        self.paused = False

    def _nearest_speed(self, yps: float) -> int:
        """Return the index of the closest speed preset."""
        return min(
            range(len(self._SPEED_STEPS)),
            key=lambda i: abs(self._SPEED_STEPS[i] - yps),
        )

    @property
    def finished(self) -> bool:
        return self.engine.year >= self.engine.config.sim_length

    def run(self, fps: int = 30) -> None:
        """Main loop: handle events, step sim, render.

        Stepping stops after ``sim_length`` years; the window stays open
        until closed.

        Args:
            fps: Target frames per second.
        """
        while self.running:
            dt = self.clock.tick(fps) / 1000.0
            self._handle_events()
            if not self.paused and not self.finished:
                self._year_accumulator += self.years_per_second * dt
                steps = int(self._year_accumulator)
                self._year_accumulator -= steps
                for _ in range(steps):
                    if self.finished:
                        break
                    self.engine.step()
            self._draw()

        pygame.quit()

    def _handle_events(self) -> None:
        """Process Pygame input events."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    self.running = False
                elif event.key == pygame.K_SPACE:
                    self.paused = not self.paused
                elif event.key in (pygame.K_PLUS, pygame.K_EQUALS):
                    self._speed_index = min(
                        len(self._SPEED_STEPS) - 1,
                        self._speed_index + 1,
                    )
                    self.years_per_second = self._SPEED_STEPS[self._speed_index]
                elif event.key == pygame.K_MINUS:
                    self._speed_index = max(0, self._speed_index - 1)
                    self.years_per_second = self._SPEED_STEPS[self._speed_index]

    def _draw(self) -> None:
        """Render one frame."""
        self.screen.fill(_BG)
        records = self.engine.records()
        self._draw_lattice(records)
        self._draw_info_panel(records)
        pygame.display.flip()

    def _draw_lattice(self, records: list[LocationRecord]) -> None:
        cs = self.cell_size
        max_g = self.engine.config.max_g
        for record in records:
            rect = (record.y * cs, record.x * cs, cs, cs)
            pygame.draw.rect(self.screen, cell_colour(record, max_g), rect)
            if record.queen_breeder:
                pygame.draw.rect(self.screen, _BREEDER_OUTLINE, rect, width=1)

    def _draw_info_panel(self, records: list[LocationRecord]) -> None:
        """Draw a stats panel on the right side of the window."""
        panel_x = self.engine.lattice.edge_length * self.cell_size + 10
        y = 10

        domestic = [r for r in records if r.domestic]
        feral = [r for r in records if not r.domestic]
        lines = [
            f"Year: {self.engine.year}/{self.engine.config.sim_length}",
            f"Speed: {self.years_per_second:.2f} y/s",
            "FINISHED" if self.finished else ("PAUSED" if self.paused else "RUNNING"),
            "",
        ]
        for label, group in (("Domestic", domestic), ("Feral", feral)):
            live = sum(r.live_colonies for r in group)
            total = sum(r.total_colonies for r in group)
            strength = sum(r.avg_live_strength * r.live_colonies for r in group)
            mean = strength / live if live else 0.0
            lines += [
                f"--- {label} ---",
                f"Locations: {len(group)}",
                f"Live: {live}/{total}",
                f"Strength: {mean:.3f}",
                "",
            ]

        lines += [
            "--- Controls ---",
            "SPACE: pause",
            "+/-: speed",
            "ESC: quit",
        ]

        for line in lines:
            surf = self.font.render(line, True, _TEXT)
            self.screen.blit(surf, (panel_x, y))
            y += 18

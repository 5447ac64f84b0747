# visualization.py
"""
Optional Pygame front end for the particle simulation.

The Visualizer only reads world snapshots and issues world commands; it
never touches particle arrays directly. Input bindings:

    Left click      add one particle at the cursor
    Right click     add a burst of particles at the cursor
    Q               regenerate behaviors (attraction matrix)
    E               regenerate attraction distances
    R               restart the population
    Up / Down       double / halve the simulation speed
    Mouse wheel     edit the hovered attraction matrix cell
    Middle click    zero the hovered attraction matrix cell
    ESC             quit
"""
import logging
import numpy as np
import pygame
from typing import Tuple, Optional

from constants import (
    BACKGROUND_COLOR, BULK_SPAWN_COUNT, DEFAULT_PARTICLE_RADIUS, FPS, FULLSCREEN,
    UI_PANEL_WIDTH, MOTION_BLUR_ALPHA, PARTICLE_HALO_RATIO,
    PARTICLE_HALO_ALPHA, UI_BACKGROUND_ALPHA, VIBRANT_COLORS,
    VELOCITY_GLOW_MIN_ALPHA, VELOCITY_GLOW_MAX_ALPHA
)
from simulation import SimulationWorld

# --- Data Contracts ---
#
# class Visualizer:
#   - __init__(self, world: SimulationWorld, colors: Optional[list] = None):
#     - Side Effects: Initializes Pygame and creates a display surface
#       sized to the world (scaled to fit the screen in fullscreen mode).
#
#   - draw(self) -> bool:
#     - Outputs: False if the user has quit, True otherwise.
#     - Side Effects: handles events (issuing world commands), renders a
#       snapshot of the world and the attraction matrix panel.

MIN_TIME_SCALE = 1.0 / 64
MAX_TIME_SCALE = 64.0


class Visualizer:
    """
    Renders world snapshots and maps user input onto world commands.
    """
    def __init__(self, world: SimulationWorld, colors: Optional[list] = None):
        pygame.init()
        pygame.font.init()
        self.world = world
        bounds = world.bounds

        if FULLSCREEN:
            display_info = pygame.display.Info()
            width, height = display_info.current_w, display_info.current_h
            self.screen = pygame.display.set_mode((width, height), pygame.FULLSCREEN)
        else:
            width, height = int(bounds.width) + UI_PANEL_WIDTH, int(bounds.height)
            self.screen = pygame.display.set_mode((width, height))

        # The simulation area is the window minus the UI panel, with the
        # world scaled uniformly into it.
        self.sim_width = width - UI_PANEL_WIDTH
        self.sim_height = height
        self.scale = min(self.sim_width / bounds.width, self.sim_height / bounds.height)

        self.sim_surface = pygame.Surface((self.sim_width, self.sim_height))
        self.blur_surface = pygame.Surface((self.sim_width, self.sim_height), pygame.SRCALPHA)
        self.blur_surface.fill((*BACKGROUND_COLOR, MOTION_BLUR_ALPHA))
        self.ui_panel_surface = pygame.Surface((UI_PANEL_WIDTH, self.sim_height), pygame.SRCALPHA)
        self.ui_panel_surface.fill((40, 40, 40, UI_BACKGROUND_ALPHA))

        pygame.display.set_caption("Particle Life")
        self.clock = pygame.time.Clock()

        self.colors = self._initialize_colors(world.n_types, colors)
        self.halo_surfaces = self._pre_render_halos()

        self.font_main = pygame.font.SysFont(None, 18)
        self.label_margin = 20
        self.matrix_pos = (self.sim_width + 30, 10 + self.label_margin)
        self.cell_size = min(40, (UI_PANEL_WIDTH - 60) // max(1, world.n_types))
        self.cell_padding = 2
        self.label_circle_radius = 6
        self.hovered_cell: Optional[Tuple[int, int]] = None
        self.scroll_sensitivity = 0.05
        self.text_color = (255, 255, 255)

        logging.info(f"Visualizer initialized with Pygame display ({width}x{height}).")

    def _initialize_colors(self, particle_types: int, config_colors: Optional[list]) -> list:
        """Initializes particle colors from config, falling back to a vibrant default palette."""
        default = [pygame.Color(VIBRANT_COLORS[i % len(VIBRANT_COLORS)]) for i in range(particle_types)]
        if not config_colors:
            logging.info("No colors found in config. Using vibrant default palette.")
            return default
        try:
            colors = [pygame.Color(*rgb) for rgb in config_colors]
        except (ValueError, TypeError) as e:
            logging.error(f"Could not parse colors from config: {e}. Falling back to default palette.")
            return default
        if len(colors) < particle_types:
            logging.warning(
                f"Config provides {len(colors)} colors, but {particle_types} are needed. "
                f"Filling the rest from the default palette."
            )
            colors.extend(default[len(colors):])
        return colors[:particle_types]

    def _pre_render_halos(self) -> list:
        halo_radius = int(DEFAULT_PARTICLE_RADIUS * PARTICLE_HALO_RATIO)
        surfaces = []
        for color in self.colors:
            halo_surf = pygame.Surface((halo_radius * 2, halo_radius * 2), pygame.SRCALPHA)
            pygame.draw.circle(
                halo_surf, pygame.Color(color.r, color.g, color.b, PARTICLE_HALO_ALPHA),
                (halo_radius, halo_radius), halo_radius
            )
            surfaces.append(halo_surf)
        return surfaces

    def _to_world(self, screen_pos: Tuple[int, int]) -> Tuple[float, float]:
        return screen_pos[0] / self.scale, screen_pos[1] / self.scale

    def _get_matrix_cell_from_pos(self, pos: Tuple[int, int]) -> Optional[Tuple[int, int]]:
        mx, my = self.matrix_pos
        step = self.cell_size + self.cell_padding
        c = (pos[0] - mx) // step
        r = (pos[1] - my) // step
        n = self.world.n_types
        if 0 <= r < n and 0 <= c < n:
            return int(r), int(c)
        return None

    def _handle_event(self, event, mouse_pos) -> bool:
        world = self.world
        if event.type == pygame.QUIT:
            logging.info("Quit event received. Shutting down visualizer.")
            return False
        if event.type == pygame.KEYDOWN:
            if event.key == pygame.K_ESCAPE:
                logging.info("ESC key pressed. Shutting down visualizer.")
                return False
            if event.key == pygame.K_q:
                world.regenerate_behaviors()
            elif event.key == pygame.K_e:
                world.regenerate_distances()
            elif event.key == pygame.K_r:
                world.restart()
            elif event.key == pygame.K_UP:
                world.time_scale = min(MAX_TIME_SCALE, world.time_scale * 2.0)
                logging.info(f"Time scale set to {world.time_scale:.3f}.")
            elif event.key == pygame.K_DOWN:
                world.time_scale = max(MIN_TIME_SCALE, world.time_scale / 2.0)
                logging.info(f"Time scale set to {world.time_scale:.3f}.")
        if event.type == pygame.MOUSEBUTTONDOWN and mouse_pos[0] < self.sim_width:
            if event.button == 1:
                world.add_particle_at(self._to_world(mouse_pos))
            elif event.button == 3:
                world.add_particles_at(self._to_world(mouse_pos), BULK_SPAWN_COUNT)
        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 2 and self.hovered_cell:
            world.set_attraction(*self.hovered_cell, 0.0)
        if event.type == pygame.MOUSEWHEEL and self.hovered_cell:
            r, c = self.hovered_cell
            low, high = world.config.attraction_range
            old_value = world.type_table.attraction[r, c]
            new_value = float(np.clip(old_value + event.y * self.scroll_sensitivity, low, high))
            world.set_attraction(r, c, new_value)
        return True

    def _draw_particles(self) -> None:
        snapshot = self.world.snapshot()
        halo_radius = int(DEFAULT_PARTICLE_RADIUS * PARTICLE_HALO_RATIO)
        max_velocity = self.world.config.max_velocity or 1.0
        speeds = np.linalg.norm(snapshot.velocities, axis=1) if len(snapshot) else np.zeros(0)
        glow = VELOCITY_GLOW_MIN_ALPHA + np.minimum(speeds / max_velocity, 1.0) * (
            VELOCITY_GLOW_MAX_ALPHA - VELOCITY_GLOW_MIN_ALPHA
        )
        edge = DEFAULT_PARTICLE_RADIUS * PARTICLE_HALO_RATIO
        world_w = self.world.bounds.width * self.scale
        world_h = self.world.bounds.height * self.scale

        for ((x, y), p_type), alpha in zip(snapshot, glow):
            sx, sy = x * self.scale, y * self.scale
            halo_surf = self.halo_surfaces[p_type]
            halo_surf.set_alpha(int(alpha))
            # Ghost copies keep particles crossing an edge visible on both sides.
            x_offsets = [0.0]
            if sx < edge:
                x_offsets.append(world_w)
            elif sx > world_w - edge:
                x_offsets.append(-world_w)
            y_offsets = [0.0]
            if sy < edge:
                y_offsets.append(world_h)
            elif sy > world_h - edge:
                y_offsets.append(-world_h)
            for x_offset in x_offsets:
                for y_offset in y_offsets:
                    draw_pos = (int(sx + x_offset), int(sy + y_offset))
                    self.sim_surface.blit(halo_surf, (draw_pos[0] - halo_radius, draw_pos[1] - halo_radius))
                    pygame.draw.circle(self.sim_surface, self.colors[p_type], draw_pos, DEFAULT_PARTICLE_RADIUS)

    def _draw_interaction_matrix(self) -> None:
        matrix = self.world.type_table.attraction
        n = matrix.shape[0]
        step = self.cell_size + self.cell_padding
        for i in range(n):
            center = self.matrix_pos[1] + i * step + self.cell_size / 2
            pygame.draw.circle(self.screen, self.colors[i],
                               (self.matrix_pos[0] - self.label_margin / 2, center), self.label_circle_radius)
            center = self.matrix_pos[0] + i * step + self.cell_size / 2
            pygame.draw.circle(self.screen, self.colors[i],
                               (center, self.matrix_pos[1] - self.label_margin / 2), self.label_circle_radius)

        for r in range(n):
            for c in range(n):
                value = matrix[r, c]
                # Green for attraction, Red for repulsion
                intensity = int(200 * min(abs(value), 1.0))
                if value > 0:
                    bg_color = (0, intensity, 0)
                elif value < 0:
                    bg_color = (intensity, 0, 0)
                else:
                    bg_color = (50, 50, 50)
                cell_rect = pygame.Rect(self.matrix_pos[0] + c * step, self.matrix_pos[1] + r * step,
                                        self.cell_size, self.cell_size)
                pygame.draw.rect(self.screen, bg_color, cell_rect)
                if self.hovered_cell == (r, c):
                    pygame.draw.rect(self.screen, (255, 255, 0), cell_rect, 2)
                text_surf = self.font_main.render(f"{value:.2f}", True, self.text_color)
                self.screen.blit(text_surf, text_surf.get_rect(center=cell_rect.center))

        status_y = self.matrix_pos[1] + n * step + 15
        lines = [
            f"Particles: {self.world.particle_count}",
            f"Step: {self.world.step_count}",
            f"Speed: x{self.world.time_scale:.3g}",
            f"Rules: v{self.world.type_table.version}",
            "Q/E: new rules  R: restart",
        ]
        for line in lines:
            surf = self.font_main.render(line, True, self.text_color)
            self.screen.blit(surf, (self.matrix_pos[0], status_y))
            status_y += self.font_main.get_linesize() + 4

    def draw(self) -> bool:
        """
        Handles pending input, then draws the current snapshot and UI.

        Returns:
            bool: False if the simulation should exit, True otherwise.
        """
        mouse_pos = pygame.mouse.get_pos()
        self.hovered_cell = self._get_matrix_cell_from_pos(mouse_pos)

        for event in pygame.event.get():
            if not self._handle_event(event, mouse_pos):
                return False

        # Fade the previous frame to leave motion trails.
        self.sim_surface.blit(self.blur_surface, (0, 0))
        self._draw_particles()
        self.screen.blit(self.sim_surface, (0, 0))
        self.screen.blit(self.ui_panel_surface, (self.sim_width, 0))
        self._draw_interaction_matrix()

        pygame.display.flip()
        self.clock.tick(FPS)
        return True

    def close(self):
        """Shuts down Pygame."""
        pygame.font.quit()
        pygame.quit()

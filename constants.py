# constants.py
"""
Application-level constants.

These values are static and do not change between simulation runs.
The engine defaults below are used whenever `config.json` leaves a
simulation parameter out; the visualization settings are only read by
the optional Pygame viewer.
"""

# --- Engine Defaults ---
DEFAULT_SEED = 42
DEFAULT_PARTICLE_TYPES = 3
DEFAULT_PARTICLE_COUNT = 1500
DEFAULT_WORLD_WIDTH = 1200.0
DEFAULT_WORLD_HEIGHT = 700.0
DEFAULT_DELTA_TIME = 0.1
DEFAULT_FRICTION = 0.05
DEFAULT_MAX_VELOCITY = 5.0
DEFAULT_REPULSION_STRENGTH = 1.0
DEFAULT_SPAWN_RADIUS = 20.0

# Randomization ranges for freshly generated rule sets.
# Attraction coefficients are drawn from a symmetric range.
ATTRACTION_RANGE = (-1.0, 1.0)
# The repulsion core is drawn first, then the cutoff from a range that
# starts no lower than the drawn core.
MIN_DISTANCE_RANGE = (5.0, 20.0)
MAX_DISTANCE_RANGE = (30.0, 80.0)

# Fallback direction for coincident particles (lower index side).
COINCIDENT_DIRECTION = (1.0, 0.0)

# Number of particles spawned by a bulk add from the front end.
BULK_SPAWN_COUNT = 100

# Visualization settings
# Set to True to run in borderless fullscreen mode.
FULLSCREEN = False
UI_PANEL_WIDTH = 300
FPS = 60
BACKGROUND_COLOR = (24, 24, 24) # Dark Gray
DEFAULT_PARTICLE_RADIUS = 3

# --- Visual Appeal Enhancements ---
# Alpha value for the motion blur effect (0-255). Lower is a longer trail.
MOTION_BLUR_ALPHA = 45
# Ratio of the halo size to the particle radius. e.g., 2 means halo is 2x bigger.
PARTICLE_HALO_RATIO = 2
# Alpha value for the particle halo (0-255).
PARTICLE_HALO_ALPHA = 40
# Alpha for the UI panel background
UI_BACKGROUND_ALPHA = 100

# --- Velocity Glow Effect ---
VELOCITY_GLOW_MIN_ALPHA = 15
VELOCITY_GLOW_MAX_ALPHA = 120


# A curated list of vibrant default colors for particles, used if the
# config file does not provide a color list.
VIBRANT_COLORS = [
    (255, 0, 102),   # Hot Pink
    (0, 255, 255),   # Cyan
    (255, 204, 0),   # Gold
    (0, 255, 102),   # Bright Green
    (204, 0, 255),   # Purple
    (255, 102, 0)    # Orange
]

# meshgen/config.py

"""
================================================================================
INTERNAL DEFAULT CONFIGURATION
================================================================================
This module contains the default, fallback internal constants for the terrain
field and its rasterizers. These values are used if they are not explicitly
provided by the caller's settings.

DO NOT MODIFY THIS FILE FOR A SPECIFIC CHUNK.
Instead, pass a settings dictionary to NoiseConfig.from_settings() or the
generator setters.
================================================================================
"""

# --- Chunk Dimensions ---
DEFAULT_SIDE_LEN = 100      # Quads along one side of a chunk
DEFAULT_HEIGHT = 50.0       # World units for a field value of 1.0
DEFAULT_TEXTURE_WIDTH = 100
DEFAULT_TEXTURE_HEIGHT = 100

# --- Fractal Noise ---
DEFAULT_SEED = 0
DEFAULT_SCALE = 50.0
DEFAULT_OCTAVES = 3
DEFAULT_PERSISTENCE = 0.5
# Below 1.0 on purpose: later octaves get coarser, not finer.
DEFAULT_LACUNARITY = 0.2
# Domain warp is only applied for strictly positive values.
DEFAULT_DISPLACEMENT = -1.0

# Range of the per-octave lattice offsets drawn from the seeded stream.
OFFSET_RANGE = 100000.0
# Entries in the base noise permutation table (before doubling).
PERMUTATION_SIZE = 256

# --- Contrast Shaping ---
# 0.5 is the identity; lower values push heights toward lowlands.
DEFAULT_BIAS_GAIN_A = 0.3
DEFAULT_BEZIER_FROM = (0.4, 0.0)
DEFAULT_BEZIER_TO = (0.5, 0.1)
DEFAULT_BEZIER_CURVATURE = 0.5

# --- Buffer Layout ---
# Byte sizes of one element in each output buffer.
VERTEX_BYTES = 48           # pos(3) + normal(3) + tangent(4) + uv(2) float32
INDEX_BYTES = 4             # one int32 index
TRIANGLE_BYTES = 12         # three int32 indices
PIXEL_BYTES = 4             # RGBA8

# Buffers are addressed with 32-bit signed lengths downstream.
MAX_BUFFER_BYTES = 2**31 - 1

# --- Colors ---
COLOR_BLACK = (0, 0, 0, 255)
COLOR_WHITE = (255, 255, 255, 255)

# --- Baking ---
DEFAULT_CHUNKS_X = 4
DEFAULT_CHUNKS_Z = 4
DEFAULT_OUTPUT_DIR = "baked_terrain"

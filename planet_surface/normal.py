"""
normal.py — Normal-Map Synthesis from a Height Map
====================================================

For every pixel (x, y) of an equirectangular height map:

    1. sample the four neighbours (x, y±1), (x±1, y); x wraps, y clamps
    2. lift each neighbour to a world position on the displaced sphere
           lon = (2u - 1) π,  lat = (0.5 - v) π,
           r   = base_radius + h · displacement_scale
    3. tangent_ns = normalize(p_north - p_south)
       tangent_ew = normalize(p_east  - p_west)
    4. n = normalize(tangent_ns × tangent_ew)
    5. encode round((n + 1) / 2 · 255) into RGB, alpha = 255

The world position uses cos(lon) for both x and z.  This matches the
normal maps the shading pipeline was tuned against; pass
corrected_longitude_z=True for the standard sin(lon) z component.

With cos(lon), the east and west neighbours of the lon = 0 column
(u = 0.5, only present when the width is odd) lift to the same point
wherever their heights agree.  The east-west tangent is then zero and
the pixel encodes the zero vector, (128, 128, 128), instead of a unit
normal.  The east and west neighbours are placed at lon ± 2π/width so
this case is exact rather than left to rounding.

All pixels are computed in one vectorized pass; each output pixel
depends only on the read-only input and its own coordinates.
"""

import logging
from pathlib import Path

import jax
import jax.numpy as jnp
import numpy as np

from .config import (
    EARTH_RADIUS, DISPLACEMENT_SCALE, SAVED_NORMAL_MAP_PATH, USE_SAVED_NORMAL_MAP,
)
from .geometry import safe_normalize
from .image import Image, save_image_as_png, load_png
from .sampling import sample_height

logger = logging.getLogger(__name__)

NORMAL_MAP_FORMAT = 'rgba8unorm_srgb'


# ============================================================
# Encoding
# ============================================================

def encode_normal(normal):
    """[-1, 1] components → uint8, rounding half up."""
    scaled = (jnp.asarray(normal) + 1.0) * 0.5 * 255.0
    return jnp.clip(jnp.floor(scaled + 0.5), 0, 255).astype(jnp.uint8)


def decode_normal(encoded):
    """uint8 components → [-1, 1] floats."""
    return jnp.asarray(encoded).astype(float) / 127.5 - 1.0


# ============================================================
# Spherical parameterization
# ============================================================

def wrap_u(u):
    """Wrap a longitude texture coordinate back into [0, 1]."""
    return jnp.where(u < 0.0, u + 1.0, jnp.where(u > 1.0, u - 1.0, u))


def wrap_v(v):
    """Latitude does not wrap; clamp to [0, 1]."""
    return jnp.clip(v, 0.0, 1.0)


def height_to_world_position(u, v, height, base_radius=EARTH_RADIUS,
                             displacement_scale=DISPLACEMENT_SCALE,
                             corrected_longitude_z=False):
    """
    World position of texture coordinate (u, v) at a given height sample.

    Args:
        u, v: texture coordinates (arrays)
        height: height samples in [0, 1]
        corrected_longitude_z: use sin(lon) instead of cos(lon) for z

    Returns:
        (..., 3) positions
    """
    longitude = (u * 2.0 - 1.0) * jnp.pi   # -π to π
    latitude = (0.5 - v) * jnp.pi          # π/2 to -π/2
    return spherical_to_world(longitude, latitude, height, base_radius,
                              displacement_scale, corrected_longitude_z)


def spherical_to_world(longitude, latitude, height, base_radius=EARTH_RADIUS,
                       displacement_scale=DISPLACEMENT_SCALE,
                       corrected_longitude_z=False):
    """Displaced world position at (longitude, latitude) in radians."""
    radius = base_radius + height * displacement_scale

    x = radius * jnp.cos(latitude) * jnp.cos(longitude)
    y = radius * jnp.sin(latitude)
    if corrected_longitude_z:
        z = radius * jnp.cos(latitude) * jnp.sin(longitude)
    else:
        z = radius * jnp.cos(latitude) * jnp.cos(longitude)

    return jnp.stack([x, y, z], axis=-1)


# ============================================================
# Normal map kernel
# ============================================================

def build_normal_map_fn(width, height, base_radius=EARTH_RADIUS,
                        displacement_scale=DISPLACEMENT_SCALE,
                        corrected_longitude_z=False):
    """
    Build a JIT-compiled kernel for a fixed raster size.

    Returns:
        normal_map_fn(buffer) → (width*height*4,) uint8, where buffer is
        the flat RGBA8 height-map data
    """
    def to_world(u, v, h):
        return height_to_world_position(u, v, h, base_radius, displacement_scale,
                                        corrected_longitude_z)

    def to_world_at(longitude, v, h):
        latitude = (0.5 - v) * jnp.pi
        return spherical_to_world(longitude, latitude, h, base_radius,
                                  displacement_scale, corrected_longitude_z)

    delta_longitude = 2.0 * jnp.pi / width

    @jax.jit
    def normal_map_fn(buffer):
        ys, xs = jnp.meshgrid(jnp.arange(height), jnp.arange(width), indexing='ij')

        h_north = sample_height(buffer, width, height, xs, ys + 1)
        h_south = sample_height(buffer, width, height, xs, ys - 1)
        h_east = sample_height(buffer, width, height, xs + 1, ys)
        h_west = sample_height(buffer, width, height, xs - 1, ys)

        u = xs.astype(float) / max(width - 1, 1)
        v = ys.astype(float) / max(height - 1, 1)

        pos_north = to_world(u, wrap_v(v + 1.0 / height), h_north)
        pos_south = to_world(u, wrap_v(v - 1.0 / height), h_south)
        # same points as wrap_u(u ± 1/width); longitude is periodic
        longitude = (u * 2.0 - 1.0) * jnp.pi
        pos_east = to_world_at(longitude + delta_longitude, v, h_east)
        pos_west = to_world_at(longitude - delta_longitude, v, h_west)

        tangent_ns = safe_normalize(pos_north - pos_south)
        tangent_ew = safe_normalize(pos_east - pos_west)
        normal = safe_normalize(jnp.cross(tangent_ns, tangent_ew))

        rgb = encode_normal(normal)
        alpha = jnp.full((height, width, 1), 255, dtype=jnp.uint8)
        return jnp.concatenate([rgb, alpha], axis=-1).reshape(-1)

    return normal_map_fn


def generate_normal_map(height_map, base_radius=EARTH_RADIUS,
                        displacement_scale=DISPLACEMENT_SCALE,
                        corrected_longitude_z=False):
    """
    Derive a tangent-space normal map from an RGBA8 height map.

    Args:
        height_map: Image; the red channel is elevation
        base_radius, displacement_scale: sphere the heights sit on
        corrected_longitude_z: see module docstring

    Returns:
        new Image of the same size in NORMAL_MAP_FORMAT.  A height map
        without pixel data gives an all-zero buffer.
    """
    width, height = height_map.width, height_map.height
    if height_map.data is None:
        logger.warning("Height map has no pixel data; returning empty %dx%d normal map",
                       width, height)
        return Image(width, height, np.zeros(width * height * 4, dtype=np.uint8),
                     NORMAL_MAP_FORMAT)

    normal_map_fn = build_normal_map_fn(width, height, base_radius,
                                        displacement_scale, corrected_longitude_z)
    buffer = jnp.asarray(np.asarray(height_map.data, dtype=np.uint8))
    data = np.array(normal_map_fn(buffer), dtype=np.uint8)

    logger.debug("Generated %dx%d normal map", width, height)
    return Image(width, height, data, NORMAL_MAP_FORMAT)


# ============================================================
# Disk cache
# ============================================================

def load_or_generate_normal_map(height_map, path=SAVED_NORMAL_MAP_PATH,
                                use_saved=USE_SAVED_NORMAL_MAP, **kwargs):
    """
    Load a cached normal map, or generate and cache a new one.

    The cached PNG is used only when use_saved is set, the file exists
    and its size matches the height map.  Otherwise the map is
    regenerated and written to path.

    Args:
        height_map: Image
        path: PNG cache location
        use_saved: allow reading the cache
        **kwargs: forwarded to generate_normal_map

    Returns:
        Image

    Raises:
        PersistenceError: the cache could not be read or written
    """
    path = Path(path)
    if use_saved and path.exists():
        cached = load_png(path, NORMAL_MAP_FORMAT)
        if (cached.width, cached.height) == (height_map.width, height_map.height):
            logger.info("Using saved normal map: %s", path)
            return cached
        logger.info("Saved normal map %s is %dx%d, expected %dx%d; regenerating",
                    path, cached.width, cached.height, height_map.width, height_map.height)

    normal_map = generate_normal_map(height_map, **kwargs)
    save_image_as_png(normal_map, path)
    return normal_map

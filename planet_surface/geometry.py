"""
geometry.py — Cube→Sphere Mapping and Geodetic Coordinates
============================================================

Coordinate geometry for the cube sphere, independent of any particular
grid resolution.

A cube face is spanned by two axes derived from its normal; points on
the face are pushed onto the unit sphere with the area-preserving
mapping

    x' = x · sqrt(1 - y²/2 - z²/2 + y²z²/3)     (and cyclic)

which spreads vertices far more evenly than plain normalization.

Sphere directions are converted to geodetic latitude/longitude
(latitude from y, longitude measured from +Z towards +X) and then to
equirectangular texture coordinates.

Reference: https://mathproofs.blogspot.com/2005/07/mapping-cube-to-sphere.html
"""

from typing import NamedTuple

import jax.numpy as jnp


class GeodeticCoord(NamedTuple):
    """Latitude in [-π/2, π/2], longitude in [-π, π] (radians)."""
    latitude: jnp.ndarray
    longitude: jnp.ndarray


# ============================================================
# Vector helpers
# ============================================================

def normalize(v):
    """Normalize along the last axis.  Caller guarantees |v| > 0."""
    return v / jnp.linalg.norm(v, axis=-1, keepdims=True)


def safe_normalize(v, eps=1e-12):
    """Normalize along the last axis; vectors shorter than eps become zero."""
    length = jnp.linalg.norm(v, axis=-1, keepdims=True)
    ok = length > eps
    return jnp.where(ok, v / jnp.where(ok, length, 1.0), 0.0)


# ============================================================
# Cube face → unit sphere
# ============================================================

def face_axes(normal):
    """
    Two axes spanning the cube face with the given normal.

    axis_a is the normal with its components rotated (y, z, x);
    axis_b = axis_a × normal.  Neighbouring faces line up only with
    exactly this derivation.

    Args:
        normal: (3,) unit face normal

    Returns:
        axis_a, axis_b: (3,) arrays
    """
    normal = jnp.asarray(normal, dtype=float)
    axis_a = jnp.stack([normal[1], normal[2], normal[0]])
    axis_b = jnp.cross(axis_a, normal)
    return axis_a, axis_b


def cube_point_to_sphere_point(p):
    """
    Map points on the unit cube surface to the unit sphere.

    Args:
        p: (..., 3) points with max(|x|, |y|, |z|) = 1

    Returns:
        (..., 3) points on the unit sphere
    """
    x, y, z = p[..., 0], p[..., 1], p[..., 2]
    x2, y2, z2 = x * x, y * y, z * z

    sx = jnp.maximum(1.0 - y2 / 2.0 - z2 / 2.0 + (y2 * z2) / 3.0, 0.0)
    sy = jnp.maximum(1.0 - z2 / 2.0 - x2 / 2.0 + (z2 * x2) / 3.0, 0.0)
    sz = jnp.maximum(1.0 - x2 / 2.0 - y2 / 2.0 + (x2 * y2) / 3.0, 0.0)

    return jnp.stack([x * jnp.sqrt(sx), y * jnp.sqrt(sy), z * jnp.sqrt(sz)], axis=-1)


# ============================================================
# Geodetic conversion
# ============================================================

def to_geodetic(direction):
    """
    Latitude/longitude of unit direction vector(s).

        latitude  = asin(y)
        longitude = atan2(x, z)

    The input must already be normalized; anything else propagates NaN.

    Args:
        direction: (..., 3) unit vectors

    Returns:
        GeodeticCoord of (...) arrays in radians
    """
    direction = jnp.asarray(direction)
    latitude = jnp.arcsin(direction[..., 1])
    longitude = jnp.arctan2(direction[..., 0], direction[..., 2])
    return GeodeticCoord(latitude, longitude)


def to_degrees(coord):
    """(lat_deg, lon_deg) from a GeodeticCoord."""
    return jnp.degrees(coord.latitude), jnp.degrees(coord.longitude)


def to_uv(coord):
    """
    Equirectangular texture coordinates.

        v = (90 - lat°) / 180     (0 at the north pole)
        u = (lon° + 180) / 360    (0 and 1 both at lon = ±180°)

    Returns:
        u, v: arrays in [0, 1]
    """
    lat, lon = to_degrees(coord)
    v = (90.0 - lat) / 180.0
    u = (lon + 180.0) / 360.0
    return u, v

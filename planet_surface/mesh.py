"""
mesh.py — Cube-Face Grid Construction
=======================================

Builds one tile of the cube sphere: a resolution × resolution grid on a
cube face, pushed onto the sphere, displaced by the height map and
triangulated.

Grid layout (row-major, x fastest):
    vertex i = x + y * resolution,   x, y ∈ [0, resolution)
    percent  = (x, y) / (resolution - 1)
    cube     = normal + (percent.x - x_offset) axis_a
                      + (percent.y - y_offset) axis_b

Each interior cell (x, y < resolution - 1) emits two triangles
    (i, i+res, i+res+1), (i, i+res+1, i+1)
wound so the face normal points away from the planet centre.

UV seam handling: a tile that straddles lon = ±180° starts on the
negative side; vertices that land on the positive side get u = 0 so
the tile's polygons never span the whole texture.  Tiles starting at
lon = 180° below -40° latitude are pinned to u = 0 along x = 0.
"""

from typing import NamedTuple

import jax
import jax.numpy as jnp

from .config import (
    EARTH_RADIUS, DISPLACEMENT_SCALE, check_resolution, check_normal_mode,
)
from .geometry import (
    face_axes, cube_point_to_sphere_point, normalize, to_geodetic, to_degrees, to_uv,
)
from .sampling import sample_buffer_displacement
from .tangents import generate_tangents


class Mesh(NamedTuple):
    """Renderable buffers for one cube-sphere tile."""
    positions: jnp.ndarray   # (N, 3)
    normals: jnp.ndarray     # (N, 3) unit
    uvs: jnp.ndarray         # (N, 2)
    indices: jnp.ndarray     # (3M,) uint32
    tangents: jnp.ndarray    # (N, 4) xyz + handedness

    @property
    def vertex_count(self):
        return int(self.positions.shape[0])

    @property
    def triangle_count(self):
        return int(self.indices.shape[0] // 3)


# ============================================================
# Grid and topology
# ============================================================

def make_grid(resolution):
    """
    Integer grid coordinates in vertex order.

    Returns:
        xs, ys: (resolution²,) int arrays, x fastest
    """
    ys, xs = jnp.meshgrid(jnp.arange(resolution), jnp.arange(resolution), indexing='ij')
    return xs.ravel(), ys.ravel()


def triangulate(resolution):
    """
    Triangle list for a resolution × resolution vertex grid.

    Returns:
        (6 (resolution-1)²,) uint32 indices
    """
    ys, xs = jnp.meshgrid(jnp.arange(resolution - 1), jnp.arange(resolution - 1),
                          indexing='ij')
    i = (xs + ys * resolution).ravel()
    res = resolution
    tris = jnp.stack([i, i + res, i + res + 1,
                      i, i + res + 1, i + 1], axis=1)
    return tris.reshape(-1).astype(jnp.uint32)


# ============================================================
# Vertex normals
# ============================================================

def recalculate_normals(positions, indices, eps=1e-6):
    """
    Geometric vertex normals from the displaced surface.

    Unit face normals are summed onto their vertices and renormalized.
    Triangles with |e1 × e2| < eps are skipped; vertices whose sum is
    shorter than eps fall back to +Y.

    Args:
        positions: (N, 3)
        indices:   (3M,) triangle list

    Returns:
        (N, 3) unit normals
    """
    tri = jnp.asarray(indices).reshape(-1, 3).astype(jnp.int32)
    v0, v1, v2 = positions[tri[:, 0]], positions[tri[:, 1]], positions[tri[:, 2]]

    face_normal = jnp.cross(v1 - v0, v2 - v0)
    length = jnp.linalg.norm(face_normal, axis=-1, keepdims=True)
    ok = length >= eps
    face_normal = jnp.where(ok, face_normal / jnp.where(ok, length, 1.0), 0.0)

    normals = jnp.zeros_like(positions)
    for k in range(3):
        normals = normals.at[tri[:, k]].add(face_normal)

    length = jnp.linalg.norm(normals, axis=-1, keepdims=True)
    ok = length > eps
    up = jnp.array([0.0, 1.0, 0.0], dtype=positions.dtype)
    return jnp.where(ok, normals / jnp.where(ok, length, 1.0), up)


# ============================================================
# Face kernel
# ============================================================

def seam_corrected_uv(direction, xs):
    """
    Texture coordinates for a tile's sphere directions with seam fixes.

    Args:
        direction: (N, 3) unit sphere directions in vertex order
        xs:        (N,) grid x coordinate of each vertex

    Returns:
        u, v: (N,) arrays
    """
    coord = to_geodetic(direction)
    lat, lon = to_degrees(coord)
    u, v = to_uv(coord)

    first_longitude = lon[0]

    # tile starts on -lon and crosses into +lon
    crosses = (first_longitude < 0.0) & (lon > 0.0) & (lat < 89.0) & (lat > -89.0)
    u = jnp.where(crosses, 0.0, u)

    # southern tiles starting exactly on the 180° meridian
    pinned = (xs == 0) & (lon == 180.0) & (lat < -40.0)
    u = jnp.where(pinned, 0.0, u)

    return u, v


def displacement_buffer(displacement_map):
    """Flat RGBA8 buffer of a displacement map; empty when there is none."""
    if displacement_map is None or displacement_map.data is None:
        return jnp.zeros((0,), dtype=jnp.uint8)
    return jnp.asarray(displacement_map.data, dtype=jnp.uint8)


def make_face_fn(resolution, displacement_map=None, base_radius=EARTH_RADIUS,
                 displacement_scale=DISPLACEMENT_SCALE, normal_mode='sphere'):
    """
    Build the per-tile vertex kernel for a fixed resolution.

    The returned function is pure and traceable, so it can be jitted
    for a single tile or vmapped over a batch of tiles.  Only the map
    size is baked into the kernel; the pixel buffer is an argument, so
    large textures are not compiled in as constants.

    Args:
        resolution: vertices per side (>= 2)
        displacement_map: Image or None; supplies the raster size
        base_radius: radius at height 0
        displacement_scale: radius added at height 1
        normal_mode: 'sphere' or 'geometric'

    Returns:
        face_fn(normal, x_offset, y_offset, data) → (positions, normals, uvs, tangents),
        where data is displacement_buffer(displacement_map)
    """
    resolution = check_resolution(resolution)
    check_normal_mode(normal_mode)

    xs, ys = make_grid(resolution)
    percent_x = xs.astype(float) / (resolution - 1)
    percent_y = ys.astype(float) / (resolution - 1)
    indices = triangulate(resolution)

    if displacement_map is None:
        width, height = 1, 1
    else:
        width, height = displacement_map.width, displacement_map.height

    def face_fn(normal, x_offset, y_offset, data):
        normal = jnp.asarray(normal, dtype=float)
        axis_a, axis_b = face_axes(normal)

        point_on_cube = (normal[None, :]
                         + (percent_x - x_offset)[:, None] * axis_a[None, :]
                         + (percent_y - y_offset)[:, None] * axis_b[None, :])
        direction = normalize(cube_point_to_sphere_point(point_on_cube))

        u, v = seam_corrected_uv(direction, xs)

        # empty buffer → zero displacement
        displacement = sample_buffer_displacement(data, width, height, u, v) * displacement_scale

        positions = direction * (base_radius + displacement)[:, None]
        uvs = jnp.stack([u, v], axis=-1)

        if normal_mode == 'geometric':
            normals = recalculate_normals(positions, indices)
        else:
            normals = direction

        tangents = generate_tangents(positions, normals, uvs, indices)
        return positions, normals, uvs, tangents

    return face_fn


def generate_face(face_normal, resolution, x_offset=0.0, y_offset=0.0,
                  displacement_map=None, base_radius=EARTH_RADIUS,
                  displacement_scale=DISPLACEMENT_SCALE, normal_mode='sphere'):
    """
    Generate one cube-sphere tile.

    Args:
        face_normal: (3,) unit normal of the cube face
        resolution:  vertices per side (>= 2)
        x_offset, y_offset: face-local origin offsets
        displacement_map: Image or None (no displacement)
        base_radius, displacement_scale: radius = base + height * scale
        normal_mode: 'sphere' keeps the pre-displacement direction,
            'geometric' rebuilds normals from the displaced triangles

    Returns:
        Mesh

    Raises:
        ConfigurationError: resolution < 2 or unknown normal_mode
    """
    resolution = check_resolution(resolution)
    face_fn = make_face_fn(resolution, displacement_map, base_radius,
                           displacement_scale, normal_mode)
    positions, normals, uvs, tangents = jax.jit(face_fn)(
        jnp.asarray(face_normal, dtype=float), x_offset, y_offset,
        displacement_buffer(displacement_map))
    return Mesh(positions, normals, uvs, triangulate(resolution), tangents)

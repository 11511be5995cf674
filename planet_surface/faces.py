"""
faces.py — Cube-Sphere Face Descriptors and Batched Assembly
==============================================================

A tile covers percent ∈ [0, 1]² shifted by its offsets, so one
descriptor spans one quadrant of a cube face:

    offset 0 → [0, 1] along the axis
    offset 1 → [-1, 0] along the axis

Four quadrant offsets per normal cover the face [-1, 1]², and the six
axis normals close the cube: 24 tiles in all.

All tiles of a sphere share one resolution, so their vertex kernels are
batched with jax.vmap.  Each lane writes only its own tile, so results
do not depend on evaluation order.
"""

import logging
from typing import NamedTuple, Tuple

import jax
import jax.numpy as jnp

from .config import EARTH_RADIUS, DISPLACEMENT_SCALE, check_resolution
from .errors import ConfigurationError
from .mesh import Mesh, make_face_fn, triangulate, displacement_buffer

logger = logging.getLogger(__name__)


FACE_NORMALS = (
    (1.0, 0.0, 0.0),    # +X
    (-1.0, 0.0, 0.0),   # -X
    (0.0, 1.0, 0.0),    # +Y (north)
    (0.0, -1.0, 0.0),   # -Y (south)
    (0.0, 0.0, 1.0),    # +Z
    (0.0, 0.0, -1.0),   # -Z
)

QUADRANT_OFFSETS = (
    (0.0, 0.0),
    (1.0, 0.0),
    (0.0, 1.0),
    (1.0, 1.0),
)


class FaceDescriptor(NamedTuple):
    """One tile of the cube sphere."""
    normal: Tuple[float, float, float]
    resolution: int
    x_offset: float = 0.0
    y_offset: float = 0.0


def make_face_descriptors(resolution, offsets=QUADRANT_OFFSETS):
    """
    Descriptors for a closed cube sphere.

    Args:
        resolution: vertices per tile side
        offsets: (x_offset, y_offset) pairs applied to every face normal

    Returns:
        list of FaceDescriptor, grouped by normal in FACE_NORMALS order
    """
    resolution = check_resolution(resolution)
    return [FaceDescriptor(tuple(normal), resolution, float(xo), float(yo))
            for normal in FACE_NORMALS
            for xo, yo in offsets]


def _is_axis_normal(normal):
    if len(normal) != 3:
        return False
    nonzero = [c for c in normal if c != 0.0]
    return len(nonzero) == 1 and abs(nonzero[0]) == 1.0


def validate_face_descriptors(faces):
    """
    Check that a descriptor set describes one consistent cube sphere.

    Raises:
        ConfigurationError: empty set, bad or mixed resolutions, a
            non-axis normal, a missing normal, a duplicate descriptor,
            or normals with differing offset sets

    Returns:
        the resolution shared by every descriptor
    """
    faces = list(faces)
    if not faces:
        raise ConfigurationError("face descriptor set is empty")

    resolution = check_resolution(faces[0].resolution)
    offsets_by_normal = {}
    for face in faces:
        check_resolution(face.resolution)
        if face.resolution != resolution:
            raise ConfigurationError(
                f"mixed resolutions: {face.resolution} != {resolution}")

        normal = tuple(float(c) for c in face.normal)
        if not _is_axis_normal(normal):
            raise ConfigurationError(f"face normal must be a unit axis vector, got {face.normal}")

        offsets = offsets_by_normal.setdefault(normal, set())
        key = (float(face.x_offset), float(face.y_offset))
        if key in offsets:
            raise ConfigurationError(f"duplicate descriptor: normal {normal}, offsets {key}")
        offsets.add(key)

    missing = [n for n in FACE_NORMALS if n not in offsets_by_normal]
    if missing:
        raise ConfigurationError(f"face descriptor set is missing normals {missing}")

    reference = offsets_by_normal[FACE_NORMALS[0]]
    for normal, offsets in offsets_by_normal.items():
        if offsets != reference:
            raise ConfigurationError(
                f"normal {normal} has offsets {sorted(offsets)}, expected {sorted(reference)}")

    return resolution


def generate_cube_sphere(faces, displacement_map=None, base_radius=EARTH_RADIUS,
                         displacement_scale=DISPLACEMENT_SCALE, normal_mode='sphere'):
    """
    Generate every tile of a cube sphere in one batched pass.

    Args:
        faces: FaceDescriptor sequence (see make_face_descriptors)
        displacement_map: Image or None
        base_radius, displacement_scale: radius = base + height * scale
        normal_mode: 'sphere' or 'geometric'

    Returns:
        list of Mesh in descriptor order

    Raises:
        ConfigurationError: inconsistent descriptor set or parameters
    """
    faces = list(faces)
    resolution = validate_face_descriptors(faces)

    face_fn = make_face_fn(resolution, displacement_map, base_radius,
                           displacement_scale, normal_mode)
    # the pixel buffer is shared by every lane
    batched = jax.jit(jax.vmap(face_fn, in_axes=(0, 0, 0, None)))

    normals = jnp.asarray([f.normal for f in faces], dtype=float)
    x_offsets = jnp.asarray([f.x_offset for f in faces], dtype=float)
    y_offsets = jnp.asarray([f.y_offset for f in faces], dtype=float)

    logger.debug("Generating %d tiles at resolution %d (%s normals)",
                 len(faces), resolution, normal_mode)
    positions, vertex_normals, uvs, tangents = batched(
        normals, x_offsets, y_offsets, displacement_buffer(displacement_map))

    indices = triangulate(resolution)
    return [Mesh(positions[k], vertex_normals[k], uvs[k], indices, tangents[k])
            for k in range(len(faces))]

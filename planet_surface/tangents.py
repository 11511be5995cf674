"""
tangents.py — Per-Vertex Tangent Frames
=========================================

Tangents for normal mapping, computed from finished position, normal,
UV and index buffers.

For each triangle the UV derivatives give object-space directions of
increasing u (sdir) and v (tdir).  These are accumulated per vertex,
Gram-Schmidt orthogonalized against the vertex normal, and the
handedness of (n × t) relative to tdir is stored in w:

    tangent = (t.x, t.y, t.z, ±1)

Triangles whose UV determinant vanishes (e.g. across the forced u = 0
seam) contribute nothing.  Vertices left without a usable tangent get
an arbitrary unit vector perpendicular to the normal.

Reference: Lengyel, "Computing Tangent Space Basis Vectors for an
Arbitrary Mesh" (2001)
"""

import jax.numpy as jnp

from .geometry import safe_normalize


def _accumulate(values, tri, per_triangle):
    """Scatter-add a per-triangle quantity onto its three vertices."""
    for k in range(3):
        values = values.at[tri[:, k]].add(per_triangle)
    return values


def orthogonal_fallback(normals):
    """Unit vectors perpendicular to each normal (x axis unless nearly parallel)."""
    x_axis = jnp.array([1.0, 0.0, 0.0], dtype=normals.dtype)
    y_axis = jnp.array([0.0, 1.0, 0.0], dtype=normals.dtype)
    near_x = jnp.abs(normals[..., 0:1]) > 0.9
    a = jnp.where(near_x, y_axis, x_axis)
    t = a - normals * jnp.sum(normals * a, axis=-1, keepdims=True)
    return safe_normalize(t)


def generate_tangents(positions, normals, uvs, indices, det_eps=1e-12):
    """
    Compute (N, 4) tangents [tx, ty, tz, w].

    Args:
        positions: (N, 3) vertex positions
        normals:   (N, 3) unit vertex normals
        uvs:       (N, 2) texture coordinates
        indices:   (3M,) triangle list
        det_eps:   UV determinants at or below this are skipped

    Returns:
        (N, 4) array; xyz unit length and orthogonal to the normal,
        w = +1 or -1
    """
    tri = jnp.asarray(indices).reshape(-1, 3).astype(jnp.int32)

    p0, p1, p2 = positions[tri[:, 0]], positions[tri[:, 1]], positions[tri[:, 2]]
    w0, w1, w2 = uvs[tri[:, 0]], uvs[tri[:, 1]], uvs[tri[:, 2]]

    e1 = p1 - p0
    e2 = p2 - p0
    d1 = w1 - w0
    d2 = w2 - w0

    det = d1[:, 0] * d2[:, 1] - d2[:, 0] * d1[:, 1]
    valid = jnp.abs(det) > det_eps
    r = jnp.where(valid, 1.0 / jnp.where(valid, det, 1.0), 0.0)[:, None]

    sdir = (e1 * d2[:, 1:2] - e2 * d1[:, 1:2]) * r
    tdir = (e2 * d1[:, 0:1] - e1 * d2[:, 0:1]) * r

    zeros = jnp.zeros_like(positions)
    tan1 = _accumulate(zeros, tri, sdir)
    tan2 = _accumulate(zeros, tri, tdir)

    # Gram-Schmidt
    t = tan1 - normals * jnp.sum(normals * tan1, axis=-1, keepdims=True)
    t = safe_normalize(t, eps=1e-6)
    missing = jnp.all(t == 0.0, axis=-1, keepdims=True)
    t = jnp.where(missing, orthogonal_fallback(normals), t)

    handed = jnp.sum(jnp.cross(normals, t) * tan2, axis=-1, keepdims=True)
    w = jnp.where(handed < 0.0, -1.0, 1.0)

    return jnp.concatenate([t, w], axis=-1)

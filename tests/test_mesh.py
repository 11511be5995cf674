"""
test_mesh.py — Cube-Face Tile Generation Tests
================================================

Verifies:
  - Vertex / index counts and index ranges
  - Zero displacement puts every vertex on the base radius
  - Displacement raises vertices by height * scale
  - Triangles are non-degenerate and wound outward
  - 'sphere' normals are the radial direction, 'geometric' normals
    follow the displaced surface
  - Resolution and normal mode validation (numpy integers accepted)
  - The height-map buffer is a kernel argument
  - UV seam correction
"""

import pytest
import jax
jax.config.update("jax_enable_x64", True)
import jax.numpy as jnp
import numpy as np

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from planet_surface.config import EARTH_RADIUS, DISPLACEMENT_SCALE
from planet_surface.errors import ConfigurationError
from planet_surface.geometry import to_geodetic, to_degrees, to_uv
from planet_surface.mesh import (
    generate_face, triangulate, make_grid, recalculate_normals,
    make_face_fn, displacement_buffer,
)


def _triangle_normals(mesh):
    tri = np.asarray(mesh.indices).reshape(-1, 3)
    p = np.asarray(mesh.positions)
    return np.cross(p[tri[:, 1]] - p[tri[:, 0]], p[tri[:, 2]] - p[tri[:, 0]]), tri


class TestTopology:
    """Grid order and triangulation."""

    def test_grid_row_major(self):
        xs, ys = make_grid(3)
        np.testing.assert_array_equal(np.asarray(xs), [0, 1, 2, 0, 1, 2, 0, 1, 2])
        np.testing.assert_array_equal(np.asarray(ys), [0, 0, 0, 1, 1, 1, 2, 2, 2])

    def test_triangulate_resolution_2(self):
        idx = np.asarray(triangulate(2))
        np.testing.assert_array_equal(idx, [0, 2, 3, 0, 3, 1])
        assert idx.dtype == np.uint32

    @pytest.mark.parametrize("res", [2, 3, 7])
    def test_index_count(self, res):
        assert triangulate(res).shape == (6 * (res - 1) ** 2,)


class TestGenerateFace:
    """Single tile generation."""

    def test_resolution_2(self):
        """4 vertices, 2 non-degenerate triangles."""
        mesh = generate_face((0.0, 0.0, 1.0), 2)
        assert mesh.vertex_count == 4
        assert mesh.triangle_count == 2
        assert mesh.indices.shape == (6,)
        cross, _ = _triangle_normals(mesh)
        area = np.linalg.norm(cross, axis=1)
        assert np.all(area > 1e-3), f"Degenerate triangle: {area}"

    def test_corner_on_base_radius(self):
        mesh = generate_face((1.0, 0.0, 0.0), 5, 0.5, 0.5)
        r0 = float(jnp.linalg.norm(mesh.positions[0]))
        assert abs(r0 - EARTH_RADIUS) < 1e-3, f"Corner radius {r0}"

    def test_end_to_end_zero_height(self, zero_height_map):
        """4x4 zero map, res 4, +Z face: 16 vertices on the base radius, 54 indices."""
        mesh = generate_face((0.0, 0.0, 1.0), 4, 0.0, 0.0, zero_height_map)
        assert mesh.positions.shape == (16, 3)
        assert mesh.normals.shape == (16, 3)
        assert mesh.uvs.shape == (16, 2)
        assert mesh.tangents.shape == (16, 4)
        assert mesh.indices.shape == (54,)

        r = np.linalg.norm(np.asarray(mesh.positions), axis=1)
        assert np.max(np.abs(r - EARTH_RADIUS)) < 1e-3

        idx = np.asarray(mesh.indices)
        assert idx.min() >= 0 and idx.max() < 16

    def test_custom_radius(self):
        mesh = generate_face((0.0, -1.0, 0.0), 3, base_radius=1.0)
        r = np.linalg.norm(np.asarray(mesh.positions), axis=1)
        np.testing.assert_allclose(r, 1.0, atol=1e-12)

    def test_full_displacement(self, make_height_map):
        """A saturated height map lifts every vertex by the displacement scale."""
        hm = make_height_map(np.full((4, 8), 255))
        mesh = generate_face((0.0, 0.0, 1.0), 4, displacement_map=hm)
        r = np.linalg.norm(np.asarray(mesh.positions), axis=1)
        np.testing.assert_allclose(r, EARTH_RADIUS + DISPLACEMENT_SCALE, atol=1e-6)

    def test_displacement_scale_argument(self, make_height_map):
        hm = make_height_map(np.full((4, 8), 51))   # 0.2
        mesh = generate_face((0.0, 0.0, 1.0), 3, displacement_map=hm,
                             base_radius=10.0, displacement_scale=5.0)
        r = np.linalg.norm(np.asarray(mesh.positions), axis=1)
        np.testing.assert_allclose(r, 11.0, atol=1e-9)

    def test_missing_pixel_data(self, empty_image):
        """Image without data means no displacement."""
        mesh = generate_face((0.0, 0.0, 1.0), 3, displacement_map=empty_image)
        r = np.linalg.norm(np.asarray(mesh.positions), axis=1)
        np.testing.assert_allclose(r, EARTH_RADIUS, atol=1e-6)

    def test_outward_winding(self):
        """Triangle normals point away from the centre on every face."""
        for normal in [(1, 0, 0), (-1, 0, 0), (0, 1, 0), (0, -1, 0), (0, 0, 1), (0, 0, -1)]:
            for xo, yo in [(0.0, 0.0), (1.0, 1.0)]:
                mesh = generate_face(normal, 4, xo, yo)
                cross, tri = _triangle_normals(mesh)
                centroid = np.asarray(mesh.positions)[tri].mean(axis=1)
                dots = np.sum(cross * centroid, axis=1)
                assert np.all(dots > 0), f"Inward triangle on face {normal} offset {(xo, yo)}"

    def test_sphere_normals_radial(self, ramp_height_map):
        """'sphere' mode: normal = pre-displacement direction, unit length."""
        mesh = generate_face((0.0, 0.0, 1.0), 5, displacement_map=ramp_height_map)
        n = np.asarray(mesh.normals)
        p = np.asarray(mesh.positions)
        np.testing.assert_allclose(np.linalg.norm(n, axis=1), 1.0, atol=1e-12)
        np.testing.assert_allclose(n, p / np.linalg.norm(p, axis=1, keepdims=True), atol=1e-12)

    def test_geometric_normals(self, ramp_height_map):
        """'geometric' mode: unit normals, close to but not equal to radial."""
        sphere = generate_face((0.0, 0.0, 1.0), 9, displacement_map=ramp_height_map,
                               displacement_scale=2000.0)
        geo = generate_face((0.0, 0.0, 1.0), 9, displacement_map=ramp_height_map,
                            displacement_scale=2000.0, normal_mode='geometric')
        n_geo = np.asarray(geo.normals)
        n_sph = np.asarray(sphere.normals)
        np.testing.assert_allclose(np.linalg.norm(n_geo, axis=1), 1.0, atol=1e-9)
        dots = np.sum(n_geo * n_sph, axis=1)
        assert np.all(dots > 0.5), "Geometric normals point inward"
        assert np.max(np.abs(n_geo - n_sph)) > 1e-3, "Geometric normals ignore terrain"

    def test_geometric_mode_matches_sphere_without_terrain(self):
        """On a smooth fine grid the two modes nearly agree."""
        sphere = generate_face((0.0, 1.0, 0.0), 17, 0.5, 0.5)
        geo = generate_face((0.0, 1.0, 0.0), 17, 0.5, 0.5, normal_mode='geometric')
        dots = np.sum(np.asarray(geo.normals) * np.asarray(sphere.normals), axis=1)
        assert np.min(dots) > 0.99

    def test_deterministic(self, ramp_height_map):
        a = generate_face((0.0, 0.0, -1.0), 6, 1.0, 0.0, ramp_height_map)
        b = generate_face((0.0, 0.0, -1.0), 6, 1.0, 0.0, ramp_height_map)
        for x, y in zip(a, b):
            np.testing.assert_array_equal(np.asarray(x), np.asarray(y))

    @pytest.mark.parametrize("res", [0, 1, -3, 2.5, 4.0, True, "4"])
    def test_bad_resolution(self, res):
        with pytest.raises(ConfigurationError):
            generate_face((0.0, 0.0, 1.0), res)

    def test_bad_normal_mode(self):
        with pytest.raises(ConfigurationError):
            generate_face((0.0, 0.0, 1.0), 3, normal_mode='smooth')

    @pytest.mark.parametrize("res", [np.int64(4), np.int32(4), np.uint8(4)])
    def test_numpy_integer_resolution(self, res):
        mesh = generate_face((0.0, 0.0, 1.0), res)
        assert mesh.vertex_count == 16
        assert mesh.triangle_count == 18


class TestFaceKernel:
    """The pixel buffer is passed in, not compiled into the kernel."""

    def test_one_kernel_many_buffers(self, make_height_map):
        low = make_height_map(np.zeros((8, 16)))
        high = make_height_map(np.full((8, 16), 255))
        face_fn = jax.jit(make_face_fn(4, low, base_radius=1.0, displacement_scale=1.0))
        normal = jnp.array([0.0, 0.0, 1.0])

        p_low = face_fn(normal, 0.0, 0.0, displacement_buffer(low))[0]
        p_high = face_fn(normal, 0.0, 0.0, displacement_buffer(high))[0]

        np.testing.assert_allclose(np.linalg.norm(np.asarray(p_low), axis=1), 1.0, atol=1e-12)
        np.testing.assert_allclose(np.linalg.norm(np.asarray(p_high), axis=1), 2.0, atol=1e-12)

    def test_no_pixel_constants(self, ramp_height_map):
        face_fn = make_face_fn(4, ramp_height_map)
        closed = jax.make_jaxpr(face_fn)(jnp.array([1.0, 0.0, 0.0]), 0.0, 0.0,
                                         displacement_buffer(ramp_height_map))
        assert not any(np.asarray(c).dtype == np.uint8 for c in closed.consts), \
            "Height-map pixels embedded in the kernel"

    def test_empty_buffer(self, empty_image):
        data = displacement_buffer(empty_image)
        assert data.shape == (0,)
        assert displacement_buffer(None).shape == (0,)

        face_fn = make_face_fn(3, empty_image, base_radius=2.0)
        positions = face_fn(jnp.array([0.0, 1.0, 0.0]), 0.0, 0.0, data)[0]
        np.testing.assert_allclose(np.linalg.norm(np.asarray(positions), axis=1), 2.0)


class TestRecalculateNormals:
    """Face-normal accumulation."""

    def test_flat_quad(self):
        pos = jnp.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]])
        idx = jnp.array([0, 1, 2, 0, 2, 3], dtype=jnp.uint32)
        n = np.asarray(recalculate_normals(pos, idx))
        np.testing.assert_allclose(n, np.tile([0.0, 0.0, 1.0], (4, 1)), atol=1e-12)

    def test_degenerate_and_isolated(self):
        """Degenerate triangles are skipped; unused vertices get +Y."""
        pos = jnp.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0], [5.0, 5.0, 5.0]])
        idx = jnp.array([0, 1, 2], dtype=jnp.uint32)   # collinear
        n = np.asarray(recalculate_normals(pos, idx))
        np.testing.assert_allclose(n, np.tile([0.0, 1.0, 0.0], (4, 1)))


class TestSeams:
    """UV seam correction against independently computed UVs."""

    @pytest.mark.parametrize("normal", [(0.0, 0.0, -1.0), (-1.0, 0.0, 0.0), (0.0, -1.0, 0.0)])
    @pytest.mark.parametrize("offsets", [(0.0, 0.0), (1.0, 0.0), (0.0, 1.0), (1.0, 1.0)])
    def test_seam_rule(self, normal, offsets):
        mesh = generate_face(normal, 7, *offsets)
        coord = to_geodetic(mesh.normals)
        lat, lon = (np.asarray(a) for a in to_degrees(coord))
        u_raw = np.asarray(to_uv(coord)[0])
        u = np.asarray(mesh.uvs[:, 0])
        xs = np.tile(np.arange(7), 7)

        crosses = (lon[0] < 0.0) & (lon > 0.0) & (np.abs(lat) < 89.0)
        pinned = (xs == 0) & (lon == 180.0) & (lat < -40.0)
        forced = crosses | pinned

        assert np.all(u[forced] == 0.0)
        np.testing.assert_allclose(u[~forced], u_raw[~forced], atol=1e-12)

    def test_tile_crossing_antimeridian(self):
        """-Z face, quadrant starting west of 180°: positive longitudes get u = 0."""
        found = False
        for xo, yo in [(0.0, 0.0), (1.0, 0.0), (0.0, 1.0), (1.0, 1.0)]:
            mesh = generate_face((0.0, 0.0, -1.0), 9, xo, yo)
            _, lon = to_degrees(to_geodetic(mesh.normals))
            lon = np.asarray(lon)
            if lon[0] < 0.0 and np.any(lon > 0.0):
                found = True
                u = np.asarray(mesh.uvs[:, 0])
                assert np.all(u[lon > 0.0] == 0.0)
        assert found, "No -Z quadrant straddles the antimeridian"

    def test_v_in_range(self):
        for normal in [(0.0, 1.0, 0.0), (0.0, -1.0, 0.0)]:
            mesh = generate_face(normal, 6, 0.5, 0.5)
            v = np.asarray(mesh.uvs[:, 1])
            assert v.min() >= 0.0 and v.max() <= 1.0

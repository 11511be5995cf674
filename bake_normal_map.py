#!/usr/bin/env python
"""
bake_normal_map.py — Bake (or Reuse) the Planet Normal Map
============================================================

Loads a topography PNG, produces the tangent-space normal map (reusing
the cached PNG when it matches), and optionally builds the displaced
cube sphere to report mesh statistics.

Usage:
    python bake_normal_map.py
    python bake_normal_map.py --heightmap textures/topography.png --output textures/normal.png
    python bake_normal_map.py --no-cache --corrected-z
    python bake_normal_map.py --resolution 64 --normals geometric
"""

import argparse
import logging
import sys, os
import time

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import jax.numpy as jnp

from planet_surface.config import (
    EARTH_DISPLACEMENT_TEXTURE, SAVED_NORMAL_MAP_PATH, USE_SAVED_NORMAL_MAP,
    NORMAL_MODES, PlanetConfig,
)
from planet_surface.errors import ConfigurationError, PersistenceError
from planet_surface.faces import make_face_descriptors, generate_cube_sphere
from planet_surface.image import load_png
from planet_surface.normal import load_or_generate_normal_map


def bake(heightmap_path, output_path, use_saved, config):
    print(f"Height map: {heightmap_path}")
    height_map = load_png(heightmap_path)
    print(f"  {height_map.width} x {height_map.height} RGBA8")

    t0 = time.time()
    normal_map = load_or_generate_normal_map(
        height_map, output_path, use_saved,
        base_radius=config.base_radius,
        displacement_scale=config.displacement_scale,
        corrected_longitude_z=config.corrected_longitude_z)
    print(f"Normal map: {output_path}  ({time.time() - t0:.2f} s)")
    return height_map, normal_map


def report_sphere(height_map, config):
    faces = make_face_descriptors(config.resolution)
    t0 = time.time()
    meshes = generate_cube_sphere(
        faces, height_map,
        base_radius=config.base_radius,
        displacement_scale=config.displacement_scale,
        normal_mode=config.normal_mode)
    elapsed = time.time() - t0

    n_vert = sum(m.vertex_count for m in meshes)
    n_tri = sum(m.triangle_count for m in meshes)
    radii = jnp.concatenate([jnp.linalg.norm(m.positions, axis=-1) for m in meshes])
    print(f"Cube sphere: {len(meshes)} tiles at resolution {config.resolution} "
          f"({elapsed:.2f} s)")
    print(f"  vertices  {n_vert}")
    print(f"  triangles {n_tri}")
    print(f"  radius    [{float(jnp.min(radii)):.3f}, {float(jnp.max(radii)):.3f}]")


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Bake the planet normal map")
    parser.add_argument('--heightmap', default=EARTH_DISPLACEMENT_TEXTURE,
                        help=f'Topography PNG (default {EARTH_DISPLACEMENT_TEXTURE})')
    parser.add_argument('--output', default=SAVED_NORMAL_MAP_PATH,
                        help=f'Normal map PNG (default {SAVED_NORMAL_MAP_PATH})')
    parser.add_argument('--no-cache', action='store_true',
                        help='Regenerate even if the output already exists')
    parser.add_argument('--corrected-z', action='store_true',
                        help='Use sin(longitude) for the z component')
    parser.add_argument('--resolution', type=int, default=0,
                        help='Also build the cube sphere at this resolution')
    parser.add_argument('--normals', choices=NORMAL_MODES, default='sphere',
                        help='Vertex normal mode for --resolution')
    parser.add_argument('--verbose', action='store_true')
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(name)s: %(message)s')

    config = PlanetConfig(
        resolution=args.resolution or 2,
        normal_mode=args.normals,
        corrected_longitude_z=args.corrected_z,
    )

    try:
        config.validate()
        height_map, _ = bake(args.heightmap, args.output,
                             USE_SAVED_NORMAL_MAP and not args.no_cache, config)
        if args.resolution:
            report_sphere(height_map, config)
    except (ConfigurationError, PersistenceError) as e:
        print(f"\n✗ {e}")
        sys.exit(1)

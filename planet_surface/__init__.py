"""
planet_surface — Procedural Cube-Sphere Planet Surface
=======================================================

Builds a displaced cube-sphere mesh and a tangent-space normal map from
a single equirectangular height-map raster.

Modules:
    config      — Planet constants, texture paths, PlanetConfig bundle
    errors      — ConfigurationError, PersistenceError
    geometry    — Cube→sphere mapping, face axes, geodetic/UV conversion
    sampling    — Wrap/clamp height sampler, nearest-pixel displacement
    mesh        — Single cube-face grid: vertices, normals, UVs, indices
    tangents    — Per-vertex tangent frames for normal mapping
    faces       — Face descriptor set and batched cube-sphere assembly
    normal      — Normal-map synthesis from a height map, PNG cache
    image       — RGBA8 image container and PNG persistence
    materials   — Sun/atmosphere/cloud uniform parameter blocks
"""

"""
materials.py — Uniform Parameter Blocks for the Shading Pipeline
==================================================================

Plain data handed to the external earth, atmosphere and cloud
materials.  `pack()` lays each block out as float32 with 16-byte
alignment for vec3 members (WGSL/std140), ready for a uniform buffer.

    SunUniform         direction(3) pad(1)                       4 floats
    AtmosphereUniform  sun_direction(3) pad(1)
                       camera_position(3) pad(1)
                       rayleigh_coeff(3) mie_coeff(1)
                       sun_intensity atmosphere_radius pad pad   16 floats
"""

import math
from typing import NamedTuple, Tuple

import numpy as np

from .config import (
    ATMOSPHERE_RADIUS, RAYLEIGH_COEFF, MIE_COEFF, SUN_INTENSITY, EARTH_ROTATION_SPEED,
)

Vec3 = Tuple[float, float, float]


class SunUniform(NamedTuple):
    direction: Vec3

    def pack(self):
        return np.array([*self.direction, 0.0], dtype=np.float32)


class AtmosphereUniform(NamedTuple):
    sun_direction: Vec3
    camera_position: Vec3
    rayleigh_coeff: Vec3 = RAYLEIGH_COEFF
    mie_coeff: float = MIE_COEFF
    sun_intensity: float = SUN_INTENSITY
    atmosphere_radius: float = ATMOSPHERE_RADIUS

    def pack(self):
        return np.array([
            *self.sun_direction, 0.0,
            *self.camera_position, 0.0,
            *self.rayleigh_coeff, self.mie_coeff,
            self.sun_intensity, self.atmosphere_radius, 0.0, 0.0,
        ], dtype=np.float32)


class CloudParams(NamedTuple):
    """Cloud layer: sun block plus a runtime-adjustable opacity."""
    sun: SunUniform
    opacity: float = 1.0

    def pack(self):
        """(sun block, opacity) as separate float32 uniforms."""
        return self.sun.pack(), np.array([self.opacity], dtype=np.float32)


def default_atmosphere(sun_direction, camera_position):
    """AtmosphereUniform with the configured scattering constants."""
    return AtmosphereUniform(tuple(sun_direction), tuple(camera_position))


def sun_direction_at(ticks, rotation_speed=EARTH_ROTATION_SPEED, initial=(1.0, 0.0, 0.0)):
    """
    Sun direction in the planet frame after `ticks` rotation updates.

    The planet spins about +Y by rotation_speed radians per tick, so in
    its own frame the sun turns the other way.
    """
    angle = -rotation_speed * ticks
    c, s = math.cos(angle), math.sin(angle)
    x, y, z = initial
    return (x * c + z * s, y, -x * s + z * c)

"""
config.py — Planet Constants and Generation Parameters
========================================================

Distances are in kilometres.  The displacement scale is the maximum
terrain height added on top of the base radius for a height sample
of 1.0.
"""

import numbers
from typing import NamedTuple

from .errors import ConfigurationError


# ============================================================
# Earth measurements (km)
# ============================================================

EARTH_RADIUS = 6378.0
ATMOSPHERE_RADIUS = 7000.0
CLOUD_RADIUS = 6478.0
DISPLACEMENT_SCALE = 80.0  # maximum terrain height


# ============================================================
# Atmospheric scattering uniforms
# ============================================================

RAYLEIGH_COEFF = (5.8e-6, 13.5e-6, 33.1e-6)  # RGB wavelengths
MIE_COEFF = 210.0e-5
SUN_INTENSITY = 10.0

# radians per update tick
EARTH_ROTATION_SPEED = 0.00005


# ============================================================
# Normal map cache
# ============================================================

USE_SAVED_NORMAL_MAP = True
SAVED_NORMAL_MAP_PATH = "textures/normal.png"


# ============================================================
# Asset paths
# ============================================================

EARTH_DIFFUSE_TEXTURE = "textures/diffuse.tif"
EARTH_NIGHT_TEXTURE = "textures/night.tif"
EARTH_CLOUDS_TEXTURE = "textures/clouds.tif"
EARTH_OCEAN_MASK_TEXTURE = "textures/ocean_mask.png"
EARTH_SPECULAR_TEXTURE = "textures/specular.tif"
EARTH_DISPLACEMENT_TEXTURE = "textures/topography.png"


# ============================================================
# Vertex normal modes
# ============================================================

# 'sphere':    pre-displacement radial direction (keeps day/night
#              terminator independent of terrain)
# 'geometric': accumulated face normals of the displaced surface
NORMAL_MODES = ('sphere', 'geometric')


def check_resolution(resolution):
    """
    Grid resolution must be an integer >= 2 (spacing is 1/(res-1)).

    numpy integers are accepted; bools and floats are not.

    Returns:
        resolution as a plain int
    """
    if (not isinstance(resolution, numbers.Integral) or isinstance(resolution, bool)
            or resolution < 2):
        raise ConfigurationError(f"resolution must be an integer >= 2, got {resolution!r}")
    return int(resolution)


def check_normal_mode(normal_mode):
    if normal_mode not in NORMAL_MODES:
        raise ConfigurationError(
            f"normal_mode must be one of {NORMAL_MODES}, got {normal_mode!r}")


class PlanetConfig(NamedTuple):
    """Parameters shared by mesh and normal-map generation."""
    resolution: int = 64
    base_radius: float = EARTH_RADIUS
    displacement_scale: float = DISPLACEMENT_SCALE
    normal_mode: str = 'sphere'
    corrected_longitude_z: bool = False

    def validate(self):
        """Raise ConfigurationError if any field is out of range."""
        check_resolution(self.resolution)
        check_normal_mode(self.normal_mode)
        if not self.base_radius > 0.0:
            raise ConfigurationError(f"base_radius must be positive, got {self.base_radius}")
        if self.displacement_scale < 0.0:
            raise ConfigurationError(
                f"displacement_scale must be non-negative, got {self.displacement_scale}")
        return self

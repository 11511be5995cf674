"""
conftest.py — Shared pytest fixtures for the planet_surface test suite
"""

import pytest
import jax
jax.config.update("jax_enable_x64", True)
import numpy as np

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from planet_surface.image import Image, image_from_array
from planet_surface.faces import make_face_descriptors


@pytest.fixture
def make_height_map():
    """Factory: RGBA8 Image whose red channel is the given (H, W) array."""
    def _make(red):
        red = np.asarray(red, dtype=np.uint8)
        h, w = red.shape
        rgba = np.zeros((h, w, 4), dtype=np.uint8)
        rgba[..., 0] = red
        rgba[..., 3] = 255
        return image_from_array(rgba)
    return _make


@pytest.fixture
def flat_height_map(make_height_map):
    """8x8 height map with constant elevation 100/255."""
    return make_height_map(np.full((8, 8), 100))


@pytest.fixture
def zero_height_map(make_height_map):
    """4x4 all-zero height map."""
    return make_height_map(np.zeros((4, 4)))


@pytest.fixture
def ramp_height_map(make_height_map):
    """16x8 height map rising west → east."""
    red = np.tile(np.linspace(0, 255, 16), (8, 1))
    return make_height_map(red)


@pytest.fixture
def empty_image():
    """Image with dimensions but no pixel buffer."""
    return Image(6, 4, None)


@pytest.fixture
def descriptors():
    """Full 24-tile descriptor set at resolution 5."""
    return make_face_descriptors(5)

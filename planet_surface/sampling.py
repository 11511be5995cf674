"""
sampling.py — Height-Map Sampling
===================================

Reads the red channel of an RGBA8 buffer as an elevation in [0, 1].

Two access patterns:
    sample_height        integer pixel coords; x wraps (longitude is
                         cyclic), y clamps (poles are edges)
    sample_displacement  UV coords rounded to the nearest pixel, no
                         bilinear filtering

Reads that land outside the buffer return 0.0.  With correct wrapping
and clamping this only triggers for short buffers.
"""

import jax.numpy as jnp


def _read_red(buffer, pixel_index, last_byte_offset):
    """Red byte at pixel_index scaled to [0, 1]; 0.0 when out of range."""
    in_range = (pixel_index >= 0) & (pixel_index + last_byte_offset < buffer.shape[0])
    value = buffer[jnp.where(in_range, pixel_index, 0)].astype(float) / 255.0
    return jnp.where(in_range, value, 0.0)


def _is_empty(buffer):
    return buffer is None or buffer.shape[0] == 0


# ============================================================
# Integer-coordinate sampler
# ============================================================

def sample_height(buffer, width, height, x, y):
    """
    Height at pixel (x, y) of a flat RGBA8 buffer.

    Args:
        buffer: (width*height*4,) uint8 array
        width, height: raster size
        x, y: integer pixel coordinates (scalars or arrays)

    Returns:
        float array in [0, 1], broadcast shape of x and y
    """
    x = jnp.asarray(x)
    y = jnp.asarray(y)
    if _is_empty(buffer):
        return jnp.zeros(jnp.broadcast_shapes(x.shape, y.shape))

    wrapped_x = jnp.mod(x, width)
    wrapped_y = jnp.clip(y, 0, height - 1)
    pixel_index = (wrapped_y * width + wrapped_x) * 4
    return _read_red(jnp.asarray(buffer), pixel_index, 0)


# ============================================================
# UV sampler
# ============================================================

def sample_buffer_displacement(buffer, width, height, u, v):
    """Nearest-pixel height at (u, v); u and v are clamped to [0, 1] first."""
    u = jnp.clip(jnp.asarray(u), 0.0, 1.0)
    v = jnp.clip(jnp.asarray(v), 0.0, 1.0)
    if _is_empty(buffer):
        return jnp.zeros(jnp.broadcast_shapes(u.shape, v.shape))

    # round half away from zero (inputs are non-negative)
    x = jnp.floor(u * (width - 1) + 0.5).astype(jnp.int32)
    y = jnp.floor(v * (height - 1) + 0.5).astype(jnp.int32)
    pixel_index = (y * width + x) * 4
    return _read_red(jnp.asarray(buffer), pixel_index, 3)


def sample_displacement(image, u, v):
    """
    Nearest-pixel height of an Image at UV coordinates.

    Args:
        image: Image or None
        u, v: texture coordinates (scalars or arrays)

    Returns:
        float array in [0, 1]; zeros when the image or its data is absent
    """
    if image is None:
        return jnp.zeros(jnp.broadcast_shapes(jnp.shape(u), jnp.shape(v)))
    return sample_buffer_displacement(image.data, image.width, image.height, u, v)

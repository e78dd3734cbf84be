"""Colour space conversions and per-channel adjustments."""

from __future__ import annotations

import numpy as np

from .image import Image


def _require_channels(im: Image, count: int) -> None:
    if im.c != count:
        raise ValueError(f"expected a {count}-channel image, got {im.c} channels")


def _require_channel_index(im: Image, c: int) -> None:
    if not 0 <= c < im.c:
        raise ValueError(f"channel {c} is not valid for {im.c} channels")


def rgb_to_grayscale(im: Image) -> Image:
    """Return the luma of an RGB image as a single-channel image."""
    _require_channels(im, 3)
    r, g, b = im.data.astype(np.float64)
    gray = Image(im.w, im.h, 1)
    gray.data[0] = 0.299 * r + 0.587 * g + 0.114 * b
    return gray


def grayscale_to_rgb(im: Image, r: float, g: float, b: float) -> Image:
    """Tint a single-channel image with the colour (r, g, b)."""
    _require_channels(im, 1)
    rgb = Image(im.w, im.h, 3)
    rgb.data[...] = np.array([r, g, b], dtype=np.float32)[:, None, None] * im.data[0]
    return rgb


def shift_image(im: Image, c: int, v: float) -> None:
    """Add ``v`` to channel ``c`` in place."""
    _require_channel_index(im, c)
    im.data[c] += np.float32(v)


def scale_image(im: Image, c: int, v: float) -> None:
    """Multiply channel ``c`` by ``v`` in place."""
    _require_channel_index(im, c)
    im.data[c] *= np.float32(v)


def clamp_image(im: Image) -> None:
    """Clip every value into [0, 1] in place."""
    np.clip(im.data, 0.0, 1.0, out=im.data)


def rgb_to_hsv(im: Image) -> None:
    """Convert an RGB image to HSV in place, all components in [0, 1]."""
    _require_channels(im, 3)
    r, g, b = im.data.astype(np.float32)
    value = np.maximum(np.maximum(r, g), b)
    chroma = value - np.minimum(np.minimum(r, g), b)
    with np.errstate(divide="ignore", invalid="ignore"):
        saturation = np.where(value != 0, chroma / np.where(value != 0, value, 1), 0)
        safe = np.where(chroma != 0, chroma, 1)
        hcap = np.select(
            [value == r, value == g],
            [(g - b) / safe, (b - r) / safe + 2],
            (r - g) / safe + 4,
        )
    hue = np.where(hcap < 0, hcap / 6 + 1, hcap / 6)
    hue = np.where(chroma != 0, hue, 0)
    im.data[...] = np.stack([hue, saturation, value])


def hsv_to_rgb(im: Image) -> None:
    """Convert an HSV image to RGB in place; hues outside [0, 1) give black."""
    _require_channels(im, 3)
    h, s, v = im.data.astype(np.float64)
    c = v * s
    x = c * (1 - np.abs(np.fmod(6 * h, 2.0) - 1))
    m = v - c
    bounds = [i / 6 for i in range(7)]
    sectors = [(h >= lo) & (h < hi) for lo, hi in zip(bounds, bounds[1:])]
    r = np.select(sectors, [c + m, x + m, m, m, x + m, c + m], 0.0)
    g = np.select(sectors, [x + m, c + m, c + m, x + m, m, m], 0.0)
    b = np.select(sectors, [m, m, x + m, c + m, c + m, x + m], 0.0)
    im.data[...] = np.stack([r, g, b])
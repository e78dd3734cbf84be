"""Canny edge detection on RGB input, operating on interior pixels."""

from __future__ import annotations

import math

import numpy as np

from ..color import rgb_to_grayscale
from ..image import Image
from .feature_filters import (
    convolve_image,
    feature_normalize,
    make_gaussian_filter,
    sobel_image,
)


def _require_channel(im: Image, name: str) -> None:
    if im.c < 1:
        raise ValueError(f"{name} must have at least one channel")


def smooth_image(im: Image, sigma: float) -> Image:
    """Convert an RGB image to grey and blur it with a Gaussian of deviation ``sigma``."""
    gray = rgb_to_grayscale(im)
    return convolve_image(gray, make_gaussian_filter(sigma), False)


def compute_gradient(im: Image, sigma: float) -> tuple[Image, Image]:
    """Smooth ``im`` and return its gradient magnitude and direction, both scaled to [0, 1]."""
    magnitude, direction = sobel_image(smooth_image(im, sigma))
    feature_normalize(magnitude)
    feature_normalize(direction)
    return magnitude, direction


def non_maximum_supp(g: Image, theta: Image) -> Image:
    """Suppress interior magnitudes that are not maximal along the gradient.

    ``theta`` is read in radians and folded into [0, 180) degrees. Angles in
    [22.5, 67.5) compare the (x+1, y-1) and (x-1, y+1) neighbours, [67.5,
    112.5) the horizontal ones, [112.5, 157.5) the (x-1, y-1) and (x+1, y+1)
    ones; every other angle compares the vertical neighbours. The outermost
    row and column of the result are zero.
    """
    _require_channel(g, "magnitude")
    _require_channel(theta, "direction")
    if (g.w, g.h) != (theta.w, theta.h):
        raise ValueError("magnitude and direction must have the same size")
    result = Image(g.w, g.h, 1)
    h, w = g.h, g.w
    if h < 3 or w < 3:
        return result
    plane = g.data[0]
    angle = (theta.data[0].astype(np.float64) * 180.0 / math.pi).astype(np.float32)
    angle = np.where(angle < 0, angle + np.float32(180), angle)
    a = angle[1:-1, 1:-1]
    centre = plane[1:-1, 1:-1]

    d45 = (a >= 22.5) & (a < 67.5)
    d90 = (a >= 67.5) & (a < 112.5)
    d135 = (a >= 112.5) & (a < 157.5)
    q = np.select(
        [d45, d90, d135],
        [plane[:-2, 2:], plane[1:-1, 2:], plane[:-2, :-2]],
        plane[2:, 1:-1],
    )
    r = np.select(
        [d45, d90, d135],
        [plane[2:, :-2], plane[1:-1, :-2], plane[2:, 2:]],
        plane[:-2, 1:-1],
    )
    keep = (centre >= q) & (centre >= r)
    result.data[0, 1:-1, 1:-1] = np.where(keep, centre, np.float32(0))
    return result


def double_thresholding(
    im: Image,
    low_threshold_ratio: float,
    high_threshold_ratio: float,
    strong: float,
    weak: float,
) -> Image:
    """Grade the first channel: at least high is strong, at least low is weak, else 0.

    The result has as many channels as ``im``; only the first is filled.
    """
    _require_channel(im, "image")
    data = im.data[0]
    low = np.float32(low_threshold_ratio)
    high = np.float32(high_threshold_ratio)
    graded = np.where(
        data >= high,
        np.float32(strong),
        np.where(data >= low, np.float32(weak), np.float32(0)),
    )
    result = Image(im.w, im.h, im.c)
    result.data[0] = graded
    return result


def edge_tracking(im: Image, weak: float, strong: float) -> Image:
    """Set interior weak pixels to 1 when an 8-neighbour is strong, else to 0.

    Other interior pixels of the first channel are copied; the border is zero.
    """
    _require_channel(im, "image")
    result = Image(im.w, im.h, im.c)
    h, w = im.h, im.w
    if h < 3 or w < 3:
        return result
    plane = im.data[0]
    weak_val = np.float32(weak)
    strong_val = np.float32(strong)
    centre = plane[1:-1, 1:-1]
    near_strong = np.zeros(centre.shape, dtype=bool)
    for oy in range(3):
        for ox in range(3):
            if oy == 1 and ox == 1:
                continue
            near_strong |= plane[oy : oy + h - 2, ox : ox + w - 2] == strong_val
    promoted = np.where(near_strong, np.float32(1), np.float32(0))
    result.data[0, 1:-1, 1:-1] = np.where(centre == weak_val, promoted, centre)
    return result
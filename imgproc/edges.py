"""Canny-style edge detection: smoothing, gradients, suppression and hysteresis."""

from __future__ import annotations

import math

import numpy as np

from .filters import convolve_image, feature_normalize, make_gaussian_filter, sobel_image
from .image import Image

# Candidate directions are the multiples of pi/4 in [-pi, pi].
_ANGLES = (np.arange(-4, 5, dtype=np.float64) * (math.pi / 4)).astype(np.float32)
_STEP_X = np.rint(np.cos(_ANGLES.astype(np.float64))).astype(np.intp)
_STEP_Y = np.rint(np.sin(_ANGLES.astype(np.float64))).astype(np.intp)


def _require_single_channel(im: Image, name: str) -> None:
    if im.c != 1:
        raise ValueError(f"{name} must be a single-channel image, got {im.c} channels")


def _plane_image(plane: np.ndarray) -> Image:
    h, w = plane.shape
    im = Image(w, h, 1)
    im.data[0] = plane
    return im


def smooth_image(im: Image, sigma: float) -> Image:
    """Blur with a Gaussian of deviation ``sigma``; channels are summed into one."""
    return convolve_image(im, make_gaussian_filter(sigma), False)


def compute_gradient(im: Image) -> tuple[Image, Image]:
    """Return the gradient magnitude scaled to [0, 1] and its direction in [-pi, pi]."""
    magnitude, direction = sobel_image(im)
    feature_normalize(magnitude)
    return magnitude, direction


def non_maximum_suppression(mag: Image, direction: Image) -> Image:
    """Keep only magnitudes that are maximal along the rounded gradient direction.

    The direction is rounded to the nearest multiple of pi/4 (ties go to the
    smaller angle); the two neighbours along it are read with clamped borders.
    """
    _require_single_channel(mag, "magnitude")
    _require_single_channel(direction, "direction")
    if mag.data.shape != direction.data.shape:
        raise ValueError("magnitude and direction must have the same size")
    h, w = mag.h, mag.w
    plane = mag.data[0]
    angles = direction.data[0]
    diffs = np.abs(angles[np.newaxis] - _ANGLES[:, np.newaxis, np.newaxis])
    nearest = np.argmin(diffs, axis=0)
    nearest = np.where(np.isnan(angles), len(_ANGLES) - 1, nearest)
    dx = _STEP_X[nearest]
    dy = _STEP_Y[nearest]
    xs = np.arange(w)[np.newaxis, :]
    ys = np.arange(h)[:, np.newaxis]
    n1 = plane[np.clip(ys + dy, 0, h - 1), np.clip(xs + dx, 0, w - 1)]
    n2 = plane[np.clip(ys - dy, 0, h - 1), np.clip(xs - dx, 0, w - 1)]
    keep = (plane >= n1) & (plane >= n2)
    return _plane_image(np.where(keep, plane, np.float32(0)))


def double_thresholding(
    im: Image,
    low_threshold: float,
    high_threshold: float,
    strong_val: float,
    weak_val: float,
) -> Image:
    """Map values above ``high_threshold`` to strong, between the two to weak, others to 0.

    A value must exceed ``low_threshold`` to count; a value equal to
    ``high_threshold`` is strong.
    """
    data = im.data
    low = np.float32(low_threshold)
    high = np.float32(high_threshold)
    graded = np.where(data < high, np.float32(weak_val), np.float32(strong_val))
    result = Image(im.w, im.h, im.c)
    result.data[...] = np.where(data > low, graded, np.float32(0))
    return result


def edge_tracking(im: Image, weak: float, strong: float) -> Image:
    """Promote weak pixels touching a strong pixel (8-neighbourhood) and drop the rest."""
    _require_single_channel(im, "image")
    result = Image(im.w, im.h, 1)
    if im.size() == 0:
        return result
    weak_val = np.float32(weak)
    strong_val = np.float32(strong)
    plane = im.data[0]
    h, w = plane.shape
    padded = np.pad(plane, 1, mode="edge")
    near_strong = np.zeros(plane.shape, dtype=bool)
    for oy in range(3):
        for ox in range(3):
            near_strong |= padded[oy : oy + h, ox : ox + w] == strong_val
    promoted = np.where(near_strong, strong_val, np.float32(0))
    result.data[0] = np.where(plane == weak_val, promoted, plane)
    return result
"""Harris corner detection and simple patch descriptors."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import IntEnum

import numpy as np

from ..color import rgb_to_grayscale
from ..image import Image
from .feature_filters import convolve_image, make_gx_filter, make_gy_filter


@dataclass
class Point:
    """A location in image coordinates."""

    x: float = 0.0
    y: float = 0.0


@dataclass
class Descriptor:
    """A feature location and the patch values that describe it."""

    p: Point = field(default_factory=Point)
    data: list[float] = field(default_factory=list)


class CornerMethod(IntEnum):
    """Ways of turning a structure matrix into a cornerness score."""

    DET_OVER_TRACE = 0
    DET_MINUS_TRACE_SQUARED = 1
    MIN_EIGENVALUE = 2


def describe_index(im: Image, x: int, y: int, w: int) -> Descriptor:
    """Describe the ``w``-wide patch around (x, y), relative to its centre value.

    Values are listed channel by channel, column by column, with coordinates
    clamped to the image.
    """
    if w < 0:
        raise ValueError("window must not be negative")
    half = w // 2
    offsets = np.arange(-half, half + 1)
    xs = np.clip(x + offsets, 0, im.w - 1)
    ys = np.clip(y + offsets, 0, im.h - 1)
    values: list[float] = []
    for ch in range(im.c):
        centre = np.float32(im.clamped_pixel(x, y, ch))
        patch = im.data[ch][np.ix_(ys, xs)]
        values.extend((patch.T.ravel() - centre).tolist())
    return Descriptor(Point(float(x), float(y)), values)


def mark_spot(im: Image, p: Point) -> None:
    """Draw a magenta cross of arm length 9 at ``p`` on an RGB image, in place."""
    x = int(p.x)
    y = int(p.y)
    for i in range(-9, 10):
        for ch, value in ((0, 1.0), (1, 0.0), (2, 1.0)):
            im.set_pixel(x + i, y, ch, value)
            im.set_pixel(x, y + i, ch, value)


def mark_corners(im: Image, descriptors) -> Image:
    """Return a copy of ``im`` with every descriptor location marked."""
    marked = im.copy()
    for d in descriptors:
        mark_spot(marked, d.p)
    return marked


def make_1d_gaussian(sigma: float) -> Image:
    """Return a single-row Gaussian of odd width at least ``6*sigma``, summing to one."""
    if sigma <= 0:
        raise ValueError("sigma must be positive")
    width = math.ceil(float(np.float32(sigma) * np.float32(6)))
    if width % 2 == 0:
        width += 1
    x = np.arange(width, dtype=np.float64) - width // 2
    values = np.exp(-(x**2) / (2 * sigma * sigma)) / (2 * math.pi * sigma * sigma)
    values /= values.sum()
    lin = Image(width, 1, 1)
    lin.data[0, 0] = values
    return lin


def smooth_image(im: Image, sigma: float) -> Image:
    """Blur every channel with a separable Gaussian of deviation ``sigma``."""
    row = make_1d_gaussian(sigma)
    column = Image(1, row.w, 1)
    column.data[0, :, 0] = row.data[0, 0]
    return convolve_image(convolve_image(im, row, True), column, True)


def structure_matrix(im: Image, sigma: float) -> Image:
    """Return the smoothed structure matrix: channels Ix^2, Iy^2 and IxIy."""
    if im.c not in (1, 3):
        raise ValueError("only grayscale or rgb supported")
    gray = im.copy() if im.c == 1 else rgb_to_grayscale(im)
    ix = convolve_image(gray, make_gx_filter(), False).data[0]
    iy = convolve_image(gray, make_gy_filter(), False).data[0]
    s = Image(gray.w, gray.h, 3)
    s.data[0] = ix * ix
    s.data[1] = iy * iy
    s.data[2] = ix * iy
    return smooth_image(s, sigma)


def cornerness_response(s: Image, method=CornerMethod.DET_OVER_TRACE) -> Image:
    """Score every pixel of a structure matrix with the chosen method."""
    method = CornerMethod(method)
    if s.c < 3:
        raise ValueError("structure matrix needs three channels")
    a, b, c = s.data[:3].astype(np.float64)
    det = a * b - c * c
    trace = a + b
    with np.errstate(divide="ignore", invalid="ignore"):
        if method is CornerMethod.DET_OVER_TRACE:
            values = det / trace
        elif method is CornerMethod.DET_MINUS_TRACE_SQUARED:
            values = det - trace**2
        else:
            radix = np.sqrt(trace**2 + 4 * (c * c - a * b))
            values = np.minimum((trace + radix) / 2, (trace - radix) / 2)
    r = Image(s.w, s.h, 1)
    r.data[0] = values
    return r


def nms_image(im: Image, w: int) -> Image:
    """Zero every response that has a larger one within ``w`` pixels (clamped)."""
    result = im.copy()
    if w < 0 or im.size() == 0:
        return result
    h, width = im.h, im.w
    for ch, plane in enumerate(im.data):
        padded = np.pad(plane, w, mode="edge")
        peak = np.full(plane.shape, -np.inf, dtype=np.float32)
        for oy in range(2 * w + 1):
            for ox in range(2 * w + 1):
                peak = np.fmax(peak, padded[oy : oy + h, ox : ox + width])
        result.data[ch] = np.where(peak > plane, np.float32(0), plane)
    return result


def detect_corners(im: Image, nms: Image, thresh: float, window: int) -> list[Descriptor]:
    """Describe every pixel whose suppressed response exceeds ``thresh``."""
    if nms.c != 1:
        raise ValueError("response map must have a single channel")
    mask = nms.data[0] > np.float32(thresh)
    xs, ys = np.nonzero(mask.T)
    return [describe_index(im, int(x), int(y), window) for x, y in zip(xs, ys)]


def harris_corner_detector(
    im: Image,
    sigma: float,
    thresh: float,
    window: int,
    nms: int,
    corner_method=CornerMethod.DET_OVER_TRACE,
) -> list[Descriptor]:
    """Find corners in ``im`` and return their descriptors."""
    s = structure_matrix(im, sigma)
    response = cornerness_response(s, corner_method)
    suppressed = nms_image(response, nms)
    return detect_corners(im, suppressed, thresh, window)


def detect_and_draw_corners(
    im: Image,
    sigma: float,
    thresh: float,
    window: int,
    nms: int,
    corner_method=CornerMethod.DET_OVER_TRACE,
) -> Image:
    """Return a copy of ``im`` with the detected corners marked."""
    found = harris_corner_detector(im, sigma, thresh, window, nms, corner_method)
    return mark_corners(im, found)
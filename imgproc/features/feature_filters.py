"""Filters used by the feature pipeline.

These share their fixed kernels with :mod:`imgproc.filters` but use the
unscaled Sobel kernels, a ``ceil(6*sigma)``-wide Gaussian, filters of any
rectangular size and per-channel feature normalisation.
"""

from __future__ import annotations

import math

import numpy as np

from .. import filters as _base
from ..color import clamp_image, hsv_to_rgb
from ..image import Image

__all__ = [
    "add_image",
    "bilateral_filter",
    "colorize_sobel",
    "convolve_image",
    "feature_normalize",
    "feature_normalize_total",
    "l1_normalize",
    "l2_normalize",
    "make_bilateral_filter",
    "make_box_filter",
    "make_emboss_filter",
    "make_gaussian_filter",
    "make_gx_filter",
    "make_gy_filter",
    "make_highpass_filter",
    "make_sharpen_filter",
    "sobel_image",
    "sub_image",
]

_GX = np.array([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]], dtype=np.float32)
_GY = np.array([[-1, -2, -1], [0, 0, 0], [1, 2, 1]], dtype=np.float32)


def _from_array(array: np.ndarray) -> Image:
    """Build an image from a ``(c, h, w)`` array."""
    c, h, w = array.shape
    im = Image(w, h, c)
    im.data[...] = array
    return im


def l1_normalize(im: Image) -> None:
    """Scale each channel in place so that its values sum to one."""
    _base.l1_normalize(im)


def l2_normalize(im: Image) -> None:
    """Scale each channel in place so that its values sum to one."""
    sums = im.data.sum(axis=(1, 2), keepdims=True, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        im.data[...] = im.data / sums


def make_box_filter(w: int) -> Image:
    """Return an odd ``w`` x ``w`` averaging kernel."""
    return _base.make_box_filter(w)


def make_highpass_filter() -> Image:
    """3x3 high-pass kernel."""
    return _base.make_highpass_filter()


def make_sharpen_filter() -> Image:
    """3x3 sharpening kernel."""
    return _base.make_sharpen_filter()


def make_emboss_filter() -> Image:
    """3x3 emboss kernel."""
    return _base.make_emboss_filter()


def add_image(a: Image, b: Image) -> Image:
    """Return the pixel-wise sum of two images of the same shape."""
    return _base.add_image(a, b)


def sub_image(a: Image, b: Image) -> Image:
    """Return the pixel-wise difference ``a - b`` of two images of the same shape."""
    return _base.sub_image(a, b)


def convolve_image(im: Image, filter: Image, preserve: bool) -> Image:
    """Apply a single-channel filter of any size with clamped borders.

    The filter is centred at ``(w // 2, h // 2)``. With ``preserve`` every
    channel is filtered separately; otherwise the channel responses are
    summed into a single channel.
    """
    if filter.c != 1:
        raise ValueError("filter must have a single channel")
    kernel = filter.data[0].astype(np.float64)
    fh, fw = kernel.shape
    oy, ox = fh // 2, fw // 2
    _, h, w = im.data.shape
    out = np.zeros(im.data.shape, dtype=np.float64)
    if out.size and kernel.size:
        padded = np.pad(
            im.data.astype(np.float64),
            ((0, 0), (oy, fh - 1 - oy), (ox, fw - 1 - ox)),
            mode="edge",
        )
        for (fy, fx), weight in np.ndenumerate(kernel):
            out += weight * padded[:, fy : fy + h, fx : fx + w]
    if preserve:
        return _from_array(out)
    return _from_array(out.sum(axis=0, keepdims=True))


def make_gaussian_filter(sigma: float) -> Image:
    """Return a Gaussian kernel of odd side at least ``6*sigma``, summing to one."""
    if sigma <= 0:
        raise ValueError("sigma must be positive")
    width = math.ceil(float(np.float32(sigma) * np.float32(6)))
    if width % 2 == 0:
        width += 1
    offsets = np.arange(width, dtype=np.float64) - width // 2
    yy, xx = np.meshgrid(offsets, offsets, indexing="ij")
    var = float(sigma) ** 2
    values = np.exp(-(xx**2 + yy**2) / (2 * var)) / (2 * math.pi * var)
    filt = _from_array(values[np.newaxis])
    l2_normalize(filt)
    return filt


def make_gx_filter() -> Image:
    """Horizontal Sobel kernel."""
    return _from_array(_GX[np.newaxis])


def make_gy_filter() -> Image:
    """Vertical Sobel kernel."""
    return _from_array(_GY[np.newaxis])


def _normalize_or_zero(data: np.ndarray) -> None:
    lo = data.min()
    span = data.max() - lo
    if span:
        data[...] = (data - lo) / span
    else:
        data[...] = 0.0


def feature_normalize(im: Image) -> None:
    """Rescale each channel in place to span [0, 1]; flat channels become zero."""
    if im.w * im.h == 0:
        raise ValueError("cannot normalise an empty image")
    for plane in im.data:
        _normalize_or_zero(plane)


def feature_normalize_total(im: Image) -> None:
    """Rescale all channels together in place to span [0, 1]."""
    if im.size() == 0:
        raise ValueError("cannot normalise an empty image")
    _normalize_or_zero(im.data)


def sobel_image(im: Image) -> tuple[Image, Image]:
    """Return the gradient magnitude and direction (radians) of ``im``."""
    gx = convolve_image(im, make_gx_filter(), False).data[0].astype(np.float64)
    gy = convolve_image(im, make_gy_filter(), False).data[0].astype(np.float64)
    magnitude = np.sqrt(gx**2 + gy**2)
    direction = np.arctan2(gy, gx)
    return _from_array(magnitude[np.newaxis]), _from_array(direction[np.newaxis])


def colorize_sobel(im: Image) -> Image:
    """Colour the gradient: hue from direction, saturation and value from magnitude."""
    blur = convolve_image(im, make_gaussian_filter(4), True)
    clamp_image(blur)
    magnitude, direction = sobel_image(blur)
    feature_normalize(magnitude)
    hue = direction.data[0].astype(np.float64) / (2 * math.pi) + 0.5
    mag = magnitude.data[0]
    hsv = _from_array(np.stack([hue, mag, mag]))
    hsv_to_rgb(hsv)
    return hsv


def make_bilateral_filter(
    im: Image, sgf: Image, cx: int, cy: int, cc: int, sigma: float
) -> Image:
    """Weight the spatial kernel ``sgf`` by intensity similarity around (cx, cy)."""
    return _base.make_bilateral_filter(im, sgf, cx, cy, cc, sigma)


def _range_weights(diff: np.ndarray, sigma: float) -> np.ndarray:
    var = sigma**2
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.exp(-(diff**2) / (2 * var)) / (2 * math.pi * var)


def bilateral_filter(im: Image, sigma1: float, sigma2: float) -> Image:
    """Edge-preserving smoothing: spatial deviation ``sigma1``, range ``sigma2``."""
    spatial = make_gaussian_filter(sigma1).data[0].astype(np.float64)
    half = spatial.shape[0] // 2
    out = np.zeros(im.data.shape, dtype=np.float64)
    if out.size == 0:
        return _from_array(out)
    h, w = im.h, im.w
    for ch, plane in enumerate(im.data.astype(np.float64)):
        padded = np.pad(plane, half, mode="edge")
        numerator = np.zeros_like(plane)
        denominator = np.zeros_like(plane)
        for (fy, fx), weight in np.ndenumerate(spatial):
            shifted = padded[fy : fy + h, fx : fx + w]
            combined = weight * _range_weights(shifted - plane, sigma2)
            numerator += combined * shifted
            denominator += combined
        with np.errstate(divide="ignore", invalid="ignore"):
            out[ch] = numerator / denominator
    return _from_array(out)
"""Convolution filters, gradients, bilateral smoothing and histogram equalisation."""

from __future__ import annotations

import math

import numpy as np

from .color import clamp_image, hsv_to_rgb, rgb_to_hsv
from .image import Image

_HIGHPASS = np.array([[0, -1, 0], [-1, 4, -1], [0, -1, 0]], dtype=np.float32)
_SHARPEN = np.array([[0, -1, 0], [-1, 5, -1], [0, -1, 0]], dtype=np.float32)
_EMBOSS = np.array([[-2, -1, 0], [-1, 1, 1], [0, 1, 2]], dtype=np.float32)
_GX = np.array([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]], dtype=np.float32) / 8
_GY = np.array([[-1, -2, -1], [0, 0, 0], [1, 2, 1]], dtype=np.float32) / 8


def _from_array(array: np.ndarray) -> Image:
    """Build an image from a ``(c, h, w)`` array."""
    c, h, w = array.shape
    im = Image(w, h, c)
    im.data[...] = array
    return im


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _filter_kernel(filt: Image) -> np.ndarray:
    """Return the square ``[y, x]`` kernel a filter image describes."""
    if filt.c != 1:
        raise ValueError("filter must have a single channel")
    size = 2 * (filt.w // 2) + 1
    if filt.w < size or filt.h < size:
        raise ValueError("filter width must be odd and not larger than its height")
    return filt.data[0, :size, :size].astype(np.float64)


def _correlate(planes: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """Correlate every plane with ``kernel``, clamping coordinates at the borders."""
    out = np.zeros(planes.shape, dtype=np.float64)
    if out.size == 0:
        return out
    off = kernel.shape[0] // 2
    _, h, w = planes.shape
    padded = np.pad(
        planes.astype(np.float64), ((0, 0), (off, off), (off, off)), mode="edge"
    )
    for (fy, fx), weight in np.ndenumerate(kernel):
        out += weight * padded[:, fy : fy + h, fx : fx + w]
    return out


def l1_normalize(im: Image) -> None:
    """Scale each channel in place so that its values sum to one."""
    sums = im.data.sum(axis=(1, 2), keepdims=True, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        im.data[...] = im.data / sums


def make_box_filter(w: int) -> Image:
    """Return a ``w`` x ``w`` averaging filter; ``w`` must be odd."""
    if w % 2 == 0:
        raise ValueError("box filter width must be odd")
    filt = Image(w, w, 1)
    filt.data.fill(1.0 / (w * w))
    return filt


def convolve_image(im: Image, filter: Image, preserve: bool) -> Image:
    """Apply ``filter`` to every pixel with clamped borders.

    With ``preserve`` the channels are filtered separately; otherwise the
    responses of all channels are summed into a single channel.
    """
    out = _correlate(im.data, _filter_kernel(filter))
    if preserve:
        return _from_array(out)
    return _from_array(out.sum(axis=0, keepdims=True))


def convolve_image_fast(im: Image, filter: Image, preserve: bool) -> Image:
    """Filter the first three channels with the transposed kernel layout.

    Gives the same result as :func:`convolve_image` for symmetric filters.
    """
    if filter.w != filter.h:
        raise ValueError("fast convolution needs a square filter")
    if im.c < 3:
        raise ValueError("fast convolution needs at least three channels")
    kernel = _filter_kernel(filter).T
    out = _correlate(im.data[:3], kernel)
    if preserve:
        return _from_array(out)
    return _from_array(out.sum(axis=0, keepdims=True))


def _fixed_filter(caps: np.ndarray) -> Image:
    return _from_array(caps.T[np.newaxis])


def make_highpass_filter() -> Image:
    return _fixed_filter(_HIGHPASS)


def make_sharpen_filter() -> Image:
    return _fixed_filter(_SHARPEN)


def make_emboss_filter() -> Image:
    return _fixed_filter(_EMBOSS)


def compute_2d_gaussian(x, y, sigma: float):
    """Value of the 2-D normal density with deviation ``sigma`` at (x, y)."""
    sigma2 = sigma * sigma
    return 1.0 / (2 * math.pi * sigma2) * np.exp(-(x * x + y * y) / (2 * sigma2))


def make_gaussian_filter(sigma: float) -> Image:
    """Return an L1-normalised Gaussian kernel of side ``2*round(3*sigma)+1``."""
    if sigma <= 0:
        raise ValueError("sigma must be positive")
    radius = _round_half_away(sigma * 3)
    size = radius * 2 + 1
    offsets = np.arange(size, dtype=np.float64) - radius
    yy, xx = np.meshgrid(offsets, offsets, indexing="ij")
    filt = _from_array(compute_2d_gaussian(xx, yy, sigma)[np.newaxis])
    l1_normalize(filt)
    return filt


def add_image(a: Image, b: Image) -> Image:
    return a + b


def sub_image(a: Image, b: Image) -> Image:
    return a - b


def make_gx_filter() -> Image:
    return _from_array(_GX[np.newaxis])


def make_gy_filter() -> Image:
    return _from_array(_GY[np.newaxis])


def _normalize_range(data: np.ndarray) -> None:
    lo = data.min()
    span = data.max() - lo
    if not span:
        return
    data[...] = (data - lo) / span


def feature_normalize(im: Image) -> None:
    """Rescale a single-channel image in place to span [0, 1]."""
    if im.c != 1:
        raise ValueError("feature_normalize needs a single-channel image")
    if im.w * im.h == 0:
        raise ValueError("cannot normalise an empty image")
    _normalize_range(im.data)


def feature_normalize_total(im: Image) -> None:
    """Rescale all channels together in place to span [0, 1]."""
    if im.size() == 0:
        raise ValueError("cannot normalise an empty image")
    _normalize_range(im.data)


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


def _range_weights(diff: np.ndarray, sigma: float) -> np.ndarray:
    var = sigma**2
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.exp(-(diff**2) / (2 * var)) / (2 * math.pi * var)


def make_bilateral_filter(
    im: Image, sgf: Image, cx: int, cy: int, cc: int, sigma: float
) -> Image:
    """Weight the spatial kernel ``sgf`` by intensity similarity around (cx, cy)."""
    size = sgf.w
    if sgf.h != size or sgf.c < 1:
        raise ValueError("spatial filter must be square")
    centre = im.clamped_pixel(cx, cy, cc)
    half = size // 2
    xs = np.clip(cx - half + np.arange(size), 0, im.w - 1)
    ys = np.clip(cy - half + np.arange(size), 0, im.h - 1)
    patch = im.data[cc][np.ix_(ys, xs)].astype(np.float64)
    weights = sgf.data[0].astype(np.float64) * _range_weights(patch - centre, sigma)
    bf = _from_array(weights[np.newaxis])
    l1_normalize(bf)
    return bf


def bilateral_filter(im: Image, sigma1: float, sigma2: float) -> Image:
    """Edge-preserving smoothing: spatial deviation ``sigma1``, range ``sigma2``."""
    spatial = make_gaussian_filter(sigma1).data[0].astype(np.float64)
    size = spatial.shape[0]
    half = size // 2
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


def _bin_indices(values: np.ndarray, num_bins: int) -> np.ndarray:
    eps = np.float32(1.0 / (num_bins * 1000))
    scaled = (values.astype(np.float32) - eps) * np.float32(num_bins)
    if not np.isfinite(scaled).all():
        raise ValueError("values must be finite")
    bins = np.trunc(scaled)
    if bins.size and (bins.min() < 0 or bins.max() >= num_bins):
        raise ValueError("values must lie in [0, 1]")
    return bins.astype(np.intp)


def compute_histogram(im: Image, ch: int, num_bins: int) -> np.ndarray:
    """Return the normalised histogram of channel ``ch`` over [0, 1]."""
    if num_bins <= 0:
        raise ValueError("num_bins must be positive")
    if not 0 <= ch < im.c:
        raise IndexError(f"channel {ch} out of range for {im.c} channels")
    count = im.w * im.h
    if count == 0:
        raise ValueError("cannot compute the histogram of an empty image")
    bins = _bin_indices(im.data[ch], num_bins)
    counts = np.bincount(bins.ravel(), minlength=num_bins).astype(np.float32)
    return counts / np.float32(count)


def compute_cdf(hist) -> np.ndarray:
    """Return the running sum of a histogram."""
    values = np.asarray(hist, dtype=np.float32)
    if values.ndim != 1 or values.size == 0:
        raise ValueError("histogram must be a non-empty sequence")
    return np.cumsum(values, dtype=np.float32)


def _equalize_channel(im: Image, ch: int, num_bins: int) -> None:
    cdf = compute_cdf(compute_histogram(im, ch, num_bins))
    im.data[ch] = cdf[_bin_indices(im.data[ch], num_bins)]


def histogram_equalization_hsv(im: Image, num_bins: int) -> Image:
    """Equalise the value channel of an RGB image in HSV space."""
    result = im.copy()
    rgb_to_hsv(result)
    _equalize_channel(result, 2, num_bins)
    hsv_to_rgb(result)
    return result


def histogram_equalization_rgb(im: Image, num_bins: int) -> Image:
    """Equalise every channel independently."""
    result = im.copy()
    for ch in range(result.c):
        _equalize_channel(result, ch, num_bins)
    return result
import math

import numpy as np
import pytest

from imgproc.edges import (
    compute_gradient,
    double_thresholding,
    edge_tracking,
    non_maximum_suppression,
    smooth_image,
)
from imgproc.image import Image

STRONG = 1.0
WEAK = 0.25
LOW = 0.03
HIGH = 0.17


def _plane(rows):
    arr = np.array(rows, dtype=np.float32)
    h, w = arr.shape
    im = Image(w, h, 1)
    im.data[0] = arr
    return im


def _constant(w, h, c, value):
    im = Image(w, h, c)
    im.data.fill(value)
    return im


def _square_image(size=32, lo=8, hi=24):
    im = Image(size, size, 1)
    im.data[0, lo:hi, lo:hi] = 1.0
    return im


def _canny(im):
    smoothed = smooth_image(im, 1.4)
    mag, direction = compute_gradient(smoothed)
    nms = non_maximum_suppression(mag, direction)
    dt = double_thresholding(nms, LOW, HIGH, STRONG, WEAK)
    return smoothed, mag, direction, nms, dt, edge_tracking(dt, WEAK, STRONG)


def test_smooth_image_keeps_constant_image():
    out = smooth_image(_constant(7, 5, 1, 0.4), 1.4)
    assert (out.w, out.h, out.c) == (7, 5, 1)
    np.testing.assert_allclose(out.data, 0.4, atol=1e-5)


def test_smooth_image_sums_channels():
    out = smooth_image(_constant(6, 6, 3, 0.2), 1.0)
    assert out.c == 1
    np.testing.assert_allclose(out.data, 0.6, atol=1e-5)


def test_compute_gradient_of_vertical_step():
    im = Image(8, 8, 1)
    im.data[0, :, 4:] = 1.0
    mag, direction = compute_gradient(im)
    assert mag[3, 2] == pytest.approx(1.0)
    assert mag[4, 5] == pytest.approx(1.0)
    assert mag[0, 0] == pytest.approx(0.0)
    assert mag[7, 7] == pytest.approx(0.0)
    np.testing.assert_allclose(direction.data, 0.0, atol=1e-7)


def test_compute_gradient_magnitude_range():
    _, mag, direction, _, _, _ = _canny(_square_image())
    assert mag.data.min() == pytest.approx(0.0)
    assert mag.data.max() == pytest.approx(1.0)
    assert direction.data.min() >= -math.pi - 1e-6
    assert direction.data.max() <= math.pi + 1e-6


RIDGE = [[0, 0.5, 1, 0.5, 0]] * 3


@pytest.mark.parametrize("angle", [0.0, 0.3, math.pi, -math.pi])
def test_nms_horizontal_direction_keeps_ridge(angle):
    out = non_maximum_suppression(_plane(RIDGE), _constant(5, 3, 1, angle))
    expected = np.array([[0, 0, 1, 0, 0]] * 3, dtype=np.float32)
    np.testing.assert_array_equal(out.data[0], expected)


@pytest.mark.parametrize("angle", [math.pi / 2, 1.2, -math.pi / 2])
def test_nms_vertical_direction_keeps_everything(angle):
    out = non_maximum_suppression(_plane(RIDGE), _constant(5, 3, 1, angle))
    np.testing.assert_array_equal(out.data[0], np.array(RIDGE, dtype=np.float32))


@pytest.mark.parametrize("angle", [math.pi / 4, 1.1])
def test_nms_diagonal_direction(angle):
    out = non_maximum_suppression(_plane(RIDGE), _constant(5, 3, 1, angle))
    expected = np.array([[0, 0, 1, 0, 0]] * 3, dtype=np.float32)
    np.testing.assert_array_equal(out.data[0], expected)


def test_nms_rejects_mismatched_sizes():
    with pytest.raises(ValueError):
        non_maximum_suppression(_constant(4, 4, 1, 0.5), _constant(3, 4, 1, 0.0))


def test_nms_output_never_exceeds_magnitude():
    _, mag, _, nms, _, _ = _canny(_square_image())
    assert (nms.data <= mag.data).all()
    kept = nms.data != 0
    np.testing.assert_array_equal(nms.data[kept], mag.data[kept])


def test_double_thresholding_values():
    im = _plane([[0.01, 0.03, 0.1, 0.17, 0.5]])
    out = double_thresholding(im, LOW, HIGH, STRONG, WEAK)
    np.testing.assert_allclose(out.data[0, 0], [0.0, 0.0, 0.25, 1.0, 1.0])


def test_double_thresholding_all_channels():
    im = _constant(2, 2, 3, 0.1)
    im.data[1] = 0.9
    out = double_thresholding(im, LOW, HIGH, STRONG, WEAK)
    assert out.c == 3
    np.testing.assert_allclose(out.data[0], WEAK)
    np.testing.assert_allclose(out.data[1], STRONG)
    np.testing.assert_allclose(out.data[2], WEAK)


def test_edge_tracking_promotes_weak_next_to_strong():
    im = _plane([[1.0, 0.25, 0.0, 0.25, 0.0]])
    out = edge_tracking(im, WEAK, STRONG)
    np.testing.assert_allclose(out.data[0, 0], [1.0, 1.0, 0.0, 0.0, 0.0])


def test_edge_tracking_does_not_chain_through_weak_pixels():
    im = _plane([[1.0, 0.0, 0.0], [0.0, 0.25, 0.0], [0.0, 0.0, 0.25]])
    out = edge_tracking(im, WEAK, STRONG)
    assert out[1, 1] == pytest.approx(1.0)
    assert out[2, 2] == pytest.approx(0.0)
    assert out[0, 0] == pytest.approx(1.0)


def test_edge_tracking_rejects_multichannel():
    with pytest.raises(ValueError):
        edge_tracking(_constant(3, 3, 3, 0.25), WEAK, STRONG)


def test_pipeline_double_threshold_levels():
    _, _, _, _, dt, _ = _canny(_square_image())
    assert set(np.unique(dt.data).tolist()) <= {0.0, WEAK, STRONG}
    assert (dt.data == STRONG).any()


def test_pipeline_edge_tracking_only_strong_edges():
    _, _, _, _, _, edges = _canny(_square_image())
    assert set(np.unique(edges.data).tolist()) <= {0.0, STRONG}
    assert edges[16, 16] == 0.0
    assert edges[0, 0] == 0.0
    assert any(edges[x, 16] == STRONG for x in range(5, 11))
import math

import numpy as np
import pytest

from imgproc.filters import (
    add_image,
    bilateral_filter,
    colorize_sobel,
    compute_2d_gaussian,
    compute_cdf,
    compute_histogram,
    convolve_image,
    convolve_image_fast,
    feature_normalize,
    feature_normalize_total,
    histogram_equalization_hsv,
    histogram_equalization_rgb,
    l1_normalize,
    make_bilateral_filter,
    make_box_filter,
    make_emboss_filter,
    make_gaussian_filter,
    make_gx_filter,
    make_gy_filter,
    make_highpass_filter,
    make_sharpen_filter,
    sobel_image,
    sub_image,
)
from imgproc.image import Image


def _image(array):
    array = np.asarray(array, dtype=np.float32)
    if array.ndim == 2:
        array = array[np.newaxis]
    c, h, w = array.shape
    im = Image(w, h, c)
    im.data[...] = array
    return im


def _random(c, h, w, seed=0):
    return _image(np.random.default_rng(seed).random((c, h, w)))


def test_l1_normalize_makes_channels_sum_to_one():
    im = _random(3, 4, 5)
    l1_normalize(im)
    np.testing.assert_allclose(im.data.sum(axis=(1, 2)), np.ones(3), rtol=1e-5)


def test_box_filter_is_uniform_and_normalised():
    f = make_box_filter(5)
    assert (f.w, f.h, f.c) == (5, 5, 1)
    assert np.all(f.data == f.data[0, 0, 0])
    assert f.data.sum() == pytest.approx(1.0, rel=1e-5)


def test_box_filter_rejects_even_width():
    with pytest.raises(ValueError):
        make_box_filter(4)


def test_box_filter_keeps_constant_image():
    im = _image(np.full((2, 6, 7), 0.3))
    out = convolve_image(im, make_box_filter(3), True)
    np.testing.assert_allclose(out.data, im.data, rtol=1e-5)


def test_convolve_with_offset_kernel_shifts_image():
    im = _random(2, 5, 6, seed=1)
    filt = Image(3, 3, 1)
    filt[2, 1] = 1.0
    out = convolve_image(im, filt, True)
    np.testing.assert_allclose(out.data[:, :, :-1], im.data[:, :, 1:], rtol=1e-6)
    np.testing.assert_allclose(out.data[:, :, -1], im.data[:, :, -1], rtol=1e-6)


def test_convolve_without_preserve_sums_channels():
    im = _random(3, 4, 4, seed=2)
    identity = Image(1, 1, 1)
    identity[0, 0] = 1.0
    out = convolve_image(im, identity, False)
    assert out.c == 1
    np.testing.assert_allclose(out.data[0], im.data.sum(axis=0), rtol=1e-5)


def test_convolve_rejects_multichannel_filter():
    with pytest.raises(ValueError):
        convolve_image(_random(1, 3, 3), Image(3, 3, 2), True)


def test_convolve_rejects_even_filter():
    with pytest.raises(ValueError):
        convolve_image(_random(1, 3, 3), Image(2, 2, 1), True)


def test_fast_convolution_matches_for_symmetric_filter():
    im = _random(3, 7, 6, seed=3)
    f = make_gaussian_filter(1)
    fast = convolve_image_fast(im, f, True)
    slow = convolve_image(im, f, True)
    np.testing.assert_allclose(fast.data, slow.data, atol=1e-5)


def test_fast_convolution_uses_transposed_kernel():
    im = _random(3, 5, 8, seed=4)
    fast = convolve_image_fast(im, make_gx_filter(), False)
    slow = convolve_image(im, make_gy_filter(), False)
    assert fast.c == 1
    np.testing.assert_allclose(fast.data, slow.data, atol=1e-5)


def test_fast_convolution_needs_three_channels():
    with pytest.raises(ValueError):
        convolve_image_fast(_random(1, 4, 4), make_box_filter(3), True)


def test_fixed_filters():
    hp = make_highpass_filter()
    assert hp[1, 1] == 4
    assert hp.data.sum() == pytest.approx(0.0)
    assert make_sharpen_filter().data.sum() == pytest.approx(1.0)
    emboss = make_emboss_filter()
    assert emboss[0, 0] == -2
    assert emboss[2, 2] == 2
    assert emboss[1, 1] == 1


def test_gradient_filters():
    expected = np.array([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]]) / 8
    np.testing.assert_allclose(make_gx_filter().data[0], expected)
    np.testing.assert_allclose(make_gy_filter().data[0], expected.T)


def test_2d_gaussian_is_symmetric_and_peaks_at_origin():
    assert compute_2d_gaussian(1, 2, 1.5) == pytest.approx(compute_2d_gaussian(2, -1, 1.5))
    assert compute_2d_gaussian(0, 0, 1.5) > compute_2d_gaussian(1, 0, 1.5)


def test_gaussian_filter_shape_and_normalisation():
    f = make_gaussian_filter(1)
    assert (f.w, f.h) == (7, 7)
    assert f.data.sum() == pytest.approx(1.0, rel=1e-5)
    np.testing.assert_allclose(f.data[0], f.data[0].T, rtol=1e-6)
    assert f.data.max() == f[3, 3]


def test_gaussian_filter_rejects_non_positive_sigma():
    with pytest.raises(ValueError):
        make_gaussian_filter(0)


def test_add_and_sub_round_trip():
    a = _random(3, 4, 5, seed=5)
    b = _random(3, 4, 5, seed=6)
    np.testing.assert_allclose(sub_image(add_image(a, b), b).data, a.data, atol=1e-6)


def test_add_rejects_mismatched_sizes():
    with pytest.raises(ValueError):
        add_image(Image(2, 2, 1), Image(3, 2, 1))


def test_feature_normalize_spans_unit_range():
    im = _image(np.random.default_rng(7).random((1, 5, 5)) * 4 - 2)
    feature_normalize(im)
    assert im.data.min() == pytest.approx(0.0)
    assert im.data.max() == pytest.approx(1.0)


def test_feature_normalize_leaves_constant_image():
    im = _image(np.full((1, 3, 3), 0.7))
    feature_normalize(im)
    np.testing.assert_allclose(im.data, 0.7, rtol=1e-6)


def test_feature_normalize_errors():
    with pytest.raises(ValueError):
        feature_normalize(Image(3, 3, 2))
    with pytest.raises(ValueError):
        feature_normalize(Image(0, 3, 1))


def test_feature_normalize_total_uses_all_channels():
    data = np.zeros((2, 2, 2), dtype=np.float32)
    data[0] = 2.0
    data[1] = 4.0
    data[1, 0, 0] = 6.0
    im = _image(data)
    feature_normalize_total(im)
    assert im.data.min() == pytest.approx(0.0)
    assert im.data.max() == pytest.approx(1.0)
    assert np.all(im.data[0] == 0)


def test_sobel_of_constant_image_is_zero():
    mag, _ = sobel_image(_image(np.full((1, 4, 5), 0.5)))
    np.testing.assert_allclose(mag.data, 0.0, atol=1e-7)


def test_sobel_direction_of_ramps():
    horizontal = _image(np.tile(np.arange(6, dtype=np.float32) * 0.1, (4, 1)))
    mag, theta = sobel_image(horizontal)
    np.testing.assert_allclose(theta.data, 0.0, atol=1e-6)
    assert np.all(mag.data > 0)
    vertical = _image(horizontal.data[0].T.copy())
    _, theta_v = sobel_image(vertical)
    np.testing.assert_allclose(theta_v.data, math.pi / 2, rtol=1e-6)


def test_colorize_sobel_output():
    im = _random(3, 8, 9, seed=8)
    out = colorize_sobel(im)
    assert (out.w, out.h, out.c) == (9, 8, 3)
    assert out.data.min() >= -1e-6
    assert out.data.max() <= 1 + 1e-6
    flat = colorize_sobel(_image(np.full((3, 6, 6), 0.4)))
    np.testing.assert_allclose(flat.data, 0.0, atol=1e-6)


def test_bilateral_kernel_on_constant_image_is_spatial_kernel():
    im = _image(np.full((1, 6, 6), 0.5))
    sgf = make_gaussian_filter(1)
    bf = make_bilateral_filter(im, sgf, 2, 3, 0, 0.2)
    np.testing.assert_allclose(bf.data, sgf.data, rtol=1e-5)


def test_bilateral_kernel_is_normalised():
    im = _random(2, 6, 6, seed=9)
    bf = make_bilateral_filter(im, make_gaussian_filter(1), 0, 5, 1, 0.1)
    assert bf.data.sum() == pytest.approx(1.0, rel=1e-5)


def test_bilateral_filter_keeps_constant_image():
    im = _image(np.full((2, 5, 5), 0.25))
    out = bilateral_filter(im, 1, 0.1)
    np.testing.assert_allclose(out.data, im.data, rtol=1e-5)


def test_bilateral_filter_stays_within_input_range():
    im = _random(3, 7, 6, seed=10)
    out = bilateral_filter(im, 1, 0.2)
    for ch in range(3):
        assert out.data[ch].min() >= im.data[ch].min() - 1e-6
        assert out.data[ch].max() <= im.data[ch].max() + 1e-6


def test_bilateral_with_wide_range_matches_gaussian_blur():
    im = _random(2, 6, 7, seed=11)
    out = bilateral_filter(im, 1, 1e6)
    blur = convolve_image(im, make_gaussian_filter(1), True)
    np.testing.assert_allclose(out.data, blur.data, atol=1e-5)


def test_histogram_sums_to_one_and_places_extremes():
    im = _random(1, 6, 6, seed=12)
    hist = compute_histogram(im, 0, 10)
    assert hist.sum() == pytest.approx(1.0, rel=1e-5)
    zeros = compute_histogram(Image(3, 3, 1), 0, 8)
    assert zeros[0] == pytest.approx(1.0)
    ones = compute_histogram(_image(np.ones((1, 3, 3))), 0, 8)
    assert ones[-1] == pytest.approx(1.0)


def test_histogram_rejects_out_of_range_values():
    with pytest.raises(ValueError):
        compute_histogram(_image(np.full((1, 2, 2), 1.5)), 0, 4)
    with pytest.raises(IndexError):
        compute_histogram(Image(2, 2, 1), 1, 4)


def test_cdf_is_running_total():
    hist = compute_histogram(_random(1, 5, 5, seed=13), 0, 6)
    cdf = compute_cdf(hist)
    assert cdf[0] == hist[0]
    assert np.all(np.diff(cdf) >= 0)
    assert cdf[-1] == pytest.approx(1.0, rel=1e-5)


def test_cdf_rejects_empty_histogram():
    with pytest.raises(ValueError):
        compute_cdf([])


def test_rgb_equalization_preserves_order():
    im = _random(3, 6, 6, seed=14)
    out = histogram_equalization_rgb(im, 16)
    assert out.data.shape == im.data.shape
    for ch in range(3):
        order = np.argsort(im.data[ch].ravel())
        assert np.all(np.diff(out.data[ch].ravel()[order]) >= 0)
        assert out.data[ch].max() == pytest.approx(1.0, rel=1e-5)


def test_hsv_equalization_keeps_gray_gray():
    gray = np.random.default_rng(15).random((5, 5))
    im = _image(np.stack([gray, gray, gray]))
    out = histogram_equalization_hsv(im, 16)
    np.testing.assert_allclose(out.data[0], out.data[1], atol=1e-6)
    np.testing.assert_allclose(out.data[1], out.data[2], atol=1e-6)
    assert out.data.max() == pytest.approx(1.0, rel=1e-5)
    order = np.argsort(gray.ravel())
    assert np.all(np.diff(out.data[0].ravel()[order]) >= -1e-7)


def test_hsv_equalization_needs_rgb():
    with pytest.raises(ValueError):
        histogram_equalization_hsv(Image(3, 3, 1), 8)
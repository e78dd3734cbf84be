# imgproc

`imgproc` is a small image processing library. It works on planar float32
images, and the values in each channel normally lie in `[0, 1]`.

## Modules

- `imgproc.image`: the `Image` type. It stores its pixels as a `(c, h, w)`
  numpy array and addresses them as `im[x, y, ch]`, or as `im[x, y]` for
  single-channel images. It provides:
  - `clamped_pixel` and `set_pixel` for clamped and bounds-checked pixel access;
  - `get_channel` and `set_channel` for working with single channels;
  - `+` and `-` for adding and subtracting images;
  - `load_image`, which loads a picture with Pillow, scales it to `[0, 1]` and
    drops any alpha channel;
  - `save_png` and `save_image`, which write `<name>.png` and `<name>.jpg`;
  - `save_binary` and `load_binary` for a raw `w, h, c` + float32 format.

  The module also holds the helpers `within_eps`, `same_image` (compares
  images within 0.005) and `timed`, a context manager that prints the time a
  block took.
- `imgproc.color`: `rgb_to_grayscale`, `grayscale_to_rgb`, `rgb_to_hsv`,
  `hsv_to_rgb` and the in-place adjustments `shift_image`, `scale_image` and
  `clamp_image`.
- `imgproc.filters`: convolution with clamped borders (`convolve_image`,
  `convolve_image_fast`) and the kernels that go with it: box, Gaussian,
  high-pass, sharpen, emboss and the Sobel kernels scaled by 1/8. It also has
  `sobel_image`, `colorize_sobel`, `feature_normalize`, `bilateral_filter`,
  and `compute_histogram`, `compute_cdf`, `histogram_equalization_rgb` and
  `histogram_equalization_hsv`.
- `imgproc.edges`: a Canny pipeline for single-channel images, made of
  `smooth_image`, `compute_gradient`, `non_maximum_suppression`,
  `double_thresholding` and `edge_tracking`.
- `imgproc.matrix`: a dense double `Matrix` type.
  - It supports `+`, `-`, `@` and scalar `*` and `/`, and has `inverse`
    (raises `SingularMatrixError` for singular matrices), `transpose`, `exp`,
    `get_row` and `format`.
  - It can build identity matrices, homographies and augmented matrices.
  - The module provides `in_place_lup`, `lup_solve`, `sle_solve`,
    `solve_system` (least squares by the normal equations), `random_matrix`,
    and the small `Matrix2x2` and `Vector2` types.
- `imgproc.features.feature_filters`: a second filter set.
  - Its `convolve_image` takes rectangular kernels of any size.
  - It uses unscaled Sobel kernels and a Gaussian `ceil(6*sigma)` wide.
  - Its `feature_normalize` works channel by channel.
- `imgproc.features.canny`: a Canny variant that takes RGB input and
  processes interior pixels only: `smooth_image`, `compute_gradient`,
  `non_maximum_supp`, `double_thresholding` and `edge_tracking`.
- `imgproc.features.harris`: Harris corner detection. It has
  `structure_matrix`, `cornerness_response` (with a `CornerMethod`),
  `nms_image`, `detect_corners`, `harris_corner_detector`,
  `detect_and_draw_corners`, and patch `Descriptor`s built by
  `describe_index`.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Example: Canny edges

```python
from imgproc.image import Image
from imgproc.color import rgb_to_grayscale
from imgproc.edges import (
    smooth_image, compute_gradient, non_maximum_suppression,
    double_thresholding, edge_tracking,
)

im = rgb_to_grayscale(Image.load_image("photo.jpg"))
im = smooth_image(im, 1.4)
mag, direction = compute_gradient(im)
nms = non_maximum_suppression(mag, direction)
dt = double_thresholding(nms, 0.03, 0.17, 1.0, 0.25)
edges = edge_tracking(dt, 0.25, 1.0)
edges.save_png("edges")  # writes edges.png
```

## Example: Harris corners

```python
from imgproc.image import Image
from imgproc.features.harris import detect_and_draw_corners, CornerMethod

im = Image.load_image("scene.png")
marked = detect_and_draw_corners(im, 2.0, 0.4, 7, 3, CornerMethod.DET_OVER_TRACE)
marked.save_png("corners")
```

## Example: matrices

```python
from imgproc.matrix import Matrix, solve_system

m = Matrix.identity(3, 3) * 2.0
inv = m.inverse()
product = m @ inv

b = Matrix(3, 1)
b[0] = 1.0
x = solve_system(m, b)
```

## What it does not do

- It is a library only. There is no command-line tool and no interactive
  viewer.
- Harris descriptors are produced, but the package does not match them
  between images, estimate homographies with RANSAC or stitch panoramas.
- There is no LCH colour conversion.
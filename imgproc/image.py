"""Planar floating-point image container, file I/O and comparison helpers."""

from __future__ import annotations

import contextlib
import logging
import operator
import struct
import time
from pathlib import Path
from typing import Iterator

import numpy as np
from PIL import Image as PILImage

TEST_EPS = 0.005

_HEADER = struct.Struct("<iii")
_FLOAT = np.dtype("<f4")
_log = logging.getLogger(__name__)

_TIME_UNITS = {1: ("ms", 1e6), 2: ("us", 1e3), 3: ("ns", 1.0)}
_MODE_BY_CHANNELS = {1: "L", 2: "LA", 3: "RGB", 4: "RGBA"}
_JPEG_MODE = {"L": "L", "LA": "L", "RGB": "RGB", "RGBA": "RGB"}


class Image:
    """An image of ``w`` x ``h`` pixels with ``c`` float channels.

    Pixels are stored channel by channel in ``data``, a float32 array of
    shape ``(c, h, w)``. Pixels are addressed as ``im[x, y, ch]``, or as
    ``im[x, y]`` for single-channel images.
    """

    __slots__ = ("data",)

    def __init__(self, w: int = 0, h: int = 0, c: int = 1) -> None:
        if w < 0 or h < 0 or c < 0:
            raise ValueError("Invalid image sizes")
        self.data = np.zeros((c, h, w), dtype=np.float32)

    @classmethod
    def _wrap(cls, array: np.ndarray) -> "Image":
        im = cls.__new__(cls)
        im.data = np.ascontiguousarray(array, dtype=np.float32)
        return im

    @property
    def w(self) -> int:
        return self.data.shape[2]

    @property
    def h(self) -> int:
        return self.data.shape[1]

    @property
    def c(self) -> int:
        return self.data.shape[0]

    def __repr__(self) -> str:
        return f"Image(w={self.w}, h={self.h}, c={self.c})"

    def _index(self, key) -> tuple[int, int, int]:
        if not isinstance(key, tuple):
            raise TypeError("pixel key must be (x, y) or (x, y, ch)")
        if len(key) == 2:
            if self.c != 1:
                raise IndexError("(x, y) access needs a single-channel image")
            x, y = key
            ch = 0
        elif len(key) == 3:
            x, y, ch = key
        else:
            raise TypeError("pixel key must be (x, y) or (x, y, ch)")
        x, y, ch = operator.index(x), operator.index(y), operator.index(ch)
        if not (0 <= ch < self.c and 0 <= x < self.w and 0 <= y < self.h):
            raise IndexError("access out of bounds")
        return ch, y, x

    def __getitem__(self, key) -> float:
        return float(self.data[self._index(key)])

    def __setitem__(self, key, value: float) -> None:
        self.data[self._index(key)] = value

    def _check_same_shape(self, other: "Image") -> None:
        if self.data.shape != other.data.shape:
            raise ValueError("images must have the same size")

    def __add__(self, other: "Image") -> "Image":
        if not isinstance(other, Image):
            return NotImplemented
        self._check_same_shape(other)
        return Image._wrap(self.data + other.data)

    def __sub__(self, other: "Image") -> "Image":
        if not isinstance(other, Image):
            return NotImplemented
        self._check_same_shape(other)
        return Image._wrap(self.data - other.data)

    def copy(self) -> "Image":
        """Return an independent copy."""
        return Image._wrap(self.data.copy())

    def _check_channel(self, ch: int) -> None:
        if not 0 <= ch < self.c:
            raise IndexError(f"channel {ch} out of range for {self.c} channels")

    def clamped_pixel(self, x: int, y: int, ch: int | None = None) -> float:
        """Return the pixel at (x, y), with coordinates clamped to the image."""
        if ch is None:
            if self.c != 1:
                raise IndexError("channel required for multi-channel image")
            ch = 0
        self._check_channel(ch)
        x = min(max(x, 0), self.w - 1)
        y = min(max(y, 0), self.h - 1)
        return float(self.data[ch, y, x])

    def set_pixel(self, x: int, y: int, ch: int, v: float) -> None:
        """Set a pixel; coordinates outside the image are ignored."""
        self._check_channel(ch)
        if 0 <= x < self.w and 0 <= y < self.h:
            self.data[ch, y, x] = v

    def contains(self, x: float, y: float) -> bool:
        return -0.5 < x < self.w - 0.5 and -0.5 < y < self.h - 0.5

    def is_empty(self, x: int, y: int) -> bool:
        """True when every channel of pixel (x, y) is zero."""
        if not (0 <= x < self.w and 0 <= y < self.h):
            raise IndexError("access out of bounds")
        return not self.data[:, y, x].any()

    def is_nonempty_patch(self, x: int, y: int, w: int = 0) -> bool:
        """True when no pixel of the (2w+1)-square around (x, y) is empty."""
        for q1 in range(x - w, x + w + 1):
            for q2 in range(y - w, y + w + 1):
                if not any(self.clamped_pixel(q1, q2, ch) for ch in range(self.c)):
                    return False
        return True

    def size(self) -> int:
        return self.w * self.h * self.c

    def clear(self) -> None:
        self.data.fill(0.0)

    def get_channel(self, ch: int) -> "Image":
        """Return a copy of one channel as a single-channel image."""
        self._check_channel(ch)
        return Image._wrap(self.data[ch : ch + 1].copy())

    def set_channel(self, ch: int, im: "Image") -> None:
        """Overwrite channel ``ch`` with the single-channel image ``im``."""
        self._check_channel(ch)
        if im.c != 1 or im.w != self.w or im.h != self.h:
            raise ValueError("expected a single-channel image of the same size")
        self.data[ch] = im.data[0]

    def abs(self) -> "Image":
        return Image._wrap(np.abs(self.data))

    def save_binary(self, filename: str | Path) -> None:
        """Write the raw header (w, h, c) and float data to ``filename``."""
        with open(filename, "wb") as fh:
            fh.write(_HEADER.pack(self.w, self.h, self.c))
            fh.write(self.data.astype(_FLOAT).tobytes())

    @classmethod
    def load_binary(cls, filename: str | Path) -> "Image":
        """Read an image written by :meth:`save_binary`."""
        with open(filename, "rb") as fh:
            header = fh.read(_HEADER.size)
            if len(header) != _HEADER.size:
                raise ValueError(f"{filename}: truncated header")
            w, h, c = _HEADER.unpack(header)
            if w < 0 or h < 0 or c < 0:
                raise ValueError(f"{filename}: invalid image sizes")
            count = w * h * c
            payload = fh.read(count * _FLOAT.itemsize)
        if len(payload) != count * _FLOAT.itemsize:
            raise ValueError(f"{filename}: truncated pixel data")
        values = np.frombuffer(payload, dtype=_FLOAT).reshape((c, h, w))
        return cls._wrap(values.astype(np.float32))

    @classmethod
    def load_image(cls, filename: str | Path) -> "Image":
        """Load a picture file; values are scaled to [0, 1], alpha is dropped."""
        try:
            with PILImage.open(filename) as pil:
                pil = _normalise_mode(pil)
                pixels = np.asarray(pil, dtype=np.uint8)
        except OSError as exc:
            raise OSError(f'Cannot load image "{filename}": {exc}') from exc
        if pixels.ndim == 2:
            pixels = pixels[:, :, np.newaxis]
        if pixels.shape[2] == 4:
            pixels = pixels[:, :, :3]
        return cls._wrap(pixels.transpose(2, 0, 1).astype(np.float32) / 255.0)

    def _to_pil(self) -> PILImage.Image:
        mode = _MODE_BY_CHANNELS.get(self.c)
        if mode is None:
            raise ValueError(f"cannot save an image with {self.c} channels")
        if self.w == 0 or self.h == 0:
            raise ValueError("cannot save an empty image")
        scaled = np.floor(np.nan_to_num(self.data) * 255.0 + 0.5)
        pixels = np.clip(scaled, 0, 255).astype(np.uint8).transpose(1, 2, 0)
        if self.c == 1:
            pixels = pixels[:, :, 0]
        return PILImage.fromarray(np.ascontiguousarray(pixels), mode=mode)

    def save_png(self, name: str | Path) -> Path:
        """Save as ``<name>.png`` and return the path written."""
        path = Path(f"{name}.png")
        self._to_pil().save(path, format="PNG")
        return path

    def save_image(self, name: str | Path) -> Path:
        """Save as ``<name>.jpg`` at full quality and return the path written."""
        path = Path(f"{name}.jpg")
        pil = self._to_pil()
        pil.convert(_JPEG_MODE[pil.mode]).save(path, format="JPEG", quality=100)
        return path


def _normalise_mode(pil: PILImage.Image) -> PILImage.Image:
    if pil.mode in _JPEG_MODE:
        return pil
    if pil.mode in ("1", "I", "I;16", "F"):
        return pil.convert("L")
    if pil.mode == "PA" or (pil.mode == "P" and "transparency" in pil.info):
        return pil.convert("RGBA")
    return pil.convert("RGB")


def within_eps(a: float, b: float) -> bool:
    """True when ``b`` lies strictly within TEST_EPS of ``a``."""
    return a - TEST_EPS < b < a + TEST_EPS


def same_image(a: Image, b: Image) -> bool:
    """Compare two images pixel by pixel within TEST_EPS; ``b`` is the reference."""
    if a.data.shape != b.data.shape:
        _log.info(
            "Expected %d x %d x %d image, got %d x %d x %d",
            b.w, b.h, b.c, a.w, a.h, a.c,
        )
        return False
    close = (a.data - TEST_EPS < b.data) & (b.data < a.data + TEST_EPS)
    if close.all():
        return True
    ch, y, x = (int(i) for i in np.argwhere(~close)[0])
    _log.info(
        "The value at %d %d %d should be %f, but it is %f",
        x, y, ch, b.data[ch, y, x], a.data[ch, y, x],
    )
    return False


@contextlib.contextmanager
def timed(label: str = "", level: int = 1) -> Iterator[None]:
    """Print the wall time spent in the block: level 1 ms, 2 us, 3 ns."""
    start = time.perf_counter_ns()
    try:
        yield
    finally:
        unit = _TIME_UNITS.get(level)
        if unit is not None:
            name, divisor = unit
            elapsed = (time.perf_counter_ns() - start) / divisor
            print(f"{label:>30} :  {elapsed:f} {name}")
"""Dense double-precision matrices, linear solvers and small 2-D helpers."""

from __future__ import annotations

import numbers
import operator
import random
from dataclasses import dataclass
from typing import Iterator

import numpy as np

_default_rng = random.Random()


class SingularMatrixError(ValueError):
    """Raised when a matrix cannot be inverted or factorised."""


class Matrix:
    """A ``rows`` x ``cols`` matrix of doubles stored in ``data``.

    Elements are addressed as ``m[i, j]``; row and column vectors also
    accept a single flat index ``m[n]``.
    """

    __slots__ = ("data",)

    def __init__(self, rows: int = 0, cols: int = 1) -> None:
        if rows < 0 or cols < 0:
            raise ValueError("Invalid matrix sizes")
        self.data = np.zeros((rows, cols), dtype=np.float64)

    @classmethod
    def _wrap(cls, array: np.ndarray) -> "Matrix":
        m = cls.__new__(cls)
        m.data = np.array(array, dtype=np.float64)
        return m

    @property
    def rows(self) -> int:
        return self.data.shape[0]

    @property
    def cols(self) -> int:
        return self.data.shape[1]

    def __repr__(self) -> str:
        return f"Matrix(rows={self.rows}, cols={self.cols})"

    def __str__(self) -> str:
        return self.format()

    def _index(self, key):
        if isinstance(key, tuple):
            if len(key) != 2:
                raise TypeError("matrix key must be (row, col) or a flat index")
            i, j = operator.index(key[0]), operator.index(key[1])
            if not (0 <= i < self.rows and 0 <= j < self.cols):
                raise IndexError("matrix access out of bounds")
            return i, j
        if self.rows != 1 and self.cols != 1:
            raise IndexError("flat access needs a row or column vector")
        n = operator.index(key)
        if not 0 <= n < self.rows * self.cols:
            raise IndexError("vector access out of bounds")
        return (n, 0) if self.cols == 1 else (0, n)

    def __getitem__(self, key) -> float:
        return float(self.data[self._index(key)])

    def __setitem__(self, key, value: float) -> None:
        self.data[self._index(key)] = value

    def __iter__(self) -> Iterator[float]:
        return iter(self.data.ravel().tolist())

    def _check_same_shape(self, other: "Matrix") -> None:
        if self.data.shape != other.data.shape:
            raise ValueError("matrices must have the same shape")

    def __neg__(self) -> "Matrix":
        return Matrix._wrap(-self.data)

    def __pos__(self) -> "Matrix":
        return Matrix._wrap(self.data)

    def __add__(self, other: "Matrix") -> "Matrix":
        if not isinstance(other, Matrix):
            return NotImplemented
        self._check_same_shape(other)
        return Matrix._wrap(self.data + other.data)

    def __sub__(self, other: "Matrix") -> "Matrix":
        if not isinstance(other, Matrix):
            return NotImplemented
        self._check_same_shape(other)
        return Matrix._wrap(self.data - other.data)

    def __matmul__(self, other: "Matrix") -> "Matrix":
        if not isinstance(other, Matrix):
            return NotImplemented
        if self.cols != other.rows:
            raise ValueError("inner dimensions do not agree")
        return Matrix._wrap(self.data @ other.data)

    def __mul__(self, scale: float) -> "Matrix":
        if not isinstance(scale, numbers.Real):
            return NotImplemented
        return Matrix._wrap(self.data * float(scale))

    def __rmul__(self, scale: float) -> "Matrix":
        return self.__mul__(scale)

    def __truediv__(self, scale: float) -> "Matrix":
        if not isinstance(scale, numbers.Real):
            return NotImplemented
        with np.errstate(divide="ignore", invalid="ignore"):
            return Matrix._wrap(self.data / float(scale))

    def __rtruediv__(self, scale: float) -> "Matrix":
        if not isinstance(scale, numbers.Real):
            return NotImplemented
        with np.errstate(divide="ignore", invalid="ignore"):
            return Matrix._wrap(float(scale) / self.data)

    @classmethod
    def identity_homography(cls) -> "Matrix":
        return cls.identity(3, 3)

    @classmethod
    def translation_homography(cls, dx: float, dy: float) -> "Matrix":
        h = cls.identity_homography()
        h[0, 2] = dx
        h[1, 2] = dy
        return h

    @classmethod
    def augment(cls, m: "Matrix") -> "Matrix":
        """Return ``[m | I]`` with twice the columns of ``m``."""
        out = cls(m.rows, m.cols * 2)
        out.data[:, : m.cols] = m.data
        out.data[:, m.cols :] = np.eye(m.rows, m.cols)
        return out

    @classmethod
    def identity(cls, rows: int, cols: int) -> "Matrix":
        return cls._wrap(np.eye(rows, cols))

    def format(self, max_rows: int = -1, max_cols: int = -1) -> str:
        """Render the matrix (or its top-left corner) as a boxed table."""
        max_rows = self.rows if max_rows <= 0 else min(self.rows, max_rows)
        max_cols = self.cols if max_cols <= 0 else min(self.cols, max_cols)
        rule = "_" * (16 * max_cols - 1)
        lines = [f" __{rule}__ "]
        for row in self.data[:max_rows, :max_cols]:
            cells = "".join(f"{value:15.7f} " for value in row)
            lines.append(f"|  {cells} |")
        lines.append(f"|__{rule}__|")
        return "\n".join(lines) + "\n"

    def inverse(self) -> "Matrix":
        """Invert by Gauss-Jordan elimination with partial pivoting."""
        if self.rows != self.cols:
            raise ValueError("Matrix not square")
        n = self.rows
        c = Matrix.augment(self).data
        for k in range(n):
            column = np.abs(c[k:, k])
            if column.size == 0 or not column.max() > 0:
                raise SingularMatrixError("Can't invert. Matrix is singular")
            index = k + int(np.argmax(column))
            c[[k, index]] = c[[index, k]]
            c[k, k + 1 :] /= c[k, k]
            c[k, k] = 1.0
            c[k + 1 :, k + 1 :] -= np.outer(c[k + 1 :, k], c[k, k + 1 :])
            c[k + 1 :, k] = 0.0
        for k in range(n - 1, 0, -1):
            c[:k, k + 1 :] -= np.outer(c[:k, k], c[k, k + 1 :])
            c[:k, k] = 0.0
        return Matrix._wrap(c[:, n:])

    def transpose(self) -> "Matrix":
        return Matrix._wrap(self.data.T)

    def exp(self) -> "Matrix":
        """Element-wise exponential."""
        return Matrix._wrap(np.exp(self.data))

    def get_row(self, i: int) -> "Matrix":
        if not 0 <= i < self.rows:
            raise IndexError("row out of range")
        return Matrix._wrap(self.data[i : i + 1])


def elementwise_divide(a: Matrix, b: Matrix) -> Matrix:
    a._check_same_shape(b)
    with np.errstate(divide="ignore", invalid="ignore"):
        return Matrix._wrap(a.data / b.data)


def elementwise_multiply(a: Matrix, b: Matrix) -> Matrix:
    a._check_same_shape(b)
    return Matrix._wrap(a.data * b.data)


def _as_vector(m: Matrix, name: str) -> np.ndarray:
    if m.rows != 1 and m.cols != 1:
        raise ValueError(f"{name} must be a row or column vector")
    return m.data.ravel()


def lup_solve(lower: Matrix, upper: Matrix, pivot: Matrix, b: Matrix) -> Matrix:
    """Solve ``A x = b`` given ``P A = L U``; ``lower`` has an implied unit diagonal."""
    n = lower.rows
    bv = _as_vector(b, "b")
    order = _as_vector(pivot, "pivot").astype(np.intp)
    c = np.zeros(n, dtype=np.float64)
    for i in range(n):
        c[i] = bv[order[i]] - lower.data[i, :i] @ c[:i]
    for i in range(upper.rows - 1, -1, -1):
        c[i] -= upper.data[i, i + 1 : upper.cols] @ c[i + 1 : upper.cols]
        c[i] /= upper.data[i, i]
    return Matrix._wrap(c[:, np.newaxis])


def in_place_lup(m: Matrix) -> Matrix:
    """Factorise ``m`` in place into L (below the diagonal) and U; return the pivot."""
    if m.rows != m.cols:
        raise ValueError("Matrix not square")
    n = m.rows
    a = m.data
    pivot = Matrix(n)
    pivot.data[:, 0] = np.arange(n)
    for k in range(n):
        column = np.abs(a[k:, k])
        if not column.max() > 0:
            raise SingularMatrixError("Can't factorise. Matrix is singular")
        index = k + int(np.argmax(column))
        pivot.data[[k, index]] = pivot.data[[index, k]]
        a[[k, index]] = a[[index, k]]
        a[k + 1 :, k] /= a[k, k]
        a[k + 1 :, k + 1 :] -= np.outer(a[k + 1 :, k], a[k, k + 1 :])
    return pivot


def random_matrix(
    rows: int, cols: int, rng: random.Random | None = None
) -> Matrix:
    """Return a matrix of values drawn uniformly from {-1, -0.998, ..., 1}."""
    rng = rng or _default_rng
    m = Matrix(rows, cols)
    values = [(rng.randrange(1001) - 500) / 500.0 for _ in range(rows * cols)]
    if values:
        m.data[...] = np.array(values).reshape(rows, cols)
    return m


def sle_solve(a: Matrix, b: Matrix) -> Matrix:
    """Solve the square system ``a x = b`` by LUP decomposition."""
    lu = Matrix._wrap(a.data)
    pivot = in_place_lup(lu)
    return lup_solve(lu, lu, pivot, b)


def solve_system(m: Matrix, b: Matrix) -> Matrix:
    """Return the least-squares solution of ``m x = b`` via the normal equations."""
    mt = m.transpose()
    pseudo_inverse = (mt @ m).inverse() @ mt
    return pseudo_inverse @ b


@dataclass(frozen=True)
class Vector2:
    a: float = 0.0
    b: float = 0.0

    def __mul__(self, s: float) -> "Vector2":
        if not isinstance(s, numbers.Real):
            return NotImplemented
        return Vector2(self.a * s, self.b * s)

    def __rmul__(self, s: float) -> "Vector2":
        return self.__mul__(s)

    def __truediv__(self, s: float) -> "Vector2":
        if not isinstance(s, numbers.Real):
            return NotImplemented
        return Vector2(self.a / s, self.b / s)


@dataclass(frozen=True)
class Matrix2x2:
    """The 2x2 matrix ``[[a, b], [c, d]]``."""

    a: float = 0.0
    b: float = 0.0
    c: float = 0.0
    d: float = 0.0

    def inverse(self) -> "Matrix2x2":
        det = self.a * self.d - self.b * self.c
        if det == 0:
            raise SingularMatrixError("Can't invert. Matrix is singular")
        return Matrix2x2(self.d / det, -self.b / det, -self.c / det, self.a / det)

    def __mul__(self, other):
        if isinstance(other, Vector2):
            return Vector2(
                self.a * other.a + self.b * other.b,
                self.c * other.a + self.d * other.b,
            )
        if isinstance(other, numbers.Real):
            return Matrix2x2(self.a * other, self.b * other, self.c * other, self.d * other)
        return NotImplemented

    def __rmul__(self, s: float) -> "Matrix2x2":
        if not isinstance(s, numbers.Real):
            return NotImplemented
        return self.__mul__(s)

    def __truediv__(self, s: float) -> "Matrix2x2":
        if not isinstance(s, numbers.Real):
            return NotImplemented
        return Matrix2x2(self.a / s, self.b / s, self.c / s, self.d / s)
"""Image processing: planar float images, colour conversion, filtering, Canny edges, matrices and Harris corners."""

__version__ = "0.1.0"
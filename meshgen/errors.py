# meshgen/errors.py

"""Exception types raised by the terrain field and its rasterizers."""


class MeshgenError(Exception):
    """Base class for every error raised by meshgen."""


class InvalidArgumentError(MeshgenError, ValueError):
    """A configuration value or output buffer was rejected before any write."""


class SizeOverflowError(MeshgenError, OverflowError):
    """Requested dimensions would not fit a 32-bit signed buffer length."""


class ComputationPanicError(MeshgenError, ArithmeticError):
    """A fill produced a non-finite value. Output buffers were not modified."""

"""
Exceptions raised while loading look-up tables and correcting pixels.

Loader failures abort the load; there is no partially loaded state.
Range failures abort the correction call that hit them.
"""

from typing import Optional


class LutError(Exception):
    """Base class for look-up table failures."""

    def __init__(self, message: str, path: Optional[str] = None,
                 dataset: Optional[str] = None):
        super().__init__(message)
        self.path = path
        self.dataset = dataset


class LutReadError(LutError, IOError):
    """A LUT file could not be opened, a dataset is missing or a stream ended early."""


class LutFormatError(LutError, ValueError):
    """A LUT dataset or text line does not have the expected layout."""


class LutIntegrityError(LutFormatError):
    """The transmission angle column disagrees with the derived sun-angle axis."""


class LutAllocationError(LutError, MemoryError):
    """A table buffer could not be allocated."""

    def __init__(self, buffer: str):
        super().__init__(f"Error allocating memory for {buffer}")
        self.buffer = buffer


class ZenithAngleError(ValueError):
    """A zenith angle falls outside the angular range of the tables."""

    def __init__(self, message: str, value: float):
        super().__init__(message)
        self.value = value

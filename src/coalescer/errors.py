# src/coalescer/errors.py
"""Domain errors for the coalescing buffer."""


class InvalidConfiguration(ValueError):
    """Raised when a buffer is given a delay it cannot schedule with.

    The delay must be a real, finite, non-negative number of milliseconds.
    The buffer keeps its previous delay when this is raised.
    """

    pass

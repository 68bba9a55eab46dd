"""Exceptions raised by the generation pipeline."""


class MapGenerationError(Exception):
    """Base class for world generation errors."""


class InvariantViolationError(MapGenerationError):
    """A generated layer broke one of its structural guarantees.

    Raised for drainage cycles, non-descending drainage pointers and land
    cells left without a kingdom. These indicate logic bugs, not bad input.
    """

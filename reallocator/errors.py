"""Exceptions raised by the reallocation planner."""


class ReallocatorError(Exception):
    """Base class for planner errors."""


class DataSourceError(ReallocatorError):
    """An upstream API returned an error or an unusable payload."""

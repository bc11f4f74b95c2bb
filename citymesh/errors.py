"""Exceptions raised by a generation pass."""


class CityMeshError(Exception):
    """Base class for pipeline failures that end a generation pass."""


class ParseFailure(CityMeshError, ValueError):
    """The map document as a whole could not be parsed.

    ``graph`` is the (empty) graph the parse produced, so callers that
    choose to continue get a well-formed, featureless result.
    """

    def __init__(self, message, graph=None):
        super().__init__(message)
        self.graph = graph


class NetworkFailure(CityMeshError, RuntimeError):
    """The map data source failed, including its narrower retry."""

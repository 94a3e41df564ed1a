"""
Error types raised by graph layers and their helpers.

All of them derive from ValueError so callers that already guard
numeric code with ``except ValueError`` keep working.
"""


class GeomFluxError(Exception):
    """Base class for errors raised by geomflux."""


class InvalidGraphError(GeomFluxError, ValueError):
    """Adjacency input is malformed (non-square matrix, out-of-range index)."""


class DegenerateGraphError(GeomFluxError, ValueError):
    """Graph has a node with zero degree where a normalization needs D^(-1/2)."""


class ShapeMismatchError(GeomFluxError, ValueError):
    """Feature or index shapes disagree with a layer's channels or cached matrices."""


class PreconditionError(GeomFluxError, ValueError):
    """A layer was called with input it cannot accept by construction."""

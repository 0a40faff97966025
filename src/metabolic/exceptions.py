"""Exception types raised by the metabolic engine."""

from __future__ import annotations


class MetabolicError(Exception):
    """Base class for errors raised by this package."""


class StoreUnavailableError(MetabolicError):
    """The backing record store could not be reached."""

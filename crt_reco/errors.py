from __future__ import annotations


class CrtRecoError(Exception):
    """Base class for all errors raised by :mod:`crt_reco`."""


class ConfigError(CrtRecoError, ValueError):
    """Invalid or unreadable reconstruction configuration."""


class GeometryError(CrtRecoError):
    """Wire/strip geometry could not be loaded or a channel is unknown."""

"""Recoverable error conditions raised around a sampling cycle."""

from __future__ import annotations


class ProctorError(Exception):
    """Base class for proctoring pipeline errors."""


class ModelNotReady(ProctorError):
    """Detection model has not finished loading; skip the cycle."""


class VideoNotReady(ProctorError):
    """Video source is not producing decodable frames yet; skip the cycle."""


class CaptureDenied(ProctorError):
    """Camera access was refused or the source could not be opened."""

"""Service-layer exceptions.

Routers map these to HTTP status codes; services never import FastAPI.
"""

from __future__ import annotations


class CoursehubError(Exception):
    """Base class for expected, user-facing failures."""


class NotFoundError(CoursehubError):
    pass


class ConflictError(CoursehubError):
    pass


class NotEnrolledError(CoursehubError):
    pass


class InvalidStateError(CoursehubError):
    pass


class ValidationError(CoursehubError):
    pass

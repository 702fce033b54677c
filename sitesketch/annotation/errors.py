"""
Errors raised by the annotation capture pipeline.

All of them are caught at the AnnotationSession boundary and turned into a
single capture_failed signal; none is fatal to the application.
"""


class AnnotationError(Exception):
    """Base class for annotation capture failures."""


class TargetInaccessible(AnnotationError):
    """The preview content cannot be read (not loaded yet or gone)."""


class RasterizationFailure(AnnotationError):
    """The rasterizer raised or returned an unusable image."""


class CompositingFailure(AnnotationError):
    """The composite buffer could not be allocated or drawn."""

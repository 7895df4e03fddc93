"""Error kinds raised by the studio managers.

Every error derives from :class:`StudioError` and from the closest builtin, so
callers can catch either ``NotFoundError`` or plain ``LookupError``.
"""


class StudioError(Exception):
    pass


class NotFoundError(StudioError, LookupError):
    pass


class NameConflictError(StudioError, ValueError):
    pass


class InvalidDurationError(StudioError, ValueError):
    pass


class IndexOutOfRangeError(StudioError, IndexError):
    pass


class NoVideoInitializedError(StudioError, RuntimeError):
    pass


class CannotDeleteActiveError(StudioError, ValueError):
    pass


class CannotDeleteLastError(StudioError, ValueError):
    pass


class GenerationError(StudioError, RuntimeError):
    """A text/image/video provider call failed."""

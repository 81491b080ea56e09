"""
Exceptions raised by the calendar core.

Use cases raise these; the API layer maps them onto HTTP status codes.
"""


class ShareNotFoundError(Exception):
    """Raised when a share cannot be resolved for the caller.

    Unknown, foreign, revoked and expired shares all raise this same
    error so a caller cannot tell them apart.
    """

    pass


class InvalidTimestampError(ValueError):
    """Raised when a timestamp string is not valid RFC3339."""

    pass


class InvalidSinceError(InvalidTimestampError):
    """Raised when a sync ``since`` value is present but unparseable."""

    pass


class InvalidRangeError(ValueError):
    """Raised when a query range is empty, inverted or too long."""

    pass


class CategoryOwnershipError(ValueError):
    """Raised when a share scope references categories the owner lacks."""

    def __init__(self, category_ids):
        self.category_ids = sorted(category_ids)
        super().__init__(
            f"Categories not owned by share owner: {self.category_ids}"
        )

"""
studio/errors.py
----------------
Domain exceptions raised inside services. They never leave a service:
the transaction helper turns them into failed results.
"""


class StudioError(Exception):
    """Base class for expected, user-facing failures."""
    kind = 'error'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StudioError):
    """
    Input rejected before any write.
    `errors` maps field name -> message; the exception message joins them.
    """
    kind = 'validation'

    def __init__(self, errors):
        if isinstance(errors, str):
            errors = {'__all__': errors}
        self.errors = dict(errors)
        super().__init__(' '.join(self.errors.values()))


class NotFoundError(StudioError):
    """Unknown order / customer / product id. Not retryable."""
    kind = 'not_found'


class ConflictError(StudioError):
    """Business rule blocks the operation (dependent rows, ambiguous referrer)."""
    kind = 'conflict'

"""
Error taxonomy shared by the storefront and the back office.

Every error carries the HTTP status it maps to; main.py turns them into
`{"error": message}` responses.
"""


class StoreError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StoreError):
    """Malformed input or a broken business rule (inactive product, short stock)."""

    status_code = 400


class NotFoundError(StoreError):
    status_code = 404


class ConflictError(StoreError):
    """The write would break a uniqueness or reference rule."""

    status_code = 409


class PersistenceError(StoreError):
    """The data store failed. The message is for the server log only."""

    status_code = 500

"""Domain exceptions for IAM bounded context.

These exceptions represent domain-level errors that can occur during
repository operations. They should be caught and handled by the
application layer.
"""


class DuplicateEmailError(Exception):
    """Raised when registering an e-mail address that already has an account.

    This exception indicates that the business rule of globally unique
    e-mail addresses has been violated.
    """

    pass


class UserNotFoundError(Exception):
    """Raised when an operation targets a user that does not exist."""

    pass

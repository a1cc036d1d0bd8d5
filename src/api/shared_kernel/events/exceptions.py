"""Exceptions raised by the domain event infrastructure."""


class HandlerRegistrationError(Exception):
    """Raised when a handler cannot be registered.

    Happens when registering on a frozen registry or registering the
    same handler twice for one event type.
    """

    pass

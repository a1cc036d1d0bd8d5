"""Identity and Access Management bounded context.

Users, their lifecycle events, and the handlers that react to them.
"""

"""Shared Kernel module.

Event and outbox contracts that every bounded context agrees on: the
``DomainEvent`` base with its delivery classification, handler typing, and
the serializer and topic router ports the outbox pipeline is assembled from.
Nothing here depends on a database driver or a message broker.
"""

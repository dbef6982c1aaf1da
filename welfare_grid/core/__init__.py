"""Core infrastructure: configuration, exceptions, tenancy and clients."""

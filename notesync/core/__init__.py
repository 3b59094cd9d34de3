"""Core infrastructure: configuration, logging, errors, utilities."""

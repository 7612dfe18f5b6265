"""Shared building blocks: configuration, secrets resolution, metrics, logging."""

"""Mapping model, synchronization and serialization engine for the data mapper."""

__version__ = "0.1.0"

"""Ember - member directory and RSS timeline aggregator."""

__version__ = "1.0.0"

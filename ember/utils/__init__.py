"""Shared utilities: snapshot caching and logging setup."""

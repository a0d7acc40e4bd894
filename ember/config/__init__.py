"""Environment settings and the members config loader."""

from .members import MembersConfigError, load_members, parse_members
from .settings import Settings, get_settings

__all__ = [
    "MembersConfigError",
    "Settings",
    "get_settings",
    "load_members",
    "parse_members",
]

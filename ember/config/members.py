"""
Members configuration loader.

Reads the declarative config.yaml that lists every member, their tenure,
tags, social accounts and feed sources.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError

from ..models.content import MembersConfig


logger = logging.getLogger(__name__)


class MembersConfigError(Exception):
    """Raised when config.yaml is missing or does not describe a valid member list."""
    pass


def parse_members(data: dict) -> MembersConfig:
    """Validate an already-loaded YAML document."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MembersConfigError("Members config must be a mapping with a 'users' key")

    try:
        return MembersConfig.model_validate(data)
    except ValidationError as e:
        raise MembersConfigError(f"Invalid members config: {e}") from e


def load_members(filepath: Union[str, Path]) -> MembersConfig:
    """Load and validate members from a YAML file"""
    path = Path(filepath)

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise MembersConfigError(f"Members config not found: {path}") from e
    except yaml.YAMLError as e:
        raise MembersConfigError(f"Could not parse {path}: {e}") from e

    members = parse_members(data)
    logger.info(f"Loaded {len(members.users)} users from {path}")
    return members


def load_site_description(filepath: Union[str, Path]) -> Optional[str]:
    """Home page description from config.yaml, or None when it cannot be read."""
    try:
        members = load_members(filepath)
    except MembersConfigError as e:
        logger.warning(f"Site description unavailable: {e}")
        return None
    return members.home.description if members.home else None

"""
Content models for the feed aggregator.
Members come from config.yaml, articles from their RSS/Atom feeds.
"""

import calendar
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


EARLIEST = datetime.min.replace(tzinfo=timezone.utc)
FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)

UNKNOWN_SOURCE = "Unknown Source"


class YearMonth(BaseModel):
    """A calendar month, used for tenure boundaries."""

    year: int = Field(..., ge=1, le=9999)
    month: int = Field(..., ge=1, le=12)

    def as_tuple(self) -> tuple[int, int]:
        return (self.year, self.month)

    def first_instant(self) -> datetime:
        return datetime(self.year, self.month, 1, tzinfo=timezone.utc)

    def last_instant(self) -> datetime:
        last_day = calendar.monthrange(self.year, self.month)[1]
        return datetime(self.year, self.month, last_day, 23, 59, 59, 999999, tzinfo=timezone.utc)


class UserAccounts(BaseModel):
    """Social account handles. Unknown services are kept as extra fields."""

    model_config = ConfigDict(extra="allow")

    x: Optional[str] = None
    github: Optional[str] = None
    speakerdeck: Optional[str] = None


class UserProfile(BaseModel):
    """
    A member of the directory.
    Tenure is a closed month range; no left_at means the member is still active.
    """

    name: str
    full_name_ja: Optional[str] = None
    full_name_en: Optional[str] = None
    description: Optional[str] = None
    avatar: Optional[str] = None

    joined_at: Optional[YearMonth] = Field(
        default=None, validation_alias=AliasChoices("joined_at", "joined")
    )
    left_at: Optional[YearMonth] = None

    tags: list[str] = Field(default_factory=list)
    accounts: Optional[UserAccounts] = None
    sources: list[str] = Field(default_factory=list)

    @field_validator("tags", "sources", mode="before")
    @classmethod
    def _drop_empty(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [item for item in value if item]

    @model_validator(mode="after")
    def _check_tenure(self):
        if self.joined_at and self.left_at and self.joined_at.as_tuple() > self.left_at.as_tuple():
            raise ValueError(f"User {self.name}: joined_at is after left_at")
        return self

    @property
    def is_active(self) -> bool:
        return self.left_at is None

    @property
    def tenure_start(self) -> datetime:
        return self.joined_at.first_instant() if self.joined_at else EARLIEST

    @property
    def tenure_end(self) -> datetime:
        return self.left_at.last_instant() if self.left_at else FAR_FUTURE

    def was_active_at(self, moment: datetime) -> bool:
        """Check whether a timestamp falls inside the tenure window."""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return self.tenure_start <= moment <= self.tenure_end


class HomeSettings(BaseModel):
    description: Optional[str] = None


class MembersConfig(BaseModel):
    """Top-level structure of config.yaml."""

    users: list[UserProfile] = Field(default_factory=list)
    home: Optional[HomeSettings] = None

    @field_validator("users", mode="before")
    @classmethod
    def _users_default(cls, value):
        return value or []

    @model_validator(mode="after")
    def _unique_names(self):
        seen = set()
        for user in self.users:
            if user.name in seen:
                raise ValueError(f"Duplicate user name: {user.name}")
            seen.add(user.name)
        return self


class Article(BaseModel):
    """
    One feed item, tagged with its author's metadata at ingestion time.
    Serialized with camelCase keys to match the snapshot format.
    """

    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    link: Optional[str] = None
    pub_date: datetime = Field(..., alias="pubDate")
    content_snippet: str = Field(default="", alias="contentSnippet")
    site_name: str = Field(default=UNKNOWN_SOURCE, alias="siteName")
    author: str
    author_avatar: Optional[str] = Field(default=None, alias="authorAvatar")
    tags: list[str] = Field(default_factory=list)
    is_during_employment: bool = Field(default=False, alias="isDuringEmployment")

    @field_validator("pub_date", mode="before")
    @classmethod
    def _parse_pub_date(cls, value):
        if not isinstance(value, str):
            return value

        text = value.strip()
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            pass

        # RFC 822 dates as written by RSS feeds; the weekday is optional
        try:
            return parsedate_to_datetime(text)
        except (TypeError, ValueError):
            return value

    @field_validator("pub_date", mode="after")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_snapshot(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    page: int
    per_page: int = Field(..., alias="perPage")
    total_pages: int = Field(..., alias="totalPages")


class ArticlePage(BaseModel):
    """One page of the timeline plus its pagination descriptor."""

    articles: list[Article] = Field(default_factory=list)
    pagination: Pagination

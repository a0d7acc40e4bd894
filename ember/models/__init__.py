"""Data models for members and articles."""

from .content import (
    Article,
    ArticlePage,
    HomeSettings,
    MembersConfig,
    Pagination,
    UserAccounts,
    UserProfile,
    YearMonth,
)

__all__ = [
    "Article",
    "ArticlePage",
    "HomeSettings",
    "MembersConfig",
    "Pagination",
    "UserAccounts",
    "UserProfile",
    "YearMonth",
]

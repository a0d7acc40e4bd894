"""
Timeline queries: filtering and pagination over the aggregate.

Filters never mutate articles; they only select from the sorted aggregate.
"""

import math
from typing import Optional, Union

from ..models.content import Article, ArticlePage, Pagination


DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 12


def _positive_int(value: Union[str, int, None], default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = int(str(value).strip())
    except ValueError:
        return default
    return number if number >= 1 else default


def coerce_page_params(
    page: Union[str, int, None],
    per_page: Union[str, int, None],
) -> tuple[int, int]:
    """
    Parse raw page/perPage query values.
    Missing, malformed or non-positive values fall back to page 1, 12 per page.
    """
    return _positive_int(page, DEFAULT_PAGE), _positive_int(per_page, DEFAULT_PER_PAGE)


def parse_flag(value: Optional[str]) -> bool:
    """Only the literal string "true" enables a flag."""
    return value is not None and value.strip().lower() == "true"


def filter_articles(
    articles: list[Article],
    author: Optional[str] = None,
    tag: Optional[str] = None,
    during_employment_only: bool = False,
) -> list[Article]:
    """
    Apply the author, employment and tag filters.
    The employment filter only applies together with an author filter.
    """
    if author:
        articles = [article for article in articles if article.author == author]
        if during_employment_only:
            articles = [article for article in articles if article.is_during_employment]

    if tag:
        articles = [article for article in articles if tag in article.tags]

    return articles


def paginate_articles(
    articles: list[Article],
    page: int = DEFAULT_PAGE,
    per_page: int = DEFAULT_PER_PAGE,
    author: Optional[str] = None,
    tag: Optional[str] = None,
    during_employment_only: bool = False,
) -> ArticlePage:
    """Filter the aggregate and return one page, clamping the page number into range."""
    if per_page < 1:
        per_page = DEFAULT_PER_PAGE

    filtered = filter_articles(articles, author, tag, during_employment_only)

    total = len(filtered)
    total_pages = max(1, math.ceil(total / per_page))
    page = min(max(1, page), total_pages)

    start = (page - 1) * per_page
    return ArticlePage(
        articles=filtered[start:start + per_page],
        pagination=Pagination(
            total=total,
            page=page,
            per_page=per_page,
            total_pages=total_pages,
        ),
    )

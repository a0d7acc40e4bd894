import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse

from ...config.settings import Settings
from ...generator import generate_feed
from ...models.content import ArticlePage
from ...services.stores import ArticleStore, UserDirectory
from ...services.timeline import coerce_page_params, paginate_articles, parse_flag

logger = logging.getLogger(__name__)

router = APIRouter()


# ============== Dependencies ==============

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_article_store(request: Request) -> ArticleStore:
    return request.app.state.article_store


def get_user_directory(request: Request) -> UserDirectory:
    return request.app.state.user_directory


# ============== Articles ==============

@router.get("/articles", response_model=ArticlePage)
async def list_articles(
    page: Optional[str] = Query(default=None),
    per_page: Optional[str] = Query(default=None, alias="perPage"),
    author: Optional[str] = Query(default=None),
    tag: Optional[str] = Query(default=None),
    during_employment_only: Optional[str] = Query(default=None, alias="duringEmploymentOnly"),
    store: ArticleStore = Depends(get_article_store),
):
    """Filtered, paginated slice of the timeline."""
    try:
        page_number, page_size = coerce_page_params(page, per_page)
        articles = await store.get_all()
        return paginate_articles(
            articles,
            page=page_number,
            per_page=page_size,
            author=author,
            tag=tag,
            during_employment_only=parse_flag(during_employment_only),
        )
    except Exception as e:
        logger.exception(f"API error: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to load articles"})


# ============== Users ==============

@router.get("/users")
async def list_users(
    name: Optional[str] = Query(default=None),
    tag: Optional[str] = Query(default=None),
    directory: UserDirectory = Depends(get_user_directory),
):
    """
    A single user by name, users carrying a tag, or every active user.
    An unknown name is not an error: it returns {"user": null}.
    """
    try:
        if name:
            user = await directory.find(name)
            return {"user": user.model_dump(mode="json") if user else None}

        if tag:
            users = await directory.with_tag(tag)
        else:
            users = await directory.active()
        return {"users": [user.model_dump(mode="json") for user in users]}
    except Exception as e:
        logger.exception(f"API error: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to load users"})


@router.get("/tags")
async def list_tags(directory: UserDirectory = Depends(get_user_directory)):
    """Every tag carried by at least one user."""
    try:
        return {"tags": await directory.all_tags()}
    except Exception as e:
        logger.exception(f"API error: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to load tags"})


@router.get("/site")
async def site_info(request: Request):
    """Home page description, read from config.yaml at startup and on refresh."""
    return {"description": request.app.state.site_description}


# ============== Manual refresh ==============

async def _body_secret(request: Request) -> Optional[str]:
    try:
        body = await request.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("secretKey"), str):
        return body["secretKey"]
    return None


def _secret_matches(provided: Optional[str], expected: str) -> bool:
    if not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


@router.post("/refresh-feed")
async def refresh_feed(
    request: Request,
    x_api_key: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_app_settings),
    store: ArticleStore = Depends(get_article_store),
    directory: UserDirectory = Depends(get_user_directory),
):
    """
    Re-run feed generation synchronously.
    Requires the shared secret in the x-api-key header or the secretKey body field.
    """
    expected = settings.refresh_api_key
    if not expected:
        logger.warning("Refresh requested but REFRESH_API_KEY is not configured")
        return JSONResponse(
            status_code=503,
            content={"success": False, "error": "Refresh is not configured"},
        )

    provided = x_api_key or await _body_secret(request)
    if not _secret_matches(provided, expected):
        logger.warning("Rejected refresh request with invalid secret")
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    try:
        async with request.app.state.refresh_lock:
            result = await generate_feed(
                settings,
                persist=True,
                connector=request.app.state.feed_connector,
            )
            if result.success:
                await store.replace(result.articles)
                await directory.replace(result.users)
                request.app.state.site_description = result.home.description if result.home else None
    except Exception as e:
        logger.exception(f"Error refreshing feed: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Failed to refresh feed"})

    duration = f"{result.duration_ms}ms"
    if result.success:
        return {
            "success": True,
            "message": "Feed refreshed successfully",
            "duration": duration,
        }

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": result.error or "Unknown error",
            "duration": duration,
        },
    )

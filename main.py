# main.py: BookSwap web app
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.middleware.sessions import SessionMiddleware

from config import settings
from crud.base import RecordNotFound
from crud.book import get_book, get_books_by_string, prepare_entity
from crud.post import create_post, deactivate_post, get_user_posts, update_post
from crud.user import authenticate
from database import get_db, init_db
from logging_middleware import HTTPLoggingMiddleware, configure_logging
from schemas import PostCreate, UserOut, UserPost

configure_logging()
logger = logging.getLogger(__name__)

USER_KEY = "bookswap_user"
LAST_PAGE_KEY = "last_page"


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield


app = FastAPI(title=settings.site_name, lifespan=lifespan)
app.add_middleware(SessionMiddleware, secret_key=settings.session_secret_key, session_cookie=settings.session_cookie)
app.add_middleware(HTTPLoggingMiddleware)
app.mount("/static", StaticFiles(directory=str(settings.static_dir)), name="static")
templates = Jinja2Templates(directory=str(settings.template_dir))


def get_viewer(request: Request) -> Optional[UserOut]:
    data = request.session.get(USER_KEY)
    return UserOut(**data) if data else None


def get_last_page(request: Request) -> str:
    return request.session.get(LAST_PAGE_KEY) or "/"


def render_page(request: Request, view: str, data: dict = None, modals: list = None):
    """Render a content view inside the site layout.

    Remembers the page so login can send the user back to it.
    """
    data = dict(data or {})
    viewer = get_viewer(request)
    ui_strings = settings.ui_strings

    title_prefix = ui_strings["site_name"] + " | "
    data["head_title"] = title_prefix + data.get("head_title", ui_strings["university_name"])
    body_classes = "logged-in" if viewer else "logged-out"
    data["body_classes"] = body_classes + " " + view.replace("_", "-")
    data["modals"] = list(modals or []) + ["about", "login"]
    data.update(ui_strings)
    data["user"] = viewer
    data["logged_in"] = viewer is not None

    url = request.url.path
    if request.url.query:
        url = url + "?" + request.url.query
    request.session[LAST_PAGE_KEY] = url

    return templates.TemplateResponse(request, f"{view}.html", data)


def parse_post_form(price: str, notes: str) -> PostCreate:
    try:
        return PostCreate(price=price.strip(), notes=notes or None)
    except ValidationError:
        raise HTTPException(400, "Enter a price like 25 or 24.99")


@app.get("/")
async def home(request: Request):
    return render_page(request, "search", {"query": "", "books": []})


@app.get("/search")
async def search_results(
    request: Request,
    q: str = "",
    db: AsyncSession = Depends(get_db),
    viewer: Optional[UserOut] = Depends(get_viewer),
):
    q = q.strip()
    books = []
    if q:
        for book in await get_books_by_string(db, q):
            books.append(await prepare_entity(db, book, viewer))
    return render_page(request, "search", {
        "head_title": f"Search: {q}" if q else "Search",
        "query": q,
        "books": books,
    }, modals=["sell"] if viewer and books else None)


@app.get("/login")
async def login_page(request: Request):
    return RedirectResponse(get_last_page(request), status_code=303)


@app.post("/login")
async def login(
    request: Request,
    username: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    if get_viewer(request) is None:
        user = await authenticate(db, username)
        if user is not None:
            request.session[USER_KEY] = UserOut.model_validate(user).model_dump()
            logger.info("User %s logged in", user.netid)
    return RedirectResponse(get_last_page(request), status_code=303)


@app.get("/logout")
async def logout(request: Request):
    request.session.clear()
    return RedirectResponse("/", status_code=303)


@app.post("/sell/{bid}")
async def sell_book(
    request: Request,
    bid: int,
    price: str = Form(...),
    notes: str = Form(""),
    db: AsyncSession = Depends(get_db),
    viewer: Optional[UserOut] = Depends(get_viewer),
):
    if viewer is None:
        return RedirectResponse("/", status_code=303)
    if await get_book(db, bid) is None:
        raise HTTPException(404, "Book not found")
    await create_post(db, viewer.uid, bid, parse_post_form(price, notes))
    return RedirectResponse(get_last_page(request), status_code=303)


@app.post("/my-posts/{pid}")
async def update_post_route(
    pid: int,
    price: str = Form(...),
    notes: str = Form(""),
    db: AsyncSession = Depends(get_db),
    viewer: Optional[UserOut] = Depends(get_viewer),
):
    if viewer is None:
        return RedirectResponse("/", status_code=303)
    try:
        await update_post(db, viewer.uid, pid, parse_post_form(price, notes))
    except RecordNotFound:
        raise HTTPException(404, "Post not found")
    return RedirectResponse("/my-posts", status_code=303)


@app.get("/my-posts")
async def user_posts(
    request: Request,
    db: AsyncSession = Depends(get_db),
    viewer: Optional[UserOut] = Depends(get_viewer),
):
    if viewer is None:
        return RedirectResponse("/", status_code=303)
    posts = [UserPost.model_validate(p) for p in await get_user_posts(db, viewer.uid)]
    return render_page(request, "my_posts", {"head_title": "My Posts", "posts": posts})


@app.post("/myposts/deactivate")
async def deactivate_post_route(
    pid: int = Form(...),
    db: AsyncSession = Depends(get_db),
    viewer: Optional[UserOut] = Depends(get_viewer),
):
    if viewer is None:
        return RedirectResponse("/", status_code=303)
    try:
        await deactivate_post(db, viewer.uid, pid)
    except RecordNotFound:
        raise HTTPException(404, "Post not found")
    return RedirectResponse("/my-posts", status_code=303)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.host, port=settings.port)

# Necessary imports
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import httpx
from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from admin_pages import (
    AdminCategoryForm, AdminDashboard, AdminLoginPage, AdminPostForm, AdminSeriesForm, AdminUserForm,
    ManageCategoriesPage, ManagePostsPage, ManageSeriesPage, ManageUsersPage,
)
from conn import make_client
from editor import upload_image, upload_image_url
from fetcher import ApiError
from models import AccountUpdatePayload, LoginRequest, RegisterRequest
from pages import (
    AccountPage, BlogDetailPage, BlogFormPage, CategoryPage, HomePage, LoginPage, RegisterPage,
    SeriesDetailPage, SeriesFormPage, SeriesIndexPage,
)
from session import AuthContext, CookieStorage

lg = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # one backend client for the whole process
    app.state.client = make_client()
    yield
    await app.state.client.aclose()


# App setup
app = FastAPI(lifespan=lifespan)

MANAGE_PAGES = {
    "posts": ManagePostsPage,
    "categories": ManageCategoriesPage,
    "series": ManageSeriesPage,
    "users": ManageUsersPage,
}

ADMIN_FORMS = {
    "posts": AdminPostForm,
    "categories": AdminCategoryForm,
    "series": AdminSeriesForm,
    "users": AdminUserForm,
}


# Dependencies
def get_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.client


async def get_auth(request: Request, client: httpx.AsyncClient = Depends(get_client)) -> AuthContext:
    auth = AuthContext(CookieStorage(dict(request.cookies)), client)
    await auth.initialize()
    return auth


# Response utilities
def respond(auth: AuthContext, payload: dict, status_code: int = 200) -> JSONResponse:
    response = JSONResponse(payload, status_code=status_code)
    # session changes (login, logout, failed verification) ride on every response
    return auth.storage.apply(response)


def navigate(auth: AuthContext, target: Optional[str], **extra) -> JSONResponse:
    return respond(auth, {"redirect": target, **extra})


def render(auth: AuthContext, page) -> JSONResponse:
    if getattr(page, "redirect", None):
        return navigate(auth, page.redirect)
    if getattr(page, "not_found", False):
        return respond(auth, page.view_state(), status_code=404)
    return respond(auth, page.view_state())


async def submit(auth: AuthContext, page) -> JSONResponse:
    target = await page.submit()
    if target is None:
        raise HTTPException(status_code=400, detail=page.error)
    notice = page.notice.message if page.notice.visible else None
    return navigate(auth, target, notice=notice)


def fill_form(page, body: Dict[str, Any]):
    body = dict(body)
    content = body.pop("content", None)
    if content is not None and hasattr(page, "editor"):
        page.editor.load(content)
    role_ids = body.pop("roleIds", None)
    if role_ids is not None and hasattr(page, "select_roles"):
        page.select_roles(role_ids)
    page.update(**{k: v for k, v in body.items() if k in page.draft})


def section_or_404(table: dict, section: str):
    if section not in table:
        raise HTTPException(status_code=404, detail=f"Unknown admin section: {section}")
    return table[section]


# Public routes
@app.get("/")
async def home(auth: AuthContext = Depends(get_auth), client: httpx.AsyncClient = Depends(get_client)):
    """
    \nThis API is for the home page\n
    \nreturn:\n
        The 5 latest blogs, all categories and the 5 latest series.
    """
    page = HomePage(auth, client)
    await page.load()
    state = page.view_state()
    state["session"] = {"user": auth.is_user_authenticated, "admin": auth.is_admin_authenticated}
    return respond(auth, state)


@app.get("/blogs/create")
async def blog_create_form(auth: AuthContext = Depends(get_auth), client: httpx.AsyncClient = Depends(get_client)):
    if not auth.is_user_authenticated:
        return navigate(auth, "/auth/login")
    page = BlogFormPage(auth, client)
    await page.load()
    return render(auth, page)


@app.post("/blogs/create")
async def blog_create(body: Dict[str, Any] = Body(...), auth: AuthContext = Depends(get_auth),
                      client: httpx.AsyncClient = Depends(get_client)):
    """
    \nThis API is for publishing a blog as the signed-in user\n
    \nparam body:\n
        - title: Blog title.
        - content: Block document produced by the editor.
        - categoryIds: List of category ids.
        - seriesId: One of the user's series, optional.
    \nreturn:\n
        Redirect to the new blog.
    """
    page = BlogFormPage(auth, client)
    await page.load()
    fill_form(page, body)
    return await submit(auth, page)


@app.get("/blogs/edit/{blog_id}")
async def blog_edit_form(blog_id: int, auth: AuthContext = Depends(get_auth), client: httpx.AsyncClient = Depends(get_client)):
    if not auth.is_user_authenticated:
        return navigate(auth, "/auth/login")
    page = BlogFormPage(auth, client, blog_id)
    await page.load()
    return render(auth, page)


@app.put("/blogs/edit/{blog_id}")
async def blog_edit(blog_id: int, body: Dict[str, Any] = Body(...), auth: AuthContext = Depends(get_auth),
                    client: httpx.AsyncClient = Depends(get_client)):
    page = BlogFormPage(auth, client, blog_id)
    await page.load()
    if page.error:
        raise HTTPException(status_code=400, detail=page.error)
    fill_form(page, body)
    return await submit(auth, page)


@app.get("/blogs/{blog_id}")
async def blog_detail(blog_id: int, auth: AuthContext = Depends(get_auth), client: httpx.AsyncClient = Depends(get_client)):
    """
    \nThis API is for reading one blog\n
    \nreturn:\n
        Blog metadata and its content rendered to HTML.
    """
    page = BlogDetailPage(auth, blog_id, client)
    await page.load()
    return render(auth, page)


@app.get("/category/{category_id}")
async def category_detail(category_id: int, search: str = "", per_page: Optional[str] = None, page_number: int = 1,
                          auth: AuthContext = Depends(get_auth), client: httpx.AsyncClient = Depends(get_client)):
    page = CategoryPage(auth, category_id, client)
    await page.load()
    page.blogs.set_search(search)
    if per_page:
        page.set_custom_page_size(per_page)
    page.blogs.go_to(page_number)
    return render(auth, page)


@app.get("/series")
async def series_index(auth: AuthContext = Depends(get_auth), client: httpx.AsyncClient = Depends(get_client)):
    page = SeriesIndexPage(auth, client)
    await page.load()
    return render(auth, page)


@app.get("/series/create")
async def series_create_form(auth: AuthContext = Depends(get_auth), client: httpx.AsyncClient = Depends(get_client)):
    if not auth.is_user_authenticated:
        return navigate(auth, "/auth/login")
    return render(auth, SeriesFormPage(auth, client))


@app.post("/series/create")
async def series_create(body: Dict[str, Any] = Body(...), auth: AuthContext = Depends(get_auth),
                        client: httpx.AsyncClient = Depends(get_client)):
    page = SeriesFormPage(auth, client)
    fill_form(page, body)
    return await submit(auth, page)


@app.get("/series/edit/{series_id}")
async def series_edit_form(series_id: int, auth: AuthContext = Depends(get_auth), client: httpx.AsyncClient = Depends(get_client)):
    if not auth.is_user_authenticated:
        return navigate(auth, "/auth/login")
    page = SeriesFormPage(auth, client, series_id)
    await page.load()
    return render(auth, page)


@app.put("/series/edit/{series_id}")
async def series_edit(series_id: int, body: Dict[str, Any] = Body(...), auth: AuthContext = Depends(get_auth),
                      client: httpx.AsyncClient = Depends(get_client)):
    page = SeriesFormPage(auth, client, series_id)
    await page.load()
    fill_form(page, body)
    return await submit(auth, page)


@app.get("/series/{series_id}")
async def series_detail(series_id: int, search: str = "", auth: AuthContext = Depends(get_auth),
                        client: httpx.AsyncClient = Depends(get_client)):
    page = SeriesDetailPage(auth, series_id, client)
    await page.load()
    page.blogs.set_search(search)
    return render(auth, page)


@app.post("/series/{series_id}/create-own")
async def series_create_own(series_id: int, auth: AuthContext = Depends(get_auth), client: httpx.AsyncClient = Depends(get_client)):
    """
    \nThis API is for the "create your own series" button\n
    \nreturn:\n
        Redirect to the series form, or a login prompt for anonymous visitors.
    """
    page = SeriesDetailPage(auth, series_id, client)
    target = page.create_series()
    return navigate(auth, target, showLoginPrompt=page.show_login_prompt)


# Auth routes
@app.post("/auth/login")
async def login(request: LoginRequest, auth: AuthContext = Depends(get_auth), client: httpx.AsyncClient = Depends(get_client)):
    """
    \nThis API is for signing in an end user\n
    \nparam request:\n
        - email: Account email.
        - password: Account password.
    \nreturn:\n
        Redirect to the home page, the session token is stored as a cookie.
    """
    page = LoginPage(auth, client)
    page.update(**request.model_dump())
    return await submit(auth, page)


@app.post("/auth/register")
async def register(request: RegisterRequest, auth: AuthContext = Depends(get_auth), client: httpx.AsyncClient = Depends(get_client)):
    page = RegisterPage(auth, client)
    page.update(**request.model_dump())
    target = await page.submit()
    if target is None:
        raise HTTPException(status_code=400, detail=page.error)
    return navigate(auth, target, notice=page.notice.message, delay=page.redirect_delay)


@app.post("/auth/logout")
async def logout(auth: AuthContext = Depends(get_auth)):
    return navigate(auth, auth.logout())


@app.get("/account")
async def account(auth: AuthContext = Depends(get_auth), client: httpx.AsyncClient = Depends(get_client)):
    if not auth.is_user_authenticated:
        return navigate(auth, "/auth/login")
    page = AccountPage(auth, client)
    await page.load()
    return render(auth, page)


@app.put("/account")
async def account_update(request: AccountUpdatePayload, auth: AuthContext = Depends(get_auth),
                         client: httpx.AsyncClient = Depends(get_client)):
    page = AccountPage(auth, client)
    page.update(**request.model_dump(exclude_none=True))
    return await submit(auth, page)


@app.delete("/account/{kind}/{item_id}")
async def account_delete(kind: str, item_id: int, auth: AuthContext = Depends(get_auth),
                         client: httpx.AsyncClient = Depends(get_client)):
    if kind not in ("blogs", "series"):
        raise HTTPException(status_code=404, detail=f"Unknown content type: {kind}")
    page = AccountPage(auth, client)
    await page.load()
    await page.delete_item("blog" if kind == "blogs" else "series", item_id)
    if page.error:
        raise HTTPException(status_code=400, detail=page.error)
    return render(auth, page)


# Editor image ingestion
@app.post("/upload/image-url")
async def image_by_url(body: Dict[str, Any] = Body(...), auth: AuthContext = Depends(get_auth),
                       client: httpx.AsyncClient = Depends(get_client)):
    token = auth.admin_token or auth.user_token
    try:
        return respond(auth, await upload_image_url(token, body.get("url", ""), client=client))
    except ApiError as e:
        raise HTTPException(status_code=e.status_code or 502, detail=e.message)


@app.post("/upload/image")
async def image_by_file(request: Request, auth: AuthContext = Depends(get_auth), client: httpx.AsyncClient = Depends(get_client)):
    form = await request.form()
    image = form.get("image")
    if image is None:
        raise HTTPException(status_code=400, detail="No image provided")
    token = auth.admin_token or auth.user_token
    try:
        result = await upload_image(token, image.filename, await image.read(), image.content_type, client=client)
    except ApiError as e:
        raise HTTPException(status_code=e.status_code or 502, detail=e.message)
    return respond(auth, result)


# Admin-only routes
@app.post("/admin/login")
async def admin_login(request: LoginRequest, auth: AuthContext = Depends(get_auth), client: httpx.AsyncClient = Depends(get_client)):
    """
    \nThis API is for signing in to the admin console\n
    \nparam request:\n
        - email: Admin email.
        - password: Admin password.
    \nreturn:\n
        Redirect to the dashboard. Tokens whose subject is not the admin id are refused.
    """
    page = AdminLoginPage(auth, client)
    page.update(**request.model_dump())
    return await submit(auth, page)


@app.post("/admin/logout")
async def admin_logout(auth: AuthContext = Depends(get_auth)):
    return navigate(auth, auth.logout_admin())


@app.get("/admin/dashboard")
async def admin_dashboard(auth: AuthContext = Depends(get_auth), client: httpx.AsyncClient = Depends(get_client)):
    page = AdminDashboard(auth, client)
    await page.load()
    return render(auth, page)


@app.get("/admin/posts/authors/{author_id}/series")
async def admin_author_series(author_id: int, auth: AuthContext = Depends(get_auth), client: httpx.AsyncClient = Depends(get_client)):
    """
    \nThis API is for refreshing the series picker after the author changes\n
    \nreturn:\n
        Series of the selected author; the selected series is cleared.
    """
    page = AdminPostForm(auth, client)
    if not page.check_access():
        return navigate(auth, page.redirect)
    await page.select_author(author_id)
    return respond(auth, {"series": page.series, "seriesId": page.draft["seriesId"]})


@app.get("/admin/{section}")
async def admin_list(section: str, request: Request, search: str = "", search_by: Optional[str] = None,
                     sort: Optional[str] = None, direction: str = "asc", per_page: Optional[str] = None,
                     page_number: int = 1, auth: AuthContext = Depends(get_auth),
                     client: httpx.AsyncClient = Depends(get_client)):
    """
    \nThis API is for the admin tables (posts, categories, series, users)\n
    \nparam query:\n
        - search, search_by: Case-insensitive search on the chosen field.
        - <field>_from, <field>_to: Inclusive range filters (id, create_at, update_at).
        - sort, direction: Sort key and asc/desc.
        - per_page: Page size or "all".
        - page_number: Page to show.
    """
    page = section_or_404(MANAGE_PAGES, section)(auth, client)
    await page.load()
    if page.redirect:
        return navigate(auth, page.redirect)
    filters = {
        f.field: (request.query_params.get(f"{f.field}_from"), request.query_params.get(f"{f.field}_to"))
        for f in page.list.filters
    }
    try:
        page.configure(search, search_by, filters, sort, direction, per_page, page_number)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return render(auth, page)


@app.delete("/admin/{section}/{item_id}")
async def admin_delete(section: str, item_id: int, auth: AuthContext = Depends(get_auth),
                       client: httpx.AsyncClient = Depends(get_client)):
    page = section_or_404(MANAGE_PAGES, section)(auth, client)
    await page.load()
    if page.redirect:
        return navigate(auth, page.redirect)
    if not await page.delete(item_id):
        raise HTTPException(status_code=400, detail=page.error)
    return render(auth, page)


@app.get("/admin/{section}/create")
async def admin_create_form(section: str, auth: AuthContext = Depends(get_auth), client: httpx.AsyncClient = Depends(get_client)):
    page = section_or_404(ADMIN_FORMS, section)(auth, client)
    await page.load()
    return render(auth, page)


@app.post("/admin/{section}/create")
async def admin_create(section: str, body: Dict[str, Any] = Body(...), auth: AuthContext = Depends(get_auth),
                       client: httpx.AsyncClient = Depends(get_client)):
    page = section_or_404(ADMIN_FORMS, section)(auth, client)
    await page.load()
    if page.redirect:
        return navigate(auth, page.redirect)
    fill_form(page, body)
    return await submit(auth, page)


@app.get("/admin/{section}/edit/{item_id}")
async def admin_edit_form(section: str, item_id: int, auth: AuthContext = Depends(get_auth),
                          client: httpx.AsyncClient = Depends(get_client)):
    page = section_or_404(ADMIN_FORMS, section)(auth, client, item_id)
    await page.load()
    return render(auth, page)


@app.put("/admin/{section}/edit/{item_id}")
async def admin_edit(section: str, item_id: int, body: Dict[str, Any] = Body(...), auth: AuthContext = Depends(get_auth),
                     client: httpx.AsyncClient = Depends(get_client)):
    """
    \nThis API is for updating a post, category, series or user\n
    \nparam body:\n
        Only the fields being changed; everything else keeps its stored value,
        including the block content of a post.
    """
    page = section_or_404(ADMIN_FORMS, section)(auth, client, item_id)
    await page.load()
    if page.redirect:
        return navigate(auth, page.redirect)
    if page.error:
        raise HTTPException(status_code=400, detail=page.error)
    fill_form(page, body)
    return await submit(auth, page)

import logging
from typing import Any, List, Optional

import httpx

from conn import REGISTER_REDIRECT_SECONDS
from editor import ContentEditorAdapter, render_blocks
from fetcher import ApiError, HttpStatusError, fetch_all
from forms import CategoryPicker, FormView, PageView, SeriesByAuthor, require
from list_view import UNBOUNDED, Fixed, ListViewController, by_attr, parse_page_size
from models import AccountUpdatePayload, Blog, BlogPayload, Category, LoginRequest, RegisterRequest, Series, SeriesPayload, TokenResponse, User

lg = logging.getLogger(__name__)

NOT_AUTHENTICATED = "User not authenticated. Please log in."


# Public browsing

class HomePage(PageView):
    def __init__(self, auth, client: Optional[httpx.AsyncClient] = None):
        super().__init__(auth, client)
        self.blogs: List[Blog] = []
        self.categories: List[Category] = []
        self.series: List[Series] = []

    async def load(self):
        self.loading = True
        try:
            blogs, categories, series = await fetch_all(
                self.fetch("/blogs"),
                self.fetch("/categories"),
                self.fetch("/series"),
            )
            self.apply(
                blogs=[Blog.model_validate(b) for b in blogs][:5],
                categories=[Category.model_validate(c) for c in categories],
                series=[Series.model_validate(s) for s in series][:5],
            )
        except ApiError as e:
            lg.warning("Error fetching home page data: %s", e.message)
            self.apply(error=e.message, blogs=[], categories=[], series=[])
        finally:
            self.apply(loading=False)

    def view_state(self) -> dict:
        state = super().view_state()
        state.update(
            blogs=[b.model_dump(exclude={"content"}) for b in self.blogs],
            categories=[c.model_dump() for c in self.categories],
            series=[s.model_dump() for s in self.series],
        )
        return state


class SeriesIndexPage(PageView):
    def __init__(self, auth, client: Optional[httpx.AsyncClient] = None):
        super().__init__(auth, client)
        self.series: List[Series] = []

    async def load(self):
        self.loading = True
        try:
            data = await self.fetch("/series")
            self.apply(series=[Series.model_validate(s) for s in data])
        except ApiError as e:
            lg.warning("Failed to load series: %s", e.message)
            self.apply(error="Failed to load series.", series=[])
        finally:
            self.apply(loading=False)

    def view_state(self) -> dict:
        state = super().view_state()
        state["series"] = [s.model_dump() for s in self.series]
        return state


class ReadOnlyPage(PageView):
    """
    Fetch once, then one of: loading, error, not found, content.
    A 404 from the backend is not-found; every other failure is an error.
    """

    error_message = "Failed to load."
    not_found_message = "Not found"

    def __init__(self, auth, record_id: Any, client: Optional[httpx.AsyncClient] = None):
        super().__init__(auth, client)
        self.record_id = record_id
        self.not_found = False
        self.loading = True

    async def fetch_content(self):
        raise NotImplementedError

    async def load(self):
        self.apply(loading=True, error=None, not_found=False)
        try:
            await self.fetch_content()
        except HttpStatusError as e:
            if e.status_code == 404:
                self.apply(not_found=True)
            else:
                lg.warning("%s failed: %s", type(self).__name__, e.message)
                self.apply(error=self.error_message)
        except ApiError as e:
            lg.warning("%s failed: %s", type(self).__name__, e.message)
            self.apply(error=self.error_message)
        finally:
            self.apply(loading=False)

    @property
    def status(self) -> str:
        if self.loading:
            return "loading"
        if self.error:
            return "error"
        if self.not_found:
            return "not_found"
        return "content"

    def view_state(self) -> dict:
        state = super().view_state()
        state["status"] = self.status
        if self.not_found:
            state["message"] = self.not_found_message
        return state


class BlogDetailPage(ReadOnlyPage):
    error_message = "Failed to load blog."
    not_found_message = "Blog not found"
    blog: Optional[Blog] = None

    async def fetch_content(self):
        data = await self.fetch(f"/blogs/{self.record_id}")
        self.apply(blog=Blog.model_validate(data))

    @property
    def content_html(self) -> str:
        return render_blocks(self.blog.content) if self.blog else ""

    def view_state(self) -> dict:
        state = super().view_state()
        if self.status == "content":
            state["blog"] = self.blog.model_dump(exclude={"content"})
            state["html"] = self.content_html
        return state


class CategoryPage(ReadOnlyPage):
    error_message = "Failed to load category or blogs."
    not_found_message = "Category not found"
    category: Optional[Category] = None

    def __init__(self, auth, record_id: Any, client: Optional[httpx.AsyncClient] = None):
        super().__init__(auth, record_id, client)
        self.blogs = ListViewController(
            search_fields={"title": by_attr("title")},
            sort=None,
            page_size=Fixed(6),
        )
        self.page_size_error: Optional[str] = None

    async def fetch_content(self):
        blogs, category = await fetch_all(
            self.fetch(f"/blogs/categories/{self.record_id}"),
            self.fetch(f"/categories/{self.record_id}"),
        )
        if self.mounted:
            self.blogs.set_items(Blog.model_validate(b) for b in blogs)
        self.apply(category=Category.model_validate(category))

    def set_custom_page_size(self, value: str):
        try:
            size = parse_page_size(value or 0)
        except ValueError:
            size = None
        if size is None or size == UNBOUNDED:
            self.page_size_error = "Please enter a valid number greater than 0"
            return
        self.page_size_error = None
        self.blogs.set_page_size(size)

    def view_state(self) -> dict:
        state = super().view_state()
        if self.status == "content":
            state["category"] = self.category.model_dump()
            state["blogs"] = [b.model_dump(exclude={"content"}) for b in self.blogs.view]
            state["list"] = self.blogs.state()
            state["pageSizeError"] = self.page_size_error
        return state


class SeriesDetailPage(ReadOnlyPage):
    error_message = "Failed to load series or blogs."
    not_found_message = "Series not found"
    series: Optional[Series] = None

    def __init__(self, auth, record_id: Any, client: Optional[httpx.AsyncClient] = None):
        super().__init__(auth, record_id, client)
        self.blogs = ListViewController(search_fields={"title": by_attr("title")}, sort=None, page_size=UNBOUNDED)
        self.show_login_prompt = False

    async def fetch_content(self):
        blogs, series = await fetch_all(
            self.fetch(f"/blogs/series/{self.record_id}"),
            self.fetch(f"/series/{self.record_id}"),
        )
        if self.mounted:
            self.blogs.set_items(Blog.model_validate(b) for b in blogs)
        self.apply(series=Series.model_validate(series))

    def create_series(self) -> Optional[str]:
        if self.auth.is_user_authenticated:
            return "/series/create"
        self.show_login_prompt = True
        return None

    def view_state(self) -> dict:
        state = super().view_state()
        if self.status == "content":
            state["series"] = self.series.model_dump()
            state["blogs"] = [b.model_dump(exclude={"content"}) for b in self.blogs.view]
            state["showLoginPrompt"] = self.show_login_prompt
        return state


# Authentication

class LoginPage(FormView):
    defaults = {"email": "", "password": ""}

    def validate(self) -> Optional[str]:
        return require("Email and password are required!", self.draft["email"], self.draft["password"])

    async def send(self) -> Optional[str]:
        body = LoginRequest(**self.draft).model_dump()
        response = TokenResponse.model_validate(await self.fetch("/auth/login", method="POST", json=body))
        self.auth.login(response.token)
        return "/"


class RegisterPage(FormView):
    defaults = {"name": "", "email": "", "password": ""}
    redirect_delay = REGISTER_REDIRECT_SECONDS

    def __init__(self, auth, client: Optional[httpx.AsyncClient] = None):
        super().__init__(auth, client)
        self.success = False

    def validate(self) -> Optional[str]:
        return require("Name, email and password are required!", self.draft["name"], self.draft["email"], self.draft["password"])

    async def send(self) -> Optional[str]:
        self.success = False
        await self.fetch("/auth/register", method="POST", json=RegisterRequest(**self.draft).model_dump())
        self.success = True
        self.notice.show("Registration successful! Redirecting to login page...", self.redirect_delay)
        return "/auth/login"


# Signed-in user area

class AccountPage(FormView):
    defaults = {"name": "", "password": "", "about": ""}

    def __init__(self, auth, client: Optional[httpx.AsyncClient] = None):
        super().__init__(auth, client)
        self.user: Optional[User] = None
        self.blogs: List[Blog] = []
        self.series: List[Series] = []
        self.edit_mode = False
        self.user_id = auth.user_id

    async def load(self):
        if self.user_id is None:
            self.error = "Invalid token."
            return
        self.loading = True
        try:
            user, blogs, series = await fetch_all(
                self.fetch(f"/users/{self.user_id}", self.auth.user_token),
                self.fetch(f"/blogs/users/{self.user_id}"),
                self.fetch(f"/series/users/{self.user_id}"),
            )
        except ApiError as e:
            lg.warning("Failed to load account %s: %s", self.user_id, e.message)
            self.apply(error="Failed to load user information.", loading=False)
            return
        self.apply(
            user=User.model_validate(user),
            blogs=[Blog.model_validate(b) for b in blogs],
            series=[Series.model_validate(s) for s in series],
            loading=False,
        )
        if self.mounted:
            self.draft = {"name": self.user.name or "", "about": self.user.about or "", "password": ""}

    def validate(self) -> Optional[str]:
        if self.user_id is None:
            return NOT_AUTHENTICATED
        return require("Name is required!", self.draft["name"])

    async def send(self) -> Optional[str]:
        body = AccountUpdatePayload(**self.draft).model_dump(exclude_none=True)
        if not body.get("password"):
            body.pop("password", None)
        updated = await self.fetch(f"/users/{self.user_id}", self.auth.user_token, method="PUT", json=body)
        if isinstance(updated, dict):
            self.user = User.model_validate(updated)
        self.edit_mode = False
        self.notice.show("Account updated.")
        return "/account"

    async def delete_item(self, kind: str, item_id: int):
        endpoint = {"blog": "/blogs", "series": "/series"}[kind]
        try:
            await self.fetch(f"{endpoint}/{item_id}", self.auth.user_token, method="DELETE")
        except ApiError as e:
            lg.warning("Failed to delete %s %s: %s", kind, item_id, e.message)
            self.error = e.message
            return
        if kind == "blog":
            self.blogs = [b for b in self.blogs if b.id != item_id]
        else:
            self.series = [s for s in self.series if s.id != item_id]
        self.notice.show(f"{kind.capitalize()} deleted successfully.")

    def view_state(self) -> dict:
        state = super().view_state()
        state["draft"] = {k: v for k, v in self.draft.items() if k != "password"}
        state.update(
            user=self.user.model_dump() if self.user else None,
            blogs=[b.model_dump(exclude={"content"}) for b in self.blogs],
            series=[s.model_dump() for s in self.series],
            editMode=self.edit_mode,
        )
        return state


class BlogFormPage(FormView, SeriesByAuthor, CategoryPicker):
    """Create or edit a post as the signed-in user."""

    defaults = {"title": "", "categoryIds": [], "seriesId": None}

    def __init__(self, auth, client: Optional[httpx.AsyncClient] = None, record_id: Any = None):
        super().__init__(auth, client, record_id)
        self.categories: List[Category] = []
        self.series: List[Any] = []
        self.editor = ContentEditorAdapter()
        self.user_id = auth.user_id

    def series_token(self) -> Optional[str]:
        return self.auth.user_token

    async def load(self):
        self.loading = True
        try:
            categories = await self.fetch("/categories")
            self.apply(categories=[Category.model_validate(c) for c in categories])
        except ApiError as e:
            lg.warning("Failed to fetch categories: %s", e.message)
        await self.load_series(self.user_id)
        initial = None
        if self.editing:
            try:
                blog = Blog.model_validate(await self.fetch(f"/blogs/{self.record_id}"))
            except ApiError as e:
                lg.warning("Failed to fetch blog details: %s", e.message)
                self.apply(error="Failed to load blog details.", loading=False)
                return
            if not self.mounted:
                return
            self.draft.update(title=blog.title, categoryIds=list(blog.categoryIds), seriesId=blog.seriesId)
            initial = blog.content
        if self.mounted:
            self.editor.mount(initial)
        self.apply(loading=False)

    def unmount(self):
        super().unmount()
        self.editor.unmount()

    def validate(self) -> Optional[str]:
        if not self.auth.user_token:
            return NOT_AUTHENTICATED
        if not self.editor.ready:
            return "Title and content are required!"
        return require("Title and content are required!", self.draft["title"])

    async def send(self) -> Optional[str]:
        payload = BlogPayload(content=self.editor.save(), authorId=self.user_id, **self.draft)
        body = payload.model_dump()
        if self.editing:
            await self.fetch(f"/blogs/{self.record_id}", self.auth.user_token, method="PUT", json=body)
            return f"/blogs/{self.record_id}"
        created = await self.fetch("/blogs", self.auth.user_token, method="POST", json=body)
        return f"/blogs/{created['id']}"

    def view_state(self) -> dict:
        state = super().view_state()
        state.update(
            categories=[c.model_dump() for c in self.categories],
            series=self.series,
            editor=self.editor.widget.config() if self.editor.ready else None,
        )
        return state


class SeriesFormPage(FormView):
    defaults = {"title": "", "description": ""}

    async def load(self):
        if not self.editing:
            return
        self.loading = True
        try:
            data = await self.fetch(f"/series/{self.record_id}", self.auth.user_token)
        except ApiError as e:
            self.apply(error=e.message or "Something went wrong!", loading=False)
            return
        series = Series.model_validate(data)
        if self.mounted:
            self.draft.update(title=series.title, description=series.description or "")
        self.apply(loading=False)

    def validate(self) -> Optional[str]:
        if not self.auth.user_token:
            return NOT_AUTHENTICATED
        return require("Title is required!", self.draft["title"])

    async def send(self) -> Optional[str]:
        body = SeriesPayload(authorId=self.auth.user_id, **self.draft).model_dump(exclude_none=True)
        if self.editing:
            await self.fetch(f"/series/{self.record_id}", self.auth.user_token, method="PUT", json=body)
            self.notice.show("Series updated successfully!")
            return f"/series/{self.record_id}"
        created = await self.fetch("/series", self.auth.user_token, method="POST", json=body)
        self.notice.show("Series created successfully!")
        return f"/series/{created['id']}"

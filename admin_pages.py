import logging
from typing import Any, Dict, List, Optional

import httpx

from conn import ADMIN_USER_ID
from editor import ContentEditorAdapter
from fetcher import ApiError, fetch_all
from forms import CategoryPicker, FormView, PageView, SeriesByAuthor, require
from list_view import ListViewController, RangeFilter, SortConfig, by_attr, by_lookup, by_lookup_many, parse_page_size
from models import (
    Blog, BlogPayload, Category, CategoryPayload, LoginRequest, Role, Series, SeriesPayload,
    TokenResponse, User, UserCreatePayload, UserUpdatePayload,
)
from session import ADMIN_LOGIN_PATH, decode_subject

lg = logging.getLogger(__name__)

ADMIN_NOT_AUTHENTICATED = "Admin not authenticated. Please log in."
UNKNOWN = "Unknown"
MASKED_PASSWORD = "********"


class AdminAccess:
    """Admin pages bounce to the admin login when no admin token is stored."""

    redirect: Optional[str] = None

    @property
    def token(self) -> Optional[str]:
        return self.auth.admin_token

    def check_access(self) -> bool:
        if not self.token:
            self.redirect = ADMIN_LOGIN_PATH
            return False
        return True


# Admin login

class AdminLoginPage(FormView):
    defaults = {"email": "", "password": ""}
    admin_id = ADMIN_USER_ID

    def validate(self) -> Optional[str]:
        return require("Email and password are required!", self.draft["email"], self.draft["password"])

    async def send(self) -> Optional[str]:
        body = LoginRequest(**self.draft).model_dump()
        response = TokenResponse.model_validate(await self.fetch("/auth/login", method="POST", json=body))
        if decode_subject(response.token) != self.admin_id:
            lg.warning("Rejected admin login for subject %s", decode_subject(response.token))
            self.error = "You do not have access to the admin panel."
            return None
        self.auth.login_admin(response.token)
        return "/admin/dashboard"

    def submit_error(self, e: ApiError) -> str:
        return "Invalid email or password."


class AdminDashboard(AdminAccess, PageView):
    def __init__(self, auth, client: Optional[httpx.AsyncClient] = None):
        super().__init__(auth, client)
        self.counts = {"posts": 0, "categories": 0, "users": 0, "series": 0}
        self.latest_posts: List[Blog] = []
        self.latest_series: List[Series] = []

    async def load(self):
        if not self.check_access():
            return
        self.loading = True
        try:
            posts, categories, users, series = await fetch_all(
                self.fetch("/blogs", self.token),
                self.fetch("/categories", self.token),
                self.fetch("/users", self.token),
                self.fetch("/series", self.token),
            )
        except ApiError as e:
            lg.warning("Failed to fetch dashboard data: %s", e.message)
            self.apply(error=e.message, loading=False)
            return
        self.apply(
            counts={"posts": len(posts), "categories": len(categories), "users": len(users), "series": len(series)},
            latest_posts=[Blog.model_validate(p) for p in posts[:3]],
            latest_series=[Series.model_validate(s) for s in series[:3]],
            loading=False,
        )

    def view_state(self) -> dict:
        state = super().view_state()
        state.update(
            counts=self.counts,
            latestPosts=[p.model_dump(exclude={"content"}) for p in self.latest_posts],
            latestSeries=[s.model_dump() for s in self.latest_series],
        )
        return state


# Manage tables

class ManageListPage(AdminAccess, PageView):
    """
    One admin table: the fetched collection behind a ListViewController,
    side-loaded id->name maps for display and search, and row deletion.
    """

    resource = ""
    noun = ""
    model: Any = None
    filter_fields: List[str] = ["id"]

    def __init__(self, auth, client: Optional[httpx.AsyncClient] = None):
        super().__init__(auth, client)
        self.list = ListViewController(
            filters=[RangeFilter(f) for f in self.filter_fields],
            sort=SortConfig("id", "asc"),
        )
        self.pending_delete: Optional[int] = None

    async def fetch_related(self) -> Dict[str, Dict[int, str]]:
        return {}

    def search_fields(self) -> dict:
        raise NotImplementedError

    def row(self, item: Any) -> dict:
        return item.model_dump(exclude={"content"})

    async def load(self):
        if not self.check_access():
            return
        self.loading = True
        try:
            items, _ = await fetch_all(self.fetch(self.resource, self.token), self.fetch_related())
        except ApiError as e:
            lg.warning("Failed to fetch %s: %s", self.resource, e.message)
            self.apply(error=e.message, loading=False)
            return
        if self.mounted:
            self.list.search_fields = self.search_fields()
            if self.list.search_by not in self.list.search_fields:
                self.list.search_by = next(iter(self.list.search_fields))
            self.list.set_items(self.model.model_validate(i) for i in items)
        self.apply(loading=False)

    def configure(self, search: str = "", search_by: Optional[str] = None, filters: Optional[Dict[str, tuple]] = None,
                  sort: Optional[str] = None, direction: str = "asc", page_size: Any = None, page: int = 1):
        """Apply list parameters in the order the controls would have been used."""
        if search_by is not None and search_by not in self.list.search_fields:
            search_by = None
        self.list.set_search(search, search_by)
        if filters:
            self.list.set_filters(
                RangeFilter(f.field, *filters.get(f.field, (None, None))) for f in self.list.filters
            )
        self.list.set_page_size(parse_page_size(page_size, self.list.page_size))
        if sort:
            self.list.sort = SortConfig(sort, "desc" if direction == "desc" else "asc")
        self.list.go_to(page)

    def request_delete(self, item_id: int):
        self.pending_delete = item_id

    def cancel_delete(self):
        self.pending_delete = None

    async def delete(self, item_id: Optional[int] = None) -> bool:
        item_id = item_id if item_id is not None else self.pending_delete
        if item_id is None:
            return False
        if not self.check_access():
            return False
        try:
            await self.fetch(f"{self.resource}/{item_id}", self.token, method="DELETE")
        except ApiError as e:
            lg.warning("Failed to delete %s %s: %s", self.noun, item_id, e.message)
            self.error = e.message
            return False
        self.list.remove(item_id)
        self.pending_delete = None
        self.notice.show(f"{self.noun} deleted successfully!")
        return True

    def view_state(self) -> dict:
        state = super().view_state()
        state["rows"] = [self.row(item) for item in self.list.view]
        state["list"] = self.list.state()
        state["total"] = len(self.list.filtered)
        return state


class ManagePostsPage(ManageListPage):
    resource = "/blogs"
    noun = "Post"
    model = Blog
    filter_fields = ["id", "create_at", "update_at"]

    def __init__(self, auth, client: Optional[httpx.AsyncClient] = None):
        super().__init__(auth, client)
        self.categories: Dict[int, str] = {}
        self.authors: Dict[int, str] = {}
        self.series: Dict[int, str] = {}
        self.list.search_fields = self.search_fields()
        self.list.search_by = "category"

    async def fetch_related(self):
        categories, users, series = await fetch_all(
            self.fetch("/categories", self.token),
            self.fetch("/users", self.token),
            self.fetch("/series", self.token),
        )
        self.apply(
            categories={c["id"]: c.get("title") for c in categories},
            authors={u["id"]: u.get("name") for u in users},
            series={s["id"]: s.get("title") for s in series},
        )

    def search_fields(self) -> dict:
        return {
            "category": by_lookup_many("categoryIds", self.categories),
            "author": by_lookup("authorId", self.authors),
            "blog": by_attr("title"),
            "series": by_lookup("seriesId", self.series),
        }

    def row(self, item: Blog) -> dict:
        row = super().row(item)
        row["author"] = self.authors.get(item.authorId, UNKNOWN)
        row["categories"] = [self.categories.get(i, UNKNOWN) for i in item.categoryIds]
        row["series"] = self.series.get(item.seriesId, UNKNOWN) if item.seriesId is not None else None
        return row


class ManageCategoriesPage(ManageListPage):
    resource = "/categories"
    noun = "Category"
    model = Category
    filter_fields = ["id"]

    def __init__(self, auth, client: Optional[httpx.AsyncClient] = None):
        super().__init__(auth, client)
        self.list.search_fields = self.search_fields()
        self.list.search_by = "title"

    def search_fields(self) -> dict:
        return {"title": by_attr("title")}


class ManageSeriesPage(ManageListPage):
    resource = "/series"
    noun = "Series"
    model = Series
    filter_fields = ["id", "create_at", "update_at"]

    def __init__(self, auth, client: Optional[httpx.AsyncClient] = None):
        super().__init__(auth, client)
        self.authors: Dict[int, str] = {}
        self.list.search_fields = self.search_fields()
        self.list.search_by = "title"

    async def fetch_related(self):
        users = await self.fetch("/users", self.token)
        self.apply(authors={u["id"]: u.get("name") for u in users})

    def search_fields(self) -> dict:
        return {"title": by_attr("title"), "author": by_lookup("authorId", self.authors)}

    def row(self, item: Series) -> dict:
        row = super().row(item)
        row["author"] = self.authors.get(item.authorId, UNKNOWN)
        return row


class ManageUsersPage(ManageListPage):
    resource = "/users"
    noun = "User"
    model = User
    filter_fields = ["id", "create_at", "update_at"]

    def __init__(self, auth, client: Optional[httpx.AsyncClient] = None):
        super().__init__(auth, client)
        self.list.search_fields = self.search_fields()
        self.list.search_by = "name"

    def search_fields(self) -> dict:
        return {"name": by_attr("name"), "email": by_attr("email")}


# Admin forms

class AdminPostForm(AdminAccess, FormView, SeriesByAuthor, CategoryPicker):
    defaults = {"title": "", "categoryIds": [], "seriesId": None, "authorId": None}

    def __init__(self, auth, client: Optional[httpx.AsyncClient] = None, record_id: Any = None):
        super().__init__(auth, client, record_id)
        self.users: List[User] = []
        self.categories: List[Category] = []
        self.series: List[Any] = []
        self.editor = ContentEditorAdapter()

    def series_token(self) -> Optional[str]:
        return self.token

    async def load(self):
        if not self.check_access():
            return
        self.loading = True
        try:
            users, categories = await fetch_all(self.fetch("/users", self.token), self.fetch("/categories"))
            self.apply(
                users=[User.model_validate(u) for u in users],
                categories=[Category.model_validate(c) for c in categories],
            )
        except ApiError as e:
            lg.warning("Failed to fetch users or categories: %s", e.message)
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
            self.draft.update(
                title=blog.title,
                categoryIds=list(blog.categoryIds),
                seriesId=blog.seriesId,
                authorId=blog.authorId,
            )
            initial = blog.content
            await self.load_series(blog.authorId)
        if self.mounted:
            self.editor.mount(initial)
        self.apply(loading=False)

    def unmount(self):
        super().unmount()
        self.editor.unmount()

    def validate(self) -> Optional[str]:
        if not self.token:
            return ADMIN_NOT_AUTHENTICATED
        if not self.editor.ready:
            return "Title, content, and user are required!"
        return require("Title, content, and user are required!", self.draft["title"], self.draft["authorId"])

    async def send(self) -> Optional[str]:
        body = BlogPayload(content=self.editor.save(), **self.draft).model_dump()
        if self.editing:
            await self.fetch(f"/blogs/{self.record_id}", self.token, method="PUT", json=body)
        else:
            await self.fetch("/blogs", self.token, method="POST", json=body)
        return "/admin/posts"

    def view_state(self) -> dict:
        state = super().view_state()
        state.update(
            users=[u.model_dump() for u in self.users],
            categories=[c.model_dump() for c in self.categories],
            series=self.series,
            editor=self.editor.widget.config() if self.editor.ready else None,
        )
        return state


class AdminCategoryForm(AdminAccess, FormView):
    defaults = {"title": "", "description": ""}

    async def load(self):
        if not self.check_access() or not self.editing:
            return
        self.loading = True
        try:
            category = Category.model_validate(await self.fetch(f"/categories/{self.record_id}", self.token))
        except ApiError as e:
            self.apply(error=e.message, loading=False)
            return
        if self.mounted:
            self.draft.update(title=category.title, description=category.description or "")
        self.apply(loading=False)

    def validate(self) -> Optional[str]:
        if not self.token:
            return ADMIN_NOT_AUTHENTICATED
        return require("Title is required!", self.draft["title"])

    async def send(self) -> Optional[str]:
        body = CategoryPayload(**self.draft).model_dump()
        if self.editing:
            await self.fetch(f"/categories/{self.record_id}", self.token, method="PUT", json=body)
        else:
            await self.fetch("/categories", self.token, method="POST", json=body)
        return "/admin/categories"


class AdminSeriesForm(AdminAccess, FormView):
    defaults = {"title": "", "description": "", "authorId": None}

    def __init__(self, auth, client: Optional[httpx.AsyncClient] = None, record_id: Any = None):
        super().__init__(auth, client, record_id)
        self.users: List[User] = []

    async def load(self):
        if not self.check_access():
            return
        self.loading = True
        calls = [self.fetch("/users", self.token)]
        if self.editing:
            calls.append(self.fetch(f"/series/{self.record_id}", self.token))
        try:
            results = await fetch_all(*calls)
        except ApiError as e:
            self.apply(error=e.message, loading=False)
            return
        self.apply(users=[User.model_validate(u) for u in results[0]], loading=False)
        if self.editing and self.mounted:
            series = Series.model_validate(results[1])
            self.draft.update(title=series.title, description=series.description or "", authorId=series.authorId)

    def validate(self) -> Optional[str]:
        if not self.token:
            return ADMIN_NOT_AUTHENTICATED
        if not self.draft["authorId"]:
            return "Please select an author."
        return require("Title is required!", self.draft["title"])

    async def send(self) -> Optional[str]:
        body = SeriesPayload(**self.draft).model_dump()
        if self.editing:
            await self.fetch(f"/series/{self.record_id}", self.token, method="PUT", json=body)
        else:
            await self.fetch("/series", self.token, method="POST", json=body)
        return "/admin/series"


class AdminUserForm(AdminAccess, FormView):
    defaults = {"name": "", "email": "", "password": "", "about": "", "roleIds": []}

    def __init__(self, auth, client: Optional[httpx.AsyncClient] = None, record_id: Any = None):
        super().__init__(auth, client, record_id)
        self.roles: List[Role] = []

    async def load(self):
        if not self.check_access():
            return
        self.loading = True
        calls = [self.fetch("/roles", self.token)]
        if self.editing:
            calls.append(self.fetch(f"/users/{self.record_id}", self.token))
        try:
            results = await fetch_all(*calls)
        except ApiError as e:
            lg.warning("Failed to fetch user or roles: %s", e.message)
            message = "Unable to fetch user or roles. Please try again." if self.editing else "Unable to fetch roles. Please try again."
            self.apply(error=message, loading=False)
            return
        self.apply(roles=[Role.model_validate(r) for r in results[0]], loading=False)
        if self.editing and self.mounted:
            user = User.model_validate(results[1])
            self.draft.update(
                name=user.name or "",
                email=user.email or "",
                password=MASKED_PASSWORD,
                about=user.about or "",
                roleIds=list(user.roleIds),
            )

    def select_roles(self, role_ids: List[Any]):
        # the control reports its whole selection set
        self.draft["roleIds"] = [int(r) for r in role_ids]

    def validate(self) -> Optional[str]:
        if not self.token:
            return ADMIN_NOT_AUTHENTICATED
        if self.editing:
            return require("Name is required!", self.draft["name"])
        return require("Name, email and password are required!", self.draft["name"], self.draft["email"], self.draft["password"])

    async def send(self) -> Optional[str]:
        if self.editing:
            body = UserUpdatePayload(**self.draft).model_dump()
            await self.fetch(f"/users/{self.record_id}", self.token, method="PUT", json=body)
        else:
            body = UserCreatePayload(**self.draft).model_dump()
            await self.fetch("/users", self.token, method="POST", json=body)
        return "/admin/users"

    def view_state(self) -> dict:
        state = super().view_state()
        state["draft"] = {k: v for k, v in self.draft.items() if k != "password"}
        state["roles"] = [r.model_dump() for r in self.roles]
        return state

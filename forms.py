import copy
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from conn import SUCCESS_NOTICE_SECONDS
from fetcher import ApiError, bearer, fetcher

lg = logging.getLogger(__name__)


class RequestSequence:
    """Per-view counters; a response is applied only if no newer request of the same kind started."""

    def __init__(self):
        self.counters: Dict[str, int] = {}

    def begin(self, kind: str = "default") -> int:
        self.counters[kind] = self.counters.get(kind, 0) + 1
        return self.counters[kind]

    def is_current(self, kind: str, ticket: int) -> bool:
        return self.counters.get(kind) == ticket


class Notice:
    # transient success indicator, hides itself after `seconds`
    def __init__(self, clock=time.monotonic):
        self.clock = clock
        self.message: Optional[str] = None
        self.expires_at = 0.0

    def show(self, message: str, seconds: float = SUCCESS_NOTICE_SECONDS):
        self.message = message
        self.expires_at = self.clock() + seconds

    def dismiss(self):
        self.message = None

    @property
    def visible(self) -> bool:
        return self.message is not None and self.clock() < self.expires_at


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False


def require(message: str, *values: Any) -> Optional[str]:
    return message if any(is_blank(value) for value in values) else None


class PageView:
    """Shared plumbing of every page: a client, the auth context and page-local state."""

    def __init__(self, auth, client: Optional[httpx.AsyncClient] = None):
        self.auth = auth
        self.client = client
        self.error: Optional[str] = None
        self.loading = False
        self.mounted = True
        self.notice = Notice()
        self.sequence = RequestSequence()

    async def fetch(self, endpoint: str, token: Optional[str] = None, **options) -> Any:
        return await fetcher(endpoint, headers=bearer(token), client=self.client, **options)

    def apply(self, **state):
        # updates from requests that finish after unmount are dropped
        if not self.mounted:
            lg.debug("Dropping state update on unmounted %s", type(self).__name__)
            return
        for name, value in state.items():
            setattr(self, name, value)

    def unmount(self):
        self.mounted = False

    def view_state(self) -> dict:
        return {
            "error": self.error,
            "loading": self.loading,
            "notice": self.notice.message if self.notice.visible else None,
        }


class FormView(PageView):
    """
    Create/edit screen: a local draft seeded from defaults or from a fetch,
    validated locally and sent through the request helper.
    """

    defaults: Dict[str, Any] = {}

    def __init__(self, auth, client: Optional[httpx.AsyncClient] = None, record_id: Any = None):
        super().__init__(auth, client)
        self.record_id = record_id
        self.draft: Dict[str, Any] = copy.deepcopy(self.defaults)

    @property
    def editing(self) -> bool:
        return self.record_id is not None

    def set_field(self, name: str, value: Any):
        self.draft[name] = value

    def update(self, **fields):
        for name, value in fields.items():
            self.set_field(name, value)

    def validate(self) -> Optional[str]:
        return None

    async def send(self) -> Optional[str]:
        raise NotImplementedError

    def submit_error(self, e: ApiError) -> str:
        return e.message

    async def submit(self) -> Optional[str]:
        """Returns where to navigate on success, None when the form stays open."""
        self.error = None
        message = self.validate()
        if message:
            self.error = message
            return None
        self.loading = True
        try:
            return await self.send()
        except ApiError as e:
            lg.warning("%s submission failed: %s", type(self).__name__, e.message)
            self.error = self.submit_error(e)
            return None
        finally:
            self.loading = False

    def view_state(self) -> dict:
        state = super().view_state()
        state["draft"] = self.draft
        return state


class SeriesByAuthor:
    """Series choices scoped to the selected author; picking a new author clears the series."""

    series: List[Any]

    def series_token(self) -> Optional[str]:
        return None

    async def load_series(self, author_id: Optional[int]):
        ticket = self.sequence.begin("series")
        if not author_id:
            self.apply(series=[])
            return
        try:
            data = await self.fetch(f"/series/users/{author_id}", self.series_token())
        except ApiError as e:
            lg.warning("Failed to fetch series for author %s: %s", author_id, e.message)
            if self.sequence.is_current("series", ticket):
                self.apply(series=[])
            return
        if self.sequence.is_current("series", ticket):
            self.apply(series=data)

    async def select_author(self, author_id: Optional[int]):
        self.draft["authorId"] = author_id
        self.draft["seriesId"] = None
        await self.load_series(author_id)


class CategoryPicker:
    def add_category(self, category_id: int):
        if category_id not in self.draft["categoryIds"]:
            self.draft["categoryIds"] = self.draft["categoryIds"] + [category_id]

    def remove_category(self, category_id: int):
        self.draft["categoryIds"] = [i for i in self.draft["categoryIds"] if i != category_id]

import asyncio

import httpx

from fetcher import HttpStatusError
from forms import FormView, Notice, PageView, RequestSequence, SeriesByAuthor, is_blank, require


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class EchoForm(FormView):
    defaults = {"title": "", "tags": []}

    async def send(self):
        await self.fetch("/echo", method="POST", json=self.draft)
        return "/done"

    def validate(self):
        return require("Title is required!", self.draft["title"])


class AuthorForm(FormView, SeriesByAuthor):
    defaults = {"authorId": None, "seriesId": None}

    def __init__(self, auth, client=None, record_id=None):
        super().__init__(auth, client, record_id)
        self.series = []


def test_is_blank_and_require():
    assert is_blank(None) and is_blank("  ") and is_blank([]) and is_blank({})
    assert not is_blank(0)
    assert require("missing", "a", [1]) is None
    assert require("missing", "a", "") == "missing"


def test_request_sequence_only_latest_is_current():
    seq = RequestSequence()
    first = seq.begin("series")
    second = seq.begin("series")
    other = seq.begin("users")
    assert not seq.is_current("series", first)
    assert seq.is_current("series", second)
    assert seq.is_current("users", other)


def test_notice_expires():
    clock = FakeClock()
    notice = Notice(clock)
    notice.show("Saved!", seconds=3)
    assert notice.visible
    clock.now += 2.9
    assert notice.visible
    clock.now += 0.2
    assert not notice.visible


def test_apply_is_dropped_after_unmount(anonymous_auth):
    page = PageView(anonymous_auth)
    page.apply(error="boom")
    assert page.error == "boom"
    page.unmount()
    page.apply(error="late")
    assert page.error == "boom"


def test_defaults_are_copied_per_form(anonymous_auth):
    first = EchoForm(anonymous_auth)
    first.draft["tags"].append("x")
    assert EchoForm(anonymous_auth).draft["tags"] == []


def test_validation_blocks_request(backend, client, anonymous_auth):
    form = EchoForm(anonymous_auth, client)
    assert asyncio.run(form.submit()) is None
    assert form.error == "Title is required!"
    assert backend.requests == []


def test_submit_failure_keeps_draft(backend, client, anonymous_auth):
    backend.add("POST", "/echo", status=400, json=[{"message": "Title too short"}, {"message": "Bad tags"}])
    form = EchoForm(anonymous_auth, client)
    form.update(title="Hi", tags=["a"])
    assert asyncio.run(form.submit()) is None
    assert form.error == "Title too short, Bad tags"
    assert form.draft == {"title": "Hi", "tags": ["a"]}
    assert not form.loading


def test_submit_success_returns_target(backend, client, anonymous_auth):
    backend.add("POST", "/echo", json={"ok": True})
    form = EchoForm(anonymous_auth, client)
    form.set_field("title", "Hello")
    assert asyncio.run(form.submit()) == "/done"
    assert form.error is None


def test_select_author_clears_series(backend, client, anonymous_auth):
    backend.add("GET", "/series/users/7", json=[{"id": 70, "title": "Seven"}])
    form = AuthorForm(anonymous_auth, client)
    form.draft["seriesId"] = 3
    asyncio.run(form.select_author(7))
    assert form.draft == {"authorId": 7, "seriesId": None}
    assert form.series == [{"id": 70, "title": "Seven"}]


def test_stale_series_response_is_discarded(backend, client, anonymous_auth):
    async def slow(request):
        await asyncio.sleep(0.05)
        return httpx.Response(200, json=[{"id": 1, "title": "Old author"}])

    backend.add("GET", "/series/users/1", handler=slow)
    backend.add("GET", "/series/users/2", json=[{"id": 2, "title": "New author"}])
    form = AuthorForm(anonymous_auth, client)

    async def scenario():
        await asyncio.gather(form.select_author(1), form.select_author(2))

    asyncio.run(scenario())
    assert form.draft["authorId"] == 2
    assert form.series == [{"id": 2, "title": "New author"}]


def test_failed_series_fetch_clears_previous_choices(backend, client, anonymous_auth):
    backend.add("GET", "/series/users/7", json=[{"id": 70, "title": "Seven"}])
    backend.add("GET", "/series/users/8", status=500, json={"message": "boom"})
    form = AuthorForm(anonymous_auth, client)
    asyncio.run(form.select_author(7))
    assert form.series
    asyncio.run(form.select_author(8))
    assert form.series == []
    assert form.draft == {"authorId": 8, "seriesId": None}


def test_series_fetch_after_unmount_changes_nothing(backend, client, anonymous_auth):
    backend.add("GET", "/series/users/4", json=[{"id": 9}])
    form = AuthorForm(anonymous_auth, client)
    form.unmount()
    asyncio.run(form.load_series(4))
    assert form.series == []


def test_submit_error_hook(anonymous_auth):
    assert EchoForm(anonymous_auth).submit_error(HttpStatusError("nope", 401)) == "nope"

import json
from typing import Any, Callable, Dict, Optional, Tuple

import httpx
from jose import jwt

BASE_URL = "http://backend.test"


def make_token(**claims) -> str:
    return jwt.encode(claims, "test-secret", algorithm="HS256")


def body_of(request: httpx.Request) -> Any:
    return json.loads(request.content.decode("utf-8")) if request.content else None


class FakeBackend:
    """
    Stand-in for the blog REST backend behind an httpx.MockTransport.
    Unknown routes answer 404 with a backend-style error body.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Callable] = {}
        self.requests = []

    def add(self, method: str, path: str, status: int = 200, json: Any = None, text: Optional[str] = None,
            handler: Optional[Callable] = None):
        def respond(request):
            if text is not None:
                return httpx.Response(status, text=text)
            return httpx.Response(status, json=json)

        self.routes[(method, path)] = handler or respond
        return self

    async def __call__(self, request: httpx.Request):
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"message": "Resource not found"})
        result = handler(request)
        if hasattr(result, "__await__"):
            result = await result
        return result

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self), base_url=BASE_URL)

    def sent(self, method: str, path: str):
        return [r for r in self.requests if r.method == method and r.url.path == path]

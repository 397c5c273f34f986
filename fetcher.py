import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from conn import make_client

lg = logging.getLogger(__name__)

UNKNOWN_ERROR = "An unknown error occurred!"
PARSE_ERROR = "Failed to parse response"
NETWORK_ERROR = "Network error, please try again."
TIMEOUT_ERROR = "Request timed out."


# Error taxonomy
class ApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class HttpStatusError(ApiError):
    pass


class TransportFailure(ApiError):
    pass


class RequestTimeout(TransportFailure):
    pass


class ResponseParseError(ApiError):
    pass


def bearer(token: Optional[str]) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"} if token else {}


def error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return UNKNOWN_ERROR
    if isinstance(body, list):
        return ", ".join(str(err.get("message") or "") if isinstance(err, dict) else "" for err in body)
    if isinstance(body, dict) and body.get("message"):
        return body["message"]
    return UNKNOWN_ERROR


def parse_body(response: httpx.Response) -> Any:
    # an empty success body comes back as ""
    try:
        if "application/json" in response.headers.get("Content-Type", ""):
            return response.json()
        return response.text
    except ValueError:
        raise ResponseParseError(PARSE_ERROR, response.status_code)


async def fetcher(
    endpoint: str,
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    json: Any = None,
    files: Any = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Any:
    """
    Issue one call against the backend and normalize the outcome.

    Returns parsed JSON when the response says so, raw text otherwise.
    Every failure surfaces as an ApiError carrying a display message;
    the httpx response itself never leaves this function.
    Auth headers are not attached here, pass ``headers=bearer(token)``.
    """
    if client is None:
        async with make_client() as own_client:
            return await fetcher(endpoint, method, headers, json, files, own_client)

    try:
        response = await client.request(method, endpoint, headers=headers, json=json, files=files)
    except httpx.TimeoutException as e:
        lg.error("%s %s timed out: %s", method, endpoint, e)
        raise RequestTimeout(TIMEOUT_ERROR)
    except httpx.HTTPError as e:
        lg.error("%s %s failed: %s", method, endpoint, e)
        raise TransportFailure(NETWORK_ERROR)

    if not response.is_success:
        message = error_message(response)
        lg.warning("%s %s returned %s: %s", method, endpoint, response.status_code, message)
        raise HttpStatusError(message, response.status_code)

    return parse_body(response)


async def fetch_all(*calls):
    # independent fetches run together, results come back in call order
    return await asyncio.gather(*calls)

import logging
import os

import httpx
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Read values from .env
API_URL = os.getenv("API_URL", "http://localhost:8080")
ADMIN_USER_ID = int(os.getenv("ADMIN_USER_ID", 1))
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", 10))
SUCCESS_NOTICE_SECONDS = float(os.getenv("SUCCESS_NOTICE_SECONDS", 3))
REGISTER_REDIRECT_SECONDS = float(os.getenv("REGISTER_REDIRECT_SECONDS", 2))
ADMIN_LOGOUT_REDIRECT = os.getenv("ADMIN_LOGOUT_REDIRECT", "false").lower() == "true"
USER_TOKEN_KEY = os.getenv("USER_TOKEN_KEY", "token")
ADMIN_TOKEN_KEY = os.getenv("ADMIN_TOKEN_KEY", "adminToken")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

logging.basicConfig(
    level=LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


# Connect to the blog backend
def make_client(transport: httpx.AsyncBaseTransport = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=API_URL,
        timeout=httpx.Timeout(REQUEST_TIMEOUT),
        transport=transport,
    )

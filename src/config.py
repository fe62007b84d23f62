"""Configuration and settings."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Paths
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"
OUTPUT_DIR = PROJECT_ROOT / "output"

# Ensure directories exist
DATA_DIR.mkdir(parents=True, exist_ok=True)
OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

# Logging
LOG_DIR = OUTPUT_DIR / "logs"
LOG_FILE = LOG_DIR / "app.jsonl"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
VERBOSE_LOGGING = os.getenv("VERBOSE_LOGGING", "false").lower() == "true"

# Ensure log directory exists
LOG_DIR.mkdir(parents=True, exist_ok=True)

# Azure AD app registration
AZURE_TENANT_ID = os.getenv("AZURE_TENANT_ID", "")
AZURE_CLIENT_ID = os.getenv("AZURE_CLIENT_ID", "")
AZURE_CLIENT_SECRET = os.getenv("AZURE_CLIENT_SECRET", "")
AZURE_REDIRECT_URI = os.getenv("AZURE_REDIRECT_URI", "")
AUTHORITY_HOST = os.getenv("AUTHORITY_HOST", "https://login.microsoftonline.com").rstrip("/")

# Graph API
GRAPH_BASE_URL = os.getenv("GRAPH_BASE_URL", "https://graph.microsoft.com/v1.0").rstrip("/")
GRAPH_DEFAULT_SCOPE = "https://graph.microsoft.com/.default"
DELEGATED_SCOPES = [
    s.strip()
    for s in os.getenv("DELEGATED_SCOPES", GRAPH_DEFAULT_SCOPE).split(",")
    if s.strip()
]

# Static delegated token used when a request carries none (local testing only)
GRAPH_ACCESS_TOKEN = os.getenv("GRAPH_ACCESS_TOKEN", "")

# Credentials are treated as stale this many seconds before they really expire
TOKEN_EXPIRY_MARGIN_SECONDS = 60

# Delegated credential store (identity -> access/refresh/expiry), rewritten on every change
TOKEN_STORE_PATH = Path(os.getenv("TOKEN_STORE_PATH", str(DATA_DIR / "token_store.json")))

# Outbound timeouts (seconds)
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))
TOKEN_ENDPOINT_TIMEOUT_SECONDS = float(os.getenv("TOKEN_ENDPOINT_TIMEOUT_SECONDS", "10"))

# HTTP server
SERVER_PORT = int(os.getenv("SERVER_PORT", "3000"))

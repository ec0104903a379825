"""
welcome_page_server.py

Welcome page and health server for the hot reload dev container.

Features:
- Serves an onboarding page on / that shows whether the repository URL and
  start command are configured, with setup instructions when they are not.
- Answers /health and /api/health with a small JSON payload so the platform
  sees the container as live before the user's app starts listening.
- Everything else is a 404.

Page env vars (read on every request):
- GITHUB_REPO_URL, GITHUB_REPO_FOLDER, GITHUB_BRANCH, DEV_START_COMMAND
                                    (default: "not set")
- WORKSPACE_PATH                    (default: /workspaces/app)
- GITHUB_SYNC_INTERVAL              (default: 30)
- ENABLE_DEV_HEALTH                 (default: true)

Server env vars (prefixed with WELCOME_PAGE_):
- WELCOME_PAGE_HOST                 (default: 0.0.0.0)
- WELCOME_PAGE_PORT                 (default: 8080, invalid values warn and fall back)
- WELCOME_PAGE_READ_TIMEOUT         (default: 5)
- WELCOME_PAGE_WRITE_TIMEOUT        (default: 10)
- WELCOME_PAGE_IDLE_TIMEOUT         (default: 120)
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from jinja2 import Environment
from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings
from rich.logging import RichHandler


logger = logging.getLogger(__name__)


# =========================
# Constants
# =========================

NOT_SET = "not set"
DEFAULT_PORT = 8080
SERVICE_NAME = "hot-reload-container"

HEALTH_PATHS = ("/health", "/api/health")

HTML_CONTENT_TYPE = "text/html; charset=utf-8"
JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


# =========================
# Settings
# =========================

class ServerSettings(BaseSettings):
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    read_timeout: float = 5.0
    write_timeout: float = 10.0
    idle_timeout: float = 120.0

    class Config:
        env_prefix = "WELCOME_PAGE_"
        env_ignore_empty = True

    @field_validator("port", mode="before")
    @classmethod
    def port_or_default(cls, v: Any) -> int:
        try:
            return int(v)
        except (TypeError, ValueError):
            logger.warning(
                "Invalid WELCOME_PAGE_PORT value %r, using default %d", v, DEFAULT_PORT
            )
            return DEFAULT_PORT


# =========================
# Environment / page context
# =========================

def env_or_default(name: str, default: str) -> str:
    """Return the env var value if it is set and non-empty, else default."""
    value = os.environ.get(name)
    if value:
        return value
    return default


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """Format an instant as RFC 3339 in UTC, e.g. 2026-10-19T08:15:02.123456Z."""
    if now is None:
        now = datetime.now(timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class PageContext(BaseModel):
    repo_url: str
    repo_folder: str
    repo_branch: str
    dev_start_command: str
    workspace_path: str
    sync_interval: str
    enable_dev_health: str
    timestamp: str

    @classmethod
    def from_environ(cls) -> "PageContext":
        return cls(
            repo_url=env_or_default("GITHUB_REPO_URL", NOT_SET),
            repo_folder=env_or_default("GITHUB_REPO_FOLDER", NOT_SET),
            repo_branch=env_or_default("GITHUB_BRANCH", NOT_SET),
            dev_start_command=env_or_default("DEV_START_COMMAND", NOT_SET),
            workspace_path=env_or_default("WORKSPACE_PATH", "/workspaces/app"),
            sync_interval=env_or_default("GITHUB_SYNC_INTERVAL", "30"),
            enable_dev_health=env_or_default("ENABLE_DEV_HEALTH", "true"),
            timestamp=utc_timestamp(),
        )

    @property
    def repo_configured(self) -> bool:
        return self.repo_url != NOT_SET

    @property
    def start_command_configured(self) -> bool:
        return self.dev_start_command != NOT_SET


# =========================
# Rendering
# =========================

WELCOME_PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Hot Reload Dev Environment</title>
    <style>
        * { margin: 0; padding: 0; box-sizing: border-box; }
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            line-height: 1.6;
            color: #333;
            background: linear-gradient(135deg, #0080ff 0%, #00d4aa 100%);
            min-height: 100vh;
            display: flex;
            align-items: center;
            justify-content: center;
            padding: 20px;
        }
        .container {
            background: white;
            border-radius: 12px;
            box-shadow: 0 20px 60px rgba(0,0,0,0.3);
            max-width: 700px;
            width: 100%;
            padding: 40px;
        }
        h1 { color: #0080ff; margin-bottom: 10px; font-size: 2em; }
        .subtitle { color: #666; margin-bottom: 25px; font-size: 1.1em; }
        .status {
            background: #f8f9fa;
            border-left: 4px solid #0080ff;
            padding: 15px;
            margin-bottom: 25px;
            border-radius: 4px;
        }
        .status-item {
            margin: 6px 0;
            font-family: 'Monaco', 'Courier New', monospace;
            font-size: 0.85em;
        }
        .status-label { font-weight: 600; color: #555; }
        .badge {
            display: inline-block;
            padding: 2px 8px;
            border-radius: 4px;
            font-size: 0.75em;
            font-weight: 600;
            margin-left: 8px;
        }
        .badge-success { background: #d4edda; color: #155724; }
        .badge-warning { background: #fff3cd; color: #856404; }
        .badge-danger { background: #f8d7da; color: #721c24; }
        .section { margin: 25px 0; }
        .section h2 {
            color: #333;
            margin-bottom: 12px;
            font-size: 1.3em;
            border-bottom: 2px solid #0080ff;
            padding-bottom: 8px;
        }
        .step {
            background: #f8f9fa;
            padding: 15px;
            margin: 12px 0;
            border-radius: 8px;
            border-left: 4px solid #0080ff;
        }
        .code-block {
            background: #2d2d2d;
            color: #f8f8f2;
            padding: 12px;
            border-radius: 6px;
            overflow-x: auto;
            margin: 8px 0;
            font-family: 'Monaco', 'Courier New', monospace;
            font-size: 0.85em;
        }
        .env-var { color: #a6e22e; }
        .value { color: #ae81ff; }
        .comment { color: #75715e; }
        .hint { color: #888; font-style: italic; font-size: 0.85em; }
        .info {
            background: #e7f3ff;
            border-left: 4px solid #0080ff;
            padding: 12px;
            margin: 12px 0;
            border-radius: 4px;
        }
        .success {
            background: #d4edda;
            border-left: 4px solid #28a745;
            padding: 15px;
            margin: 15px 0;
            border-radius: 4px;
        }
        .footer {
            margin-top: 30px;
            padding-top: 15px;
            border-top: 1px solid #eee;
            text-align: center;
            color: #666;
            font-size: 0.85em;
        }
        a { color: #0080ff; text-decoration: none; }
        a:hover { text-decoration: underline; }
    </style>
</head>
<body>
    <div class="container">
        <h1>Hot Reload Dev Environment</h1>
        <p class="subtitle">Container deployed in ~1 minute. Now point it to your code.</p>

        <div class="status">
            <div class="status-item">
                <span class="status-label">Repository:</span>
                {% if repo_configured %}<span style="color:#28a745">{{ repo_url }}</span><span class="badge badge-success">OK</span>{% else %}<span style="color:#dc3545">not set</span><span class="badge badge-danger">Required</span>{% endif %}
            </div>
            <div class="status-item">
                <span class="status-label">Start Command:</span>
                {% if start_command_configured %}<span style="color:#28a745">{{ dev_start_command }}</span><span class="badge badge-success">OK</span>{% else %}<span style="color:#856404">not set</span><span class="badge badge-warning">Optional</span>{% endif %}
            </div>
            <div class="status-item">
                <span class="status-label">Sync:</span> every {{ sync_interval }}s
            </div>
        </div>

        {% if not repo_configured %}
        <div class="section onboarding">
            <h2>Recommended: GitHub Actions (AI-friendly)</h2>
            <p style="margin-bottom: 12px;">Copy the workflow and app spec into your repo, add GitHub Secrets, then run the workflow. Repo URL is auto-filled.</p>
            <div class="code-block">
gh workflow run deploy-app.yml -f action=deploy
            </div>
            <p class="hint" style="margin-top: 8px;">Full steps: https://github.com/bikramkgupta/do-app-hot-reload-template</p>
        </div>

        <div class="section onboarding">
            <h2>Setup (Console or CLI)</h2>
            <p style="margin-bottom: 12px;">Set these environment variables in App Platform (Console or app spec):</p>
            <div class="code-block">
<span class="env-var">GITHUB_REPO_URL</span> = <span class="value">https://github.com/you/your-app</span>
<span class="env-var">DEV_START_COMMAND</span> = <span class="value">bash dev_startup.sh</span>
<span class="comment"># For private repos, also set GITHUB_TOKEN (as secret)</span>
            </div>
            <p class="hint" style="margin-top: 8px;">If you used the Deploy button or Console, redeploy after setting these.</p>
        </div>
        {% else %}
        <div class="success">
            <strong>Connected!</strong> Code syncs every {{ sync_interval }} seconds.
            {% if not start_command_configured %}
            <p style="margin-top: 8px;">Add <code>dev_startup.sh</code> to your repo or set <code>DEV_START_COMMAND</code>.</p>
            {% endif %}
        </div>
        {% endif %}

        <div class="info">
            <strong>Where to store secrets</strong>
            <p style="margin-top: 6px;">GitHub Actions: use GitHub Secrets and reference <code>${SECRET_NAME}</code> in your app spec. Console/CLI: use App Platform env vars. Do not commit secrets to the repo.</p>
        </div>

        <div class="section">
            <h2>Example dev_startup.sh</h2>
            <div class="code-block">
<span class="comment">#!/bin/bash</span>
set -e

npm install
exec npm run dev -- --hostname 0.0.0.0 --port 8080
            </div>
            <p class="hint">Push code &rarr; syncs every {{ sync_interval }} seconds. Your dev server handles hot reload.</p>
        </div>

        <div class="section">
            <h2>The Philosophy</h2>
            <div class="step">
                <strong>Container config (App Platform):</strong> Where is your code? How to start it?
                <div class="code-block" style="margin-top:8px">GITHUB_REPO_URL, DEV_START_COMMAND</div>
            </div>
            <div class="step">
                <strong>App secrets (Actions or Console):</strong> Store in GitHub Secrets or App Platform env vars
                <div class="code-block" style="margin-top:8px">DATABASE_URL, API_KEY, STRIPE_SECRET, etc.</div>
            </div>
            <p class="hint" style="margin-top: 12px;">Git push &rarr; syncs in {{ sync_interval }} seconds. No redeploy needed for code changes.</p>
        </div>

        <div class="footer">
            <p>Container started: {{ timestamp }} | Health: <code>/dev_health</code> port 9090</p>
        </div>
    </div>
</body>
</html>
"""

_jinja_env = Environment(autoescape=True)
welcome_template = _jinja_env.from_string(WELCOME_PAGE_TEMPLATE)


def render_welcome_page(context: PageContext) -> str:
    """Render the onboarding page for one request."""
    return welcome_template.render(
        context.model_dump(),
        repo_configured=context.repo_configured,
        start_command_configured=context.start_command_configured,
    )


def health_payload(now: Optional[datetime] = None) -> Dict[str, str]:
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "timestamp": utc_timestamp(now),
    }


# =========================
# HTTP server
# =========================

class WelcomePageHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"
    server_version = "welcome-page-server"

    def setup(self):
        super().setup()
        self.requests_served = 0

    def handle_one_request(self):
        # Waiting for the next request line on a kept-alive connection is idle time.
        settings = self.server.settings
        if self.requests_served:
            self.connection.settimeout(settings.idle_timeout)
        else:
            self.connection.settimeout(settings.read_timeout)
        super().handle_one_request()
        self.requests_served += 1

    def parse_request(self):
        self.connection.settimeout(self.server.settings.read_timeout)
        return super().parse_request()

    def do_GET(self):
        self._dispatch(send_body=True)

    def do_HEAD(self):
        self._dispatch(send_body=False)

    def _do_other(self):
        self._discard_body()
        self._dispatch(send_body=True)

    def _discard_body(self):
        # Bodies are ignored but must be consumed for the connection to be reused.
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            length = 0
            self.close_connection = True
        if self.headers.get("Transfer-Encoding"):
            self.close_connection = True
        elif length > 0:
            self.rfile.read(length)

    do_POST = do_PUT = do_PATCH = do_DELETE = do_OPTIONS = _do_other

    def _dispatch(self, send_body: bool):
        path = urlsplit(self.path).path
        if path in HEALTH_PATHS:
            code, content_type, body = self._health()
        elif path == "/":
            code, content_type, body = self._welcome()
        else:
            code, content_type, body = 404, TEXT_CONTENT_TYPE, b"404 page not found\n"
        self._write(code, content_type, body, send_body)

    def _welcome(self):
        try:
            html = render_welcome_page(PageContext.from_environ())
        except Exception:
            logger.exception("Error rendering welcome page")
            return 500, TEXT_CONTENT_TYPE, b"Internal Server Error\n"
        return 200, HTML_CONTENT_TYPE, html.encode("utf-8")

    def _health(self):
        try:
            body = (json.dumps(health_payload()) + "\n").encode("utf-8")
        except (TypeError, ValueError):
            logger.exception("Error encoding health response")
            body = b""
        return 200, JSON_CONTENT_TYPE, body

    def _write(self, code: int, content_type: str, body: bytes, send_body: bool = True):
        self.connection.settimeout(self.server.settings.write_timeout)
        self.send_response(code)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if send_body:
            self.wfile.write(body)

    def log_message(self, format, *args):
        logger.info("%s - %s", self.address_string(), format % args)


class WelcomePageServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, settings: ServerSettings):
        self.settings = settings
        super().__init__((settings.host, settings.port), WelcomePageHandler)

    def handle_error(self, request, client_address):
        logger.exception("Error handling request from %s", client_address[0])


def build_server(settings: ServerSettings) -> WelcomePageServer:
    """Bind the server socket. Raises OSError if the address is unavailable."""
    return WelcomePageServer(settings)


def configure_logging(level: int = logging.INFO):
    if sys.stderr.isatty():
        handler: logging.Handler = RichHandler(rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    logging.basicConfig(level=level, handlers=[handler], force=True)


def main():
    configure_logging()
    settings = ServerSettings()

    try:
        server = build_server(settings)
    except (OSError, OverflowError) as exc:
        logger.critical("Welcome page server error: %s", exc)
        sys.exit(1)

    logger.info("Welcome page server starting on port %d", settings.port)
    logger.info("Welcome page: http://%s:%d/", settings.host, settings.port)
    logger.info("Health endpoints: %s", ", ".join(HEALTH_PATHS))

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


if __name__ == "__main__":
    main()

"""Remote platform connection settings.

Resolves the credentials and repository coordinates each adapter needs,
layering environment variables over the YAML config sections.

Precedence (highest to lowest):
    Explicit args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    TRAC_URL: Trac instance URL
    TRAC_USERNAME: Trac username
    TRAC_PASSWORD: Trac password
    TRAC_INSECURE: Skip SSL verification (optional, default: false)
    GITHUB_OWNER: Repository owner (optional, gh auto-detects)
    GITHUB_REPO: Repository name (optional, gh auto-detects)
    GITHUB_TOKEN: Token passed to gh as GH_TOKEN (optional)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

from spec_sync.config_schema import GitHubConfig, TracConfig

logger = logging.getLogger(__name__)


@dataclass
class TracConnection:
    trac_url: str
    username: str
    password: str
    insecure: bool = False
    ticket_type: str = "task"


@dataclass
class GitHubTarget:
    owner: str = ""
    repo: str = ""
    token: str | None = None

    @property
    def slug(self) -> str | None:
        """``owner/repo`` when both parts are known."""
        if self.owner and self.repo:
            return f"{self.owner}/{self.repo}"
        return None


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def validate_trac_connection(conn: TracConnection) -> None:
    """Validate connection values and raise ValueError if invalid.

    Raises:
        ValueError: If URL format is invalid or credentials are empty.
    """
    conn.trac_url = conn.trac_url.strip()

    if not conn.trac_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid Trac URL '{conn.trac_url}': must start with http:// or https://"
        )

    parsed = urlparse(conn.trac_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid Trac URL '{conn.trac_url}': URL must include a hostname"
        )

    conn.trac_url = conn.trac_url.removesuffix("/")

    if not conn.username.strip():
        raise ValueError(
            "Trac username cannot be empty. Set TRAC_USERNAME environment variable."
        )

    if not conn.password.strip():
        raise ValueError(
            "Trac password cannot be empty. Set TRAC_PASSWORD environment variable."
        )

    if conn.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )


def load_trac_connection(
    section: TracConfig | None = None,
    url: str | None = None,
    username: str | None = None,
    password: str | None = None,
    insecure: bool = False,
) -> TracConnection:
    """Build a validated ``TracConnection``.

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Raises:
        ValueError: If URL, username or password is missing after checking
            all sources, or fails validation.
    """
    fb = section or TracConfig()

    trac_url = url or os.getenv("TRAC_URL") or fb.url
    if not trac_url:
        raise ValueError(
            "Trac URL not found. Set TRAC_URL environment variable "
            "or add 'trac.url' to the sync config."
        )

    trac_username = username or os.getenv("TRAC_USERNAME") or fb.username
    if not trac_username:
        raise ValueError(
            "Trac username not found. Set TRAC_USERNAME environment variable "
            "or add 'trac.username' to the sync config."
        )

    trac_password = password or os.getenv("TRAC_PASSWORD") or fb.password
    if not trac_password:
        raise ValueError(
            "Trac password not found. Set TRAC_PASSWORD environment variable "
            "or add 'trac.password' to the sync config."
        )

    if insecure:
        final_insecure = True
    else:
        env_insecure = _get_bool_env("TRAC_INSECURE")
        final_insecure = (
            env_insecure if env_insecure is not None else fb.insecure
        )

    conn = TracConnection(
        trac_url=trac_url.strip(),
        username=trac_username.strip(),
        password=trac_password.strip(),
        insecure=final_insecure,
        ticket_type=fb.ticket_type,
    )
    validate_trac_connection(conn)
    return conn


def resolve_github_target(section: GitHubConfig | None = None) -> GitHubTarget:
    """Resolve the GitHub repository and token.

    Empty owner/repo is valid: the ``gh`` CLI then detects the repository
    from the current checkout.
    """
    fb = section or GitHubConfig()
    token = fb.token if fb.auth == "token" else None
    return GitHubTarget(
        owner=os.getenv("GITHUB_OWNER") or fb.owner,
        repo=os.getenv("GITHUB_REPO") or fb.repo,
        token=os.getenv("GITHUB_TOKEN") or token,
    )

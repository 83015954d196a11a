"""Run configuration for storefront scenario runs.

RunSettings is the single configuration object accepted by the runners.
It is a plain frozen dataclass (not env-coupled) so tests can inject config
without touching os.environ; ``load_settings`` is the env-backed factory
used by the CLI.

Configuration sources (in order):
  1. Explicit keyword overrides (tests, CLI flags).
  2. Environment variables (``STOREFRONT_*``).
  3. Defaults suitable for a local storefront stack.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping
from urllib.parse import urlparse

_TOKEN_PREFIX = "STOREFRONT_TOKEN_"

AUTH_SCHEMES = ("bearer", "cookie")


class SettingsError(ValueError):
    """Raised when run configuration is invalid."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = problems
        super().__init__("invalid settings: " + "; ".join(problems))


@dataclass(frozen=True, slots=True)
class RunSettings:
    """Configuration for one scenario run.

    All fields default to a storefront running locally (API on 8091,
    Angular UI on 4200).
    """

    # ── Targets ────────────────────────────────────────────────────
    api_base_url: str = "http://localhost:8091"
    """Base URL that relative scenario paths resolve against."""

    ui_base_url: str = "http://localhost:4200"
    """Base URL of the storefront UI for browser scenarios."""

    # ── Timing ─────────────────────────────────────────────────────
    timeout_seconds: float = 30.0
    """Per-request network timeout."""

    ui_timeout_seconds: float = 10.0
    """Polling budget for each UI check."""

    poll_interval_seconds: float = 0.25
    """Delay between UI condition probes."""

    concurrency: int = 4
    """Maximum number of scenarios in flight at once."""

    # ── Upload policy (storefront configuration, not core rules) ───
    upload_limit_kb: int = 500
    """Largest attachment size the storefront should accept, in KB."""

    allowed_extensions: tuple[str, ...] = ("pdf", "jpg")
    """Attachment extensions the storefront should accept."""

    # ── Identity ───────────────────────────────────────────────────
    auth_scheme: str = "bearer"
    """How credentials travel: ``bearer`` header or ``cookie``."""

    session_cookie_name: str = "session"
    """Cookie name used when auth_scheme is ``cookie``."""

    jwt_secret: str = ""
    """HS256 secret for minting role tokens. Never log this."""

    role_tokens: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    """Pre-issued token per role name; takes precedence over minting."""

    # ── Scenario variables ─────────────────────────────────────────
    variables: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    """Values substituted into ``{name}`` placeholders in request paths."""

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        for label, url in (("api_base_url", self.api_base_url), ("ui_base_url", self.ui_base_url)):
            parsed = urlparse(url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                errors.append(f"{label} must be an absolute http(s) URL, got {url!r}")
        if self.timeout_seconds <= 0:
            errors.append("timeout_seconds must be > 0")
        if self.ui_timeout_seconds <= 0:
            errors.append("ui_timeout_seconds must be > 0")
        if self.poll_interval_seconds <= 0:
            errors.append("poll_interval_seconds must be > 0")
        if self.concurrency < 1:
            errors.append("concurrency must be >= 1")
        if self.upload_limit_kb < 1:
            errors.append("upload_limit_kb must be >= 1")
        if not self.allowed_extensions:
            errors.append("allowed_extensions must not be empty")
        if self.auth_scheme not in AUTH_SCHEMES:
            errors.append(f"auth_scheme must be one of {', '.join(AUTH_SCHEMES)}")
        return errors

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> RunSettings:
        """Build settings from environment variables.

        Tests should construct RunSettings directly.

        Raises:
            SettingsError: If a numeric variable cannot be parsed.
        """
        if env is None:
            env = dict(os.environ)

        defaults = cls()
        problems: list[str] = []

        def _number(name: str, default: Any, cast: type) -> Any:
            raw = env.get(name, "").strip()
            if not raw:
                return default
            try:
                return cast(raw)
            except ValueError:
                problems.append(f"{name}={raw!r} is not a valid {cast.__name__}")
                return default

        ext_raw = env.get("STOREFRONT_ALLOWED_EXTENSIONS", "")
        extensions = (
            tuple(e.strip().lstrip(".").lower() for e in ext_raw.split(",") if e.strip())
            if ext_raw
            else defaults.allowed_extensions
        )

        role_tokens = {
            key[len(_TOKEN_PREFIX):].lower(): value
            for key, value in env.items()
            if key.startswith(_TOKEN_PREFIX) and value
        }

        settings = cls(
            api_base_url=env.get("STOREFRONT_API_URL", defaults.api_base_url).rstrip("/"),
            ui_base_url=env.get("STOREFRONT_UI_URL", defaults.ui_base_url).rstrip("/"),
            timeout_seconds=_number("STOREFRONT_TIMEOUT_SECONDS", defaults.timeout_seconds, float),
            ui_timeout_seconds=_number("STOREFRONT_UI_TIMEOUT_SECONDS", defaults.ui_timeout_seconds, float),
            poll_interval_seconds=_number(
                "STOREFRONT_POLL_INTERVAL_SECONDS", defaults.poll_interval_seconds, float,
            ),
            concurrency=_number("STOREFRONT_CONCURRENCY", defaults.concurrency, int),
            upload_limit_kb=_number("STOREFRONT_UPLOAD_LIMIT_KB", defaults.upload_limit_kb, int),
            allowed_extensions=extensions,
            auth_scheme=env.get("STOREFRONT_AUTH_SCHEME", defaults.auth_scheme).strip().lower(),
            session_cookie_name=env.get("STOREFRONT_SESSION_COOKIE", defaults.session_cookie_name),
            jwt_secret=env.get("STOREFRONT_JWT_SECRET", ""),
            role_tokens=MappingProxyType(role_tokens),
            variables=MappingProxyType(parse_pairs(env.get("STOREFRONT_VARS", ""))),
        )
        if problems:
            raise SettingsError(problems)
        return settings


def parse_pairs(raw: str) -> dict[str, str]:
    """Parse ``k=v,k=v`` into a dict, ignoring entries without ``=``."""
    pairs: dict[str, str] = {}
    for item in raw.split(","):
        if "=" in item:
            key, value = item.split("=", 1)
            pairs[key.strip()] = value.strip()
    return pairs


def load_settings(env: Mapping[str, str] | None = None, **overrides: Any) -> RunSettings:
    """Load settings from the environment, apply overrides, and validate.

    ``None`` overrides are ignored so CLI flags can be passed through
    unconditionally. Mapping overrides (``variables``, ``role_tokens``)
    are merged over the environment values.

    Raises:
        SettingsError: If the resulting configuration is invalid.
    """
    settings = RunSettings.from_env(env)
    changes: dict[str, Any] = {}
    for name, value in overrides.items():
        if value is None:
            continue
        if name in ("variables", "role_tokens"):
            merged = dict(getattr(settings, name))
            merged.update(value)
            value = MappingProxyType(merged)
        elif name == "allowed_extensions":
            value = tuple(value)
        changes[name] = value
    if changes:
        settings = replace(settings, **changes)

    problems = settings.validate()
    if problems:
        raise SettingsError(problems)
    return settings

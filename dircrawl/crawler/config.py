"""Crawl settings and their JSON/YAML file format."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml  # type: ignore

from .constants import (
    DEFAULT_CRAWL_DELAY_SECONDS,
    DEFAULT_HTTP_HEADERS,
    DEFAULT_MAX_DEPTH,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_PROXY_URL,
    DEFAULT_REQUIRE_LISTING,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_BACKOFF_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    JSON_INDENT,
    SUPPORTED_CONFIG_SUFFIXES,
)
from .types import JSONDict, JSONValue
from .url import host_from_url, is_http_url


# Field -> (type, default) for values that may arrive as strings in YAML.
_NUMERIC_FIELDS: dict[str, tuple[type, int | float]] = {
    "max_depth": (int, DEFAULT_MAX_DEPTH),
    "crawl_delay_seconds": (float, DEFAULT_CRAWL_DELAY_SECONDS),
    "timeout_seconds": (float, DEFAULT_TIMEOUT_SECONDS),
    "retries": (int, DEFAULT_RETRIES),
    "retry_backoff_seconds": (float, DEFAULT_RETRY_BACKOFF_SECONDS),
}


def _coerce_number(value: Any, kind: type, key: str) -> int | float:
    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid {kind.__name__} for '{key}': {value!r}") from exc


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"Invalid bool for '{key}': {value!r}")


def _as_str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    return str(value).strip() or None


def _config_format(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ValueError(
            f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
        )
    return "json" if suffix == ".json" else "yaml"


@dataclass(slots=True)
class CrawlConfig:
    """Settings for one single-host crawl session."""

    seed_url: str

    max_depth: int = DEFAULT_MAX_DEPTH
    crawl_delay_seconds: float = DEFAULT_CRAWL_DELAY_SECONDS

    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retries: int = DEFAULT_RETRIES
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS

    user_agent: str = DEFAULT_USER_AGENT
    default_headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HTTP_HEADERS))
    proxy_url: str | None = DEFAULT_PROXY_URL

    output_dir: str = DEFAULT_OUTPUT_DIR
    require_listing: bool = DEFAULT_REQUIRE_LISTING

    metadata: dict[str, JSONValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.seed_url = (self.seed_url or "").strip()
        if not self.seed_url:
            raise ValueError("CrawlConfig requires a seed URL")
        if not is_http_url(self.seed_url):
            raise ValueError(f"Seed URL must be an absolute http(s) URL: {self.seed_url!r}")

        if self.max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        if self.crawl_delay_seconds < 0:
            raise ValueError("crawl_delay_seconds must be >= 0")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.retry_backoff_seconds < 0:
            raise ValueError("retry_backoff_seconds must be >= 0")

        self.proxy_url = _as_str_or_none(self.proxy_url)

    @property
    def seed_host(self) -> str:
        """Hostname every crawled URL must share."""

        return host_from_url(self.seed_url)

    @property
    def proxies(self) -> dict[str, str] | None:
        """requests-style proxy mapping, or None for direct connections."""

        if not self.proxy_url:
            return None
        return {"http": self.proxy_url, "https": self.proxy_url}

    def headers(self) -> dict[str, str]:
        """Request headers; `default_headers` wins over `user_agent`."""

        return {"User-Agent": self.user_agent, **self.default_headers}

    def to_dict(self) -> JSONDict:
        """Plain mapping accepted back by `from_dict`."""

        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CrawlConfig":
        """Build a config from a parsed JSON/YAML mapping, coercing scalar strings."""

        seed_url = payload.get("seed_url")
        if seed_url is None:
            # Older files list seeds; only one host is crawled per session.
            seeds = list(payload.get("seeds") or [])
            seed_url = seeds[0] if seeds else None
        if seed_url is None:
            raise ValueError("Config missing required key: 'seed_url'")

        numeric = {
            key: default if payload.get(key) is None else _coerce_number(payload[key], kind, key)
            for key, (kind, default) in _NUMERIC_FIELDS.items()
        }

        headers = payload.get("default_headers", DEFAULT_HTTP_HEADERS)
        return cls(
            seed_url=str(seed_url),
            user_agent=str(payload.get("user_agent", DEFAULT_USER_AGENT)),
            default_headers={str(k): str(v) for k, v in dict(headers).items()},
            proxy_url=_as_str_or_none(payload.get("proxy_url", DEFAULT_PROXY_URL)),
            output_dir=str(payload.get("output_dir", DEFAULT_OUTPUT_DIR)),
            require_listing=_as_bool(
                payload.get("require_listing", DEFAULT_REQUIRE_LISTING),
                "require_listing",
            ),
            metadata=dict(payload.get("metadata", {})),
            **numeric,
        )


def load_config_payload(path: str | Path) -> dict[str, Any]:
    """Read a JSON/YAML config file into a plain mapping without validation."""

    config_path = Path(path)
    fmt = _config_format(config_path)
    text = config_path.read_text(encoding="utf-8")

    payload = json.loads(text) if fmt == "json" else (yaml.safe_load(text) or {})
    if not isinstance(payload, dict):
        raise ValueError(f"Config at {config_path} must be a mapping at top level")
    return payload


def load_config(path: str | Path) -> CrawlConfig:
    """Read and validate a crawl config file."""

    return CrawlConfig.from_dict(load_config_payload(path))


def save_config(config: CrawlConfig, path: str | Path) -> None:
    """Write `config` to `path`; the suffix picks JSON or YAML."""

    out_path = Path(path)
    fmt = _config_format(out_path)
    payload = config.to_dict()

    if fmt == "json":
        text = json.dumps(payload, indent=JSON_INDENT, sort_keys=True) + "\n"
    else:
        text = yaml.safe_dump(payload, sort_keys=False)

    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(text, encoding="utf-8")


__all__ = [
    "CrawlConfig",
    "load_config",
    "load_config_payload",
    "save_config",
]

"""
Configuration loading for lookup runs.

Precedence (lowest to highest):
    LookupConfig defaults < configs/defaults.yaml < --run-config file
    < environment variables < flags typed on the command line
"""

from __future__ import annotations

import argparse
import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from browse.config import BrowserOptions, SiteDescriptor

from .errors import InvalidConfig
from .retry_policy import RetryPolicy


# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_CONFIG_FILE = PROJECT_ROOT / "configs" / "defaults.yaml"
SITES_FILE = PROJECT_ROOT / "profiles" / "sites.yaml"
SCREENSHOTS_DIR = PROJECT_ROOT / "screenshots"
LOG_DIR = PROJECT_ROOT / "logs"


@dataclass
class LookupConfig:
    """Effective settings for one lookup invocation."""

    screenshots_dir: Path = SCREENSHOTS_DIR
    concurrency: int = 2

    # Retry / timeout
    max_attempts: int = 3
    initial_delay_ms: int = 2000
    max_delay_ms: int = 10000
    backoff_factor: float = 2.0
    task_timeout_ms: int = 60000

    # Browser
    headless: bool = True
    viewport_width: int = 1366
    viewport_height: int = 768
    user_agent: str | None = None
    stealth: bool = False
    challenge_timeout_ms: int = 45000
    human_typing: bool = True

    # Output
    watermark: bool = True
    verbose: bool = True

    sites: list[dict] = field(default_factory=list)

    def validate(self) -> "LookupConfig":
        """Reject timeout combinations that can never fire; returns self."""
        if self.task_timeout_ms <= 0:
            raise InvalidConfig(f"task_timeout_ms must be > 0, got {self.task_timeout_ms}")
        if self.challenge_timeout_ms >= self.task_timeout_ms:
            raise InvalidConfig(
                f"challenge_timeout_ms ({self.challenge_timeout_ms}) must be below "
                f"task_timeout_ms ({self.task_timeout_ms})"
            )
        return self

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_delay_ms=self.initial_delay_ms,
            max_delay_ms=self.max_delay_ms,
            backoff_factor=self.backoff_factor,
        )

    def browser_options(self) -> BrowserOptions:
        options = BrowserOptions(
            headless=self.headless,
            viewport_width=self.viewport_width,
            viewport_height=self.viewport_height,
            stealth=self.stealth,
            challenge_timeout_ms=self.challenge_timeout_ms,
            human_typing=self.human_typing,
        )
        if self.user_agent:
            options.user_agent = self.user_agent
        return options

    def orchestrator_kwargs(self) -> dict[str, Any]:
        return {
            "screenshots_dir": Path(self.screenshots_dir),
            "concurrency": self.concurrency,
            "retry_policy": self.retry_policy(),
            "task_timeout_ms": self.task_timeout_ms,
            "watermark": self.watermark,
            "verbose": self.verbose,
        }


# ---------------------------------------------------------------------------
# Value parsing
# ---------------------------------------------------------------------------

def parse_boolean(value: Any, default: bool = False) -> bool:
    """'true'/'1'/'yes' (any case) -> True; None -> default."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


def parse_number(value: Any, default: int) -> int:
    """Integer parse; unparseable input falls back to default."""
    if value is None:
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


# environment variable -> (LookupConfig field, parser)
ENV_OVERRIDES = {
    "SCREENSHOTS_DIR": ("screenshots_dir", "path"),
    "MAX_CONCURRENT_TASKS": ("concurrency", "int"),
    "RETRY_ATTEMPTS": ("max_attempts", "int"),
    "TASK_TIMEOUT_MS": ("task_timeout_ms", "int"),
    "HEADLESS": ("headless", "bool"),
    "DEFAULT_VIEWPORT_WIDTH": ("viewport_width", "int"),
    "DEFAULT_VIEWPORT_HEIGHT": ("viewport_height", "int"),
}


def _coerce(kind: str, raw: Any, current: Any) -> Any:
    if kind == "int":
        return parse_number(raw, current)
    if kind == "bool":
        return parse_boolean(raw, current)
    if kind == "path":
        return Path(raw).expanduser() if str(raw).strip() else current
    return raw


# ---------------------------------------------------------------------------
# File loading
# ---------------------------------------------------------------------------

def _read_structured(path: Path) -> Any:
    content = path.read_text(encoding="utf-8").strip()
    if not content:
        return None
    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(content)
        return json.loads(content)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise InvalidConfig(f"Could not parse {path}: {exc}") from exc


def load_run_config(path: str | Path) -> dict:
    """Load a run configuration from JSON or YAML. Empty files give {}."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Run config not found: {path}")
    result = _read_structured(p)
    if result is None:
        return {}
    if not isinstance(result, dict):
        raise InvalidConfig(f"Run config must be a mapping: {path}")
    return result


def load_entities_file(path: str | Path) -> list[str]:
    """
    Load entity names from a file.

    Accepts a plain text file (one name per line, '#' comments), a JSON/YAML
    list, or a mapping with an 'entities' or 'companies' list.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Entities file not found: {path}")

    if p.suffix.lower() in (".json", ".yaml", ".yml"):
        data = _read_structured(p) or []
        if isinstance(data, dict):
            data = data.get("entities", data.get("companies"))
        if not isinstance(data, list):
            raise InvalidConfig("Entities file must be a list or contain an 'entities' list")
        names = [str(item.get("name", "")) if isinstance(item, dict) else str(item) for item in data]
    else:
        names = [line.split("#", 1)[0] for line in p.read_text(encoding="utf-8").splitlines()]

    return [n.strip() for n in names if n and n.strip()]


def load_sites_file(path: str | Path) -> list[SiteDescriptor]:
    """Load site descriptors from a JSON/YAML list or a mapping with 'sites'."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Sites file not found: {path}")
    data = _read_structured(p) or []
    if isinstance(data, dict):
        data = data.get("sites", data.get("websites"))
    if not isinstance(data, list):
        raise InvalidConfig("Sites file must be a list or contain a 'sites' list")
    return parse_sites(data)


def parse_sites(entries: list) -> list[SiteDescriptor]:
    sites = []
    for entry in entries:
        try:
            sites.append(SiteDescriptor.from_dict(entry))
        except ValueError as exc:
            raise InvalidConfig(str(exc)) from exc
    names = [s.name for s in sites]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise InvalidConfig(f"Duplicate site names: {', '.join(duplicates)}")
    return sites


def select_sites(sites: list[SiteDescriptor], names: list[str] | None) -> list[SiteDescriptor]:
    """Filter sites by case-insensitive name; no names keeps all."""
    if not names:
        return sites
    wanted = {n.strip().lower() for n in names if n.strip()}
    return [s for s in sites if s.name.lower() in wanted]


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------

def build_lookup_config(
    cfg: Mapping[str, Any] | None = None,
    env: Mapping[str, str] | None = None,
) -> LookupConfig:
    """Apply a run-config mapping, then environment overrides, to defaults."""
    config = LookupConfig()
    known = {f.name for f in fields(LookupConfig)}

    for key, value in (cfg or {}).items():
        if key not in known or value is None:
            continue
        current = getattr(config, key)
        if isinstance(current, bool):
            value = parse_boolean(value, current)
        elif isinstance(current, int) and not isinstance(current, bool):
            value = parse_number(value, current)
        elif isinstance(current, float):
            value = float(value)
        elif isinstance(current, Path):
            value = Path(value).expanduser()
        setattr(config, key, value)

    env = os.environ if env is None else env
    for var, (attr, kind) in ENV_OVERRIDES.items():
        if var in env:
            setattr(config, attr, _coerce(kind, env[var], getattr(config, attr)))

    return config


def apply_run_config(
    args: argparse.Namespace,
    cfg: dict,
    provided_flags: set[str],
) -> argparse.Namespace:
    """Apply run config to args, respecting CLI overrides."""
    if not cfg:
        return args

    aliases = {
        "jobs": "concurrency",
        "max_concurrent_tasks": "concurrency",
        "retry_attempts": "max_attempts",
        "timeout_ms": "task_timeout_ms",
        "entities_file": "entities_file",
        "companies_file": "entities_file",
        "sites_file": "sites_file",
    }

    applied_keys = getattr(args, "_run_config_keys", set())
    for key, value in cfg.items():
        arg_key = aliases.get(key, key)
        if arg_key not in args.__dict__:
            continue
        if arg_key in provided_flags:
            continue
        setattr(args, arg_key, value)
        applied_keys.add(arg_key)

    setattr(args, "_run_config_keys", applied_keys)
    return args


def config_from_args(args: argparse.Namespace, cfg: dict, provided_flags: set[str],
                     env: Mapping[str, str] | None = None) -> LookupConfig:
    """
    Resolve the effective LookupConfig for a CLI invocation.

    Flags the user typed beat environment variables; everything else
    comes from the run config and defaults.
    """
    config = build_lookup_config(cfg, env=env)
    known = {f.name for f in fields(LookupConfig)}
    for key in provided_flags:
        if key in known and getattr(args, key, None) is not None:
            setattr(config, key, getattr(args, key))
    if getattr(args, "no_headless", False) and "no_headless" in provided_flags:
        config.headless = False
    if getattr(args, "quiet", False):
        config.verbose = False
    return config.validate()

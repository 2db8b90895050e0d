from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv
from psycopg2.extensions import make_dsn

from .errors import ConfigError


# =========================
# CONFIG
# =========================
@dataclass(frozen=True)
class PostgresCreds:
    host: str
    port: str
    dbname: str
    user: str
    password: str
    schema: str = "public"

    def dsn(self) -> str:
        return make_dsn(host=self.host, port=self.port, dbname=self.dbname, user=self.user, password=self.password)


@dataclass(frozen=True)
class SeederSettings:
    max_depth: int = 10
    throttle_seconds: float = 0.05
    seed: Optional[int] = None
    column_mappings: Dict[str, str] = field(default_factory=dict)


REQUIRED_ENV = ("DB_HOST", "DB_NAME", "DB_USER")


def load_env(env_path: Optional[Union[str, Path]] = None) -> None:
    if env_path:
        load_dotenv(dotenv_path=env_path, override=True)
    else:
        load_dotenv()


def creds_from_env(environ: Optional[Dict[str, str]] = None) -> PostgresCreds:
    env = os.environ if environ is None else environ
    missing = [k for k in REQUIRED_ENV if not env.get(k)]
    if missing:
        raise ConfigError(f"Missing environment variables: {', '.join(missing)}")

    return PostgresCreds(
        host=env["DB_HOST"],
        port=str(env.get("DB_PORT") or 5432),
        dbname=env["DB_NAME"],
        user=env["DB_USER"],
        password=env.get("DB_PASS", ""),
        schema=env.get("DB_SCHEMA") or "public",
    )


# -------------------------
# YAML settings
# -------------------------
def load_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
            return config or {}
    except FileNotFoundError:
        raise FileNotFoundError(f"Config file not found: {config_path}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}")


def validate_config(cfg: Any) -> None:
    if not isinstance(cfg, dict):
        raise ConfigError("YAML root must be a dictionary")

    seeder = cfg.get("seeder", {})
    if not isinstance(seeder, dict):
        raise ConfigError("'seeder' must be a dictionary")

    max_depth = seeder.get("max_depth")
    if max_depth is not None and (not isinstance(max_depth, int) or isinstance(max_depth, bool) or max_depth < 1):
        raise ConfigError(f"'seeder.max_depth' must be a positive integer, got {max_depth!r}")

    throttle = seeder.get("throttle_seconds")
    if throttle is not None and (not isinstance(throttle, (int, float)) or isinstance(throttle, bool) or throttle < 0):
        raise ConfigError(f"'seeder.throttle_seconds' must be a non-negative number, got {throttle!r}")

    seed = seeder.get("seed")
    if seed is not None and (not isinstance(seed, int) or isinstance(seed, bool)):
        raise ConfigError(f"'seeder.seed' must be an integer, got {seed!r}")

    mappings = cfg.get("column_mappings", {})
    if not isinstance(mappings, dict):
        raise ConfigError("'column_mappings' must be a dictionary")
    for source, target in mappings.items():
        if not isinstance(source, str) or not isinstance(target, str):
            raise ConfigError(f"Column mapping {source!r} -> {target!r} must map a string to a string")


def settings_from_config(cfg: Dict[str, Any]) -> SeederSettings:
    validate_config(cfg)
    seeder = cfg.get("seeder", {})
    defaults = SeederSettings()
    return SeederSettings(
        max_depth=seeder.get("max_depth", defaults.max_depth),
        throttle_seconds=float(seeder.get("throttle_seconds", defaults.throttle_seconds)),
        seed=seeder.get("seed"),
        column_mappings=dict(cfg.get("column_mappings", {})),
    )


def load_settings(config_path: Optional[Union[str, Path]] = None) -> SeederSettings:
    if config_path is None:
        return SeederSettings()
    return settings_from_config(load_config(config_path))

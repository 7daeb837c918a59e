from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf

load_dotenv()

_HERE = Path(__file__).resolve()
_CANDIDATE_CONFIG_PATHS = [parent / "config/config.yaml" for parent in _HERE.parents[:3]]

CONFIG_PATH = next((path for path in _CANDIDATE_CONFIG_PATHS if path.exists()), None)
if CONFIG_PATH is None:  # pragma: no cover - fail fast in misconfigured environments
    raise FileNotFoundError("Default config.yaml could not be located; ensure the package was installed with its config directory.")

# Environment variable -> dotted config key
ENV_OVERRIDES: Dict[str, str] = {
    "BOOKSTORE_DB_PATH": "database.path",
    "S3_BUCKET_NAME": "assets.s3_bucket",
    "ASSET_BASE_URL": "assets.base_url",
    "IDENTITY_API_URL": "identity.api_url",
}


@lru_cache(maxsize=1)
def _load_default_config() -> DictConfig:
    if not CONFIG_PATH.exists():
        raise FileNotFoundError(f"Default config not found at {CONFIG_PATH}")
    return OmegaConf.load(CONFIG_PATH)


def _parse_admins(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def environment_overrides() -> Dict[str, Any]:
    """Collect config overrides from the process environment (and .env)."""
    overrides = OmegaConf.create({})
    for env_name, key in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            OmegaConf.update(overrides, key, value, force_add=True)

    admins = os.environ.get("ADMIN_USER_IDS")
    if admins:
        overrides["admins"] = _parse_admins(admins)

    return OmegaConf.to_container(overrides)  # type: ignore[return-value]


def make_runtime_config(overrides: Dict[str, Any] | None = None) -> DictConfig:
    base_container = OmegaConf.to_container(_load_default_config(), resolve=False)
    base = OmegaConf.create(base_container)
    OmegaConf.set_struct(base, True)

    merged = OmegaConf.merge(base, environment_overrides(), overrides or {})
    return DictConfig(merged)


@lru_cache(maxsize=1)
def get_settings() -> DictConfig:
    return make_runtime_config()

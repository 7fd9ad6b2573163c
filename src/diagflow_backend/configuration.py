from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf

_HERE = Path(__file__).resolve()
DEFAULT_CONFIG_PATH = _HERE.parent / "config" / "config.yaml"


def _as_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


# Environment variable -> (dotted config key, converter)
ENV_OVERRIDES: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "HOST": ("server.host", str),
    "PORT": ("server.port", int),
    "UPLOAD_DIR": ("storage.upload_dir", str),
    "MAX_UPLOAD_MB": ("storage.max_upload_mb", float),
    "ALLOW_WEBP": ("storage.allow_webp", _as_bool),
    "SMTP_HOST": ("smtp.host", str),
    "SMTP_PORT": ("smtp.port", int),
    "EMAIL_USER": ("smtp.user", str),
    "EMAIL_PASS": ("smtp.password", str),
    "EMAIL_FROM": ("smtp.sender", str),
    "CLEANUP_DELAY_SECONDS": ("report.cleanup_delay_seconds", float),
    "LOG_LEVEL": ("logging.level", str),
}


def _config_path() -> Path:
    override = os.environ.get("DIAGFLOW_CONFIG")
    return Path(override) if override else DEFAULT_CONFIG_PATH


@lru_cache(maxsize=4)
def _load_default_config(path: Path) -> DictConfig:
    if not path.exists():
        raise FileNotFoundError(f"Default config not found at {path}")
    return OmegaConf.load(path)


def env_overrides(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Collect configuration overrides from environment variables.

    Empty values are treated as unset so that a blank ``EMAIL_PASS=`` line in a
    ``.env`` file leaves the transport unconfigured instead of configured with
    an empty password.
    """
    environ = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}
    for variable, (dotted_key, convert) in ENV_OVERRIDES.items():
        raw = environ.get(variable)
        if raw is None or raw.strip() == "":
            continue
        section, key = dotted_key.split(".", 1)
        overrides.setdefault(section, {})[key] = convert(raw)
    return overrides


def make_runtime_config(overrides: Optional[Dict[str, Any]] = None, use_env: bool = True) -> DictConfig:
    """
    Build the effective configuration.

    Layers, lowest precedence first: packaged ``config.yaml`` (or the file named
    by ``DIAGFLOW_CONFIG``), environment variables (after loading ``.env``), and
    explicit ``overrides``. The base is put in struct mode, so overriding a key
    that does not exist raises instead of being silently ignored.
    """
    base_container = OmegaConf.to_container(_load_default_config(_config_path()), resolve=False)
    base = OmegaConf.create(base_container)
    OmegaConf.set_struct(base, True)

    layers = []
    if use_env:
        load_dotenv()
        layers.append(OmegaConf.create(env_overrides()))
    if overrides:
        layers.append(OmegaConf.create(overrides))

    return DictConfig(OmegaConf.merge(base, *layers))


def transport_configured(config: DictConfig) -> bool:
    return bool(config.smtp.user) and bool(config.smtp.password)


def describe_config(config: DictConfig) -> Dict[str, Any]:
    """Resolved config as a plain dict with the SMTP password masked."""
    container: Dict[str, Any] = OmegaConf.to_container(config, resolve=True)  # type: ignore[assignment]
    smtp = container.get("smtp", {})
    if smtp.get("password"):
        smtp["password"] = "***"
    return container

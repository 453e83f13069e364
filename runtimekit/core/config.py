"""
User configuration for RuntimeKit.

Configuration is read from ``<app_dir>/config.yaml``. The file is optional;
every setting has a default. Example::

    proxy:
      https: http://proxy.internal:3128
      http: http://proxy.internal:3128
    behavior:
      use_symlinks: true
    shims:
      link_order:
        linux: [hardlink, symlink]
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from runtimekit.core.directory import get_app_dir, get_config_file
from runtimekit.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

VALID_LINK_STRATEGIES = ("symlink", "hardlink")


def load_yaml_config(config_file: Path, required: bool = False) -> Dict[str, Any]:
    """
    Load and parse a YAML configuration file.

    Args:
        config_file: Path to YAML configuration file
        required: If True, raise error if file doesn't exist

    Returns:
        Configuration dictionary (empty dict if file doesn't exist and not required)

    Raises:
        FileNotFoundError: If required=True and file doesn't exist
        ConfigError: If YAML parsing fails or the top level is not a mapping
    """
    if not config_file.exists():
        if required:
            raise FileNotFoundError(f"Configuration file not found: {config_file}")
        logger.debug(f"Config file not found (optional): {config_file}")
        return {}

    logger.debug(f"Loading configuration from {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML: {e}")
        raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e

    config = config or {}
    if not isinstance(config, dict):
        raise ConfigError(f"Expected a mapping at the top of {config_file}")
    return config


@dataclass
class Config:
    """Parsed user configuration."""

    https_proxy: Optional[str] = None
    http_proxy: Optional[str] = None
    use_symlinks: Optional[bool] = None
    link_order: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        proxy = data.get("proxy") or {}
        behavior = data.get("behavior") or {}
        shims = data.get("shims") or {}

        link_order = {}
        for platform_id, order in (shims.get("link_order") or {}).items():
            if not isinstance(order, list) or not order:
                raise ConfigError(
                    f"shims.link_order.{platform_id} must be a non-empty list"
                )
            for strategy in order:
                if strategy not in VALID_LINK_STRATEGIES:
                    raise ConfigError(
                        f"Unknown link strategy '{strategy}' for {platform_id}. "
                        f"Valid: {', '.join(VALID_LINK_STRATEGIES)}"
                    )
            link_order[platform_id] = list(order)

        use_symlinks = behavior.get("use_symlinks")
        if use_symlinks is not None and not isinstance(use_symlinks, bool):
            raise ConfigError("behavior.use_symlinks must be true or false")

        return cls(
            https_proxy=proxy.get("https"),
            http_proxy=proxy.get("http"),
            use_symlinks=use_symlinks,
            link_order=link_order,
        )

    @classmethod
    def load(cls, app_dir: Optional[Path] = None) -> "Config":
        """Load configuration from ``<app_dir>/config.yaml``."""
        app_dir = app_dir or get_app_dir()
        return cls.from_dict(load_yaml_config(get_config_file(app_dir)))

    def https_proxy_url(self) -> Optional[str]:
        """HTTPS proxy from config, falling back to the environment."""
        return (
            self.https_proxy
            or os.environ.get("HTTPS_PROXY")
            or os.environ.get("https_proxy")
        )

    def http_proxy_url(self) -> Optional[str]:
        return (
            self.http_proxy
            or os.environ.get("HTTP_PROXY")
            or os.environ.get("http_proxy")
        )


def set_proxy_variables(env: Dict[str, str], config: Config) -> Dict[str, str]:
    """
    Export configured proxies into a subprocess environment.

    Args:
        env: Environment mapping, modified in place
        config: Loaded configuration

    Returns:
        The same mapping, for chaining
    """
    https_proxy = config.https_proxy_url()
    if https_proxy:
        env["HTTPS_PROXY"] = https_proxy
        env["https_proxy"] = https_proxy
    http_proxy = config.http_proxy_url()
    if http_proxy:
        env["HTTP_PROXY"] = http_proxy
        env["http_proxy"] = http_proxy
    return env

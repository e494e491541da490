"""Configuration loader for devsession."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from devsession.errors import BootstrapError


class ConfigLoader:
    """Loads CLI defaults from an explicit YAML file or a discovered ``.devsession.yml``."""

    DEFAULT_FILE_NAME = ".devsession.yml"

    SUPPORTED_KEYS = {
        "profile",
        "db_profile",
        "cluster",
        "db_hostname",
        "db_port",
        "region",
        "db_username",
        "tunnel",
        "tunnel_service",
        "tunnel_namespace",
        "tunnel_local_port",
        "tunnel_remote_port",
        "check_namespace",
        "step_timeout",
        "dry_run",
        "verbose",
        "log_file",
    }

    def find(self, search_dir: Optional[str]) -> Optional[Path]:
        if not search_dir:
            return None
        candidate = Path(search_dir) / self.DEFAULT_FILE_NAME
        return candidate if candidate.is_file() else None

    def load(self, config_path: Optional[str] = None, search_dir: Optional[str] = None) -> Dict[str, Any]:
        """Return the config mapping; an explicit path must exist, a discovered one is optional."""
        if config_path:
            path = Path(config_path)
            if not path.is_file():
                raise BootstrapError(f"Config file not found: {config_path}")
        else:
            path = self.find(search_dir)
            if path is None:
                return {}

        values = self._parse(path)
        self._check_keys(path, values)
        return values

    def _parse(self, path: Path) -> Dict[str, Any]:
        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise BootstrapError(f"Invalid config file '{path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise BootstrapError(f"Config file '{path}' must contain a YAML mapping at the root.")
        return parsed

    def _check_keys(self, path: Path, values: Dict[str, Any]):
        unknown = sorted(set(values) - self.SUPPORTED_KEYS)
        if unknown:
            raise BootstrapError(f"Unknown configuration keys in '{path}': {', '.join(unknown)}")

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .errors import ConfigError
from .lib.manifests import DEFAULT_EXTENSIONS
from .lib.native import DEFAULT_SILENT_ARGS
from .models import ArtifactKind

DEFAULT_STORE_DIR = "C:/ProgramData/langpack-provisioner/store"
DEFAULT_LOG_PATH = "C:/ProgramData/langpack-provisioner/provision.log"
DEFAULT_STATE_PATH = "C:/ProgramData/langpack-provisioner/state.json"
DEFAULT_APP_FAMILY = "Microsoft.LanguageExperiencePack"


@dataclass(frozen=True)
class ProvisionConfig:
    """Run configuration. Passed explicitly to everything that needs it."""

    raw: Dict[str, Any]

    @property
    def base_url(self) -> str:
        value = self.raw.get("base_url")
        if not value:
            raise ConfigError("base_url is required")
        return str(value)

    @property
    def manifest(self) -> str:
        value = self.raw.get("manifest")
        if value:
            return str(value)
        # Default: a manifest.txt published next to the artifacts.
        return self.base_url.rstrip("/") + "/manifest.txt"

    @property
    def store_dir(self) -> Path:
        return Path(str(self.raw.get("store_dir") or DEFAULT_STORE_DIR))

    @property
    def log_path(self) -> str:
        return str(self.raw.get("log_path") or DEFAULT_LOG_PATH)

    @property
    def state_path(self) -> str:
        return str(self.raw.get("state_path") or DEFAULT_STATE_PATH)

    @property
    def install_log_dir(self) -> Path:
        value = self.raw.get("install_log_dir")
        if value:
            return Path(str(value))
        return Path(self.log_path).parent / "install-logs"

    @property
    def timeout_s(self) -> float:
        return _positive_float(self.raw.get("timeout_s", 60), "timeout_s")

    @property
    def command_timeout_s(self) -> Optional[float]:
        value = self.raw.get("command_timeout_s")
        return None if value is None else _positive_float(value, "command_timeout_s")

    @property
    def fetch_workers(self) -> int:
        value = self.raw.get("fetch_workers", 1)
        try:
            workers = int(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"fetch_workers must be an integer, got {value!r}") from e
        if workers < 1:
            raise ConfigError("fetch_workers must be >= 1")
        return workers

    @property
    def app_package_family(self) -> str:
        return str(self.raw.get("app_package_family") or DEFAULT_APP_FAMILY)

    @property
    def silent_args(self) -> Tuple[str, ...]:
        value = self.raw.get("silent_args")
        if value is None:
            return DEFAULT_SILENT_ARGS
        if isinstance(value, str):
            return tuple(value.split())
        return tuple(str(v) for v in value)

    @property
    def extensions(self) -> Dict[str, ArtifactKind]:
        value = self.raw.get("extensions")
        if not value:
            return dict(DEFAULT_EXTENSIONS)
        if not isinstance(value, Mapping):
            raise ConfigError("extensions must map suffix -> kind")
        out: Dict[str, ArtifactKind] = {}
        for suffix, kind in value.items():
            suffix = str(suffix).lower()
            if not suffix.startswith("."):
                suffix = "." + suffix
            try:
                out[suffix] = ArtifactKind(kind)
            except ValueError as e:
                allowed = ", ".join(k.value for k in ArtifactKind)
                raise ConfigError(f"Unknown artifact kind {kind!r} for {suffix} (expected one of {allowed})") from e
        return out

    @property
    def dry_run(self) -> bool:
        return bool(self.raw.get("dry_run", False))

    def validate(self) -> "ProvisionConfig":
        """Evaluate every setting once so bad values fail before any work starts."""
        for name in (
            "base_url",
            "manifest",
            "timeout_s",
            "command_timeout_s",
            "fetch_workers",
            "silent_args",
            "extensions",
        ):
            getattr(self, name)
        return self

    def with_overrides(self, **overrides: Any) -> "ProvisionConfig":
        """Return a copy with non-None overrides applied (CLI flags win)."""
        raw = dict(self.raw)
        raw.update({k: v for k, v in overrides.items() if v is not None})
        return ProvisionConfig(raw=raw)


def _positive_float(value: Any, key: str) -> float:
    try:
        f = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{key} must be a number, got {value!r}") from e
    if f <= 0:
        raise ConfigError(f"{key} must be > 0")
    return f


def load_config(path: Optional[str]) -> ProvisionConfig:
    if path is None:
        return ProvisionConfig(raw={})

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ConfigError("config must be YAML")

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping/object")

    return ProvisionConfig(raw=raw)

# infrastructure/config/settings.py
"""
Worker configuration.

Sources, lowest priority first: built-in defaults, a YAML/JSON settings file,
a ``.env`` file, then process environment variables (``STEPWIRE_*``).
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from dotenv import dotenv_values

from domain.client_settings import ClientSettings

ENV_PREFIX = "STEPWIRE_"
TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off", ""}


class SettingsLoadError(Exception):
    pass


@dataclass(frozen=True)
class WorkerSettings:
    proxy: Optional[str] = None
    user_agent: Optional[str] = None
    log_level: str = "INFO"
    max_steps: int = 100
    console_log: bool = False  # also print JSON event lines to stdout

    def client_defaults(self) -> ClientSettings:
        return ClientSettings(proxy=self.proxy, user_agent=self.user_agent)


def _read_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise SettingsLoadError(f"Settings file not found: {path}")

    ext = path.suffix.lower()
    with path.open("r", encoding="utf-8") as f:
        try:
            if ext in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            elif ext == ".json":
                data = json.load(f)
            else:
                raise SettingsLoadError(f"Unsupported settings format: {ext}")
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise SettingsLoadError(f"Settings file is invalid: {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise SettingsLoadError(f"Settings file must contain a mapping: {path}")
    # allow the values to live under a top-level "stepwire:" key
    data = data.get("stepwire", data)
    if not isinstance(data, dict):
        raise SettingsLoadError(f"Settings under \"stepwire\" must be a mapping: {path}")
    return data


def _from_env(env: Mapping[str, Optional[str]]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for f in fields(WorkerSettings):
        value = env.get(ENV_PREFIX + f.name.upper())
        if value is not None and value != "":
            out[f.name] = value
    return out


def _coerce(values: Dict[str, Any]) -> Dict[str, Any]:
    known = {f.name for f in fields(WorkerSettings)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise SettingsLoadError(f"Unknown settings: {unknown}")

    out = dict(values)
    if "max_steps" in out:
        try:
            out["max_steps"] = int(out["max_steps"])
        except (TypeError, ValueError) as exc:
            raise SettingsLoadError(f"max_steps must be an integer: {out['max_steps']!r}") from exc
        if out["max_steps"] < 1:
            raise SettingsLoadError("max_steps must be at least 1")
    if "log_level" in out:
        out["log_level"] = str(out["log_level"]).upper()
    if "console_log" in out and not isinstance(out["console_log"], bool):
        flag = str(out["console_log"]).strip().lower()
        if flag not in TRUE_VALUES | FALSE_VALUES:
            raise SettingsLoadError(f"console_log must be a boolean: {out['console_log']!r}")
        out["console_log"] = flag in TRUE_VALUES
    return out


def load_settings(
    path: Union[str, Path, None] = None,
    env_file: Union[str, Path, None] = ".env",
    environ: Optional[Mapping[str, str]] = None,
) -> WorkerSettings:
    settings = WorkerSettings()

    if path is not None:
        settings = replace(settings, **_coerce(_read_file(Path(path))))

    if env_file is not None and Path(env_file).exists():
        settings = replace(settings, **_coerce(_from_env(dotenv_values(env_file))))

    settings = replace(settings, **_coerce(_from_env(os.environ if environ is None else environ)))
    return settings

from typing import Any, Dict, Optional, Set, Union
import json
import re
import os
from pathlib import Path

from pydantic import ValidationError
import yaml
import json5  # type: ignore

from yzx.errors import SettingsError

from .models import Settings, VAR_PATTERN, CONFIG_ENV_VAR


def _collect_variables(doc: Dict[str, Any]) -> Dict[str, Any]:
    """
    Collect variables from the config. Supports:
      - mapping: variables: { KEY: default }
      - list of one-key mappings: variables: [ {KEY: default}, ... ]
      - list of entries with explicit keys: variables: [ {key: KEY, value: default}, ... ]
    """
    out: Dict[str, Any] = {}
    vars_spec = doc.get("variables")
    if vars_spec is None:
        return out
    if isinstance(vars_spec, dict):
        for k, v in vars_spec.items():
            if isinstance(k, str):
                out[k] = v
    elif isinstance(vars_spec, list):
        for item in vars_spec:
            if isinstance(item, dict):
                if "key" in item and "value" in item and isinstance(item["key"], str):
                    out[item["key"]] = item["value"]
                else:
                    for k, v in item.items():
                        if isinstance(k, str):
                            out[k] = v
    return out


def _lookup_var_value(name: str, vars_map: Dict[str, Any]) -> tuple[bool, Any]:
    """
    Resolve a variable or environment-backed placeholder name.

    Returns (found, value); callers leave the placeholder unchanged when
    found is False.
    """
    if name.startswith("env:"):
        env_name = name[4:]
        if not env_name:
            return False, None
        val = os.getenv(env_name)
        if val is None:
            return False, None
        return True, val

    if name in vars_map:
        return True, vars_map[name]

    return False, None


def _resolve_variables(vars_map: Dict[str, Any]) -> Dict[str, Any]:
    """
    Resolve variables that are full-match references to other variables
    (a: ${b}). Unknown references stay as the placeholder string.
    Raises SettingsError on cycles.
    """
    resolved: Dict[str, Any] = {}
    resolving: Set[str] = set()

    def resolve_one(name: str) -> Any:
        if name in resolved:
            return resolved[name]
        if name in resolving:
            raise SettingsError(f"Detected variable resolution cycle at '{name}'")
        resolving.add(name)
        val = vars_map.get(name)
        res = val
        if isinstance(val, str):
            m = VAR_PATTERN.fullmatch(val)
            if m:
                ref = m.group(1)
                if ref.startswith("env:"):
                    found, env_val = _lookup_var_value(ref, vars_map)
                    res = env_val if found else val
                elif ref in vars_map:
                    res = resolve_one(ref)
        resolved[name] = res
        resolving.remove(name)
        return res

    for k in vars_map.keys():
        resolve_one(k)
    return resolved


def _interpolate_string(s: str, vars_map: Dict[str, Any]) -> str:
    def repl(m: re.Match) -> str:
        found, val = _lookup_var_value(m.group(1), vars_map)
        if not found:
            return m.group(0)
        if val is None:
            return ""
        if isinstance(val, (dict, list)):
            return json.dumps(val, ensure_ascii=False)
        return str(val)

    interpolated = VAR_PATTERN.sub(repl, s)
    # '$${' is an escaped literal '${'.
    return interpolated.replace("$${", "${")


def _apply_variables(obj: Any, vars_map: Dict[str, Any]) -> Any:
    if isinstance(obj, str):
        m = VAR_PATTERN.fullmatch(obj)
        if m:
            found, val = _lookup_var_value(m.group(1), vars_map)
            if found:
                return val
            return obj
        return _interpolate_string(obj, vars_map)
    if isinstance(obj, dict):
        return {k: _apply_variables(v, vars_map) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_apply_variables(v, vars_map) for v in obj]
    return obj


def _load_raw_file(path: Path) -> Any:
    ext = path.suffix.lower()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SettingsError(f"Cannot read config file {path}: {exc}") from exc
    try:
        if ext in {".yaml", ".yml"}:
            data = yaml.safe_load(text)
        elif ext in {".json5", ".jsonc", ".json"}:
            data = json5.loads(text)
        else:
            raise SettingsError(f"Unsupported config file extension: {ext}")
    except (yaml.YAMLError, ValueError) as exc:
        raise SettingsError(f"Cannot parse config file {path}: {exc}") from exc
    if data is None:
        return {}
    return data


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load Settings from a YAML or JSON5 file.

    Without a path, $YZX_CONFIG is used; without either, defaults are returned.
    """
    if path is None:
        path = os.getenv(CONFIG_ENV_VAR) or None
    if path is None:
        return Settings()

    data = _load_raw_file(Path(path))
    if not isinstance(data, dict):
        raise SettingsError("Root configuration must be a mapping/object")

    vars_map = _resolve_variables(_collect_variables(data))
    data = dict(data)
    data.pop("variables", None)
    data = _apply_variables(data, vars_map)

    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise SettingsError(str(exc)) from exc

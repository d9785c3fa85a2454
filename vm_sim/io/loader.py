"""Scenario loading and validation."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from pydantic import ValidationError

from vm_sim.model import ScenarioSpec

from .schema import CONFIG_SCHEMA


class ConfigError(Exception):
    """Scenario loading/validation error."""


class ConfigLoader:
    """Load and validate scenario specs from JSON/YAML files."""

    SUPPORTED_VERSION = "0.1"

    def load(self, path: str) -> ScenarioSpec:
        raw = self._read(path)
        return self.load_data(raw)

    def load_data(self, payload: dict[str, Any]) -> ScenarioSpec:
        normalized = self._normalize_version(payload)
        self._validate_schema(normalized)
        try:
            return ScenarioSpec.model_validate(normalized)
        except ValidationError as exc:
            raise ConfigError(str(exc)) from exc

    def save(self, spec: ScenarioSpec, path: str) -> None:
        output_path = Path(path)
        payload = spec.model_dump(mode="json", exclude_none=True)
        if output_path.suffix.lower() in {".yaml", ".yml"}:
            output_path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        else:
            output_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")

    @staticmethod
    def _read(path: str) -> dict[str, Any]:
        input_path = Path(path)
        if not input_path.exists():
            raise ConfigError(f"config file not found: {path}")

        text = input_path.read_text(encoding="utf-8")
        try:
            if input_path.suffix.lower() in {".yaml", ".yml"}:
                data = yaml.safe_load(text)
            else:
                data = json.loads(text)
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ConfigError(f"invalid config syntax: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigError("config root must be object")
        return data

    def _normalize_version(self, payload: dict[str, Any]) -> dict[str, Any]:
        normalized = dict(payload)
        version = str(normalized.get("version", self.SUPPORTED_VERSION))
        if version != self.SUPPORTED_VERSION:
            raise ConfigError(f"unsupported config version '{version}'")
        normalized["version"] = version
        return normalized

    @staticmethod
    def _validate_schema(payload: dict[str, Any]) -> None:
        validator = jsonschema.Draft202012Validator(CONFIG_SCHEMA)
        errors = sorted(validator.iter_errors(payload), key=lambda err: [str(part) for part in err.path])
        if not errors:
            return
        formatted = []
        for error in errors[:8]:
            path = ".".join(str(x) for x in error.path)
            formatted.append(f"{path or '<root>'}: {error.message}")
        raise ConfigError("schema validation failed: " + " | ".join(formatted))

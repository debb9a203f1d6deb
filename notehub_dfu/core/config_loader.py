"""Deployment configuration loading from YAML files and the environment."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import fields
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from notehub_dfu.core.errors import ConfigError
from notehub_dfu.core.model import DeploymentConfig

ENV_PREFIX = "INPUT_"
CONFIG_FIELDS = tuple(f.name for f in fields(DeploymentConfig))
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


# Keep on/off/yes/no and number-like values (001234, 0x1F, 1e3) as their source text;
# targeting tokens are matched verbatim.
_TEXT_TAGS = frozenset({"tag:yaml.org,2002:bool", "tag:yaml.org,2002:int", "tag:yaml.org,2002:float"})
UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag not in _TEXT_TAGS
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def _load_schema_validator() -> Any:
    schema_text = resources.files("notehub_dfu.schemas").joinpath("deployment.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _as_comma_string(value: Any) -> str:
    if isinstance(value, list):
        return ",".join(str(item) for item in value)
    return str(value)


def load_config_file(path: str | Path) -> dict[str, str]:
    """Read and validate a YAML deployment file, returning its fields as strings."""
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at root")

    try:
        _load_schema_validator().validate(loaded)
    except ValidationError as exc:
        where = ".".join(str(p) for p in exc.absolute_path)
        where = f" ({where})" if where else ""
        raise ConfigError(f"Schema validation failed for {path}{where}: {exc.message}") from exc

    if "client_secret" in loaded:
        LOGGER.warning("Config file %s contains client_secret; prefer the INPUT_CLIENT_SECRET variable", path)
    return {key: _as_comma_string(value) for key, value in loaded.items()}


def config_from_env(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Collect GitHub Action style inputs (INPUT_PROJECT_UID, INPUT_TAG, ...)."""
    environ = os.environ if environ is None else environ
    values: dict[str, str] = {}
    for name in CONFIG_FIELDS:
        value = environ.get(ENV_PREFIX + name.upper())
        if value is not None:
            values[name] = value
    return values


def build_config(*sources: Mapping[str, str | None]) -> DeploymentConfig:
    """Merge sources left to right; later non-empty values win."""
    merged: dict[str, str] = {}
    for source in sources:
        for name, value in source.items():
            if name not in CONFIG_FIELDS:
                raise ConfigError(f"Unknown configuration field '{name}'")
            if value and value.strip():
                merged[name] = value
    for name in CONFIG_FIELDS:
        merged.setdefault(name, "")
    return DeploymentConfig(**merged)

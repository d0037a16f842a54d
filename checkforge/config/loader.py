import json
import logging
import tomllib
from pathlib import Path
from typing import Any, Mapping

import yaml

from .options import validate_max_procs, validate_tempdir, validate_timeout
from .types import CheckConfig, ConfigError, SuiteConfig, UnsupportedConfigFormatError

logger = logging.getLogger(__name__)

_TOP_LEVEL_KEYS = {"checks", "max_procs", "timeout", "tempdir"}
_CHECK_KEYS = {"command", "env", "working_dir", "label"}


def load_suite(path: str | Path) -> SuiteConfig:
    pure_path = Path(path).expanduser().resolve()

    if not pure_path.exists():
        raise ConfigError(f"Config file not found: {pure_path}")

    if not pure_path.is_file():
        raise ConfigError(f"Config path is not a file: {pure_path}")

    fmt = _detect_format(pure_path)
    raw_file = _parse_file(pure_path, fmt)
    suite = _build_suite_config(raw_file)
    logger.debug("Loaded %d checks from %s", len(suite), pure_path)
    return suite


def _detect_format(path: Path) -> str:
    fmt = path.suffix
    match fmt:
        case ".yaml" | ".yml":
            return "yaml"
        case ".toml":
            return "toml"
        case ".json":
            return "json"
        case _:
            raise UnsupportedConfigFormatError(
                f"Non supported file extension: {fmt}\n Expected format: .yml/.yaml, .toml, .json"
            )


def _parse_file(path: Path, fmt: str) -> Mapping[str, Any]:
    text = path.read_text(encoding="utf-8")
    match fmt:
        case "yaml":
            try:
                raw_file = yaml.safe_load(text)
            except yaml.YAMLError as exc:
                raise ConfigError(f"{path}: invalid YAML") from exc
        case "toml":
            try:
                raw_file = tomllib.loads(text)
            except tomllib.TOMLDecodeError as exc:
                raise ConfigError(f"{path}: invalid TOML") from exc
        case "json":
            try:
                raw_file = json.loads(text)
            except json.JSONDecodeError as exc:
                raise ConfigError(f"{path}: invalid JSON") from exc
        case _:
            raise AssertionError("Unreachable")

    if not isinstance(raw_file, Mapping):
        raise ConfigError(
            f"{path}: parsed successfully but top-level value is not an object: {type(raw_file)}"
        )

    return raw_file


def _build_suite_config(raw: Mapping[str, Any]) -> SuiteConfig:
    checks: dict[str, CheckConfig] = {}

    for key in raw.keys():
        if key not in _TOP_LEVEL_KEYS:
            raise ConfigError(f"Can't process top-level field: {key}")

    if "checks" not in raw:
        raise ConfigError("Missing 'checks' field")

    if not isinstance(raw["checks"], Mapping):
        raise ConfigError(f"'checks' must be a mapping, got {type(raw['checks'])}")

    if len(raw["checks"]) < 1:
        raise ConfigError("There must be at least one check in the config file")

    for check_id, fields in raw["checks"].items():
        if not isinstance(check_id, str):
            raise ConfigError(f"Check id must be a string, got {type(check_id)}")

        if not isinstance(fields, Mapping):
            raise ConfigError(f"{check_id} must be a mapping")

        check_id_norm = check_id.strip()

        if len(check_id_norm) < 1:
            raise ConfigError("A check id can't be empty")

        if check_id_norm in checks:
            raise ConfigError(f"Duplicate check id after normalization: {check_id_norm}")

        checks[check_id_norm] = _build_check_config(check_id_norm, fields)

    max_procs = raw.get("max_procs")
    if max_procs is not None:
        validate_max_procs(max_procs)

    timeout = raw.get("timeout")
    if timeout is not None:
        validate_timeout(timeout)

    tempdir = raw.get("tempdir")
    if tempdir is not None:
        validate_tempdir(tempdir)

    return SuiteConfig(checks=checks, max_procs=max_procs, timeout=timeout, tempdir=tempdir)


def _build_check_config(check_id: str, fields: Mapping[str, Any]) -> CheckConfig:
    env = {}
    working_dir = None
    label = None

    for field in fields.keys():
        if field not in _CHECK_KEYS:
            raise ConfigError(f"{check_id}: Can't process: {field}")

    if "command" not in fields:
        raise ConfigError(f"{check_id}: missing 'command'")

    if not isinstance(fields["command"], str):
        raise ConfigError(f"{check_id}: The command should be a string")

    if len(fields["command"].strip()) < 1:
        raise ConfigError(f"{check_id}: Command missing")

    command = fields["command"].strip()

    if "env" in fields:
        if not isinstance(fields["env"], Mapping):
            raise ConfigError(f"{check_id}: Env should be a mapping")

        for key, item in fields["env"].items():
            if not isinstance(key, str):
                raise ConfigError(f"{check_id}: {key} should be a string")

            if len(key.strip()) < 1:
                raise ConfigError(f"{check_id}: A key can't be empty")

            if not isinstance(item, str):
                raise ConfigError(f"{check_id}: {item} should be a string")

            env[key.strip()] = item

    if "working_dir" in fields:
        if not isinstance(fields["working_dir"], str):
            raise ConfigError(f"{check_id}: The working_dir should be a string")

        if len(fields["working_dir"].strip()) < 1:
            raise ConfigError(
                f"{check_id}: Please provide a string or remove this field"
            )

        working_dir = fields["working_dir"].strip()

    if "label" in fields:
        if not isinstance(fields["label"], str):
            raise ConfigError(f"{check_id}: The label should be a string")

        label = fields["label"]

    return CheckConfig(check_id, command, env, working_dir, label)

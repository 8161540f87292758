"""Configuration loader for YAML and properties files with command-line overrides."""

import yaml
import os
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import ValidationError

from ..utils.errors import ConfigError
from .models import AttributeSpec, MethodParam, MonitoringSystemConfig, Target
from .settings import Settings


DEFAULT_PROPERTIES_FILE = "jmxmon.properties"
YAML_SUFFIXES = (".yaml", ".yml")

# Keys of the flat (properties / command line) format
TARGET_KEYS = ("url", "usr", "pwd", "servername")
OUTPUT_KEYS = {
    "console": "console",
    "nagiosfile": "nagios_file",
    "csvfile": "csv_file",
    "errorfile": "error_file",
    "allgcvalues": "all_gc_values",
}
FLAG_KEYS = ("console", "allgcvalues")
STRUCTURED_KEYS = ("period_seconds", "targets", "attributes", "output", "transport")

LIST_SEPARATOR = re.compile(r'[,;\s]+')
ATTRIBUTE_KEY = re.compile(r'^attr(\d+)$')
PROPERTY_LINE = re.compile(r'^([^=:\s]+)\s*(?:[=:]\s*|\s+)?(.*)$')


def _parse_bool(literal: str) -> bool:
    value = literal.strip().lower()
    if value not in ("true", "false"):
        raise ValueError(f"not a boolean: {literal!r}")
    return value == "true"


PRIMITIVE_TYPES: Dict[str, Callable[[str], Any]] = {
    "boolean": _parse_bool,
    "int": int,
    "long": int,
    "short": int,
    "byte": int,
    "double": float,
    "float": float,
}
WRAPPER_TYPES: Dict[str, Callable[[str], Any]] = {
    "Boolean": _parse_bool,
    "Integer": int,
    "Long": int,
    "Short": int,
    "Byte": int,
    "Double": float,
    "Float": float,
    "String": str,
}


class ConfigLoader:
    """Load and validate monitoring configuration."""

    @staticmethod
    def load(
        config_path: Optional[str] = None,
        overrides: Sequence[str] = ()
    ) -> MonitoringSystemConfig:
        """
        Load configuration from a file and command-line overrides.

        Command-line key=value pairs take priority over the file. A
        ``propfile=...`` override names the file. Without an explicit file
        the default properties file is read only if it exists.

        Args:
            config_path: Path to a YAML or properties file
            overrides: Command-line arguments of the form key=value

        Returns:
            MonitoringSystemConfig: Validated configuration object

        Raises:
            ConfigError: If the file is missing, malformed or invalid
        """
        flat_overrides = ConfigLoader.parse_overrides(overrides)
        explicit = flat_overrides.pop("propfile", None) or config_path or Settings.config_path()
        config_file = Path(explicit or DEFAULT_PROPERTIES_FILE)

        if not config_file.exists():
            if explicit:
                raise ConfigError(f"Configuration file not found: {config_file}")
            raw: Dict[str, Any] = {}
        elif config_file.suffix.lower() in YAML_SUFFIXES:
            raw = ConfigLoader._read_yaml(config_file)
        else:
            raw = ConfigLoader._apply_flat({}, ConfigLoader._read_properties(config_file))

        raw = ConfigLoader._apply_flat(raw, flat_overrides)
        return ConfigLoader.build(raw)

    @staticmethod
    def build(raw: Dict[str, Any]) -> MonitoringSystemConfig:
        """
        Validate a structured configuration dict.

        ``targets`` may be a list of target mappings or a mapping of
        delimited url/usr/pwd/servername lists; ``attributes`` entries may be
        delimited records or mappings.
        """
        raw = dict(raw)
        targets = raw.get("targets")
        if not targets:
            raise ConfigError("No targets configured: 'url' is required")

        try:
            if isinstance(targets, dict):
                raw["targets"] = ConfigLoader.parse_targets(**{
                    key: targets.get(key) for key in TARGET_KEYS
                })
            else:
                raw["targets"] = [
                    Target(address=item) if isinstance(item, str) else item
                    for item in targets
                ]

            raw["attributes"] = [
                ConfigLoader._attribute(item) for item in (raw.get("attributes") or [])
            ]
            return MonitoringSystemConfig(**raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    @staticmethod
    def parse_overrides(args: Sequence[str]) -> Dict[str, str]:
        """
        Parse command-line key=value pairs; keys are lower-cased.

        Raises:
            ConfigError: If an argument is not of the form key=value
        """
        overrides = {}
        for arg in args:
            key, sep, value = arg.partition("=")
            if not sep or not key.strip() or not value.strip():
                raise ConfigError(f"Expected key=value argument, got {arg!r}")
            overrides[key.strip().lower()] = value.strip()
        return overrides

    @staticmethod
    def parse_targets(
        url: Any,
        usr: Any = None,
        pwd: Any = None,
        servername: Any = None
    ) -> List[Target]:
        """
        Pair delimited target lists into Target records.

        Each of usr, pwd and servername holds either one value shared by
        all targets or exactly one value per url.

        Raises:
            ConfigError: If url is missing or list lengths don't line up
        """
        urls = _split_list(url)
        if not urls:
            raise ConfigError("No targets configured: 'url' is required")

        if usr is None and pwd is None:
            usr, pwd = Settings.default_credentials()

        users = _split_list(usr)
        passwords = _split_list(pwd)
        names = _split_list(servername)
        for label, values in (("usr", users), ("pwd", passwords), ("servername", names)):
            if values and len(values) not in (1, len(urls)):
                raise ConfigError(
                    f"'{label}' lists {len(values)} entries for {len(urls)} url(s); "
                    "give one shared value or one value per url"
                )

        return [
            Target(
                address=address,
                username=_pick(users, i),
                password=_pick(passwords, i),
                name=_pick(names, i)
            )
            for i, address in enumerate(urls)
        ]

    @staticmethod
    def parse_attribute_record(record: str) -> AttributeSpec:
        """
        Parse ``mode; title; path; pattern[; method[; type; value ...]]``.

        A mode starting with "diff" selects rate output. Parameter pairs may
        follow the method name as further ';' fields or as one ','-separated
        field.

        Raises:
            ConfigError: If the record is malformed
        """
        fields = [field.strip() for field in record.split(";")]
        if len(fields) < 4:
            raise ConfigError(
                f"Attribute record needs at least 4 ';'-separated fields: {record!r}"
            )

        mode, title, attribute_path, object_pattern = fields[:4]
        method_name = fields[4] if len(fields) > 4 and fields[4] else None

        raw_params = fields[5:]
        if len(raw_params) == 1:
            raw_params = [token.strip() for token in raw_params[0].split(",")]
        tokens = [token for token in raw_params if token]
        if len(tokens) % 2:
            raise ConfigError(f"Method parameters must come in (type, value) pairs: {record!r}")

        params = [
            ConfigLoader.typed_param(tokens[i], tokens[i + 1])
            for i in range(0, len(tokens), 2)
        ]
        return _make_spec(
            rate=mode.lower().startswith("diff"),
            title=title,
            attribute_path=attribute_path,
            object_pattern=object_pattern,
            method_name=method_name,
            method_params=params
        )

    @staticmethod
    def typed_param(type_name: str, literal: str) -> MethodParam:
        """
        Resolve a declared parameter type and convert its literal.

        Primitive names keep their name in the operation signature, wrapper
        names get the java.lang prefix, other fully qualified class names
        are passed as strings.

        Raises:
            ConfigError: If the type is unknown or the literal doesn't convert
        """
        name = type_name.strip()
        simple = name[len("java.lang."):] if name.startswith("java.lang.") else name

        if name in PRIMITIVE_TYPES:
            converter, signature = PRIMITIVE_TYPES[name], name
        elif simple in WRAPPER_TYPES:
            converter, signature = WRAPPER_TYPES[simple], f"java.lang.{simple}"
        elif "." in name:
            converter, signature = str, name
        else:
            raise ConfigError(f"Unknown parameter type {name!r}")

        try:
            value = converter(literal.strip())
        except ValueError as e:
            raise ConfigError(f"Cannot convert {literal!r} to {name}") from e
        return MethodParam(type_name=signature, value=value)

    @staticmethod
    def _attribute(item: Any) -> AttributeSpec:
        if isinstance(item, AttributeSpec):
            return item
        if isinstance(item, str):
            return ConfigLoader.parse_attribute_record(item)
        if isinstance(item, dict):
            fields = dict(item)
            fields["method_params"] = [
                ConfigLoader.typed_param(str(param.get("type", "")), str(param.get("value", "")))
                if isinstance(param, dict) else param
                for param in fields.get("method_params") or []
            ]
            return _make_spec(**fields)
        raise ConfigError(f"Unsupported attribute entry: {item!r}")

    @staticmethod
    def _apply_flat(raw: Dict[str, Any], flat: Dict[str, str]) -> Dict[str, Any]:
        """Merge flat properties-style keys into a structured configuration."""
        raw = dict(raw)

        if "periodseconds" in flat:
            raw["period_seconds"] = flat["periodseconds"]

        target_values = {key: flat[key] for key in TARGET_KEYS if key in flat}
        if target_values:
            current = raw.get("targets")
            if isinstance(current, list) and "url" not in target_values:
                raise ConfigError(
                    "Overriding usr, pwd or servername needs url when targets are listed individually"
                )
            merged = dict(current) if isinstance(current, dict) else {}
            merged.update(target_values)
            raw["targets"] = merged

        output = dict(raw.get("output") or {})
        for key, field in OUTPUT_KEYS.items():
            if key in flat:
                value = str(flat[key])
                output[field] = _parse_flag(value) if key in FLAG_KEYS else (value.strip() or None)
        if output:
            raw["output"] = output

        if "timeout" in flat:
            transport = dict(raw.get("transport") or {})
            transport["timeout_seconds"] = flat["timeout"]
            raw["transport"] = transport

        records = []
        for key, value in flat.items():
            match = ATTRIBUTE_KEY.match(key)
            if match and str(value).strip():
                records.append((int(match.group(1)), str(value)))
        if records:
            raw["attributes"] = list(raw.get("attributes") or []) + [
                value for _, value in sorted(records)
            ]

        return raw

    @staticmethod
    def _read_yaml(config_file: Path) -> Dict[str, Any]:
        """Read a YAML file; top-level flat keys are accepted as well."""
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Cannot parse {config_file}: {e}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Cannot read {config_file}: {e}") from e

        if raw_config is None:
            raw_config = {}
        if not isinstance(raw_config, dict):
            raise ConfigError(f"Top level of {config_file} must be a mapping")

        # Substitute environment variables
        raw_config = ConfigLoader._substitute_env_vars(raw_config)

        structured = {k: v for k, v in raw_config.items() if k in STRUCTURED_KEYS}
        flat = {
            str(k).lower(): v if isinstance(v, list) else str(v)
            for k, v in raw_config.items() if k not in STRUCTURED_KEYS and v is not None
        }
        return ConfigLoader._apply_flat(structured, flat)

    @staticmethod
    def _read_properties(config_file: Path) -> Dict[str, str]:
        """
        Read ``key=value`` / ``key: value`` lines with #/! comments.

        Properties files are ISO-8859-1 encoded.
        """
        try:
            with open(config_file, 'r', encoding='latin-1') as f:
                lines = f.readlines()
        except OSError as e:
            raise ConfigError(f"Cannot read {config_file}: {e}") from e

        properties = {}
        pending = ""
        for line in lines:
            stripped = line.strip()
            if not pending and (not stripped or stripped[0] in "#!"):
                continue
            if stripped.endswith("\\"):
                pending += stripped[:-1]
                continue
            stripped, pending = pending + stripped, ""

            match = PROPERTY_LINE.match(stripped)
            if match:
                properties[match.group(1).lower()] = match.group(2).strip()
        return properties

    @staticmethod
    def _substitute_env_vars(obj: Any) -> Any:
        """
        Recursively substitute ${ENV_VAR} placeholders with environment values.

        Args:
            obj: Object to process (str, dict, list, or primitive)

        Returns:
            Object with environment variables substituted
        """
        if isinstance(obj, str):
            pattern = r'\$\{(\w+)\}'
            return re.sub(pattern, lambda m: os.getenv(m.group(1), ''), obj)

        elif isinstance(obj, dict):
            return {k: ConfigLoader._substitute_env_vars(v) for k, v in obj.items()}

        elif isinstance(obj, list):
            return [ConfigLoader._substitute_env_vars(item) for item in obj]

        return obj


def _split_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [part for part in LIST_SEPARATOR.split(str(value).strip()) if part]


def _pick(values: List[str], index: int) -> Optional[str]:
    if not values:
        return None
    return values[0] if len(values) == 1 else values[index]


def _parse_flag(value: str) -> bool:
    """Flags are on for "1" or "true" in any case."""
    return value.strip().lower() in ("1", "true")


def _make_spec(**fields: Any) -> AttributeSpec:
    try:
        return AttributeSpec(**fields)
    except ValidationError as e:
        raise ConfigError(f"Invalid attribute {fields.get('title')!r}: {e}") from e

"""Rule configuration: defaults, group toggles and explicit overrides."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import yaml

from .errors import ConfigurationError
from .severity import Severity
from .utils import read_yaml_mapping

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS: Tuple[str, ...] = ("cfc", "cfm")

PLUGIN_ERROR = "PLUGIN_ERROR"
PARSE_ERROR = "PARSE_ERROR"
INTERNAL_CODES = frozenset({PLUGIN_ERROR, PARSE_ERROR})


@dataclass(frozen=True)
class RuleMessage:
    """A finding code declared by a rule, with its built-in defaults."""

    code: str
    severity: Severity
    template: str
    enabled: bool = True


@dataclass(frozen=True)
class RuleGroup:
    """Named set of codes toggled together."""

    name: str
    codes: Tuple[str, ...]
    description: str = ""


@dataclass(frozen=True)
class RuleSetting:
    """Resolved enablement, severity and parameters of one code."""

    enabled: bool
    severity: Severity
    parameters: Mapping[str, str] = field(default_factory=dict)


INTERNAL_MESSAGES: Tuple[RuleMessage, ...] = (
    RuleMessage(PLUGIN_ERROR, Severity.ERROR, "Rule {0} failed: {1}"),
    RuleMessage(PARSE_ERROR, Severity.ERROR, "Unable to parse file: {0}"),
)


class RuleConfiguration:
    """Immutable, fully resolved configuration shared by every file scan."""

    def __init__(
        self,
        settings: Mapping[str, RuleSetting],
        templates: Mapping[str, str],
        groups: Sequence[RuleGroup] = (),
        extensions: Sequence[str] = DEFAULT_EXTENSIONS,
    ) -> None:
        self._settings = MappingProxyType(dict(settings))
        self._templates = MappingProxyType(dict(templates))
        self._groups: Tuple[RuleGroup, ...] = tuple(groups)
        self._extensions: Tuple[str, ...] = tuple(ext.lower().lstrip(".") for ext in extensions)

    @property
    def settings(self) -> Mapping[str, RuleSetting]:
        return self._settings

    @property
    def templates(self) -> Mapping[str, str]:
        return self._templates

    @property
    def groups(self) -> Tuple[RuleGroup, ...]:
        return self._groups

    @property
    def extensions(self) -> Tuple[str, ...]:
        return self._extensions

    def knows(self, code: str) -> bool:
        return code in self._settings

    def setting(self, code: str) -> RuleSetting:
        try:
            return self._settings[code]
        except KeyError:
            raise ConfigurationError(f"Unknown rule code: {code}") from None

    def is_enabled(self, code: str) -> bool:
        return self.setting(code).enabled

    def severity(self, code: str) -> Severity:
        return self.setting(code).severity

    def parameter(self, code: str, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.setting(code).parameters.get(key, default)

    def active_codes(self) -> List[str]:
        return sorted(code for code, setting in self._settings.items() if setting.enabled)

    def render(self, code: str, arguments: Sequence[str]) -> str:
        template = self._templates.get(code, code)
        try:
            return template.format(*arguments)
        except (IndexError, KeyError):
            return " ".join([template, *arguments]).strip()

    def accepts(self, path: os.PathLike | str) -> bool:
        """Return whether ``path`` has one of the allowed extensions."""

        suffix = Path(path).suffix.lower().lstrip(".")
        return bool(suffix) and suffix in self._extensions


def defaults_from_rules(rules: Iterable[Any]) -> Dict[str, RuleMessage]:
    """Collect the message declarations of ``rules`` plus the internal codes."""

    defaults: Dict[str, RuleMessage] = {message.code: message for message in INTERNAL_MESSAGES}
    for rule in rules:
        for message in rule.messages:
            existing = defaults.get(message.code)
            if existing is not None and existing != message:
                raise ConfigurationError(f"Code {message.code} is declared twice with different defaults")
            defaults[message.code] = message
    return defaults


def _coerce_severity(value: Any, code: str) -> Severity:
    try:
        return Severity.parse(value)
    except ValueError as exc:
        raise ConfigurationError(f"Rule {code}: {exc}") from exc


def _coerce_bool(value: Any, where: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ConfigurationError(f"{where}: expected true/false, got {value!r}")


def _apply_overrides(
    known: Iterable[str],
    enabled: Dict[str, bool],
    severities: Dict[str, Severity],
    parameters: Dict[str, Dict[str, str]],
    groups: Sequence[RuleGroup],
    group_overrides: Optional[Mapping[str, Any]],
    explicit_overrides: Optional[Mapping[str, Any]],
) -> None:
    known = set(known)
    groups_by_name = {group.name: group for group in groups}
    for group in groups:
        for code in group.codes:
            if code not in known:
                raise ConfigurationError(f"Rule group {group.name} references unknown code {code}")

    for name, toggle in (group_overrides or {}).items():
        group = groups_by_name.get(name)
        if group is None:
            raise ConfigurationError(f"Unknown rule group: {name}")
        state = _coerce_bool(toggle, f"Rule group {name}")
        for code in group.codes:
            enabled[code] = state

    for code, override in (explicit_overrides or {}).items():
        if code not in known:
            raise ConfigurationError(f"Override references unknown rule code: {code}")
        if isinstance(override, bool):
            override = {"enabled": override}
        if not isinstance(override, Mapping):
            raise ConfigurationError(f"Override for {code} must be a mapping")
        unknown = set(override) - {"enabled", "severity", "parameters"}
        if unknown:
            raise ConfigurationError(f"Override for {code} has unknown keys: {', '.join(sorted(unknown))}")
        if "enabled" in override:
            enabled[code] = _coerce_bool(override["enabled"], f"Rule {code}")
        if "severity" in override:
            severities[code] = _coerce_severity(override["severity"], code)
        params = override.get("parameters") or {}
        if not isinstance(params, Mapping):
            raise ConfigurationError(f"Parameters for {code} must be a mapping")
        parameters[code].update({str(key): str(value) for key, value in params.items()})


def _settings(
    codes: Iterable[str],
    enabled: Dict[str, bool],
    severities: Dict[str, Severity],
    parameters: Dict[str, Dict[str, str]],
) -> Dict[str, RuleSetting]:
    return {
        code: RuleSetting(
            enabled=enabled[code],
            severity=severities[code],
            parameters=MappingProxyType(parameters[code]),
        )
        for code in codes
    }


def resolve_configuration(
    defaults: Mapping[str, RuleMessage],
    group_overrides: Optional[Mapping[str, Any]] = None,
    explicit_overrides: Optional[Mapping[str, Any]] = None,
    *,
    groups: Sequence[RuleGroup] = (),
    extensions: Optional[Sequence[str]] = None,
) -> RuleConfiguration:
    """Merge built-in defaults, group toggles and explicit per-code overrides.

    Later layers win. Every code in ``defaults`` ends up with a complete
    setting. Overrides naming an unknown group or code raise
    :class:`ConfigurationError`.
    """

    enabled: Dict[str, bool] = {code: message.enabled for code, message in defaults.items()}
    severities: Dict[str, Severity] = {code: message.severity for code, message in defaults.items()}
    parameters: Dict[str, Dict[str, str]] = {code: {} for code in defaults}
    _apply_overrides(defaults, enabled, severities, parameters, groups, group_overrides, explicit_overrides)

    templates = {code: message.template for code, message in defaults.items()}
    return RuleConfiguration(
        _settings(defaults, enabled, severities, parameters),
        templates,
        groups=groups,
        extensions=DEFAULT_EXTENSIONS if extensions is None else extensions,
    )


@dataclass
class ConfigOverrides:
    """Override layers read from a user configuration file."""

    groups: Dict[str, bool] = field(default_factory=dict)
    rules: Dict[str, Any] = field(default_factory=dict)
    extensions: Optional[List[str]] = None
    filter: Optional[List[Any]] = None


def layer_configuration(base: RuleConfiguration, overrides: ConfigOverrides) -> RuleConfiguration:
    """Apply ``overrides`` on top of an already resolved configuration."""

    settings = base.settings
    enabled = {code: setting.enabled for code, setting in settings.items()}
    severities = {code: setting.severity for code, setting in settings.items()}
    parameters = {code: dict(setting.parameters) for code, setting in settings.items()}
    _apply_overrides(settings, enabled, severities, parameters, base.groups, overrides.groups, overrides.rules)
    return RuleConfiguration(
        _settings(settings, enabled, severities, parameters),
        base.templates,
        groups=base.groups,
        extensions=base.extensions if overrides.extensions is None else overrides.extensions,
    )


def merge_overrides(layers: Iterable[ConfigOverrides]) -> ConfigOverrides:
    """Fold override layers, later layers winning per group, code and parameter."""

    merged = ConfigOverrides()
    for layer in layers:
        merged.groups.update(layer.groups)
        for code, override in layer.rules.items():
            if isinstance(override, bool):
                override = {"enabled": override}
            current = merged.rules.get(code)
            if not isinstance(current, Mapping) or not isinstance(override, Mapping):
                merged.rules[code] = override
                continue
            combined = {**current, **override}
            if "parameters" in current and "parameters" in override:
                combined["parameters"] = {**(current["parameters"] or {}), **(override["parameters"] or {})}
            merged.rules[code] = combined
        if layer.extensions is not None:
            merged.extensions = list(layer.extensions)
        if layer.filter:
            merged.filter = list(merged.filter or []) + list(layer.filter)
    return merged


def _code_list(data: Mapping[str, Any], key: str) -> Optional[List[str]]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ConfigurationError(f"'{key}' must be a list of rule codes")
    return [str(code) for code in value]


def overrides_from_mapping(data: Mapping[str, Any], known_codes: Iterable[str] = ()) -> ConfigOverrides:
    """Translate a loaded configuration document into override layers.

    ``includes`` disables every known rule code that is not listed (the
    internal error codes are left alone); ``excludes`` disables the listed
    codes. Entries under ``rules`` win over both.
    """

    unknown = set(data) - {"groups", "rules", "extensions", "includes", "excludes", "filter"}
    if unknown:
        raise ConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

    rules: Dict[str, Any] = {}
    includes = _code_list(data, "includes")
    if includes is not None:
        listed = set(includes)
        for code in known_codes:
            if code not in listed and code not in INTERNAL_CODES:
                rules[code] = {"enabled": False}
        for code in includes:
            rules[code] = {"enabled": True}
    for code in _code_list(data, "excludes") or ():
        rules[code] = {"enabled": False}

    explicit = data.get("rules") or {}
    if not isinstance(explicit, Mapping):
        raise ConfigurationError("'rules' must be a mapping of code to override")
    for code, override in explicit.items():
        merged = dict(rules.get(code, {}))
        if isinstance(override, Mapping):
            merged.update(override)
        else:
            merged = override
        rules[str(code)] = merged

    groups = data.get("groups") or {}
    if not isinstance(groups, Mapping):
        raise ConfigurationError("'groups' must be a mapping of group name to true/false")

    extensions = _code_list(data, "extensions")

    suppressions = data.get("filter")
    if suppressions is not None and not isinstance(suppressions, list):
        raise ConfigurationError("'filter' must be a list of suppression entries")

    return ConfigOverrides(
        groups={str(name): toggle for name, toggle in groups.items()},
        rules=rules,
        extensions=extensions,
        filter=suppressions,
    )


def load_overrides(path: os.PathLike | str, known_codes: Iterable[str] = ()) -> ConfigOverrides:
    """Read a YAML/JSON configuration file into override layers."""

    if not Path(path).is_file():
        raise ConfigurationError(f"Configuration file not found: {path}")
    try:
        data = read_yaml_mapping(Path(path))
    except (yaml.YAMLError, ValueError, OSError) as exc:
        raise ConfigurationError(f"Cannot load configuration {path}: {exc}") from exc
    logger.debug("Loaded configuration from %s", path)
    return overrides_from_mapping(data or {}, known_codes)

import pytest

from tagscan.config import (
    PARSE_ERROR,
    PLUGIN_ERROR,
    ConfigOverrides,
    RuleGroup,
    RuleMessage,
    defaults_from_rules,
    layer_configuration,
    load_overrides,
    merge_overrides,
    resolve_configuration,
)
from tagscan.errors import ConfigurationError
from tagscan.linter import build_configuration
from tagscan.rules import load_rules
from tagscan.severity import Severity

DEFAULTS = {
    "A_CODE": RuleMessage("A_CODE", Severity.WARNING, "a {0}"),
    "B_CODE": RuleMessage("B_CODE", Severity.INFO, "b"),
    "C_CODE": RuleMessage("C_CODE", Severity.ERROR, "c", enabled=False),
}
GROUPS = (RuleGroup("Letters", ("A_CODE", "B_CODE")),)


def test_defaults_are_inherited():
    configuration = resolve_configuration(DEFAULTS)

    assert configuration.is_enabled("A_CODE")
    assert configuration.severity("B_CODE") is Severity.INFO
    assert not configuration.is_enabled("C_CODE")
    assert set(configuration.settings) == set(DEFAULTS)


def test_explicit_overrides_beat_group_toggles():
    configuration = resolve_configuration(
        DEFAULTS,
        {"Letters": False},
        {"B_CODE": {"enabled": True, "severity": "error", "parameters": {"limit": 3}}},
        groups=GROUPS,
    )

    assert not configuration.is_enabled("A_CODE")
    assert configuration.is_enabled("B_CODE")
    assert configuration.severity("B_CODE") is Severity.ERROR
    assert configuration.parameter("B_CODE", "limit") == "3"
    assert configuration.active_codes() == ["B_CODE"]


def test_boolean_shorthand_override():
    configuration = resolve_configuration(DEFAULTS, explicit_overrides={"C_CODE": True})

    assert configuration.is_enabled("C_CODE")
    assert configuration.severity("C_CODE") is Severity.ERROR


@pytest.mark.parametrize(
    "groups_override, explicit",
    [
        ({"Nope": False}, None),
        ({"Letters": "off"}, None),
        (None, {"MISSING": {"enabled": False}}),
        (None, {"A_CODE": {"severity": "loud"}}),
        (None, {"A_CODE": {"colour": "red"}}),
        (None, {"A_CODE": "yes"}),
    ],
)
def test_bad_overrides_raise(groups_override, explicit):
    with pytest.raises(ConfigurationError):
        resolve_configuration(DEFAULTS, groups_override, explicit, groups=GROUPS)


def test_group_with_unknown_code_raises():
    with pytest.raises(ConfigurationError):
        resolve_configuration(DEFAULTS, groups=(RuleGroup("Broken", ("Z_CODE",)),))


def test_unknown_code_lookup_raises():
    configuration = resolve_configuration(DEFAULTS)

    with pytest.raises(ConfigurationError):
        configuration.setting("Z_CODE")


def test_render_and_extensions():
    configuration = resolve_configuration(DEFAULTS)

    assert configuration.render("A_CODE", ["x"]) == "a x"
    assert configuration.accepts("views/index.CFM")
    assert not configuration.accepts("README.md")


def test_built_in_configuration_covers_rules_and_internal_codes():
    configuration = build_configuration(load_rules())

    for code in (PLUGIN_ERROR, PARSE_ERROR, "INCORRECT_COMPONENT_NAME", "AVOID_USING_CFDUMP_TAG"):
        assert configuration.knows(code)
    assert [group.name for group in configuration.groups] == ["Correctness", "Debugging"]


def test_load_overrides_from_yaml(tmp_path):
    config_path = tmp_path / "tagscan.yaml"
    config_path.write_text(
        """
extensions: [cfm]
groups:
  Debugging: false
excludes: [INCORRECT_COMPONENT_NAME]
rules:
  AVOID_USING_WRITEDUMP:
    enabled: true
    severity: warning
filter:
  - code: PARSE_ERROR
""",
        encoding="utf-8",
    )
    rules = load_rules()

    overrides = load_overrides(config_path, known_codes=["INCORRECT_COMPONENT_NAME"])
    configuration = build_configuration(rules, overrides)

    assert configuration.extensions == ("cfm",)
    assert not configuration.is_enabled("INCORRECT_COMPONENT_NAME")
    assert not configuration.is_enabled("AVOID_USING_CFDUMP_TAG")
    assert configuration.is_enabled("AVOID_USING_WRITEDUMP")
    assert configuration.severity("AVOID_USING_WRITEDUMP") is Severity.WARNING
    assert overrides.filter == [{"code": "PARSE_ERROR"}]


def test_includes_disable_everything_else(tmp_path):
    config_path = tmp_path / "tagscan.yaml"
    config_path.write_text("includes: [AVOID_USING_WRITEDUMP]\n", encoding="utf-8")
    rules = load_rules()
    known = [message.code for rule in rules for message in rule.messages]

    configuration = build_configuration(rules, load_overrides(config_path, known_codes=known))

    assert configuration.active_codes() == ["AVOID_USING_WRITEDUMP", PARSE_ERROR, PLUGIN_ERROR]


def test_load_overrides_rejects_bad_files(tmp_path):
    with pytest.raises(ConfigurationError):
        load_overrides(tmp_path / "missing.yaml")

    bad = tmp_path / "bad.yaml"
    bad.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_overrides(bad)

    unknown = tmp_path / "unknown.yaml"
    unknown.write_text("colour: red\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_overrides(unknown)


def test_includes_keep_internal_codes_enabled(tmp_path):
    config_path = tmp_path / "tagscan.yaml"
    config_path.write_text("includes: [AVOID_USING_WRITEDUMP]\n", encoding="utf-8")
    rules = load_rules()

    overrides = load_overrides(config_path, known_codes=defaults_from_rules(rules))
    configuration = build_configuration(rules, overrides)

    assert configuration.active_codes() == ["AVOID_USING_WRITEDUMP", PARSE_ERROR, PLUGIN_ERROR]
    assert PARSE_ERROR not in overrides.rules


@pytest.mark.parametrize(
    "document",
    [
        "includes: AVOID_USING_WRITEDUMP\n",
        "excludes: AVOID_USING_WRITEDUMP\n",
        "excludes: {AVOID_USING_WRITEDUMP: true}\n",
        "extensions: cfm\n",
    ],
)
def test_code_lists_must_be_lists(tmp_path, document):
    config_path = tmp_path / "tagscan.yaml"
    config_path.write_text(document, encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_overrides(config_path, known_codes=["AVOID_USING_WRITEDUMP"])


def test_layered_configuration_and_merged_overrides():
    rules = load_rules()
    base = build_configuration(rules)
    parent = ConfigOverrides(
        groups={"Debugging": False},
        rules={"INCORRECT_COMPONENT_NAME": {"parameters": {"rootMarker": "box.json", "componentExtension": "cfc"}}},
        filter=[{"code": "PARSE_ERROR"}],
    )
    child = ConfigOverrides(
        rules={
            "AVOID_USING_WRITEDUMP": {"enabled": True, "severity": "error"},
            "INCORRECT_COMPONENT_NAME": {"parameters": {"rootMarker": "site.json"}},
        },
        extensions=["cfm"],
        filter=[{"line": 3}],
    )

    merged = merge_overrides([parent, child])
    configuration = layer_configuration(base, merged)

    assert not configuration.is_enabled("AVOID_USING_CFDUMP_TAG")
    assert configuration.is_enabled("AVOID_USING_WRITEDUMP")
    assert configuration.severity("AVOID_USING_WRITEDUMP") is Severity.ERROR
    assert configuration.parameter("INCORRECT_COMPONENT_NAME", "rootMarker") == "site.json"
    assert configuration.parameter("INCORRECT_COMPONENT_NAME", "componentExtension") == "cfc"
    assert configuration.extensions == ("cfm",)
    assert merged.filter == [{"code": "PARSE_ERROR"}, {"line": 3}]
    assert base.is_enabled("AVOID_USING_CFDUMP_TAG")
    assert configuration.render("AVOID_USING_WRITEDUMP", ()) == base.render("AVOID_USING_WRITEDUMP", ())

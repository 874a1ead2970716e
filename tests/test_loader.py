"""Tests for BlueprintLoader - file loading and load-time validation."""

import json

import pytest
import yaml

from blueprint_wizard.engine.errors import (
    ConditionSyntaxError,
    MalformedBlueprintError,
    OnboardingIOError,
)
from blueprint_wizard.engine.loader import BlueprintLoader
from blueprint_wizard.engine.schema import BlueprintDocument

INFO_STEP = {"id": "hello", "type": "info", "markdown": "Hello"}


def test_load_builtin_generic_blueprint(generic_document):
    """The shipped sample blueprint loads and validates."""
    assert isinstance(generic_document, BlueprintDocument)
    assert generic_document.provider == "example-provider"
    assert set(generic_document.variables) == {"environment_id", "environment_url", "client_id", "client_secret"}
    assert generic_document.variables["client_secret"].sensitive is True
    assert len(generic_document.flows[0].steps) == 14
    assert generic_document.contextifact.prompt_template.startswith("You are helping")


def test_load_yaml_file(tmp_path, make_blueprint):
    path = tmp_path / "bp.yaml"
    path.write_text(yaml.safe_dump(make_blueprint([INFO_STEP])))

    document = BlueprintLoader().load(path)

    assert document.name == "Test Blueprint"
    assert document.flows[0].steps[0].id == "hello"


def test_load_relative_to_base_path(tmp_path, make_blueprint):
    (tmp_path / "bp.yml").write_text(yaml.safe_dump(make_blueprint([INFO_STEP])))

    document = BlueprintLoader(base_path=tmp_path).load("bp.yml")

    assert document.provider == "acme"


def test_load_json_file(tmp_path, make_blueprint):
    path = tmp_path / "bp.json"
    path.write_text(json.dumps(make_blueprint([INFO_STEP])))

    assert BlueprintLoader().load(path).provider == "acme"


def test_load_toml_file(tmp_path):
    path = tmp_path / "bp.toml"
    path.write_text(
        'schema_version = "1.0"\n'
        'name = "TOML Blueprint"\n'
        'provider = "acme"\n'
        "\n"
        "[variables.environment_id]\n"
        "required = true\n"
        'validation = "^env_[0-9]+$"\n'
        "\n"
        "[output]\n"
        'storage_path = "/tmp/out"\n'
        "\n"
        "[[flows]]\n"
        'id = "main"\n'
        "\n"
        "[[flows.steps]]\n"
        'id = "capture"\n'
        'type = "input"\n'
        'save_to = "environment_id"\n'
    )

    document = BlueprintLoader().load(path)

    assert document.name == "TOML Blueprint"
    assert document.flows[0].steps[0].save_to == "environment_id"


def test_missing_file_is_io_error(tmp_path):
    with pytest.raises(OnboardingIOError):
        BlueprintLoader().load(tmp_path / "nope.yaml")


def test_unparseable_yaml(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("name: [unclosed\n")

    with pytest.raises(MalformedBlueprintError):
        BlueprintLoader().load(path)


def test_non_mapping_document(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(MalformedBlueprintError, match="mapping"):
        BlueprintLoader().load(path)


def test_missing_top_level_keys(make_blueprint):
    data = make_blueprint([INFO_STEP])
    del data["provider"]
    del data["output"]

    with pytest.raises(MalformedBlueprintError) as exc:
        BlueprintLoader.from_dict(data)

    assert "provider" in str(exc.value)
    assert "output" in str(exc.value)


def test_unknown_step_type_is_fatal(make_blueprint):
    """Unknown step types are a load-time error, never a runtime skip."""
    data = make_blueprint([{"id": "x", "type": "teleport"}])

    with pytest.raises(MalformedBlueprintError):
        BlueprintLoader.from_dict(data)


def test_invalid_step_payload(make_blueprint):
    data = make_blueprint([{"id": "x", "type": "navigate"}])  # url missing

    with pytest.raises(MalformedBlueprintError) as exc:
        BlueprintLoader.from_dict(data)

    assert exc.value.location.startswith("flows")


def test_invalid_condition_rejected_at_load(make_blueprint):
    data = make_blueprint([{
        "id": "x",
        "type": "show_commands",
        "commands": ["ls"],
        "when": "sdk.language != 'node'",
    }])

    with pytest.raises(ConditionSyntaxError) as exc:
        BlueprintLoader.from_dict(data)

    assert exc.value.step_id == "x"


def test_input_step_needs_exactly_one_target(make_blueprint):
    both = make_blueprint([{
        "id": "x", "type": "input", "save_to": "environment_id", "inputs": [{"name": "client_id"}],
    }])
    neither = make_blueprint([{"id": "x", "type": "input"}])

    with pytest.raises(MalformedBlueprintError):
        BlueprintLoader.from_dict(both)
    with pytest.raises(MalformedBlueprintError):
        BlueprintLoader.from_dict(neither)


def test_duplicate_step_ids(make_blueprint):
    data = make_blueprint([INFO_STEP, INFO_STEP])

    with pytest.raises(MalformedBlueprintError, match="Duplicate step id"):
        BlueprintLoader.from_dict(data)


def test_invalid_validation_pattern(make_blueprint):
    data = make_blueprint([INFO_STEP], variables={"token": {"validation": "^(unclosed$"}})

    with pytest.raises(MalformedBlueprintError, match="Invalid validation pattern"):
        BlueprintLoader.from_dict(data)


def test_choice_with_duplicate_options(make_blueprint):
    data = make_blueprint([{"id": "pick", "type": "choice", "save_to": "lang", "options": ["go", "go"]}])

    with pytest.raises(MalformedBlueprintError, match="duplicate options"):
        BlueprintLoader.from_dict(data)

"""Tests for config loading, saving and key conversion."""

import json

from agentpilot.config.loader import camel_to_snake, convert_keys, load_config, save_config, snake_to_camel
from agentpilot.config.schema import Config


def test_key_conversion():
    assert camel_to_snake("maxIterations") == "max_iterations"
    assert snake_to_camel("confirmation_ttl_seconds") == "confirmationTtlSeconds"
    assert convert_keys({"permissions": {"rules": [{"channelType": "telegram"}]}}) == {
        "permissions": {"rules": [{"channel_type": "telegram"}]}
    }


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "missing.json")

    assert config.permissions.default_level == 0
    assert config.agent.max_iterations == 10
    assert config.scheduler.enabled is True


def test_load_camel_case_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "agent": {"model": "openai/gpt-4o", "maxIterations": 4},
        "permissions": {
            "defaultLevel": 1,
            "confirmOperations": ["write_file"],
            "rules": [{"channelType": "telegram", "channelId": "42", "actionType": "shell", "level": 3}],
        },
        "channels": {"telegram": {"enabled": True, "token": "t", "allowFrom": ["@alice"]}},
    }), encoding="utf-8")

    config = load_config(path)

    assert config.agent.model == "openai/gpt-4o"
    assert config.agent.max_iterations == 4
    assert config.permissions.confirm_operations == ["write_file"]
    assert config.permissions.rules[0].user_id is None
    assert config.permissions.rules[0].level == 3
    assert config.channels.telegram.allow_from == ["@alice"]


def test_invalid_json_falls_back_to_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")

    assert load_config(path).agent.model == Config().agent.model


def test_save_round_trips_and_keeps_backup(tmp_path):
    path = tmp_path / "config.json"
    config = Config()
    config.agent.max_iterations = 7
    save_config(config, path)
    save_config(config, path)

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["agent"]["maxIterations"] == 7
    assert load_config(path).agent.max_iterations == 7
    assert path.with_suffix(".json.bak").exists()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("AGENTPILOT_PERMISSIONS__DEFAULT_LEVEL", "2")

    assert Config().permissions.default_level == 2


def test_paths_expand_user():
    config = Config()
    assert "~" not in str(config.database_path)
    assert config.notes_path.name == "notes"

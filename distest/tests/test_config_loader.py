from pathlib import Path

import distest.config.loader as loader


def _write_config(path: Path, content: str) -> None:
    path.write_text(content, encoding="utf-8")


def test_voting_defaults_when_missing(monkeypatch, tmp_path):
    monkeypatch.setattr(loader, "_CONFIG_PATH", tmp_path / "config.yaml")

    settings = loader.get_voting_defaults()

    assert settings["dots_per_voter"] == 4
    assert settings["estimation_enabled"] is True
    assert settings["randomize_display_order"] is True


def test_voting_coercion(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        "\n".join(
            [
                "voting:",
                "  dots_per_voter: \"0\"",
                "  estimation_enabled: \"false\"",
                "  randomize_display_order: \"yes\"",
            ]
        ),
    )
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    settings = loader.get_voting_defaults()

    assert settings["dots_per_voter"] == 4
    assert settings["estimation_enabled"] is False
    assert settings["randomize_display_order"] is True


def test_non_mapping_config_falls_back(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, "- just\n- a list\n")
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    assert loader.load_config() == {}
    assert loader.get_store_settings() == {"namespace_prefix": "dotVoting."}


def test_database_url_env_override(monkeypatch, tmp_path):
    monkeypatch.setattr(loader, "_CONFIG_PATH", tmp_path / "config.yaml")
    monkeypatch.setenv("DISTEST_DATABASE_URL", "sqlite:///./other.db")
    assert loader.get_database_settings() == {"database_url": "sqlite:///./other.db"}

    monkeypatch.delenv("DISTEST_DATABASE_URL")
    assert loader.get_database_settings() == {"database_url": "sqlite:///./distest.db"}


def test_meeting_link_prefixes_must_differ(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        "\n".join(
            [
                "meeting_links:",
                "  base_url: https://estimate.example/",
                "  admin_prefix: x-",
                "  voter_prefix: x-",
            ]
        ),
    )
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    settings = loader.get_meeting_link_settings()

    assert settings["base_url"] == "https://estimate.example/"
    assert settings["admin_prefix"] == "a-"
    assert settings["voter_prefix"] == "v-"


def test_peer_settings_normalize_entries(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        "\n".join(
            [
                "peer:",
                "  ice_servers:",
                "    - stun:one.example:3478",
                "    - urls: turn:two.example",
                "      username: u",
                "      credential: c",
                "    - 42",
                "    - urls: \"\"",
            ]
        ),
    )
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    assert loader.get_peer_settings() == {
        "ice_servers": [
            {"urls": "stun:one.example:3478"},
            {"urls": "turn:two.example", "username": "u", "credential": "c"},
        ]
    }


def test_default_participant_name(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, "participant_name: kiosk\n")
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)
    monkeypatch.delenv("DISTEST_PARTICIPANT_NAME", raising=False)
    assert loader.get_default_participant_name() == "kiosk"

    monkeypatch.setenv("DISTEST_PARTICIPANT_NAME", " desk ")
    assert loader.get_default_participant_name() == "desk"

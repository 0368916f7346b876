"""Tests for the session store and the configuration manager."""

import configparser
import os
import stat
from pathlib import Path

import pytest

from musicbox_cli.exceptions import ConfigurationError
from musicbox_cli.models.session import Identity, Session
from musicbox_cli.storage.config_manager import ConfigManager
from musicbox_cli.storage.session_store import SessionStore


@pytest.fixture
def session() -> Session:
    return Session(
        credential="token-abc",
        identity=Identity(id=4, username="alice", email="alice@example.com"),
    )


class TestSessionStore:
    def test_saved_session_survives_restart(
        self, tmp_path: Path, session: Session
    ) -> None:
        path = tmp_path / "session.ini"
        SessionStore(path).save(session)

        store = SessionStore(path)
        assert not store.is_authenticated
        assert store.hydrate() == session
        assert store.credential == "token-abc"

    @pytest.mark.skipif(os.name == "nt", reason="POSIX file modes")
    def test_session_file_is_private(self, tmp_path: Path, session: Session) -> None:
        path = tmp_path / "session.ini"
        path.write_text("[session]\n", encoding="utf-8")
        path.chmod(0o644)

        SessionStore(path).save(session)

        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_missing_file_is_anonymous(self, tmp_path: Path) -> None:
        assert not SessionStore(tmp_path / "none.ini").hydrate().is_authenticated

    @pytest.mark.parametrize(
        "slots",
        [
            {"token": "token-abc"},
            {"user": '{"id": 4, "username": "alice"}'},
            {"token": "token-abc", "user": "not json"},
        ],
    )
    def test_partial_store_is_cleared(self, tmp_path: Path, slots: dict) -> None:
        path = tmp_path / "session.ini"
        parser = configparser.ConfigParser(interpolation=None)
        parser["session"] = slots
        with open(path, "w", encoding="utf-8") as f:
            parser.write(f)

        store = SessionStore(path)

        assert not store.hydrate().is_authenticated
        assert not path.exists()

    def test_clear_is_idempotent(self, tmp_path: Path, session: Session) -> None:
        store = SessionStore(tmp_path / "session.ini")
        store.save(session)

        store.clear()
        store.clear()

        assert not store.is_authenticated
        assert not store.session_file_path.exists()

    def test_saving_anonymous_session_clears(
        self, tmp_path: Path, session: Session
    ) -> None:
        store = SessionStore(tmp_path / "session.ini")
        store.save(session)

        store.save(Session.anonymous())

        assert not store.session_file_path.exists()


class TestConfigManager:
    def test_defaults_are_written_on_first_load(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("MUSICBOX_API_URL", raising=False)
        path = tmp_path / "musicbox-cli" / "config.ini"

        config = ConfigManager(path).load_config()

        assert path.is_file()
        assert config.api_url == "http://localhost:8080"
        assert config.default_volume == 0.75
        assert config.config_path == str(path.parent)

    def test_env_and_cli_overrides(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("MUSICBOX_API_URL", "http://env.local:9000")
        manager = ConfigManager(tmp_path / "config.ini")

        assert manager.load_config().api_url == "http://env.local:9000"

        config = ConfigManager(tmp_path / "config.ini").load_config(
            {"api_url": "https://cli.local"}
        )
        assert config.api_url == "https://cli.local"

    def test_missing_keys_are_migrated(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("MUSICBOX_API_URL", raising=False)
        path = tmp_path / "config.ini"
        path.write_text("[DEFAULT]\napi_url = http://music.local\n", encoding="utf-8")

        config = ConfigManager(path).load_config()

        assert config.api_url == "http://music.local"
        assert "request_timeout" in path.read_text(encoding="utf-8")

    def test_invalid_value_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "config.ini"
        path.write_text("[DEFAULT]\ndefault_volume = 3\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            ConfigManager(path).load_config()

    def test_non_numeric_value_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "config.ini"
        path.write_text("[DEFAULT]\nrequest_timeout = soon\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            ConfigManager(path).load_config()

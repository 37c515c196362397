# ABOUTME: Unit tests for the realm-cli command line
# ABOUTME: Tests argument parsing, login/logout/whoami, and the hosting import flow

import json
import logging
from pathlib import Path

import httpx
import pytest
import respx
import structlog

from realm_cli.cli import build_parser, main
from realm_cli.config import Profile, ProfileStore
from realm_cli.utils.ui import ConsoleUI

BASE_URL = "https://realm.example.com/api/admin/v3.0"
APP_URL = f"{BASE_URL}/groups/group-1/apps/app-1"


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep log lines out of captured output and never cache loggers across tests."""

    def configure(level: str = "WARNING", json_output: bool = False) -> None:
        structlog.configure(
            wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
            cache_logger_on_first_use=False,
        )

    monkeypatch.setattr("realm_cli.cli.configure_logging", configure)
    yield
    structlog.reset_defaults()


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "config" / "profile.json"


@pytest.fixture
def logged_in(config_path: Path, profile: Profile) -> Profile:
    ProfileStore(config_path).write(profile)
    return profile


@pytest.fixture
def app_dir(tmp_path: Path) -> Path:
    files = tmp_path / "app" / "hosting" / "files"
    files.mkdir(parents=True)
    (files / "index.html").write_bytes(b"<html></html>")
    return tmp_path / "app"


def run(config_path: Path, *args: str) -> int:
    return main(["--base-url", BASE_URL, "--config-path", str(config_path), *args])


@pytest.mark.unit
class TestParser:
    """Tests for argument parsing."""

    def test_hosting_import_flags(self):
        args = build_parser().parse_args(
            [
                "hosting", "import",
                "--group-id", "g",
                "--client-app-id", "todo-abcde",
                "--app-dir", "./app",
                "--reset-cache",
                "--strategy", "merge",
                "--workers", "4",
                "--yes",
            ]
        )

        assert args.group_id == "g"
        assert args.client_app_id == "todo-abcde"
        assert args.app_id is None
        assert args.reset_cache is True
        assert args.strategy == "merge"
        assert args.workers == 4
        assert args.yes is True

    def test_app_id_and_client_app_id_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(
                ["hosting", "list", "--group-id", "g", "--app-id", "a", "--client-app-id", "c"]
            )

    def test_login_requires_a_secret(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["login", "--username", "u"])

    def test_secret_selector(self):
        args = build_parser().parse_args(
            ["secrets", "remove", "--group-id", "g", "--app-id", "a", "--id", "s1"]
        )

        assert args.secret_id == "s1"
        assert args.name is None


@pytest.mark.unit
class TestAuthCommands:
    """Tests for login, logout, and whoami."""

    @respx.mock
    def test_login_stores_tokens(self, config_path: Path, capsys):
        respx.post(f"{BASE_URL}/auth/providers/mongodb-cloud/login").mock(
            return_value=httpx.Response(200, json={"access_token": "a.b.c", "refresh_token": "r.r.r"})
        )

        rc = run(config_path, "login", "--username", "public", "--api-key", "aaaa-bbbb")

        assert rc == 0
        profile = ProfileStore(config_path).read()
        assert profile.access_token == "a.b.c"
        assert profile.refresh_token == "r.r.r"
        assert profile.private_api_key.get_secret_value() == "aaaa-bbbb"
        assert "Successfully logged in as public" in capsys.readouterr().out

    def test_login_invalid_api_key(self, config_path: Path, capsys):
        rc = run(config_path, "login", "--username", "public", "--api-key", "nodash")

        assert rc == 1
        assert "invalid API key" in capsys.readouterr().err

    def test_logout(self, config_path: Path, logged_in, capsys):
        rc = run(config_path, "logout")

        assert rc == 0
        assert not ProfileStore(config_path).read().logged_in

    def test_whoami(self, config_path: Path, logged_in, capsys):
        rc = run(config_path, "whoami")

        assert rc == 0
        assert "****-****-cccc" in capsys.readouterr().out

    def test_not_logged_in(self, config_path: Path, capsys):
        rc = run(config_path, "hosting", "list", "--group-id", "group-1", "--app-id", "app-1")

        assert rc == 1
        assert "you are not logged in" in capsys.readouterr().err


@pytest.mark.unit
class TestHostingCommands:
    """Tests for the hosting commands end to end against a mocked API."""

    @respx.mock
    def test_list(self, config_path: Path, logged_in, capsys):
        respx.get(f"{APP_URL}/hosting/assets").mock(
            return_value=httpx.Response(200, json=[{"path": "/index.html"}, {"path": "/a.css"}])
        )

        rc = run(config_path, "hosting", "list", "--group-id", "group-1", "--app-id", "app-1")

        assert rc == 0
        assert capsys.readouterr().out.splitlines() == ["/index.html", "/a.css"]

    @respx.mock
    def test_diff(self, config_path: Path, logged_in, app_dir: Path, capsys):
        respx.get(f"{APP_URL}/hosting/assets").mock(
            return_value=httpx.Response(200, json=[{"path": "/old.html", "hash": "h"}])
        )

        rc = run(
            config_path,
            "hosting", "diff",
            "--group-id", "group-1",
            "--app-id", "app-1",
            "--app-dir", str(app_dir),
        )

        assert rc == 0
        out = capsys.readouterr().out.splitlines()
        assert out == ["New Files:", "\t+ /index.html", "Removed Files:", "\t- /old.html"]

    @respx.mock
    def test_import_with_reset_cache(self, config_path: Path, logged_in, app_dir: Path, capsys):
        respx.get(f"{APP_URL}/hosting/assets").mock(return_value=httpx.Response(200, json=[]))
        upload = respx.put(f"{APP_URL}/hosting/assets/asset").mock(return_value=httpx.Response(204))
        cache = respx.put(f"{APP_URL}/hosting/cache").mock(return_value=httpx.Response(204))

        rc = run(
            config_path,
            "hosting", "import",
            "--group-id", "group-1",
            "--app-id", "app-1",
            "--app-dir", str(app_dir),
            "--reset-cache",
            "--yes",
        )

        assert rc == 0
        assert upload.call_count == 1
        assert cache.called
        assert "Successfully imported hosting assets" in capsys.readouterr().out
        assert (config_path.parent / ".asset-cache.json").exists()

    @respx.mock
    def test_import_reports_errors(self, config_path: Path, logged_in, app_dir: Path, capsys):
        respx.get(f"{APP_URL}/hosting/assets").mock(return_value=httpx.Response(200, json=[]))
        respx.put(f"{APP_URL}/hosting/assets/asset").mock(
            return_value=httpx.Response(500, json={"error": "storage unavailable"})
        )

        rc = run(
            config_path,
            "hosting", "import",
            "--group-id", "group-1",
            "--app-id", "app-1",
            "--app-dir", str(app_dir),
            "--yes",
        )

        assert rc == 1
        err = capsys.readouterr().err
        assert "uploading '/index.html' failed => " in err
        assert "storage unavailable" in err
        assert "1 error(s) occurred while importing hosting assets" in err

    @respx.mock
    def test_import_merge_keeps_remote_only(self, config_path: Path, logged_in, app_dir: Path, capsys):
        respx.get(f"{APP_URL}/hosting/assets").mock(
            return_value=httpx.Response(200, json=[{"path": "/keep.html", "hash": "h"}])
        )
        respx.put(f"{APP_URL}/hosting/assets/asset").mock(return_value=httpx.Response(204))
        delete = respx.delete(f"{APP_URL}/hosting/assets/asset").mock(return_value=httpx.Response(204))

        rc = run(
            config_path,
            "hosting", "import",
            "--group-id", "group-1",
            "--app-id", "app-1",
            "--app-dir", str(app_dir),
            "--strategy", "merge",
            "--yes",
        )

        assert rc == 0
        assert not delete.called

    @respx.mock
    def test_refreshed_token_persisted(self, config_path: Path, logged_in, capsys):
        """Test that a refresh during a command is written back to the profile."""
        respx.get(f"{APP_URL}/hosting/assets").mock(
            side_effect=[httpx.Response(401), httpx.Response(200, json=[])]
        )
        respx.post(f"{BASE_URL}/auth/session").mock(
            return_value=httpx.Response(201, json={"access_token": "new.access.token"})
        )

        rc = run(config_path, "hosting", "list", "--group-id", "group-1", "--app-id", "app-1")

        assert rc == 0
        stored = json.loads(config_path.read_text())
        assert stored["access_token"] == "new.access.token"

    @respx.mock
    def test_import_declined(self, config_path: Path, logged_in, app_dir: Path, monkeypatch, capsys):
        respx.get(f"{APP_URL}/hosting/assets").mock(return_value=httpx.Response(200, json=[]))
        upload = respx.put(f"{APP_URL}/hosting/assets/asset").mock(return_value=httpx.Response(204))
        monkeypatch.setattr("builtins.input", lambda prompt: "n")

        rc = run(
            config_path,
            "hosting", "import",
            "--group-id", "group-1",
            "--app-id", "app-1",
            "--app-dir", str(app_dir),
        )

        assert rc == 0
        assert not upload.called
        assert "Import cancelled" in capsys.readouterr().out

    @respx.mock
    def test_import_missing_app_dir_deletes_nothing(self, config_path: Path, logged_in, tmp_path: Path, capsys):
        """Test that a mistyped --app-dir stops the import before any remote change."""
        respx.get(f"{APP_URL}/hosting/assets").mock(
            return_value=httpx.Response(200, json=[{"path": "/index.html", "hash": "h"}])
        )
        delete = respx.delete(f"{APP_URL}/hosting/assets/asset").mock(return_value=httpx.Response(204))

        rc = run(
            config_path,
            "hosting", "import",
            "--group-id", "group-1",
            "--app-id", "app-1",
            "--app-dir", str(tmp_path / "typo"),
            "--yes",
        )

        assert rc == 1
        assert not delete.called
        assert "does not exist" in capsys.readouterr().err


@pytest.mark.unit
class TestConsoleUI:
    """Tests for the console output sink."""

    def test_info_and_error_streams(self, capsys):
        ui = ConsoleUI()

        ui.info("done")
        ui.error("failed")

        captured = capsys.readouterr()
        assert captured.out == "done\n"
        assert captured.err == "failed\n"

    @pytest.mark.parametrize(
        ("answer", "expected"),
        [("y", True), ("YES", True), ("", False), ("no", False)],
    )
    def test_confirm(self, monkeypatch, answer: str, expected: bool):
        monkeypatch.setattr("builtins.input", lambda prompt: answer)

        assert ConsoleUI().confirm("Continue?") is expected

    def test_confirm_eof_is_no(self, monkeypatch):
        def raise_eof(prompt: str) -> str:
            raise EOFError

        monkeypatch.setattr("builtins.input", raise_eof)

        assert ConsoleUI().confirm("Continue?") is False

    def test_assume_yes_never_prompts(self, monkeypatch):
        def fail(prompt: str) -> str:
            raise AssertionError("prompted")

        monkeypatch.setattr("builtins.input", fail)

        assert ConsoleUI(assume_yes=True).confirm("Continue?") is True

"""Tests for the entry point: wiring and exit codes."""

from unittest.mock import MagicMock, patch

import pytest


@pytest.fixture
def configured(monkeypatch):
    from readwise_ulysses import config

    monkeypatch.setenv("READWISE_ACCESS_TOKEN", "rw-token")
    monkeypatch.setattr(config, "ULYSSES_ROOT_GROUP", "Readwise")
    monkeypatch.setattr(config, "ULYSSES_GROUP_BY", "category")
    monkeypatch.setattr(config, "ULYSSES_SHEET_MATCH", "book-title")
    monkeypatch.setattr(config, "ULYSSES_CREATE_NOTES", True)
    monkeypatch.setattr(config, "RATE_LIMIT_DELAY", 2.0)
    monkeypatch.setattr(config, "XCALL_PATH", "/opt/xcall")
    monkeypatch.setattr(config, "setup_logging", lambda: None)


class TestMain:
    def test_success_returns_normally(self, configured):
        with patch("readwise_ulysses.main.run") as mock_run:
            from readwise_ulysses.main import main
            main()
        mock_run.assert_called_once_with("rw-token")

    @pytest.mark.parametrize("error", [
        "InvalidCredentialError", "AuthorizationError", "SinkCommandError",
        "MalformedResponseError", "TransportError",
    ])
    def test_sync_errors_exit_1(self, configured, error):
        from readwise_ulysses import errors

        exc = getattr(errors, error)("boom")
        with patch("readwise_ulysses.main.run", side_effect=exc):
            from readwise_ulysses.main import main
            with pytest.raises(SystemExit) as exc_info:
                main()
        assert exc_info.value.code == 1

    def test_unexpected_error_exits_1(self, configured, caplog):
        with patch("readwise_ulysses.main.run", side_effect=KeyError("x")):
            from readwise_ulysses.main import main
            with pytest.raises(SystemExit) as exc_info:
                main()
        assert exc_info.value.code == 1
        assert "Unexpected error" in caplog.text

    def test_missing_token_exits_before_running(self, configured, monkeypatch, tmp_path):
        from readwise_ulysses import config

        monkeypatch.delenv("READWISE_ACCESS_TOKEN")
        monkeypatch.delenv("ACCESS_TOKEN", raising=False)
        monkeypatch.setattr(config, "ENV_PATH", tmp_path / ".env")
        with patch("readwise_ulysses.main.run") as mock_run:
            from readwise_ulysses.main import main
            with pytest.raises(SystemExit):
                main()
        mock_run.assert_not_called()


class TestRun:
    def test_wires_clients_and_options(self, configured):
        readwise = MagicMock()
        ulysses = MagicMock()
        with patch("readwise_ulysses.readwise_client.ReadwiseClient.authenticate",
                   return_value=readwise) as rw_auth, \
             patch("readwise_ulysses.ulysses_client.UlyssesClient.authenticate",
                   return_value=ulysses) as ul_auth, \
             patch("readwise_ulysses.sync.run_sync") as mock_sync:
            from readwise_ulysses.main import run
            run("rw-token")

        assert rw_auth.call_args[0][0] == "rw-token"
        runner = ul_auth.call_args[0][0]
        assert runner.scheme == "ulysses"
        assert runner.binary == "/opt/xcall"

        args = mock_sync.call_args[0]
        assert args[0] is readwise
        assert args[1] is ulysses
        options = args[2]
        assert options.group_by == "category"
        assert options.create_notes is True
        assert options.delay == 2.0

    def test_readwise_rejected_before_ulysses(self, configured):
        from readwise_ulysses.errors import InvalidCredentialError

        with patch("readwise_ulysses.readwise_client.ReadwiseClient.authenticate",
                   side_effect=InvalidCredentialError("bad")), \
             patch("readwise_ulysses.ulysses_client.UlyssesClient.authenticate") as ul_auth:
            from readwise_ulysses.main import run
            with pytest.raises(InvalidCredentialError):
                run("rw-token")
        ul_auth.assert_not_called()

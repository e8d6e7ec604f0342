"""Tests for jirc.__main__ entrypoint functions."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from jirc.__main__ import _run, _safe_message_filter, main, setup_logging
from tests.mocks import make_config


class TestSetupLogging:
    def test_default_level_is_info(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        with patch("jirc.__main__.logger") as mock_logger, patch("jirc.__main__._intercept_logging"):
            setup_logging(verbose=False)
            mock_logger.remove.assert_called_once()
            assert mock_logger.add.call_args[1]["level"] == "INFO"

    def test_verbose_sets_debug_level(self):
        with patch("jirc.__main__.logger") as mock_logger, patch("jirc.__main__._intercept_logging"):
            setup_logging(verbose=True)
            assert mock_logger.add.call_args[1]["level"] == "DEBUG"

    def test_log_level_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        with patch("jirc.__main__.logger") as mock_logger, patch("jirc.__main__._intercept_logging") as intercept:
            setup_logging()
            assert mock_logger.add.call_args[1]["level"] == "WARNING"
            intercept.assert_called_once_with("WARNING")

    def test_safe_message_filter_escapes(self):
        record = {"message": "stanza <iq> {id}"}
        assert _safe_message_filter(record) is True
        assert record["message"] == "stanza \\<iq> {{id}}"


class TestMain:
    def test_version_exits_zero(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert "jirc" in capsys.readouterr().out

    def test_missing_config_exits_one(self, tmp_path):
        with patch("jirc.__main__.setup_logging"), pytest.raises(SystemExit) as exc_info:
            main(["--config", str(tmp_path / "missing.yaml")])
        assert exc_info.value.code == 1

    def test_invalid_config_exits_one(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("irc_server: irc.example.net\n")
        with patch("jirc.__main__.setup_logging"), pytest.raises(SystemExit) as exc_info:
            main(["--config", str(path)])
        assert exc_info.value.code == 1

    def test_valid_config_runs_bridge(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "irc_server: irc.example.net\nirc_nick: jirc\nirc_channel: '#room'\n"
            "xmpp_jid: bridge@example.org\nxmpp_password: secret\n"
            "xmpp_room: room@conference.example.org\nxmpp_alias: jirc\n"
        )
        with (
            patch("jirc.__main__.setup_logging"),
            patch("jirc.__main__._run", new=MagicMock(return_value=None)) as run,
            patch("jirc.__main__.asyncio.run") as arun,
        ):
            main(["--config", str(path)])
        config = run.call_args[0][0]
        assert config.irc_channel == "#room"
        arun.assert_called_once()


class TestRun:
    async def test_sessions_started_and_stopped_on_shutdown(self):
        irc, xmpp = MagicMock(), MagicMock()
        irc.name, xmpp.name = "irc", "xmpp"
        with (
            patch("jirc.__main__._build_sessions", return_value=(irc, xmpp)),
            patch("jirc.__main__.CommandProcessor") as processor,
        ):
            task = asyncio.create_task(_run(make_config()))
            await asyncio.sleep(0)
            irc.start.assert_called_once()
            xmpp.start.assert_called_once()

            processor.call_args.kwargs["shutdown"]()
            await asyncio.wait_for(task, timeout=1)

        irc.stop.assert_called_once()
        xmpp.stop.assert_called_once()

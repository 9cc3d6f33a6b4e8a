"""Tests for the ssr-gateway CLI."""

from unittest.mock import patch

import pytest
import yaml

from ssr_gateway.cli.main import build_parser, main


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("SSR_GATEWAY_MODE", "NODE_ENV", "APP_API_PROXY"):
        monkeypatch.delenv(name, raising=False)


def _write_config(tmp_path, raw) -> str:
    path = tmp_path / "ssr-gateway.yaml"
    path.write_text(yaml.dump(raw))
    return str(path)


class TestConfigValidate:
    def test_valid(self, tmp_path, capsys):
        path = _write_config(tmp_path, {"i18n": {"supported_locales": ["en", "de"]}})
        main(["-c", path, "config", "validate"])
        out = capsys.readouterr().out
        assert "Config is valid." in out
        assert "en, de" in out
        assert "production" in out

    def test_invalid_exits_1(self, tmp_path, capsys):
        path = _write_config(tmp_path, {"render": {"abort_delay": -1}})
        with pytest.raises(SystemExit) as exc_info:
            main(["-c", path, "config", "validate"])
        assert exc_info.value.code == 1
        assert "abort_delay" in capsys.readouterr().out

    def test_missing_subcommand(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["config"])
        assert exc_info.value.code == 1


class TestServe:
    def test_parser_options(self):
        args = build_parser().parse_args(
            ["serve", "--app", "views:app", "--port", "4000", "--mode", "development"],
        )
        assert args.app == "views:app"
        assert args.port == 4000
        assert args.mode == "development"

    def test_requires_app(self, tmp_path, capsys):
        path = _write_config(tmp_path, {})
        with pytest.raises(SystemExit) as exc_info:
            main(["-c", path, "serve"])
        assert exc_info.value.code == 1
        assert "--app is required" in capsys.readouterr().err

    def test_starts_uvicorn(self, tmp_path):
        path = _write_config(tmp_path, {"render": {"app": "conftest:SAMPLE_VIEW_APP"}})
        with patch("uvicorn.run") as run:
            main(["-c", path, "serve", "--port", "4001", "--mode", "development"])

        run.assert_called_once()
        app = run.call_args.args[0]
        assert run.call_args.kwargs["port"] == 4001
        assert app.state.config.mode.value == "development"
        assert app.state.view_app.table.match("/en/users/1")

    def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit):
            main([])
        assert "usage" in capsys.readouterr().out.lower()

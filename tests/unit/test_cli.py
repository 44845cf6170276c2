"""
Unit tests for the command-line entry point.
"""

import pytest

from minihttp import __main__ as cli
from minihttp.config import ServerConfig


ENV_VARS = (
    "MINIHTTP_HOST",
    "MINIHTTP_PORT",
    "MINIHTTP_READ_TIMEOUT",
    "MINIHTTP_STATIC_DIR",
    "MINIHTTP_LOG_LEVEL",
    "MINIHTTP_LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def build(*argv: str) -> ServerConfig:
    return cli.build_config(cli.build_parser().parse_args(list(argv)))


class TestBuildConfig:
    """Environment first, command line on top."""

    def test_defaults(self):
        config = build()

        assert (config.host, config.port) == ("", 8080)
        assert config.static_dir == "public"
        assert config.log_level == "INFO"
        assert config.log_format == "text"

    def test_environment_is_used(self, monkeypatch):
        monkeypatch.setenv("MINIHTTP_HOST", "127.0.0.1")
        monkeypatch.setenv("MINIHTTP_PORT", "9000")
        monkeypatch.setenv("MINIHTTP_READ_TIMEOUT", "2.5")
        monkeypatch.setenv("MINIHTTP_STATIC_DIR", "site")
        monkeypatch.setenv("MINIHTTP_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("MINIHTTP_LOG_FORMAT", "json")

        config = build()

        assert (config.host, config.port) == ("127.0.0.1", 9000)
        assert config.read_timeout == 2.5
        assert config.static_dir == "site"
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_command_line_overrides_environment(self, monkeypatch):
        monkeypatch.setenv("MINIHTTP_PORT", "9000")
        monkeypatch.setenv("MINIHTTP_LOG_LEVEL", "DEBUG")

        config = build("--addr", ":3000", "--log-level", "ERROR", "--static", "www")

        assert (config.host, config.port) == ("", 3000)
        assert config.log_level == "ERROR"
        assert config.static_dir == "www"

    def test_positional_address_wins_over_flag(self):
        config = build("127.0.0.1:4000", "--addr", ":3000")
        assert (config.host, config.port) == ("127.0.0.1", 4000)

    def test_only_port_in_environment(self, monkeypatch):
        monkeypatch.setenv("MINIHTTP_PORT", "9000")
        config = build()
        assert (config.host, config.port) == ("127.0.0.1", 9000)

    @pytest.mark.parametrize("name, value", [
        ("MINIHTTP_PORT", "http"),
        ("MINIHTTP_LOG_LEVEL", "LOUD"),
        ("MINIHTTP_READ_TIMEOUT", "0"),
    ])
    def test_invalid_environment_raises(self, monkeypatch, name: str, value: str):
        monkeypatch.setenv(name, value)
        with pytest.raises(ValueError):
            build()


class TestMain:
    """main() wires configuration into logging and the server."""

    @pytest.fixture
    def calls(self, monkeypatch) -> dict:
        calls = {"log_levels": [], "configs": []}

        class FakeServer:
            def run(self):
                calls["ran"] = True

        def fake_create_app(config):
            calls["configs"].append(config)
            return FakeServer()

        monkeypatch.setattr(cli, "configure_logging", lambda level="INFO": calls["log_levels"].append(level))
        monkeypatch.setattr(cli, "create_app", fake_create_app)
        return calls

    def test_log_level_from_environment_reaches_logging(self, monkeypatch, tmp_path, calls: dict):
        monkeypatch.setenv("MINIHTTP_LOG_LEVEL", "WARNING")

        assert cli.main(["--static", str(tmp_path / "public")]) == 0

        assert calls["log_levels"] == ["WARNING"]
        assert calls["configs"][0].log_level == "WARNING"
        assert calls["ran"]
        assert (tmp_path / "public").is_dir()

    def test_log_level_flag_reaches_logging(self, monkeypatch, tmp_path, calls: dict):
        monkeypatch.setenv("MINIHTTP_LOG_LEVEL", "WARNING")

        assert cli.main(["-l", "DEBUG", "--static", str(tmp_path)]) == 0

        assert calls["log_levels"] == ["DEBUG"]

    def test_invalid_configuration_exits_2(self, monkeypatch, calls: dict):
        monkeypatch.setenv("MINIHTTP_PORT", "not-a-port")

        assert cli.main([]) == 2
        assert calls["configs"] == []

# tests/test_cli.py
"""
测试命令行入口: 参数解析、配置合并优先级与退出码。
"""

import os
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from sourcon_core import cli
from sourcon_core.client import Response
from sourcon_core.exceptions import AuthError, ConfigError

ENV_KEYS = ("HOST", "PORT", "PASSWORD", "TIMEOUT", "BIND_IP", "LISTEN_PORT")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """隔离环境变量与工作目录，避免读取到开发机上的 .env"""
    for suffix in ENV_KEYS:
        monkeypatch.delenv(f"RCON_{suffix}", raising=False)
    monkeypatch.chdir(tmp_path)


def _fake_client(*bodies: str) -> MagicMock:
    client = MagicMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    client.command = AsyncMock(side_effect=[Response(b, 1) for b in bodies])
    return client


def test_parser_exec():
    args = cli.build_parser().parse_args(
        ["exec", "--host", "h:1", "--password", "p", "status", "users"]
    )
    assert args.cmd == "exec"
    assert args.commands == ["status", "users"]
    assert args.host == "h:1"


def test_parser_requires_subcommand():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_resolve_config_precedence(monkeypatch, tmp_path):
    """命令行参数 > TOML > 环境变量"""
    monkeypatch.setenv("RCON_HOST", "env.example")
    monkeypatch.setenv("RCON_PASSWORD", "envpw")
    monkeypatch.setenv("RCON_TIMEOUT", "9")

    toml = tmp_path / "rcon.toml"
    toml.write_text('[rcon]\nhost = "toml.example:27020"\n', encoding="utf-8")

    args = cli.build_parser().parse_args(
        ["exec", "--config", str(toml), "--timeout", "1.5", "status"]
    )
    config = cli.resolve_config(args)

    assert config.host == "toml.example"
    assert config.port == 27020
    assert config.password == "envpw"
    assert config.timeout == 1.5


def test_load_env_file(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("RCON_HOST=dotenv.example\nRCON_PASSWORD=dotpw\n")
    try:
        cli.load_env_file()
        assert os.environ["RCON_HOST"] == "dotenv.example"
        args = cli.build_parser().parse_args(["exec", "status"])
        assert cli.resolve_config(args).password == "dotpw"
    finally:
        os.environ.pop("RCON_HOST", None)
        os.environ.pop("RCON_PASSWORD", None)


def test_main_exec(capsys):
    client = _fake_client("hostname: test\n", "ok")
    with patch.object(
        cli.RconClient, "from_config", new=AsyncMock(return_value=client)
    ) as mock_from_config:
        code = cli.main(
            ["exec", "--host", "h", "--password", "p", "status", "echo ok"]
        )

    assert code == cli.EXIT_OK
    config = mock_from_config.await_args.args[0]
    assert (config.host, config.port, config.password) == ("h", 27015, "p")
    assert [c.args[0] for c in client.command.await_args_list] == ["status", "echo ok"]
    assert capsys.readouterr().out == "hostname: test\nok\n"


def test_main_missing_password_is_config_error():
    assert cli.main(["exec", "--host", "h", "status"]) == cli.EXIT_CONFIG_ERROR


def test_main_rcon_error_exit_code():
    with patch.object(
        cli.RconClient, "from_config", new=AsyncMock(side_effect=AuthError())
    ):
        code = cli.main(["exec", "--host", "h", "--password", "bad", "status"])
    assert code == cli.EXIT_RCON_ERROR


def test_main_shell(monkeypatch, capsys):
    client = _fake_client("first")
    lines = iter(["", "  status  ", "exit"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(lines))

    with patch.object(cli.RconClient, "from_config", new=AsyncMock(return_value=client)):
        code = cli.main(["shell", "--host", "h", "--password", "p"])

    assert code == cli.EXIT_OK
    client.command.assert_awaited_once_with("status")
    assert "first" in capsys.readouterr().out


def test_resolve_listen_address(monkeypatch):
    args = cli.build_parser().parse_args(["listen"])
    assert cli.resolve_listen_address(args) == ("127.0.0.1", 27015)

    monkeypatch.setenv("RCON_BIND_IP", "0.0.0.0")
    monkeypatch.setenv("RCON_LISTEN_PORT", "28015")
    assert cli.resolve_listen_address(args) == ("0.0.0.0", 28015)

    args = cli.build_parser().parse_args(["listen", "--bind", "::1", "--port", "0"])
    assert cli.resolve_listen_address(args) == ("::1", 0)


def test_main_listen():
    with patch.object(cli, "run_listen", new=AsyncMock(return_value=cli.EXIT_OK)) as run:
        code = cli.main(["listen", "--port", "28016"])

    assert code == cli.EXIT_OK
    run.assert_awaited_once_with("127.0.0.1", 28016)


def test_main_listen_bad_env_port(monkeypatch):
    monkeypatch.setenv("RCON_LISTEN_PORT", "nope")
    assert cli.main(["listen"]) == cli.EXIT_CONFIG_ERROR


def test_env_file_option_missing(tmp_path):
    missing = Path(tmp_path / "missing.env")
    # 指定的 .env 不存在时只记录警告，继续使用其他来源
    assert cli.main(["--env-file", str(missing), "exec", "--host", "h", "status"]) == (
        cli.EXIT_CONFIG_ERROR
    )


@pytest.mark.parametrize("port", ["70000", "-1"])
def test_main_listen_port_out_of_range(port):
    with patch.object(cli, "run_listen", new=AsyncMock(return_value=cli.EXIT_OK)) as run:
        assert cli.main(["listen", "--port", port]) == cli.EXIT_CONFIG_ERROR
    run.assert_not_awaited()


def test_resolve_listen_address_env_port_out_of_range(monkeypatch):
    monkeypatch.setenv("RCON_LISTEN_PORT", "65536")
    args = cli.build_parser().parse_args(["listen"])
    with pytest.raises(ConfigError, match="端口超出范围"):
        cli.resolve_listen_address(args)

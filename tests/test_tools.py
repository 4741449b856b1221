"""Tests for the MCP tool layer, wired to fake sessions."""

import asyncio
import textwrap

import pytest

from ssh_mcp.config import ConfigManager
from ssh_mcp.SSH import connection_tester, sftp_tools, tools
from ssh_mcp.SSH.connection_tester import ConnectionTester
from ssh_mcp.SSH.errors import NotFoundError

from .conftest import FakeChannel


@pytest.fixture
def config(tmp_path):
    path = tmp_path / "servers.yaml"
    path.write_text(
        textwrap.dedent(
            """
            servers:
              - id: web1
                name: Web
                host: 10.0.0.10
                port: 2200
                username: deploy
                password: stored
                tags: [web]
              - id: db1
                host: 10.0.0.20
                username: postgres
                password: pg
                tags: [db]
            """
        )
    )
    return ConfigManager(path, load_env_file=False)


@pytest.fixture(autouse=True)
def wired(monkeypatch, manager, config):
    monkeypatch.setattr(tools, "session_manager", manager)
    monkeypatch.setattr(tools, "config_manager", config)
    monkeypatch.setattr(sftp_tools, "session_manager", manager)


def connect(host="10.0.0.1"):
    return asyncio.run(tools.ssh_connect(host=host, username="deploy", password="pw"))


def channels_of(manager, session_id):
    return manager.get_session(session_id).client.transport.channels


class TestConnectionTools:
    def test_connect_and_reuse(self, manager):
        first = connect()
        second = connect()

        assert first["session_id"] == second["session_id"]
        assert first["port"] == 22
        assert first["message"] == "Connected to deploy@10.0.0.1:22"

    def test_list_and_info(self):
        session_id = connect()["session_id"]

        listing = asyncio.run(tools.ssh_list_sessions())
        info = asyncio.run(tools.ssh_session_info(session_id))

        assert listing["count"] == 1
        assert listing["sessions"][0]["session_id"] == session_id
        assert info["host"] == "10.0.0.1"

    def test_disconnect(self, manager):
        session_id = connect()["session_id"]

        result = asyncio.run(tools.ssh_disconnect(session_id))

        assert result["status"] == "closed"
        with pytest.raises(NotFoundError):
            manager.get_session(session_id)


class TestCommandTools:
    def test_exec(self, manager):
        session_id = connect()["session_id"]
        channels_of(manager, session_id).append(FakeChannel(stdout=[b"hi\n"]))

        result = tools._exec(session_id, "echo hi", None, "utf-8")

        assert result == {"command": "echo hi", "stdout": "hi", "stderr": "", "exit_code": 0, "signal": None}

    def test_exec_unknown_session(self):
        with pytest.raises(NotFoundError):
            tools._exec("missing", "ls", None, "utf-8")

    def test_exec_batch(self, manager):
        session_id = connect()["session_id"]
        channels_of(manager, session_id).extend(
            [FakeChannel(stdout=[b"1"]), FakeChannel(exit_status=1), FakeChannel(stdout=[b"3"])]
        )

        result = tools._exec_batch(session_id, ["a", "b", "c"], True, None, "utf-8")

        assert result["count"] == 2
        assert not result["all_succeeded"]
        assert [r["command"] for r in result["results"]] == ["a", "b"]

    def test_exec_with_input(self, manager):
        session_id = connect()["session_id"]
        channel = FakeChannel(stdout=[b"HELLO"])
        channels_of(manager, session_id).append(channel)

        result = tools._exec_with_input(session_id, "tr a-z A-Z", "hello", None, "utf-8")

        assert result["stdout"] == "HELLO"
        assert channel.sent == [b"hello"]

    def test_sudo_exec_hides_password(self, manager):
        session_id = connect()["session_id"]
        channels_of(manager, session_id).append(
            FakeChannel(stdout=[b"[sudo] password for deploy:", b"ok topsecret"])
        )

        result = tools._sudo_exec(session_id, "apt update", "topsecret", None, "utf-8")

        assert result["command"] == "apt update"
        assert "topsecret" not in str(result)
        assert result["stdout"] == "ok"


class TestServerTools:
    def test_list_servers(self):
        everything = asyncio.run(tools.ssh_list_servers())
        web_only = asyncio.run(tools.ssh_list_servers(tag="web"))

        assert everything["count"] == 2
        assert [s["id"] for s in web_only["servers"]] == ["web1"]
        assert "stored" not in str(everything)

    def test_get_server(self):
        info = asyncio.run(tools.ssh_get_server("web1"))

        assert info["auth_method"] == "password"
        assert info["port"] == 2200

    def test_get_unknown_server(self):
        with pytest.raises(NotFoundError, match="Server not found: nope"):
            asyncio.run(tools.ssh_get_server("nope"))

    def test_connect_by_id_with_password_override(self, connector):
        result = asyncio.run(tools.ssh_connect_by_id("web1", password="override"))

        assert result["host"] == "10.0.0.10"
        assert result["port"] == 2200
        assert result["message"] == "Connected to Web (10.0.0.10)"
        assert connector.calls[-1].password == "override"

    def test_test_all_connections(self, monkeypatch, connector):
        monkeypatch.setattr(tools, "_tester", lambda: ConnectionTester(connector=connector))

        report = asyncio.run(tools.ssh_test_all_connections(parallel=True))

        assert report["total"] == 2
        assert report["connected"] == 2
        assert report["failed"] == 0

    def test_ping_resolves_configured_server(self, monkeypatch):
        seen = []

        def fake_reachable(host, port, timeout=5.0):
            seen.append((host, port))
            return True, 1.5, None

        monkeypatch.setattr(connection_tester, "tcp_reachable", fake_reachable)

        result = asyncio.run(tools.ssh_ping("web1"))
        asyncio.run(tools.ssh_ping("example.org"))

        assert seen == [("10.0.0.10", 2200), ("example.org", 22)]
        assert result["reachable"]


class TestFileTools:
    def test_write_read_and_list(self, manager):
        session_id = connect()["session_id"]
        sftp_tools._mkdir(session_id, "/srv/app", True, None)

        sftp_tools._write(session_id, "/srv/app/motd", "welcome\n", "utf-8", "600")
        read = sftp_tools._read(session_id, "/srv/app/motd", "utf-8")
        listing = sftp_tools._ls(session_id, "/srv/app")
        info = sftp_tools._stat(session_id, "/srv/app/motd")

        assert read["content"] == "welcome\n"
        assert listing["count"] == 1
        assert listing["entries"][0]["name"] == "motd"
        assert info["permissions"] == "600"
        assert info["type"] == "file"

    def test_rename_and_remove(self, manager):
        session_id = connect()["session_id"]
        sftp_tools._write(session_id, "/a.txt", "x", "utf-8", None)

        sftp_tools._rename(session_id, "/a.txt", "/b.txt")
        sftp_tools._rm(session_id, "/b.txt", False)

        assert manager.get_session(session_id).sftp.files == {}

    def test_upload_dir_reports_transfer(self, manager, tmp_path):
        session_id = connect()["session_id"]
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "f.txt").write_text("f")

        result = sftp_tools._upload_dir(session_id, str(tmp_path / "src"), "/dst", False)

        assert result == {"success": True, "transferred": ["/dst/f.txt"], "failed": [], "errors": {}}

    def test_mkdir_honours_explicit_zero_mode(self, manager):
        session_id = connect()["session_id"]

        sftp_tools._mkdir(session_id, "/locked", False, "0")
        sftp_tools._mkdir(session_id, "/open", False, None)

        modes = manager.get_session(session_id).sftp.modes
        assert modes["/locked"] == 0
        assert modes["/open"] == 0o755

    def test_read_reports_byte_size(self, manager):
        session_id = connect()["session_id"]
        manager.get_session(session_id).sftp.add_file("/notes", "héllo".encode())

        text = sftp_tools._read(session_id, "/notes", "utf-8")
        blob = sftp_tools._read(session_id, "/notes", "base64")

        assert (text["content"], text["size"]) == ("héllo", 6)
        assert (blob["content"], blob["size"]) == ("aMOpbGxv", 6)

    @pytest.mark.parametrize("value, expected", [("644", 0o644), ("0o755", 0o755), (None, None), ("", None)])
    def test_parse_mode(self, value, expected):
        assert sftp_tools._parse_mode(value) == expected

    def test_parse_mode_rejects_garbage(self):
        with pytest.raises(ValueError, match="Invalid octal permissions"):
            sftp_tools._parse_mode("rwx")

    def test_sftp_ls_tool(self, manager):
        session_id = connect()["session_id"]
        manager.get_session(session_id).sftp.add_file("/tmp/x")

        listing = asyncio.run(sftp_tools.sftp_ls(session_id, "/tmp"))

        assert [e["name"] for e in listing["entries"]] == ["x"]

"""
Tests for the shared ExifTool process, with the PyExifTool helper faked.
"""

import threading
import time

import pytest
from exiftool.exceptions import ExifToolExecuteError

from rawdesk.errors import MetadataError
from rawdesk.io import exiftool_server
from rawdesk.io.exiftool_server import ExifToolServer


class FakeHelper:
    """Minimal ExifToolHelper stand-in"""

    def __init__(self, common_args=None, executable=None):
        self.common_args = common_args
        self.executable = executable
        self.running = False
        self.version = "12.76"
        self.active = 0
        self.max_active = 0
        self.fail_with = None

    def run(self):
        self.running = True

    def terminate(self):
        self.running = False

    def execute(self, *args, raw_bytes=False):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        time.sleep(0.01)
        self.active -= 1
        if self.fail_with is not None:
            raise self.fail_with
        out = " ".join(args)
        return out.encode() if raw_bytes else out


@pytest.fixture
def helpers(monkeypatch):
    created = []

    def create(**kwargs):
        helper = FakeHelper(**kwargs)
        created.append(helper)
        return helper

    monkeypatch.setattr(exiftool_server.exiftool, "ExifToolHelper", create)
    yield created
    exiftool_server.shutdown_server()


class TestServer:
    """Test the server lifecycle and command execution."""

    def test_start_and_command(self, helpers):
        with ExifToolServer("/opt/exiftool") as server:
            assert server.running
            assert server.command("-ver") == "-ver"
            assert server.command("-b", "-PreviewImage", raw_bytes=True) == b"-b -PreviewImage"

        assert helpers[0].executable == "/opt/exiftool"
        assert helpers[0].common_args == ["-ignoreMinorErrors", "-quiet", "-quiet"]
        assert not helpers[0].running

    def test_start_is_idempotent(self, helpers):
        server = ExifToolServer()
        server.start()
        server.start()
        assert len(helpers) == 1
        server.shutdown()

    def test_command_before_start(self, helpers):
        with pytest.raises(MetadataError):
            ExifToolServer().command("-ver")

    def test_command_failure(self, helpers):
        with ExifToolServer() as server:
            helpers[0].fail_with = ExifToolExecuteError(1, "", "Error: File not found - x.NEF\n", ["x.NEF"])
            with pytest.raises(MetadataError, match="File not found") as info:
                server.command("x.NEF")
            assert info.value.returncode == 1

    def test_commands_serialized(self, helpers):
        with ExifToolServer() as server:
            threads = [threading.Thread(target=server.command, args=("-ver",)) for _ in range(8)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()
            assert helpers[0].max_active == 1


class TestProcessServer:
    """Test the process-wide server."""

    def test_singleton(self, helpers):
        first = exiftool_server.start_server()
        second = exiftool_server.start_server("/ignored")
        assert first is second
        assert exiftool_server.get_server() is first
        assert len(helpers) == 1

    def test_shutdown(self, helpers):
        exiftool_server.start_server()
        exiftool_server.shutdown_server()
        assert not helpers[0].running
        with pytest.raises(MetadataError):
            exiftool_server.get_server()

    def test_shutdown_without_start(self, helpers):
        exiftool_server.shutdown_server()

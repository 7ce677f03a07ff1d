"""
Persistent ExifTool process

ExifTool is slow to start, so a single ``-stay_open`` process serves every
metadata command. Commands may be issued from many worker threads; the
server lets one through at a time.
"""

import threading
from typing import List, Optional, Union
import logging

import exiftool
from exiftool.exceptions import ExifToolException, ExifToolExecuteError

from rawdesk.errors import MetadataError

logger = logging.getLogger(__name__)

COMMON_ARGS = ["-ignoreMinorErrors", "-quiet", "-quiet"]


class ExifToolServer:
    """Owns one ExifTool process and serializes commands to it"""

    def __init__(self, executable: Optional[str] = None,
                 common_args: Optional[List[str]] = None):
        """
        Initialize the server (the process starts in start())

        Args:
            executable: ExifTool executable, None to search PATH
            common_args: Arguments applied to every command
        """
        self.executable = executable
        self.common_args = list(COMMON_ARGS if common_args is None else common_args)
        self._helper = None
        self._lock = threading.Lock()

    def _create_helper(self):
        kwargs = {"common_args": self.common_args}
        if self.executable:
            kwargs["executable"] = self.executable
        return exiftool.ExifToolHelper(**kwargs)

    @property
    def running(self) -> bool:
        return self._helper is not None and self._helper.running

    def start(self) -> 'ExifToolServer':
        """Start the ExifTool process. Does nothing if already running."""
        with self._lock:
            if self._helper is not None and self._helper.running:
                return self
            helper = self._create_helper()
            try:
                helper.run()
            except (ExifToolException, OSError) as e:
                raise MetadataError(f"Failed to start exiftool: {e}") from e
            self._helper = helper
            logger.info(f"Started exiftool {helper.version}")
        return self

    def shutdown(self):
        """Stop the ExifTool process."""
        with self._lock:
            helper, self._helper = self._helper, None
            if helper is not None and helper.running:
                helper.terminate()
                logger.info("Stopped exiftool")

    def command(self, *args: str, raw_bytes: bool = False) -> Union[str, bytes]:
        """
        Run one ExifTool command.

        Args:
            *args: Command line arguments
            raw_bytes: Return stdout undecoded (binary tag extraction)

        Returns:
            The command's standard output

        Raises:
            MetadataError: if the server is not running or the command fails
        """
        with self._lock:
            if self._helper is None or not self._helper.running:
                raise MetadataError("exiftool server is not running")
            try:
                return self._helper.execute(*[str(a) for a in args], raw_bytes=raw_bytes)
            except ExifToolExecuteError as e:
                stderr = e.stderr.strip() if isinstance(e.stderr, str) else e.stderr
                raise MetadataError(stderr or f"exiftool exited with status {e.returncode}",
                                    returncode=e.returncode) from e
            except ExifToolException as e:
                raise MetadataError(str(e)) from e

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()


_server: Optional[ExifToolServer] = None
_server_lock = threading.Lock()


def start_server(executable: Optional[str] = None) -> ExifToolServer:
    """
    Start the process-wide server, or return it if already started.

    Args:
        executable: ExifTool executable, used only on first start
    """
    global _server
    with _server_lock:
        if _server is None:
            _server = ExifToolServer(executable)
        server = _server
    return server.start()


def get_server() -> ExifToolServer:
    """The process-wide server; start_server() must have been called."""
    if _server is None or not _server.running:
        raise MetadataError("exiftool server is not running")
    return _server


def shutdown_server():
    """Stop the process-wide server if it was started."""
    global _server
    with _server_lock:
        server, _server = _server, None
    if server is not None:
        server.shutdown()

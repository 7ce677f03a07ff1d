"""
Adobe DNG Converter bridge

Converts RAW files to DNG, applying the develop settings found in the
source's sidecar, and renders the embedded previews used for JPEG output.
"""

import os
import subprocess
import threading
from pathlib import Path
from typing import List, Optional, Union
import logging

from rawdesk.errors import ConverterError, OperationCancelled
from rawdesk.processing.settings import ExportSettings

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

DEFAULT_POLL_INTERVAL = 0.25


class DNGConverter:
    """Runs the DNG converter command line, one process per conversion"""

    def __init__(self, executable: str, poll_interval: float = DEFAULT_POLL_INTERVAL):
        """
        Args:
            executable: DNG converter executable
            poll_interval: Seconds between cancellation checks while converting
        """
        self.executable = executable
        self.poll_interval = poll_interval

    @staticmethod
    def build_args(src: PathLike, dst: PathLike, side: int = 0,
                   export: Optional[ExportSettings] = None) -> List[str]:
        """
        Converter arguments, without the executable.

        Args:
            src: Source RAW or DNG
            dst: Output DNG
            side: Long side to downscale to; 0 keeps native size
            export: Export options; None renders a full size preview
        """
        args = []
        if export is not None and export.dng:
            if export.preview:
                args.append(f"-{export.preview}")
            if export.lossy:
                args.append("-lossy")
            if export.embed:
                args.append("-e")
        else:
            args.append("-p2")

        if side > 0:
            args += ["-lossy", "-side", str(side)]

        dst = Path(dst)
        args += ["-d", str(dst.parent), "-o", dst.name, str(src)]
        return args

    def convert(self, src: PathLike, dst: PathLike, side: int = 0,
                export: Optional[ExportSettings] = None,
                cancel: Optional[threading.Event] = None) -> Path:
        """
        Convert src into a complete DNG at dst.

        dst is replaced. On failure or cancellation nothing is left at dst.

        Raises:
            ConverterError: if the converter fails or writes nothing
            OperationCancelled: if cancel is set before the converter finishes
        """
        dst = Path(dst)
        if cancel is not None and cancel.is_set():
            raise OperationCancelled(f"Conversion of {src} cancelled")

        # The converter refuses to overwrite
        _remove(dst)

        cmd = [self.executable] + self.build_args(src, dst, side, export)
        logger.info(f"dng converter (side={side})...")
        logger.debug(f"Running: {cmd}")

        try:
            proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except OSError as e:
            raise ConverterError(f"Failed to run DNG converter: {e}") from e

        stdout, stderr = b"", b""
        try:
            while True:
                try:
                    stdout, stderr = proc.communicate(timeout=self.poll_interval)
                    break
                except subprocess.TimeoutExpired:
                    if cancel is not None and cancel.is_set():
                        proc.kill()
                        proc.communicate()
                        raise OperationCancelled(f"Conversion of {src} cancelled")
        except BaseException:
            if proc.poll() is None:
                proc.kill()
                proc.wait()
            _remove(dst)
            raise

        if proc.returncode != 0:
            _remove(dst)
            message = _decode(stderr) or _decode(stdout) or f"DNG converter exited with status {proc.returncode}"
            raise ConverterError(message, returncode=proc.returncode)

        if not dst.exists():
            message = _decode(stderr) or f"DNG converter produced no output for {src}"
            raise ConverterError(message, returncode=proc.returncode)

        return dst


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace").strip() if data else ""


def _remove(path: Path):
    try:
        os.remove(path)
    except FileNotFoundError:
        pass

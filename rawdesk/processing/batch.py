"""
Batch export engine

Exports many photos concurrently on a bounded thread pool. Outcomes are
delivered as each photo finishes, keyed by photo path; one photo failing
never stops the others.
"""

import json
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, TextIO, Union
import logging

from rawdesk.errors import OperationCancelled
from rawdesk.processing.settings import EditSettings, ExportSettings
from rawdesk.utils.logging import StructuredLogger, BatchStats

logger = logging.getLogger(__name__)
batch_log = StructuredLogger(__name__)

PathLike = Union[str, Path]

RAW_EXTENSIONS = {
    ".CRW", ".NEF", ".RAF", ".ORF", ".MRW", ".DCR", ".MOS", ".RAW",
    ".PEF", ".SRF", ".DNG", ".X3F", ".CR2", ".ERF", ".SR2", ".KDC",
    ".MFW", ".MEF", ".ARW", ".NRW", ".RW2", ".RWL", ".IIQ", ".3FR",
    ".FFF", ".SRW", ".GPR", ".DXO", ".ARQ", ".CR3",
}

DEFAULT_MAX_WORKERS = 4


def is_raw_photo(path: PathLike) -> bool:
    return Path(path).suffix.upper() in RAW_EXTENSIONS


@dataclass
class BatchPhoto:
    """A photo to export and its name relative to the batch"""
    path: Path
    name: str


def find_photos(paths: Iterable[PathLike]) -> List[BatchPhoto]:
    """
    Expand files and directories into the photos to export.

    Directories are walked recursively, skipping hidden entries, and their
    photos are named relative to the directory so exports keep the layout.
    Files given directly are taken as they are.
    """
    photos = []
    for path in paths:
        path = Path(path)
        if not path.is_dir():
            photos.append(BatchPhoto(path=path, name=path.name))
            continue

        for dirpath, dirnames, filenames in os.walk(path):
            dirnames[:] = sorted(d for d in dirnames if not d.startswith('.'))
            for filename in sorted(filenames):
                if filename.startswith('.') or not is_raw_photo(filename):
                    continue
                full = Path(dirpath) / filename
                photos.append(BatchPhoto(path=full, name=full.relative_to(path).as_posix()))
    return photos


class OutcomeKind(Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class BatchOutcome:
    """Result of exporting one photo"""
    path: Path
    kind: OutcomeKind
    outputs: List[Path] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS

    def to_dict(self):
        return {
            "path": str(self.path),
            "outcome": self.kind.value,
            "outputs": [str(p) for p in self.outputs],
            "error": self.error,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class BatchRun:
    """
    A running batch.

    ``total`` is known before any outcome arrives. Iterating yields exactly
    one BatchOutcome per photo, in completion order. Stopping iteration
    early (or being interrupted) cancels the rest of the batch.
    """

    def __init__(self, executor: ThreadPoolExecutor, futures, total: int,
                 cancel_event: threading.Event):
        self._executor = executor
        self._futures = futures
        self.total = total
        self.cancel_event = cancel_event
        self.stats = BatchStats(total)

    def cancel(self):
        """Abandon photos not started yet; finished exports stay."""
        self.cancel_event.set()

    def __iter__(self) -> Iterator[BatchOutcome]:
        try:
            for future in as_completed(self._futures):
                outcome = future.result()
                self.stats.add_result(str(outcome.path), outcome.succeeded, outcome.error)
                yield outcome
        except BaseException:
            # Abandoned or interrupted: let queued photos finish as cancelled
            self.cancel()
            raise
        finally:
            self._executor.shutdown(wait=True)

    def results(self) -> List[BatchOutcome]:
        """Wait for the whole batch."""
        return list(self)


class BatchEngine:
    """Runs the edit pipeline's export over many photos"""

    def __init__(self, pipeline, max_workers: int = DEFAULT_MAX_WORKERS):
        """
        Args:
            pipeline: EditPipeline used for each photo
            max_workers: Photos exported concurrently
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.pipeline = pipeline
        self.max_workers = max_workers

    def run(self, photos: Iterable[Union[BatchPhoto, PathLike]], output_dir: PathLike,
            settings: EditSettings, export: ExportSettings,
            cancel: Optional[threading.Event] = None) -> BatchRun:
        """
        Start exporting photos into output_dir.

        Orientation is reset: one orientation doesn't fit a batch of
        unrelated photos.

        Raises:
            FileNotFoundError: if output_dir doesn't exist
        """
        output_dir = Path(output_dir)
        if not output_dir.is_dir():
            raise FileNotFoundError(f"Output directory not found: {output_dir}")

        items = [p if isinstance(p, BatchPhoto) else BatchPhoto(Path(p), Path(p).name)
                 for p in photos]
        settings = replace(settings, orientation=0)
        cancel = cancel if cancel is not None else threading.Event()

        logger.info(f"Exporting {len(items)} photo(s) to {output_dir} with {self.max_workers} worker(s)")

        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="BatchWorker")
        futures = [executor.submit(self._process, photo, output_dir, settings, export, cancel)
                   for photo in items]
        return BatchRun(executor, futures, len(items), cancel)

    def _process(self, photo: BatchPhoto, output_dir: Path, settings: EditSettings,
                 export: ExportSettings, cancel: threading.Event) -> BatchOutcome:
        if cancel.is_set():
            return BatchOutcome(photo.path, OutcomeKind.FAILURE, error="cancelled")

        outputs = []
        try:
            dest_dir = output_dir / Path(photo.name).parent
            dest_dir.mkdir(parents=True, exist_ok=True)

            outputs.append(self.pipeline.export_file(photo.path, settings, export, dest_dir, cancel))
            if export.dng and export.both:
                outputs.append(self.pipeline.export_file(
                    photo.path, settings, ExportSettings(), dest_dir, cancel))
        except OperationCancelled:
            batch_log.info("Export cancelled", photo=str(photo.path))
            return BatchOutcome(photo.path, OutcomeKind.FAILURE, outputs, error="cancelled")
        except Exception as e:
            batch_log.error("Export failed", photo=str(photo.path), error=str(e))
            return BatchOutcome(photo.path, OutcomeKind.FAILURE, outputs, error=str(e))

        batch_log.info("Exported", photo=str(photo.path), outputs=[str(p) for p in outputs])
        return BatchOutcome(photo.path, OutcomeKind.SUCCESS, outputs)


def write_ndjson(run: BatchRun, stream: TextIO) -> BatchStats:
    """
    Stream a batch as newline-delimited JSON.

    The first line is ``{"total": N}``; each following line is one outcome,
    flushed as soon as it is known.
    """
    stream.write(json.dumps({"total": run.total}) + "\n")
    stream.flush()
    for outcome in run:
        stream.write(outcome.to_json() + "\n")
        stream.flush()
    return run.stats

"""Snapshot discovery and retrieval.

Snapshots live in a date-organized tree::

    {root}/2024-01-15/index.json        # optional manifest: {"files": [...]}
    {root}/2024-01-15/tle_000000.txt
    {root}/2024-01-15/tle_060000.txt

The root can be a local directory (:class:`DirectorySource`), an HTTP(S)
URL (:class:`HttpSource`) or an in-memory mapping (:class:`MemorySource`).
When a date has no manifest, a fixed set of canonical capture times is
probed instead.

Fetches are independent and run on a bounded thread pool. Every failure
is confined to its own file and reported as a
:class:`~tledelta.models.Diagnostic`; nothing here raises past
:func:`collect_snapshots`.
"""

from __future__ import annotations

import json
import logging
import re
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional, Sequence, Union

import requests
from tqdm import tqdm

from .config import EngineConfig
from .errors import SnapshotFetchFailure, SnapshotNotFound, SnapshotTimeout
from .models import Diagnostic, DiagnosticKind

logger = logging.getLogger(__name__)

FILENAME_PATTERN = re.compile(r"tle_([0-9]{2})([0-9]{2})([0-9]{2})\.txt")

_POLL_INTERVAL = 0.05
"""Seconds between cancellation and timeout checks while fetches run."""


@dataclass(frozen=True)
class RawSnapshot:
    """One fetched snapshot file. Consumed by the parser, never retained."""
    day: date
    filename: str
    content: bytes
    captured_at: datetime


@dataclass
class SnapshotCollection:
    """Everything fetched for a set of dates, plus what went wrong."""
    snapshots: list[RawSnapshot] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    cancelled: bool = False


# ── Sources ──


class SnapshotSource:
    """Transport for a date-organized snapshot tree.

    Subclasses implement :meth:`read_manifest` and :meth:`fetch`.
    Implementations must be safe to call from several threads at once.
    """

    def read_manifest(
        self,
        day: date,
        name: str,
        timeout: Optional[float] = None,
    ) -> Optional[bytes]:
        """Return the raw manifest for ``day``, or None if there is none.

        Raises:
            SnapshotFetchFailure: If a manifest may exist but could not be read.
        """
        raise NotImplementedError

    def fetch(
        self,
        day: date,
        filename: str,
        timeout: Optional[float] = None,
    ) -> bytes:
        """Return the raw bytes of one snapshot file.

        Raises:
            SnapshotNotFound: The file does not exist.
            SnapshotTimeout: The fetch exceeded ``timeout``.
            SnapshotFetchFailure: Any other retrieval error.
        """
        raise NotImplementedError


class DirectorySource(SnapshotSource):
    """Snapshots stored on the local filesystem under ``root``."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)

    def __repr__(self) -> str:
        return f"DirectorySource({str(self.root)!r})"

    def _path(self, day: date, filename: str) -> Path:
        return self.root / day.isoformat() / filename

    def read_manifest(self, day, name, timeout=None):
        path = self._path(day, name)
        if not path.is_file():
            return None
        try:
            return path.read_bytes()
        except OSError as exc:
            raise SnapshotFetchFailure(str(exc), day, name) from exc

    def fetch(self, day, filename, timeout=None):
        path = self._path(day, filename)
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise SnapshotNotFound(f"{path} does not exist", day, filename) from exc
        except OSError as exc:
            raise SnapshotFetchFailure(str(exc), day, filename) from exc


class HttpSource(SnapshotSource):
    """Snapshots served over HTTP(S) below ``base_url``."""

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def __repr__(self) -> str:
        return f"HttpSource({self.base_url!r})"

    def _url(self, day: date, filename: str) -> str:
        return f"{self.base_url}/{day.isoformat()}/{filename}"

    def _get(self, day: date, filename: str, timeout: Optional[float]):
        url = self._url(day, filename)
        logger.debug(f"GET {url}")
        try:
            return self.session.get(url, timeout=timeout)
        except requests.Timeout as exc:
            raise SnapshotTimeout(
                f"Timed out after {timeout}s fetching {url}", day, filename
            ) from exc
        except requests.RequestException as exc:
            raise SnapshotFetchFailure(f"{url}: {exc}", day, filename) from exc

    def read_manifest(self, day, name, timeout=None):
        resp = self._get(day, name, timeout)
        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            raise SnapshotFetchFailure(
                f"HTTP {resp.status_code} for {resp.url}", day, name
            )
        return resp.content

    def fetch(self, day, filename, timeout=None):
        resp = self._get(day, filename, timeout)
        if resp.status_code == 404:
            raise SnapshotNotFound(f"HTTP 404 for {resp.url}", day, filename)
        if resp.status_code != 200:
            raise SnapshotFetchFailure(
                f"HTTP {resp.status_code} for {resp.url}", day, filename
            )
        return resp.content


class MemorySource(SnapshotSource):
    """Snapshots already held in memory.

    Args:
        files: ``{"YYYY-MM-DD": {"tle_HHMMSS.txt": text_or_bytes}}``.
        manifests: Optional ``{"YYYY-MM-DD": [filename, ...]}``; dates
            without an entry fall back to probing.
    """

    def __init__(
        self,
        files: Mapping[str, Mapping[str, Union[str, bytes]]],
        manifests: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> None:
        self.files = {str(k): dict(v) for k, v in files.items()}
        self.manifests = {str(k): list(v) for k, v in (manifests or {}).items()}

    def read_manifest(self, day, name, timeout=None):
        listed = self.manifests.get(day.isoformat())
        if listed is None:
            return None
        return json.dumps({"files": listed}).encode()

    def fetch(self, day, filename, timeout=None):
        try:
            content = self.files[day.isoformat()][filename]
        except KeyError as exc:
            raise SnapshotNotFound(
                f"{day.isoformat()}/{filename} not in memory", day, filename
            ) from exc
        return content.encode() if isinstance(content, str) else content


def open_source(root: Union[str, Path]) -> SnapshotSource:
    """Pick a source for ``root``: HTTP(S) URLs or local directories."""
    text = str(root)
    if text.startswith(("http://", "https://")):
        return HttpSource(text)
    return DirectorySource(text)


# ── Filenames & manifests ──


def parse_capture_time(day: date, filename: str) -> datetime:
    """Combine ``day`` with the HHMMSS of a ``tle_HHMMSS.txt`` filename.

    Raises:
        ValueError: If the name does not match or encodes an impossible time.
    """
    match = FILENAME_PATTERN.fullmatch(filename)
    if not match:
        raise ValueError(f"{filename!r} does not match tle_HHMMSS.txt")
    hour, minute, second = (int(g) for g in match.groups())
    return datetime(
        day.year, day.month, day.day, hour, minute, second, tzinfo=timezone.utc
    )


def decode_manifest(raw: bytes) -> list[str]:
    """Decode a manifest into its filename list.

    Accepts ``{"files": [...]}`` or a bare JSON list of filenames.

    Raises:
        ValueError: On invalid JSON or an unexpected shape.
    """
    data = json.loads(raw)
    files = data.get("files", []) if isinstance(data, dict) else data
    if not isinstance(files, list) or not all(isinstance(f, str) for f in files):
        raise ValueError("manifest must list filenames as strings")
    return files


# ── Discovery ──


@dataclass(frozen=True)
class _Candidate:
    day: date
    filename: str
    captured_at: datetime
    probed: bool


class _StopSignal:
    """Caller cancellation and/or a wall-clock deadline."""

    def __init__(
        self,
        cancel: Optional[threading.Event],
        deadline: Optional[float],
    ) -> None:
        self.cancel = cancel
        self.expires = time.monotonic() + deadline if deadline is not None else None

    def __bool__(self) -> bool:
        if self.cancel is not None and self.cancel.is_set():
            return True
        return self.expires is not None and time.monotonic() >= self.expires

    @property
    def reason(self) -> str:
        if self.cancel is not None and self.cancel.is_set():
            return "Skipped after cancellation"
        return "Skipped after the deadline passed"


def _settle(
    tasks: dict[Future, Any],
    started: dict[Any, float],
    stop: _StopSignal,
    timeout: Optional[float],
) -> Iterator[tuple[Any, Future, Optional[DiagnosticKind]]]:
    """Yield ``(item, future, kind)`` for every task as it settles.

    ``kind`` is None for a task that finished on its own, ``TIMEOUT`` for
    one that has been running longer than ``timeout`` and ``CANCELLED``
    for everything still pending once ``stop`` trips. Abandoned tasks are
    not waited for; ``started`` maps each item to the monotonic time its
    worker picked it up.
    """
    pending = set(tasks)
    while pending:
        done, pending = wait(pending, timeout=_POLL_INTERVAL, return_when=FIRST_COMPLETED)
        for future in done:
            yield tasks[future], future, None

        if stop:
            for future in pending:
                if future.done():
                    yield tasks[future], future, None
                    continue
                future.cancel()
                yield tasks[future], future, DiagnosticKind.CANCELLED
            return

        if timeout is not None:
            now = time.monotonic()
            expired = {
                f for f in pending if now - started.get(tasks[f], now) >= timeout
            }
            for future in expired:
                yield tasks[future], future, DiagnosticKind.TIMEOUT
            pending -= expired


def _resolve_day(
    source: SnapshotSource,
    day: date,
    config: EngineConfig,
) -> tuple[list[_Candidate], list[Diagnostic]]:
    """List the files to fetch for one date (manifest, else probe set)."""
    diagnostics: list[Diagnostic] = []
    filenames: Optional[list[str]] = None

    try:
        raw = source.read_manifest(day, config.manifest_name, config.fetch_timeout)
    except SnapshotFetchFailure as exc:
        diagnostics.append(_diagnostic_for(exc, day, config.manifest_name))
        raw = None

    if raw is not None:
        try:
            filenames = decode_manifest(raw)
        except ValueError as exc:
            logger.warning(f"Unreadable manifest for {day}: {exc}")
            diagnostics.append(
                Diagnostic(
                    DiagnosticKind.BAD_MANIFEST,
                    f"Unreadable manifest: {exc}",
                    day=day,
                    filename=config.manifest_name,
                )
            )

    probed = filenames is None
    if probed:
        logger.debug(f"No manifest for {day}; probing {len(config.probe_times)} times")
        filenames = [f"tle_{t}.txt" for t in config.probe_times]

    candidates: list[_Candidate] = []
    seen: set[str] = set()
    for name in filenames:
        if name in seen:
            continue
        seen.add(name)
        try:
            captured_at = parse_capture_time(day, name)
        except ValueError as exc:
            diagnostics.append(
                Diagnostic(DiagnosticKind.BAD_FILENAME, str(exc), day=day, filename=name)
            )
            continue
        candidates.append(_Candidate(day, name, captured_at, probed))

    return candidates, diagnostics


def _fetch_candidate(
    source: SnapshotSource,
    candidate: _Candidate,
    timeout: Optional[float],
) -> RawSnapshot:
    content = source.fetch(candidate.day, candidate.filename, timeout)
    return RawSnapshot(
        day=candidate.day,
        filename=candidate.filename,
        content=content,
        captured_at=candidate.captured_at,
    )


def _diagnostic_for(exc: SnapshotFetchFailure, day: date, filename: str) -> Diagnostic:
    if isinstance(exc, SnapshotTimeout):
        kind = DiagnosticKind.TIMEOUT
    elif isinstance(exc, SnapshotNotFound):
        kind = DiagnosticKind.NOT_FOUND
    else:
        kind = DiagnosticKind.FETCH_FAILED
    logger.warning(f"Skipping {day}/{filename}: {exc}")
    return Diagnostic(kind, str(exc), day=day, filename=filename)


def _cancelled(day: date, filename: Optional[str], reason: str) -> Diagnostic:
    return Diagnostic(DiagnosticKind.CANCELLED, reason, day=day, filename=filename)


def _timed_out(day: date, filename: str, timeout: float) -> Diagnostic:
    logger.warning(f"Abandoning {day}/{filename}: still running after {timeout}s")
    return Diagnostic(
        DiagnosticKind.TIMEOUT,
        f"Still running after {timeout}s; treated as unavailable",
        day=day,
        filename=filename,
    )


def collect_snapshots(
    source: SnapshotSource,
    days: Sequence[date],
    config: Optional[EngineConfig] = None,
    cancel: Optional[threading.Event] = None,
    progress: bool = False,
) -> SnapshotCollection:
    """Fetch every snapshot available for ``days``.

    Manifests are resolved concurrently across dates, then every file is
    fetched concurrently, all on one pool of ``config.max_workers``
    threads. Results are gathered on the calling thread as they settle.

    ``config.fetch_timeout`` and ``config.deadline`` are enforced here, not
    left to the source: a fetch running longer than the timeout is
    reported as ``TIMEOUT`` and abandoned, and once the deadline passes
    (or ``cancel`` is set) everything unfinished is reported as
    ``CANCELLED`` and the call returns without waiting for it. An
    abandoned fetch keeps its worker thread until the source returns.

    Args:
        source: Where the snapshot tree lives.
        days: Dates to collect.
        config: Concurrency, timeout and probing settings.
        cancel: Set it to stop fetching; files already fetched are kept.
        progress: Show a tqdm progress bar for file fetches.

    Returns:
        Snapshots sorted by capture time, with diagnostics for every file
        that was skipped.
    """
    config = config or EngineConfig()
    stop = _StopSignal(cancel, config.deadline)
    result = SnapshotCollection()
    started: dict[Any, float] = {}

    def resolve(day: date):
        started[day] = time.monotonic()
        if stop:
            return None
        return _resolve_day(source, day, config)

    def fetch(candidate: _Candidate):
        started[candidate] = time.monotonic()
        if stop:
            return None
        return _fetch_candidate(source, candidate, config.fetch_timeout)

    pool = ThreadPoolExecutor(max_workers=config.max_workers)
    try:
        candidates: list[_Candidate] = []
        resolved = {pool.submit(resolve, day): day for day in days}
        for day, future, abandoned in _settle(
            resolved, started, stop, config.fetch_timeout
        ):
            if abandoned is DiagnosticKind.CANCELLED:
                result.diagnostics.append(_cancelled(day, None, stop.reason))
                continue
            if abandoned is DiagnosticKind.TIMEOUT:
                result.diagnostics.append(
                    _timed_out(day, config.manifest_name, config.fetch_timeout)
                )
                continue
            try:
                outcome = future.result()
            except Exception as exc:
                logger.warning(f"Failed to resolve snapshots for {day}: {exc}")
                result.diagnostics.append(
                    Diagnostic(DiagnosticKind.FETCH_FAILED, str(exc), day=day)
                )
                continue
            if outcome is None:
                result.diagnostics.append(_cancelled(day, None, stop.reason))
                continue
            found, diagnostics = outcome
            candidates.extend(found)
            result.diagnostics.extend(diagnostics)

        fetches = {pool.submit(fetch, c): c for c in candidates}
        for candidate, future, abandoned in tqdm(
            _settle(fetches, started, stop, config.fetch_timeout),
            total=len(fetches),
            desc="Fetching snapshots",
            disable=not progress,
        ):
            if abandoned is DiagnosticKind.CANCELLED:
                result.diagnostics.append(
                    _cancelled(candidate.day, candidate.filename, stop.reason)
                )
                continue
            if abandoned is DiagnosticKind.TIMEOUT:
                result.diagnostics.append(
                    _timed_out(candidate.day, candidate.filename, config.fetch_timeout)
                )
                continue
            try:
                snapshot = future.result()
            except SnapshotNotFound as exc:
                if candidate.probed:
                    logger.debug(f"Probe miss: {candidate.day}/{candidate.filename}")
                    continue
                result.diagnostics.append(
                    _diagnostic_for(exc, candidate.day, candidate.filename)
                )
                continue
            except SnapshotFetchFailure as exc:
                result.diagnostics.append(
                    _diagnostic_for(exc, candidate.day, candidate.filename)
                )
                continue
            except Exception as exc:
                logger.warning(
                    f"Failed to fetch {candidate.day}/{candidate.filename}: {exc}"
                )
                result.diagnostics.append(
                    Diagnostic(
                        DiagnosticKind.FETCH_FAILED,
                        str(exc),
                        day=candidate.day,
                        filename=candidate.filename,
                    )
                )
                continue

            if snapshot is None:
                result.diagnostics.append(
                    _cancelled(candidate.day, candidate.filename, stop.reason)
                )
                continue
            result.snapshots.append(snapshot)
    finally:
        pool.shutdown(wait=False, cancel_futures=True)

    result.cancelled = any(
        d.kind is DiagnosticKind.CANCELLED for d in result.diagnostics
    )
    result.snapshots.sort(key=lambda s: (s.captured_at, s.filename))
    result.diagnostics.sort(
        key=lambda d: (d.day or date.min, d.filename or "", d.kind.value)
    )
    logger.info(
        f"Collected {len(result.snapshots)} snapshot(s) over {len(days)} day(s), "
        f"{len(result.diagnostics)} diagnostic(s)"
    )
    return result


def discover_snapshots(
    source: SnapshotSource,
    day: date,
    config: Optional[EngineConfig] = None,
    diagnostics: Optional[list[Diagnostic]] = None,
) -> list[RawSnapshot]:
    """Snapshots available for a single date, sorted by capture time."""
    collection = collect_snapshots(source, [day], config)
    if diagnostics is not None:
        diagnostics.extend(collection.diagnostics)
    return collection.snapshots

"""Background deletion of generated images once they outlive their TTL."""
import logging
import os
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetentionPolicy:
    ttl: float
    sweep_interval: float

    def validate(self) -> None:
        if self.ttl <= 0:
            raise ValueError("ttl must be positive")
        if self.sweep_interval <= 0:
            raise ValueError("sweep_interval must be positive")
        # Keeps the worst-case artifact lifetime at 1.5 * ttl.
        if self.sweep_interval > self.ttl / 2:
            raise ValueError(
                f"sweep_interval ({self.sweep_interval}s) must be at most half "
                f"of ttl ({self.ttl}s)"
            )


class SweepStepFailed(Exception):
    def __init__(self, step: str, path: str, cause: BaseException):
        super().__init__(f"{step} failed for {path}: {cause}")
        self.step = step
        self.path = path
        self.cause = cause


@dataclass
class SweepReport:
    deleted: List[str] = field(default_factory=list)
    kept: List[str] = field(default_factory=list)
    failures: List[SweepStepFailed] = field(default_factory=list)


class RetentionSweeper:
    """
    Periodically removes files older than the policy TTL from one directory.

    Each file is judged against the clock reading taken right after its own
    stat, not a snapshot for the whole tick. Only regular files are judged;
    directories, symlinks and the placeholder entry are never touched. Every
    I/O failure is logged and the sweep moves on to the next entry.
    """

    def __init__(
        self,
        directory: str,
        policy: RetentionPolicy,
        placeholder: Optional[str] = ".gitkeep",
        clock: Callable[[], float] = time.time,
    ):
        policy.validate()
        self.directory = directory
        self.policy = policy
        self.placeholder = placeholder
        self._clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _fail(self, report: SweepReport, step: str, path: str, exc: BaseException) -> None:
        failure = SweepStepFailed(step, path, exc)
        report.failures.append(failure)
        logger.warning("Sweep step failed: %s", failure)

    def sweep_once(self) -> SweepReport:
        report = SweepReport()
        try:
            with os.scandir(self.directory) as listing:
                entries = list(listing)
        except OSError as exc:
            self._fail(report, "list", self.directory, exc)
            return report

        for entry in entries:
            if entry.name == self.placeholder:
                continue
            path = os.path.join(self.directory, entry.name)
            try:
                if not entry.is_file(follow_symlinks=False):
                    continue
                modified = os.lstat(path).st_mtime
            except FileNotFoundError:
                logger.debug("Artifact %s vanished before stat", path)
                continue
            except OSError as exc:
                self._fail(report, "stat", path, exc)
                continue

            if self._clock() - modified <= self.policy.ttl:
                report.kept.append(entry.name)
                continue

            try:
                os.remove(path)
            except FileNotFoundError:
                logger.debug("Artifact %s already removed", path)
                continue
            except OSError as exc:
                self._fail(report, "delete", path, exc)
                continue
            report.deleted.append(entry.name)

        if report.deleted:
            logger.info(
                "Swept %d expired artifact(s) from %s", len(report.deleted), self.directory
            )
        return report

    def run(self) -> None:
        """Tick, then sleep for the sweep interval, until stop() is called."""
        logger.info(
            "Retention sweeper started for %s (ttl=%ss, interval=%ss)",
            self.directory,
            self.policy.ttl,
            self.policy.sweep_interval,
        )
        while not self._stop.is_set():
            try:
                self.sweep_once()
            except Exception:
                logger.exception("Unexpected error during sweep of %s", self.directory)
            if self._stop.wait(self.policy.sweep_interval):
                break
        logger.info("Retention sweeper stopped for %s", self.directory)

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            self._stop.clear()
            self._thread = threading.Thread(
                target=self.run, name="retention-sweeper", daemon=True
            )
            self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            self._stop.set()
            thread = self._thread
            self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

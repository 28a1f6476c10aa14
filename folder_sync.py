# /folder_sync.py
"""
Folder Sync
- One-way periodic mirror of a source folder into a replica folder.
- Every cycle re-walks both trees: new files are copied, changed files
  (MD5 mismatch) are overwritten, extra files and folders are deleted.
- Nothing is cached between cycles, so tampering with the replica is
  corrected on the next cycle.
- Per-entry failures are logged and retried on the next cycle; a failing
  cycle is logged and the loop keeps going.
- Optional gitignore-style excludes and an optional watcher that starts
  the next cycle early when the source changes.
- Styled console output:
  - COPY / UPDATE green
  - DELETE / RMDIR orange
  - errors red
  - file paths white
  - folder paths light brown
- Log file is always plain (no color codes).

Usage
  pip install watchdog pathspec colorama
  python folder_sync.py
  python folder_sync.py "/src" "/dst" 30 "/var/log/folder_sync.log"
  python folder_sync.py "/src" "/dst" --exclude "*.tmp" --watch
"""

from __future__ import annotations

import argparse
import hashlib
import logging
import shutil
import sys
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from colorama import init as colorama_init
from pathspec import PathSpec
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

DEFAULT_INTERVAL_SEC = 60.0
CHUNK_SIZE = 1024 * 1024

LOGGER_NAME = "folder_sync"


# -------------------------
# Console styling
# -------------------------

class Ansi:
    RESET = "\x1b[0m"
    RED = "\x1b[31m"
    GREEN = "\x1b[32m"
    ORANGE = "\x1b[38;5;208m"
    WHITE = "\x1b[97m"
    LIGHT_BROWN = "\x1b[33m"


ACTION_COLORS = {
    "COPY": Ansi.GREEN,
    "UPDATE": Ansi.GREEN,
    "DELETE": Ansi.ORANGE,
    "RMDIR": Ansi.ORANGE,
    "MKDIR": Ansi.LIGHT_BROWN,
}


def _supports_color(stream) -> bool:
    try:
        return hasattr(stream, "isatty") and stream.isatty()
    except (AttributeError, ValueError):
        return False


class ColorizingFormatter(logging.Formatter):
    def __init__(self, use_color: bool, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        if not self.use_color:
            return base

        if record.levelno >= logging.ERROR:
            return f"{Ansi.RED}{base}{Ansi.RESET}"

        action = getattr(record, "action", None)
        is_dir = getattr(record, "is_dir", None)
        path_text = getattr(record, "path_text", None)

        if action:
            action_color = ACTION_COLORS.get(action, "")
            if action_color and action in base:
                base = base.replace(action, f"{action_color}{action}{Ansi.RESET}", 1)

        if path_text and path_text in base:
            pcolor = Ansi.LIGHT_BROWN if is_dir else Ansi.WHITE
            base = base.replace(path_text, f"{pcolor}{path_text}{Ansi.RESET}")

        return base


def setup_logger(log_file: Path, name: str = LOGGER_NAME) -> logging.Logger:
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.propagate = False

    if logger.handlers:
        return logger

    colorama_init()

    fmt = "%(asctime)s | %(levelname)s | %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"

    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
    fh.setLevel(logging.INFO)

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(logging.INFO)
    ch.setFormatter(ColorizingFormatter(use_color=_supports_color(sys.stdout), fmt=fmt, datefmt=datefmt))

    logger.addHandler(fh)
    logger.addHandler(ch)

    logger.info("Logging to: %s", log_file)
    return logger


def log_action(
    logger: logging.Logger,
    action: str,
    message: str,
    path: Optional[Path] = None,
    is_dir: Optional[bool] = None,
    level: int = logging.INFO,
) -> None:
    extra = {"action": action}
    if path is not None:
        extra["path_text"] = str(path)
        extra["is_dir"] = bool(is_dir)
    logger.log(level, f"{action} | {message}", extra=extra)


# -------------------------
# Cycle results
# -------------------------

class SyncAction(str, Enum):
    MKDIR = "MKDIR"
    COPY = "COPY"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    RMDIR = "RMDIR"


@dataclass(frozen=True)
class EntryResult:
    """Outcome of one mutating operation on the replica.

    ``ok`` is False when the operation was attempted and failed; ``reason``
    then carries the error text.
    """

    action: SyncAction
    path: Path
    ok: bool = True
    reason: str = ""


@dataclass
class CycleReport:
    source_root: Path
    replica_root: Path
    results: list[EntryResult] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return any(r.ok for r in self.results)

    @property
    def failures(self) -> list[EntryResult]:
        return [r for r in self.results if not r.ok]

    def count(self, action: SyncAction) -> int:
        return sum(1 for r in self.results if r.ok and r.action == action)

    def summary(self) -> str:
        parts = [f"{a.value.lower()}={self.count(a)}" for a in SyncAction if self.count(a)]
        if self.failures:
            parts.append(f"failed={len(self.failures)}")
        return ", ".join(parts) if parts else "nothing to do"


# -------------------------
# Config / CLI
# -------------------------

@dataclass(frozen=True)
class SyncConfig:
    source_dir: Path
    replica_dir: Path
    log_file: Path
    interval_sec: float = DEFAULT_INTERVAL_SEC
    exclude: tuple[str, ...] = ()
    watch: bool = False
    once: bool = False


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Periodically mirror a source folder into a replica folder.")
    p.add_argument("source", nargs="?", default=None, help="Folder to mirror from (default: ./Folders/SourceFolder).")
    p.add_argument("replica", nargs="?", default=None, help="Folder to mirror into (default: ./Folders/ReplicaFolder).")
    p.add_argument("interval", nargs="?", type=float, default=None, help="Seconds between sync cycles (default: 60).")
    p.add_argument("log_file", nargs="?", default=None, help="Log file path (default: ./LogFile/log.txt).")
    p.add_argument("--exclude", action="append", default=[], metavar="PATTERN", help="gitignore-style pattern to skip (repeatable).")
    p.add_argument("--watch", action="store_true", help="Start the next cycle early when the source changes.")
    p.add_argument("--once", action="store_true", help="Run a single cycle and exit.")
    return p.parse_args(argv)


def build_config(args: argparse.Namespace, cwd: Optional[Path] = None) -> SyncConfig:
    base = cwd or Path.cwd()

    source = Path(args.source) if args.source else base / "Folders" / "SourceFolder"
    replica = Path(args.replica) if args.replica else base / "Folders" / "ReplicaFolder"
    log_file = Path(args.log_file) if args.log_file else base / "LogFile" / "log.txt"
    interval = float(args.interval) if args.interval is not None else DEFAULT_INTERVAL_SEC

    if interval <= 0:
        raise ValueError(f"Sync interval must be positive, got {interval}")

    return SyncConfig(
        source_dir=source,
        replica_dir=replica,
        log_file=log_file,
        interval_sec=interval,
        exclude=tuple(args.exclude),
        watch=bool(args.watch),
        once=bool(args.once),
    )


def _is_subpath(child: Path, parent: Path) -> bool:
    try:
        child.resolve().relative_to(parent.resolve())
        return True
    except ValueError:
        return False


def validate_paths(source: Path, replica: Path) -> tuple[Path, Path]:
    source = source.expanduser().resolve()
    replica = replica.expanduser().resolve()

    if not source.exists() or not source.is_dir():
        raise ValueError(f"Source folder does not exist or is not a folder: {source}")
    if source == replica:
        raise ValueError("Source and replica folders must be different.")
    if _is_subpath(replica, source):
        raise ValueError("Replica folder must NOT be inside source folder (would cause loops).")
    if _is_subpath(source, replica):
        raise ValueError("Source folder must NOT be inside replica folder (it would be deleted).")
    if replica.exists() and not replica.is_dir():
        raise ValueError(f"Replica path exists and is not a folder: {replica}")

    return source, replica


# -------------------------
# Ignore + filesystem helpers
# -------------------------

class IgnoreMatcher:
    def __init__(self, patterns: list[str] | tuple[str, ...] = ()):
        self.patterns = list(patterns)
        self.spec = PathSpec.from_lines("gitwildmatch", self.patterns)

    def is_ignored(self, rel: Path, is_dir: bool = False) -> bool:
        """Gitignore semantics: nothing below an excluded directory is re-included."""
        if not self.patterns:
            return False
        for parent in reversed(list(rel.parents)[:-1]):
            if self.spec.match_file(parent.as_posix() + "/"):
                return True
        rel_posix = rel.as_posix()
        if is_dir and not rel_posix.endswith("/"):
            rel_posix += "/"
        return self.spec.match_file(rel_posix)


def digest_file(path: Path, chunk_size: int = CHUNK_SIZE) -> str:
    h = hashlib.md5()
    with path.open("rb") as f:
        while True:
            b = f.read(chunk_size)
            if not b:
                break
            h.update(b)
    return h.hexdigest()


def files_are_equal(path_a: Path, path_b: Path, logger: logging.Logger) -> bool:
    """Compare two files by whole-content MD5 digest.

    A read failure on either side is logged and reported as "different", so
    the caller attempts an overwrite instead of skipping a possibly stale copy.
    """
    try:
        return digest_file(path_a) == digest_file(path_b)
    except OSError as e:
        log_action(
            logger,
            "COMPARE",
            f"ERROR comparing files {path_a} and {path_b} | {e}",
            path=path_b,
            is_dir=False,
            level=logging.ERROR,
        )
        return False


def copy_file(src: Path, dst: Path) -> None:
    shutil.copy2(src, dst)


def _is_real_dir(path: Path) -> bool:
    return path.is_dir() and not path.is_symlink()


# -------------------------
# Tree differencer
# -------------------------

class _Cycle:
    """One synchronization pass; collects results into a CycleReport."""

    def __init__(
        self,
        source_root: Path,
        replica_root: Path,
        logger: logging.Logger,
        ignore: IgnoreMatcher,
    ):
        self.source_root = source_root
        self.replica_root = replica_root
        self.logger = logger
        self.ignore = ignore
        self.report = CycleReport(source_root=source_root, replica_root=replica_root)

    def done(self, action: SyncAction, path: Path, message: str, is_dir: bool) -> None:
        self.report.results.append(EntryResult(action=action, path=path))
        log_action(self.logger, action.value, message, path=path, is_dir=is_dir)

    def failed(self, action: SyncAction, path: Path, message: str, error: Exception, is_dir: bool) -> None:
        self.report.results.append(EntryResult(action=action, path=path, ok=False, reason=str(error)))
        log_action(self.logger, action.value, f"ERROR {message} | {error}", path=path, is_dir=is_dir, level=logging.ERROR)

    def ensure_root(self) -> None:
        if self.replica_root.exists():
            return
        self.replica_root.mkdir(parents=True, exist_ok=True)
        self.done(SyncAction.MKDIR, self.replica_root, f"Created directory: {self.replica_root}", is_dir=True)

    def ensure_dir(self, dst: Path) -> None:
        """Create dst and any missing parents, replacing files that are in the way."""
        missing = []
        node = dst
        while node != self.replica_root and not _is_real_dir(node):
            missing.append(node)
            node = node.parent

        for d in reversed(missing):
            if d.exists() or d.is_symlink():
                d.unlink()
                self.done(SyncAction.DELETE, d, f"Deleted file (replaced by directory): {d}", is_dir=False)
            d.mkdir()
            self.done(SyncAction.MKDIR, d, f"Created directory: {d}", is_dir=True)

    def propagate(self) -> None:
        for src in self.source_root.rglob("*"):
            rel = src.relative_to(self.source_root)
            dst = self.replica_root / rel
            action = SyncAction.COPY
            try:
                if _is_real_dir(src):
                    action = SyncAction.MKDIR
                    if not self.ignore.is_ignored(rel, is_dir=True):
                        self.ensure_dir(dst)
                    continue
                if not src.is_file() or self.ignore.is_ignored(rel):
                    continue
                self.propagate_file(src, dst)
            except OSError as e:
                self.failed(action, dst, f"processing {src}", e, is_dir=action is SyncAction.MKDIR)

    def propagate_file(self, src: Path, dst: Path) -> None:
        self.ensure_dir(dst.parent)

        if dst.is_symlink():
            # never write through a link into a file outside the replica
            dst.unlink()
            self.done(SyncAction.DELETE, dst, f"Deleted link: {dst}", is_dir=False)
        elif _is_real_dir(dst):
            shutil.rmtree(dst)
            self.done(SyncAction.RMDIR, dst, f"Deleted directory (replaced by file): {dst}", is_dir=True)

        if not dst.exists():
            copy_file(src, dst)
            self.done(SyncAction.COPY, dst, f"Copied new file: {dst}", is_dir=False)
            return

        if files_are_equal(src, dst, self.logger):
            return

        try:
            copy_file(src, dst)
        except OSError as e:
            self.failed(SyncAction.UPDATE, dst, f"updating from {src}", e, is_dir=False)
            return
        self.done(SyncAction.UPDATE, dst, f"Updated file: {dst}", is_dir=False)

    def keep_replica_file(self, rel: Path) -> bool:
        src = self.source_root / rel
        if src.is_file():
            return not self.ignore.is_ignored(rel)
        # a directory in the source replaced this file during propagation
        return _is_real_dir(src) and not self.ignore.is_ignored(rel, is_dir=True)

    def delete_extra_files(self) -> None:
        for dst in list(self.replica_root.rglob("*")):
            try:
                if _is_real_dir(dst) or self.keep_replica_file(dst.relative_to(self.replica_root)):
                    continue
                dst.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                self.failed(SyncAction.DELETE, dst, "deleting file", e, is_dir=False)
                continue
            self.done(SyncAction.DELETE, dst, f"Deleted file: {dst}", is_dir=False)

    def delete_extra_dirs(self) -> None:
        for dst in sorted(self.replica_root.rglob("*"), key=lambda p: len(p.parts)):
            try:
                if not _is_real_dir(dst):
                    # files, or removed together with an ancestor
                    continue
                rel = dst.relative_to(self.replica_root)
                if _is_real_dir(self.source_root / rel) and not self.ignore.is_ignored(rel, is_dir=True):
                    continue
                shutil.rmtree(dst)
            except OSError as e:
                self.failed(SyncAction.RMDIR, dst, "deleting directory", e, is_dir=True)
                continue
            self.done(SyncAction.RMDIR, dst, f"Deleted directory: {dst}", is_dir=True)


def synchronize(
    source_root: Path,
    replica_root: Path,
    logger: Optional[logging.Logger] = None,
    ignore: Optional[IgnoreMatcher] = None,
) -> CycleReport:
    """Bring replica_root into agreement with source_root.

    Runs the propagation pass to completion before either deletion pass, so
    a file renamed in the source is copied to its new location before the
    old replica copy is removed. Per-entry failures end up in
    ``report.failures``; ``report.changed`` tells whether anything was
    actually created, updated or deleted.
    """
    logger = logger or logging.getLogger(LOGGER_NAME)
    source_root = Path(source_root)
    replica_root = Path(replica_root)

    if not source_root.is_dir():
        raise FileNotFoundError(f"Source folder does not exist or is not a folder: {source_root}")

    cycle = _Cycle(source_root, replica_root, logger, ignore or IgnoreMatcher())
    cycle.ensure_root()
    cycle.propagate()
    cycle.delete_extra_files()
    cycle.delete_extra_dirs()
    return cycle.report


# -------------------------
# Driver
# -------------------------

class SourceChangeHandler(FileSystemEventHandler):
    """Wakes the sync loop when something under the source folder changes."""

    def __init__(self, wake_event: threading.Event):
        self.wake_event = wake_event

    def on_created(self, event):
        self.wake_event.set()

    def on_modified(self, event):
        if event.is_directory:
            return
        self.wake_event.set()

    def on_deleted(self, event):
        self.wake_event.set()

    def on_moved(self, event):
        self.wake_event.set()


def run_cycle(
    config: SyncConfig,
    logger: logging.Logger,
    ignore: Optional[IgnoreMatcher] = None,
) -> Optional[CycleReport]:
    try:
        report = synchronize(config.source_dir, config.replica_dir, logger, ignore)
    except Exception:
        logger.exception("Sync cycle failed; retrying next cycle")
        return None

    if report.changed:
        logger.info("Changes detected and synchronized. (%s)", report.summary())
    else:
        logger.info("No changes detected.")

    if report.failures:
        logger.warning("%d entries failed this cycle; they will be retried next cycle", len(report.failures))
    return report


def run_loop(
    config: SyncConfig,
    logger: logging.Logger,
    ignore: Optional[IgnoreMatcher],
    stop_event: threading.Event,
    wake_event: Optional[threading.Event] = None,
    max_cycles: Optional[int] = None,
) -> int:
    cycles = 0
    while not stop_event.is_set():
        run_cycle(config, logger, ignore)
        cycles += 1
        if max_cycles is not None and cycles >= max_cycles:
            break

        if wake_event is None:
            stop_event.wait(config.interval_sec)
        elif wake_event.wait(config.interval_sec):
            wake_event.clear()
    return cycles


# -------------------------
# Main
# -------------------------

def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)

    try:
        cfg = build_config(args)
    except ValueError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2

    logger = setup_logger(cfg.log_file.expanduser().resolve())

    try:
        source, replica = validate_paths(cfg.source_dir, cfg.replica_dir)
    except ValueError as e:
        logger.error("Config error: %s", e)
        return 2

    logger.info("Source : %s", source)
    logger.info("Replica: %s", replica)
    logger.info("Interval: %.1fs", cfg.interval_sec)
    if cfg.exclude:
        logger.info("Exclude: %s", ", ".join(cfg.exclude))

    cfg = SyncConfig(
        source_dir=source,
        replica_dir=replica,
        log_file=cfg.log_file,
        interval_sec=cfg.interval_sec,
        exclude=cfg.exclude,
        watch=cfg.watch,
        once=cfg.once,
    )
    ignore = IgnoreMatcher(cfg.exclude)

    if cfg.once:
        report = run_cycle(cfg, logger, ignore)
        return 0 if report is not None and not report.failures else 1

    stop_event = threading.Event()
    wake_event = None
    observer = None
    if cfg.watch:
        wake_event = threading.Event()
        observer = Observer()
        observer.schedule(SourceChangeHandler(wake_event), str(source), recursive=True)
        observer.start()

    logger.info("Starting folder synchronization... (Ctrl+C to stop)")
    try:
        run_loop(cfg, logger, ignore, stop_event, wake_event)
    except KeyboardInterrupt:
        logger.info("Stopping...")
    finally:
        stop_event.set()
        if observer is not None:
            observer.stop()
            observer.join(timeout=10)
        logger.info("Stopped.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

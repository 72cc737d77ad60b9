"""File-backed rate limit store.

One JSON file per key (``{"hits": [...], "updated": ts}``) under a
storage directory, guarded with ``fcntl.flock``: exclusive while
recording a hit, shared while reading. Survives restarts and is shared
by every worker process on the host. POSIX only.
"""

import fcntl
import json
import logging
import os
import re
import time
from pathlib import Path
from typing import IO, Any

from leanapi.ratelimit.store import Clock, HitResult, live_hits, seconds_until_free

logger = logging.getLogger("leanapi.ratelimit")

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


class FileStore:
    """Sliding-window store persisted as one JSON file per key."""

    __slots__ = ("_clock", "directory")

    def __init__(self, directory: str | os.PathLike[str] = "storage/ratelimit", clock: Clock = time.time) -> None:
        self.directory = Path(directory)
        self._clock = clock
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            msg = f"Failed to create rate limit storage directory: {self.directory}"
            raise RuntimeError(msg) from exc

    def path_for(self, key: str) -> Path:
        """Return the file backing *key*. Unsafe characters become ``_``."""
        return self.directory / f"{_UNSAFE_CHARS.sub('_', key)}.json"

    def _now(self) -> int:
        return int(self._clock())

    @staticmethod
    def _read(fh: IO[str]) -> list[int]:
        fh.seek(0)
        content = fh.read()
        if not content:
            return []
        try:
            data: Any = json.loads(content)
        except ValueError:
            logger.warning("Discarding corrupt rate limit file %s", fh.name)
            return []
        if not isinstance(data, dict):
            return []
        return [int(ts) for ts in data.get("hits", []) if isinstance(ts, int | float)]

    def hit(self, key: str, limit: int, window: int) -> HitResult:
        path = self.path_for(key)
        now = self._now()
        # "a+" creates the file without truncating it
        with open(path, "a+", encoding="utf-8") as fh:
            fcntl.flock(fh, fcntl.LOCK_EX)
            try:
                hits = live_hits(self._read(fh), now, window)
                hits.append(now)
                fh.seek(0)
                fh.truncate()
                json.dump({"hits": hits, "updated": now}, fh)
                fh.flush()
            finally:
                fcntl.flock(fh, fcntl.LOCK_UN)
        return HitResult(remaining=max(0, limit - len(hits)), reset_at=min(hits) + window)

    def _live(self, key: str, window: int, now: int) -> list[int]:
        path = self.path_for(key)
        try:
            fh = open(path, encoding="utf-8")
        except FileNotFoundError:
            return []
        with fh:
            fcntl.flock(fh, fcntl.LOCK_SH)
            try:
                return live_hits(self._read(fh), now, window)
            finally:
                fcntl.flock(fh, fcntl.LOCK_UN)

    def allow(self, key: str, limit: int, window: int) -> bool:
        return len(self._live(key, window, self._now())) < limit

    def retry_after(self, key: str, limit: int, window: int) -> int:
        now = self._now()
        return seconds_until_free(self._live(key, window, now), limit, now, window)

    def reset(self, key: str | None = None) -> None:
        """Delete one key's file, or every file when *key* is None."""
        if key is not None:
            self.path_for(key).unlink(missing_ok=True)
            return
        for path in self.directory.glob("*.json"):
            path.unlink(missing_ok=True)

import os
import fcntl
import json
import time
import logging
import contextlib
from typing import Optional, Dict, Iterator

logger = logging.getLogger(__name__)

LOCK_FILE_PATH = os.environ.get("MATCHING_LOCK_FILE", "matching.lock")


class BatchAlreadyRunning(RuntimeError):
    def __init__(self, owner: Optional[Dict]):
        super().__init__(f"Matching batch already running: {owner or 'unknown owner'}")
        self.owner = owner


class PipelineController:
    """
    Single-flight guard for matching batches, backed by an flock()ed file.

    The lock is per host; the (user, job) unique constraint and the daily
    debit fence still hold if two hosts overlap.
    """
    def __init__(self, lock_file: str = LOCK_FILE_PATH):
        self.lock_file = lock_file
        self.file_handle = None

    def _open_file(self):
        if not self.file_handle:
            self.file_handle = open(self.lock_file, "a+")

    def acquire_lock(self, source: str, metadata: Optional[Dict] = None) -> bool:
        """
        Try to take the lock without blocking.

        Args:
            source: Who is running the batch ('scheduler', 'manual', ...)
            metadata: Extra owner info written to the lock file

        Returns:
            True if the lock was acquired.
        """
        try:
            self._open_file()
            fcntl.flock(self.file_handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            return False
        except OSError as e:
            logger.error(f"Error acquiring matching lock: {e}")
            return False

        self.file_handle.truncate(0)
        self.file_handle.seek(0)
        json.dump({
            "source": source,
            "pid": os.getpid(),
            "timestamp": time.time(),
            **(metadata or {})
        }, self.file_handle)
        self.file_handle.flush()
        return True

    def release_lock(self):
        if not self.file_handle:
            return
        try:
            self.file_handle.truncate(0)
            self.file_handle.seek(0)
            fcntl.flock(self.file_handle, fcntl.LOCK_UN)
        except OSError as e:
            logger.error(f"Error releasing matching lock: {e}")
        finally:
            self.file_handle.close()
            self.file_handle = None

    def get_lock_info(self) -> Optional[Dict]:
        """Owner info of the current holder, or None."""
        if not os.path.exists(self.lock_file):
            return None

        try:
            with open(self.lock_file, "r") as f:
                content = f.read().strip()
        except OSError as e:
            logger.warning(f"Could not read lock info: {e}")
            return None

        if not content:
            return None
        try:
            return json.loads(content)
        except json.JSONDecodeError:
            return None

    @contextlib.contextmanager
    def hold(self, source: str, metadata: Optional[Dict] = None) -> Iterator[None]:
        """
        Usage:
            with controller.hold('scheduler'):
                run_matching_batch(ctx)

        Raises:
            BatchAlreadyRunning: another batch holds the lock
        """
        if not self.acquire_lock(source, metadata):
            raise BatchAlreadyRunning(self.get_lock_info())
        try:
            yield
        finally:
            self.release_lock()

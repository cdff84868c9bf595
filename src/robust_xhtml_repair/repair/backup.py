"""Backup and commit coordination for in-place repairs.

A document is only overwritten after a timestamped snapshot of it exists. The
written file is read back and verified; a file that fails verification gets
its original bytes back. Snapshots never outlive a commit.
"""

import shutil
from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto
from pathlib import Path
from typing import Callable, Optional, Union

from robust_xhtml_repair.shared import get_logger


class BackupState(Enum):
    """Commit lifecycle of one file."""

    UNTOUCHED = auto()   # nothing done yet
    BACKED_UP = auto()   # snapshot exists, original unchanged
    WRITTEN = auto()     # repaired content on disk, not yet verified
    COMMITTED = auto()   # verified, snapshot removed
    RESTORED = auto()    # original bytes restored, snapshot removed


class BackupError(Exception):
    """Raised when a file could not be backed up, written or restored."""

    def __init__(self, message: str, path: Optional[Path] = None,
                 state: Optional[BackupState] = None):
        super().__init__(message)
        self.path = path
        self.state = state


@dataclass
class CommitRecord:
    """Final state of one commit attempt."""

    path: Path
    state: BackupState
    backup_path: Optional[Path] = None

    @property
    def committed(self) -> bool:
        return self.state is BackupState.COMMITTED

    @property
    def restored(self) -> bool:
        return self.state is BackupState.RESTORED


def read_text(path: Union[str, Path]) -> str:
    """Read UTF-8 text without newline translation."""
    with open(path, "r", encoding="utf-8", newline="") as handle:
        return handle.read()


def write_text(path: Union[str, Path], content: str) -> None:
    """Write UTF-8 text without newline translation."""
    with open(path, "w", encoding="utf-8", newline="") as handle:
        handle.write(content)


class BackupCoordinator:
    """Writes repaired content behind a verified backup."""

    def __init__(self, backup_suffix: str = ".backup",
                 correlation_id: Optional[str] = None) -> None:
        self.backup_suffix = backup_suffix
        self.logger = get_logger(__name__, correlation_id, "backup")

    def backup_path_for(self, path: Path) -> Path:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S%f")
        return Path(f"{path}{self.backup_suffix}.{timestamp}")

    def commit(
        self,
        path: Union[str, Path],
        content: str,
        verify: Callable[[str], bool]
    ) -> CommitRecord:
        """Replace a file's content behind a backup.

        Args:
            path: File to overwrite
            content: Repaired text
            verify: Check applied to the text read back from disk

        Returns:
            CommitRecord in state COMMITTED or RESTORED

        Raises:
            BackupError: If the snapshot cannot be taken, or an I/O error occurs
                after it (the original is restored first when possible)
        """
        path = Path(path)
        record = CommitRecord(path=path, state=BackupState.UNTOUCHED)

        backup_path = self.backup_path_for(path)
        try:
            shutil.copy2(path, backup_path)
        except OSError as e:
            raise BackupError(
                f"Could not back up {path}: {e}", path, record.state
            ) from e
        record.backup_path = backup_path
        record.state = BackupState.BACKED_UP

        try:
            write_text(path, content)
            record.state = BackupState.WRITTEN
            accepted = verify(read_text(path))
        except (OSError, UnicodeDecodeError) as e:
            self.logger.error(
                "Write failed, restoring original",
                extra={"file_path": str(path), "state": record.state.name}
            )
            self._restore(record)
            raise BackupError(
                f"Could not write {path}: {e}", path, record.state
            ) from e

        if accepted:
            self._discard(backup_path)
            record.state = BackupState.COMMITTED
            self.logger.debug("Repair committed", extra={"file_path": str(path)})
        else:
            self._restore(record)
            self.logger.warning(
                "Post-write verification failed, original restored",
                extra={"file_path": str(path)}
            )
        return record

    def _restore(self, record: CommitRecord) -> None:
        assert record.backup_path is not None
        try:
            shutil.copy2(record.backup_path, record.path)
        except OSError as e:
            raise BackupError(
                f"Could not restore {record.path} from {record.backup_path}: {e}",
                record.path,
                record.state,
            ) from e
        self._discard(record.backup_path)
        record.state = BackupState.RESTORED

    def _discard(self, backup_path: Path) -> None:
        try:
            backup_path.unlink()
        except OSError:
            self.logger.warning(
                "Could not remove backup", extra={"backup_path": str(backup_path)}
            )

"""
dddgen Transactions - Filesystem change log with rollback

A ``TransactionScope`` is passed explicitly to whatever writes files. While a
transaction is active every create, modify, delete and directory creation is
recorded so that a failure can undo the whole batch.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import TypeVar

from dddgen.errors import TransactionError


logger = logging.getLogger(__name__)

T = TypeVar("T")


class OperationKind(str, Enum):
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    MKDIR = "mkdir"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class FileOperation:
    """One recorded filesystem change."""

    kind: OperationKind
    path: Path
    original_content: str | None = None


@dataclass
class Transaction:
    """A named group of file operations."""

    name: str
    id: str = field(default_factory=lambda: f"txn_{uuid.uuid4().hex[:12]}")
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    operations: list[FileOperation] = field(default_factory=list)
    status: TransactionStatus = TransactionStatus.PENDING


@dataclass
class RollbackReport:
    """Counts from undoing a transaction."""

    rolled_back: int = 0
    failed: int = 0


class TransactionScope:
    """
    Records file operations and rolls them back on failure.

    Args:
        enabled: When False, file helpers write straight through and nothing
            is recorded.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.current: Transaction | None = None
        self.history: list[Transaction] = []

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════════

    def begin(self, name: str) -> Transaction | None:
        if not self.enabled:
            return None
        if self.current is not None:
            raise TransactionError(
                f"Transaction '{self.current.name}' already in progress. Commit or rollback first."
            )
        self.current = Transaction(name=name)
        logger.debug("Transaction %s started: %s", self.current.id, name)
        return self.current

    def commit(self) -> None:
        if not self.enabled or self.current is None:
            return
        txn = self.current
        txn.status = TransactionStatus.COMMITTED
        self.history.append(txn)
        self.current = None
        logger.info("Committed %s: %d file operations", txn.name, len(txn.operations))

    def rollback(self, reason: str | None = None) -> RollbackReport:
        """Undo every recorded operation of the active transaction, newest first."""
        report = RollbackReport()
        if self.current is None:
            logger.warning("No active transaction to roll back")
            return report

        txn = self.current
        logger.warning("Rolling back transaction %s%s", txn.name, f": {reason}" if reason else "")

        for op in reversed(txn.operations):
            try:
                _undo(op)
                report.rolled_back += 1
            except OSError as exc:
                report.failed += 1
                logger.error("Failed to roll back %s %s: %s", op.kind.value, op.path, exc)

        txn.status = TransactionStatus.ROLLED_BACK
        self.history.append(txn)
        self.current = None
        logger.info("Rolled back %d operations, %d failed", report.rolled_back, report.failed)
        return report

    def run(self, name: str, fn: Callable[[], T]) -> T:
        """Run ``fn`` inside a transaction; roll back and re-raise on error."""
        self.begin(name)
        try:
            result = fn()
        except BaseException as exc:
            self.rollback(str(exc) or type(exc).__name__)
            raise
        self.commit()
        return result

    # ═══════════════════════════════════════════════════════════════════════
    # RECORDING FILE HELPERS
    # ═══════════════════════════════════════════════════════════════════════

    def _record(self, op: FileOperation) -> None:
        if self.enabled and self.current is not None:
            self.current.operations.append(op)

    def ensure_dir(self, path: Path) -> None:
        """Create a directory and any missing parents, recording each one."""
        missing: list[Path] = []
        candidate = path
        while not candidate.exists():
            missing.append(candidate)
            if candidate.parent == candidate:
                break
            candidate = candidate.parent

        for directory in reversed(missing):
            directory.mkdir()
            self._record(FileOperation(OperationKind.MKDIR, directory))

    def write_file(self, path: Path, content: str) -> None:
        """Write a file, recording a create or the original content for a modify."""
        self.ensure_dir(path.parent)
        if path.exists():
            original = path.read_text(encoding="utf-8")
            path.write_text(content, encoding="utf-8")
            already = self.current is not None and any(
                op.path == path and op.kind in (OperationKind.MODIFY, OperationKind.CREATE)
                for op in self.current.operations
            )
            if not already:
                self._record(FileOperation(OperationKind.MODIFY, path, original))
        else:
            path.write_text(content, encoding="utf-8")
            self._record(FileOperation(OperationKind.CREATE, path))

    def delete_file(self, path: Path) -> None:
        if not path.exists():
            return
        original = path.read_text(encoding="utf-8")
        path.unlink()
        self._record(FileOperation(OperationKind.DELETE, path, original))


def _undo(op: FileOperation) -> None:
    if op.kind == OperationKind.CREATE:
        if op.path.exists():
            op.path.unlink()
    elif op.kind == OperationKind.MODIFY:
        if op.original_content is not None:
            op.path.write_text(op.original_content, encoding="utf-8")
    elif op.kind == OperationKind.DELETE:
        if op.original_content is not None:
            op.path.parent.mkdir(parents=True, exist_ok=True)
            op.path.write_text(op.original_content, encoding="utf-8")
    elif op.kind == OperationKind.MKDIR:
        if op.path.is_dir() and not any(op.path.iterdir()):
            op.path.rmdir()

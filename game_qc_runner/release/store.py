"""Storage of versions, QC reports and audit records."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field

from game_qc_runner.release.errors import StaleVersionError, VersionNotFoundError
from game_qc_runner.release.models import AuditRecord, GameVersion, QCReport


class VersionStore(ABC):
    """Persistence used by the release state machine.

    ``commit_transition`` must be atomic: the new version document, its
    audit record and any accompanying QC report are written together, and
    only if the stored document still has the revision the caller read.
    """

    @abstractmethod
    async def get_version(self, version_id: str) -> GameVersion | None:
        """Return the version, or None if it does not exist."""

    @abstractmethod
    async def add_version(self, version: GameVersion) -> None:
        """Insert a new version."""

    @abstractmethod
    async def add_report(self, report: QCReport) -> None:
        """Append a QC report to the version's history."""

    @abstractmethod
    async def latest_report(self, version_id: str) -> QCReport | None:
        """Return the most recently added QC report for the version."""

    @abstractmethod
    async def audit_trail(self, version_id: str) -> Sequence[AuditRecord]:
        """Return the version's audit records, oldest first."""

    @abstractmethod
    async def commit_transition(
        self,
        expected: GameVersion,
        updated: GameVersion,
        audit: AuditRecord,
        report: QCReport | None = None,
    ) -> None:
        """Replace ``expected`` with ``updated`` and record ``audit``.

        ``report``, when given, is appended to the version's reports in the
        same write.

        Raises:
            StaleVersionError: If the stored revision differs from ``expected``

        """


@dataclass(kw_only=True)
class InMemoryVersionStore(VersionStore):
    """Process-local store; a lock stands in for single-document atomicity."""

    _versions: dict[str, GameVersion] = field(default_factory=dict)
    _reports: dict[str, list[QCReport]] = field(default_factory=dict)
    _audit: dict[str, list[AuditRecord]] = field(default_factory=dict)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    async def get_version(self, version_id: str) -> GameVersion | None:
        return self._versions.get(version_id)

    async def add_version(self, version: GameVersion) -> None:
        async with self._lock:
            self._versions[version.id] = version

    async def add_report(self, report: QCReport) -> None:
        async with self._lock:
            if report.version_id not in self._versions:
                raise VersionNotFoundError(report.version_id)
            self._reports.setdefault(report.version_id, []).append(report)

    async def latest_report(self, version_id: str) -> QCReport | None:
        reports = self._reports.get(version_id)
        return reports[-1] if reports else None

    async def audit_trail(self, version_id: str) -> Sequence[AuditRecord]:
        return tuple(self._audit.get(version_id, ()))

    async def commit_transition(
        self,
        expected: GameVersion,
        updated: GameVersion,
        audit: AuditRecord,
        report: QCReport | None = None,
    ) -> None:
        async with self._lock:
            current = self._versions.get(expected.id)
            if current is None:
                raise VersionNotFoundError(expected.id)
            if current.revision != expected.revision or current.status != expected.status:
                raise StaleVersionError(expected.id)
            self._versions[expected.id] = updated
            self._audit.setdefault(expected.id, []).append(audit)
            if report is not None:
                self._reports.setdefault(expected.id, []).append(report)

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Optional, TypeVar
from app.models.schemas import AuditStatus

RecordT = TypeVar("RecordT")


class IAuditLedger(ABC, Generic[RecordT]):
    """Append/update-only ledger of orchestration attempts.

    Metadata patches are shallow-merged into the stored map. Status only moves
    forward: pending -> processing -> completed | failed.
    """

    @abstractmethod
    async def create(self, fields: Dict[str, Any]) -> RecordT:
        pass

    @abstractmethod
    async def update_status(
        self, record_id: str, status: AuditStatus, metadata: Optional[Dict[str, Any]] = None
    ) -> RecordT:
        pass

    @abstractmethod
    async def update_fields(self, record_id: str, fields: Dict[str, Any]) -> RecordT:
        """Set plain columns (never status, result or metadata)"""
        pass

    @abstractmethod
    async def mark_completed(
        self, record_id: str, result: Any, metadata: Optional[Dict[str, Any]] = None
    ) -> RecordT:
        pass

    @abstractmethod
    async def mark_failed(
        self, record_id: str, error_message: str, metadata: Optional[Dict[str, Any]] = None
    ) -> RecordT:
        pass

    @abstractmethod
    async def find_by_id(self, record_id: str) -> Optional[RecordT]:
        pass

    @abstractmethod
    async def find_by_project(self, project_id: str) -> List[RecordT]:
        pass


class ISuggestionLedger(IAuditLedger[RecordT]):
    @abstractmethod
    async def find_by_entity(self, project_id: str, entity_name: str, section: str) -> List[RecordT]:
        """Records for one entity and section, newest first"""
        pass

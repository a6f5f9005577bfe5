from typing import Any, Dict, List, Optional, Type
from sqlalchemy.orm import Session
from app.core.database import commit_or_rollback
from pydantic import BaseModel
from app.core.exceptions import InvalidStatusTransitionError, NotFoundError
from app.core.metadata import Metadata, merge_metadata
from app.models.database import AIGenerationModel, AISuggestionModel
from app.models.schemas import AIGenerationRecord, AISuggestionRecord, AuditStatus
from app.repositories.interfaces.audit_ledger import IAuditLedger, ISuggestionLedger

# Allowed forward moves; terminal states accept nothing
_TRANSITIONS = {
    AuditStatus.PENDING: {AuditStatus.PROCESSING, AuditStatus.FAILED},
    AuditStatus.PROCESSING: {AuditStatus.COMPLETED, AuditStatus.FAILED},
    AuditStatus.COMPLETED: set(),
    AuditStatus.FAILED: set(),
}

_PROTECTED_FIELDS = {"status", "record_metadata", "metadata", "error_message"}


class _SQLAuditLedger(IAuditLedger):
    """Shared SQLAlchemy ledger; subclasses name the table and result column"""

    model: Any = None
    schema: Type[BaseModel] = None
    id_column: str = ""
    result_attribute: str = ""

    def __init__(self, db: Session):
        self.db = db

    def _get(self, record_id: str):
        db_record = (
            self.db.query(self.model)
            .filter(getattr(self.model, self.id_column) == record_id)
            .first()
        )
        if not db_record:
            raise NotFoundError(f"Audit record {record_id} not found")
        return db_record

    def _transition(self, db_record, status: AuditStatus, metadata: Optional[Metadata]):
        current = AuditStatus(db_record.status)
        if status != current and status not in _TRANSITIONS[current]:
            raise InvalidStatusTransitionError(
                getattr(db_record, self.id_column), current.value, status.value
            )
        db_record.status = status
        if metadata:
            # reassign so the JSON column sees the change
            db_record.record_metadata = merge_metadata(db_record.record_metadata, metadata)

    def _save(self, db_record):
        commit_or_rollback(self.db)
        self.db.refresh(db_record)
        return self.schema.model_validate(db_record)

    def _store_result(self, db_record, result: Any):
        setattr(db_record, self.result_attribute, result)

    async def create(self, fields: Dict[str, Any]):
        data = dict(fields)
        metadata = data.pop("metadata", None) or {}
        db_record = self.model(status=AuditStatus.PENDING, record_metadata=dict(metadata), **data)
        self.db.add(db_record)
        commit_or_rollback(self.db)
        self.db.refresh(db_record)
        return self.schema.model_validate(db_record)

    async def update_status(self, record_id: str, status: AuditStatus, metadata: Optional[Metadata] = None):
        db_record = self._get(record_id)
        self._transition(db_record, status, metadata)
        return self._save(db_record)

    async def update_fields(self, record_id: str, fields: Dict[str, Any]):
        db_record = self._get(record_id)
        for field, value in fields.items():
            if field in _PROTECTED_FIELDS or field == self.result_attribute:
                raise ValueError(f"Field '{field}' is managed by the ledger")
            setattr(db_record, field, value)
        return self._save(db_record)

    async def mark_completed(self, record_id: str, result: Any, metadata: Optional[Metadata] = None):
        db_record = self._get(record_id)
        self._transition(db_record, AuditStatus.COMPLETED, metadata)
        self._store_result(db_record, result)
        return self._save(db_record)

    async def mark_failed(self, record_id: str, error_message: str, metadata: Optional[Metadata] = None):
        db_record = self._get(record_id)
        self._transition(db_record, AuditStatus.FAILED, metadata)
        db_record.error_message = error_message
        return self._save(db_record)

    async def find_by_id(self, record_id: str):
        db_record = (
            self.db.query(self.model)
            .filter(getattr(self.model, self.id_column) == record_id)
            .first()
        )
        return self.schema.model_validate(db_record) if db_record else None

    async def find_by_project(self, project_id: str) -> List[Any]:
        db_records = (
            self.db.query(self.model)
            .filter(self.model.project_id == project_id)
            .order_by(self.model.created_at.desc(), self.model.id.desc())
            .all()
        )
        return [self.schema.model_validate(record) for record in db_records]


class SQLGenerationLedger(_SQLAuditLedger):
    """Audit trail of test case generations; the result is the parsed code as JSON ({"feature", "steps"})"""

    model = AIGenerationModel
    schema = AIGenerationRecord
    id_column = "generation_id"
    result_attribute = "generated_code"


class SQLSuggestionLedger(_SQLAuditLedger, ISuggestionLedger):
    """Audit trail of suggestion requests; the result is the parsed suggestion list"""

    model = AISuggestionModel
    schema = AISuggestionRecord
    id_column = "suggestion_id"
    result_attribute = "suggestions"

    def _store_result(self, db_record, result: Any):
        suggestions = [
            item.model_dump() if isinstance(item, BaseModel) else dict(item) for item in result
        ]
        db_record.suggestions = suggestions
        db_record.total_suggestions = len(suggestions)

    async def find_by_entity(self, project_id: str, entity_name: str, section: str) -> List[AISuggestionRecord]:
        db_records = (
            self.db.query(AISuggestionModel)
            .filter(
                AISuggestionModel.project_id == project_id,
                AISuggestionModel.entity_name == entity_name,
                AISuggestionModel.section == section,
            )
            .order_by(AISuggestionModel.created_at.desc(), AISuggestionModel.id.desc())
            .all()
        )
        return [AISuggestionRecord.model_validate(record) for record in db_records]

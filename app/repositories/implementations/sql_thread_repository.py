from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from app.core.database import commit_or_rollback
from app.models.database import AIThreadModel
from app.models.schemas import AIThread, ThreadStatus
from app.repositories.interfaces.thread_repository import IThreadRepository


class SQLThreadRepository(IThreadRepository):
    """SQLAlchemy implementation of the thread record store"""

    def __init__(self, db: Session):
        self.db = db

    def _get(self, record_id: int) -> Optional[AIThreadModel]:
        return self.db.query(AIThreadModel).filter(AIThreadModel.id == record_id).first()

    async def create(self, project_id: str, thread_id: str, assistant_id: str, max_messages: int) -> AIThread:
        db_thread = AIThreadModel(
            project_id=project_id,
            thread_id=thread_id,
            assistant_id=assistant_id,
            status=ThreadStatus.ACTIVE,
            message_count=0,
            max_messages=max_messages,
            last_used_at=datetime.utcnow(),
        )
        self.db.add(db_thread)
        commit_or_rollback(self.db)
        self.db.refresh(db_thread)
        return AIThread.model_validate(db_thread)

    async def get_by_id(self, record_id: int) -> Optional[AIThread]:
        db_thread = self._get(record_id)
        return AIThread.model_validate(db_thread) if db_thread else None

    async def find_by_thread_id(self, thread_id: str) -> Optional[AIThread]:
        db_thread = self.db.query(AIThreadModel).filter(AIThreadModel.thread_id == thread_id).first()
        return AIThread.model_validate(db_thread) if db_thread else None

    async def find_for_pair(
        self, project_id: str, assistant_id: str, status: Optional[ThreadStatus] = None
    ) -> List[AIThread]:
        query = self.db.query(AIThreadModel).filter(
            AIThreadModel.project_id == project_id,
            AIThreadModel.assistant_id == assistant_id,
        )
        if status is not None:
            query = query.filter(AIThreadModel.status == status)
        db_threads = query.order_by(AIThreadModel.last_used_at.desc(), AIThreadModel.id.desc()).all()
        return [AIThread.model_validate(thread) for thread in db_threads]

    async def find_by_project(self, project_id: str) -> List[AIThread]:
        db_threads = self.db.query(AIThreadModel).filter(AIThreadModel.project_id == project_id).all()
        return [AIThread.model_validate(thread) for thread in db_threads]

    async def increment_message_count(self, thread_id: str, used_at: datetime) -> Optional[AIThread]:
        db_thread = self.db.query(AIThreadModel).filter(AIThreadModel.thread_id == thread_id).first()
        if not db_thread:
            return None
        # a thread at its ceiling never takes another message
        if db_thread.message_count >= db_thread.max_messages:
            return AIThread.model_validate(db_thread)

        db_thread.message_count = (db_thread.message_count or 0) + 1
        db_thread.last_used_at = used_at
        if db_thread.message_count >= db_thread.max_messages:
            db_thread.status = ThreadStatus.INACTIVE

        commit_or_rollback(self.db)
        self.db.refresh(db_thread)
        return AIThread.model_validate(db_thread)

    async def set_status(self, record_id: int, status: ThreadStatus) -> Optional[AIThread]:
        db_thread = self._get(record_id)
        if not db_thread:
            return None

        db_thread.status = status
        commit_or_rollback(self.db)
        self.db.refresh(db_thread)
        return AIThread.model_validate(db_thread)

    async def repoint(self, record_id: int, thread_id: str, used_at: datetime) -> Optional[AIThread]:
        db_thread = self._get(record_id)
        if not db_thread:
            return None

        db_thread.thread_id = thread_id
        db_thread.message_count = 0
        db_thread.status = ThreadStatus.ACTIVE
        db_thread.last_used_at = used_at
        commit_or_rollback(self.db)
        self.db.refresh(db_thread)
        return AIThread.model_validate(db_thread)

    async def delete(self, record_id: int) -> bool:
        db_thread = self._get(record_id)
        if not db_thread:
            return False

        self.db.delete(db_thread)
        commit_or_rollback(self.db)
        return True

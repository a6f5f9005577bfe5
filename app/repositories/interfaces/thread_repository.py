from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from app.models.schemas import AIThread, ThreadStatus


class IThreadRepository(ABC):
    """Interface for local conversation thread records"""

    @abstractmethod
    async def create(self, project_id: str, thread_id: str, assistant_id: str, max_messages: int) -> AIThread:
        pass

    @abstractmethod
    async def get_by_id(self, record_id: int) -> Optional[AIThread]:
        pass

    @abstractmethod
    async def find_by_thread_id(self, thread_id: str) -> Optional[AIThread]:
        pass

    @abstractmethod
    async def find_for_pair(
        self, project_id: str, assistant_id: str, status: Optional[ThreadStatus] = None
    ) -> List[AIThread]:
        """Threads for a (project, assistant) pair, most recently used first"""
        pass

    @abstractmethod
    async def find_by_project(self, project_id: str) -> List[AIThread]:
        pass

    @abstractmethod
    async def increment_message_count(self, thread_id: str, used_at: datetime) -> Optional[AIThread]:
        pass

    @abstractmethod
    async def set_status(self, record_id: int, status: ThreadStatus) -> Optional[AIThread]:
        pass

    @abstractmethod
    async def repoint(self, record_id: int, thread_id: str, used_at: datetime) -> Optional[AIThread]:
        """Attach the record to a new remote thread, reset its counter and reactivate it"""
        pass

    @abstractmethod
    async def delete(self, record_id: int) -> bool:
        pass

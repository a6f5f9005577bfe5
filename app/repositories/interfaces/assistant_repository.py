from abc import ABC, abstractmethod
from typing import List, Optional
from app.models.schemas import AIAssistant


class IAssistantRepository(ABC):
    """Interface for local assistant records"""

    @abstractmethod
    async def create(self, project_id: str, assistant_id: str, instructions: str, tools: str, model: str) -> AIAssistant:
        pass

    @abstractmethod
    async def find_by_project(self, project_id: str) -> Optional[AIAssistant]:
        pass

    @abstractmethod
    async def get_all(self) -> List[AIAssistant]:
        pass

    @abstractmethod
    async def delete(self, record_id: int) -> bool:
        pass

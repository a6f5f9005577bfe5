from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from app.models.schemas import Endpoint, EndpointCreate, Project, ProjectCreate


class IProjectRepository(ABC):
    """Interface for the project collaborator"""

    @abstractmethod
    async def create(self, project: ProjectCreate) -> Project:
        pass

    @abstractmethod
    async def find_by_id(self, project_id: str) -> Optional[Project]:
        pass

    @abstractmethod
    async def get_all(self, skip: int = 0, limit: int = 100) -> List[Project]:
        pass

    @abstractmethod
    async def update(self, project_id: str, patch: Dict[str, Any]) -> Optional[Project]:
        pass


class IEndpointRepository(ABC):
    """Interface for the endpoint collaborator"""

    @abstractmethod
    async def create(self, project_id: str, endpoint: EndpointCreate) -> Endpoint:
        pass

    @abstractmethod
    async def find_one(self, project_id: str, section: str, entity_name: str) -> Optional[Endpoint]:
        pass

import uuid
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from app.core.database import commit_or_rollback
from app.models.database import EndpointModel, ProjectModel
from app.models.schemas import Endpoint, EndpointCreate, Project, ProjectCreate
from app.repositories.interfaces.project_repository import IEndpointRepository, IProjectRepository


class SQLProjectRepository(IProjectRepository):
    """SQLAlchemy implementation of the project collaborator"""

    def __init__(self, db: Session):
        self.db = db

    async def create(self, project: ProjectCreate) -> Project:
        db_project = ProjectModel(id=str(uuid.uuid4()), **project.model_dump())
        self.db.add(db_project)
        commit_or_rollback(self.db)
        self.db.refresh(db_project)
        return Project.model_validate(db_project)

    async def find_by_id(self, project_id: str) -> Optional[Project]:
        db_project = self.db.query(ProjectModel).filter(ProjectModel.id == project_id).first()
        if db_project:
            return Project.model_validate(db_project)
        return None

    async def get_all(self, skip: int = 0, limit: int = 100) -> List[Project]:
        db_projects = self.db.query(ProjectModel).order_by(ProjectModel.created_at.desc()).offset(skip).limit(limit).all()
        return [Project.model_validate(project) for project in db_projects]

    async def update(self, project_id: str, patch: Dict[str, Any]) -> Optional[Project]:
        db_project = self.db.query(ProjectModel).filter(ProjectModel.id == project_id).first()
        if not db_project:
            return None

        for field, value in patch.items():
            setattr(db_project, field, value)

        commit_or_rollback(self.db)
        self.db.refresh(db_project)
        return Project.model_validate(db_project)


class SQLEndpointRepository(IEndpointRepository):
    """SQLAlchemy implementation of the endpoint collaborator"""

    def __init__(self, db: Session):
        self.db = db

    async def create(self, project_id: str, endpoint: EndpointCreate) -> Endpoint:
        db_endpoint = EndpointModel(project_id=project_id, **endpoint.model_dump())
        self.db.add(db_endpoint)
        commit_or_rollback(self.db)
        self.db.refresh(db_endpoint)
        return Endpoint.model_validate(db_endpoint)

    async def find_one(self, project_id: str, section: str, entity_name: str) -> Optional[Endpoint]:
        db_endpoint = (
            self.db.query(EndpointModel)
            .filter(
                EndpointModel.project_id == project_id,
                EndpointModel.section == section,
                EndpointModel.entity_name == entity_name,
            )
            .first()
        )
        if db_endpoint:
            return Endpoint.model_validate(db_endpoint)
        return None

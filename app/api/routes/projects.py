from fastapi import APIRouter, Depends, HTTPException, status
import structlog

from app.models.schemas import Endpoint, EndpointCreate, Project, ProjectCreate
from app.repositories.interfaces.project_repository import IEndpointRepository, IProjectRepository
from app.core.dependencies import get_endpoint_repository, get_project_repository

logger = structlog.get_logger()

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("/", response_model=Project, status_code=status.HTTP_201_CREATED)
async def create_project(
    project: ProjectCreate,
    repository: IProjectRepository = Depends(get_project_repository)
):
    """Register a project workspace"""
    created = await repository.create(project)
    logger.info("Project created", project_id=created.id, name=created.name)
    return created


@router.get("/{project_id}", response_model=Project)
async def get_project(
    project_id: str,
    repository: IProjectRepository = Depends(get_project_repository)
):
    project = await repository.find_by_id(project_id)
    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found"
        )
    return project


@router.post("/{project_id}/endpoints", response_model=Endpoint, status_code=status.HTTP_201_CREATED)
async def register_endpoint(
    project_id: str,
    endpoint: EndpointCreate,
    projects: IProjectRepository = Depends(get_project_repository),
    endpoints: IEndpointRepository = Depends(get_endpoint_repository)
):
    """Register an entity and the paths of its generated feature/steps files"""
    if not await projects.find_by_id(project_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found"
        )
    created = await endpoints.create(project_id, endpoint)
    logger.info("Endpoint registered", project_id=project_id, entity_name=created.entity_name, section=created.section)
    return created

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
import structlog

from app.api.errors import to_http_exception
from app.core.dependencies import (
    get_assistant_manager,
    get_generation_service,
    get_suggestion_service,
    get_thread_manager,
)
from app.models.schemas import (
    AIAssistant,
    AIGenerationRecord,
    AIGenerationRequest,
    AIGenerationResponse,
    AISuggestionRecord,
    AssistantInitResponse,
    SuggestionGenerationResponse,
    SuggestionStats,
    TestCaseSuggestionRequest,
    ThreadStats,
)
from app.services.assistant_manager import AssistantManager
from app.services.test_case_generation_service import TestCaseGenerationService
from app.services.test_case_suggestion_service import TestCaseSuggestionService
from app.services.thread_manager import ThreadManager

logger = structlog.get_logger()

router = APIRouter(prefix="/projects/{project_id}/ai", tags=["ai"])


@router.get("/assistant", response_model=AIAssistant)
async def get_assistant(
    project_id: str,
    manager: AssistantManager = Depends(get_assistant_manager)
):
    try:
        assistant = await manager.get_assistant(project_id)
    except Exception as e:
        raise to_http_exception(e, "Failed to get assistant")
    if not assistant:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No assistant exists for this project. Initialize the AI context first."
        )
    return assistant


@router.delete("/assistant")
async def delete_assistant(
    project_id: str,
    manager: AssistantManager = Depends(get_assistant_manager)
):
    """Delete the project's assistant with its threads"""
    try:
        report = await manager.delete_assistant(project_id)
    except Exception as e:
        raise to_http_exception(e, "Failed to delete assistant")
    return {"message": "Assistant deleted successfully", "teardown": report.as_dict()}


@router.post("/assistant/init", response_model=AssistantInitResponse)
async def init_assistant(
    project_id: str,
    manager: AssistantManager = Depends(get_assistant_manager)
):
    try:
        assistant = await manager.init_assistant(project_id)
    except Exception as e:
        raise to_http_exception(e, "Failed to initialize assistant")
    return AssistantInitResponse(
        assistant_id=assistant.assistant_id,
        message="Assistant initialized successfully. Files will be sent directly in the prompt."
    )


@router.get("/threads/stats", response_model=ThreadStats)
async def get_thread_stats(
    project_id: str,
    manager: ThreadManager = Depends(get_thread_manager)
):
    return await manager.get_thread_stats(project_id)


@router.post("/threads/cleanup")
async def cleanup_threads(
    project_id: str,
    keep: Optional[int] = None,
    assistants: AssistantManager = Depends(get_assistant_manager),
):
    """Keep only the most recently used threads of the project's assistant"""
    try:
        removed = await assistants.cleanup_threads(project_id, keep=keep)
    except Exception as e:
        raise to_http_exception(e, "Failed to clean up threads")
    return {"removed": removed}


@router.post("/test-cases/generate", response_model=AIGenerationResponse)
async def generate_test_cases(
    project_id: str,
    request: AIGenerationRequest,
    service: TestCaseGenerationService = Depends(get_generation_service)
):
    """Generate BDD scenarios and steps; failures come back in the response body"""
    logger.info("Generating test cases", project_id=project_id, entity_name=request.entity_name)
    return await service.generate(project_id, request)


@router.get("/generations", response_model=List[AIGenerationRecord])
async def get_project_generations(
    project_id: str,
    service: TestCaseGenerationService = Depends(get_generation_service)
):
    return await service.get_project_generations(project_id)


@router.get("/generations/{generation_id}", response_model=AIGenerationRecord)
async def get_generation(
    project_id: str,
    generation_id: str,
    service: TestCaseGenerationService = Depends(get_generation_service)
):
    record = await service.get_generation(generation_id)
    if not record or record.project_id != project_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Generation not found"
        )
    return record


@router.post("/test-cases/suggest", response_model=SuggestionGenerationResponse)
async def suggest_test_cases(
    project_id: str,
    request: TestCaseSuggestionRequest,
    service: TestCaseSuggestionService = Depends(get_suggestion_service)
):
    """Generate 5 test case suggestions, avoiding scenarios that already exist"""
    logger.info("Generating test case suggestions", project_id=project_id, entity_name=request.entity_name)
    return await service.generate_suggestions(project_id, request)


@router.get("/suggestions")
async def get_project_suggestions(
    project_id: str,
    entity_name: Optional[str] = None,
    section: Optional[str] = None,
    service: TestCaseSuggestionService = Depends(get_suggestion_service)
):
    if entity_name and section:
        suggestions = await service.get_suggestions_by_entity(project_id, entity_name, section)
    else:
        suggestions = await service.get_project_suggestions(project_id)
    return {
        "success": True,
        "data": [s.model_dump() for s in suggestions],
        "total": len(suggestions)
    }


@router.get("/suggestions/stats")
async def get_suggestion_stats(
    project_id: str,
    service: TestCaseSuggestionService = Depends(get_suggestion_service)
):
    stats: SuggestionStats = await service.get_suggestion_stats(project_id)
    return {"success": True, "data": stats.model_dump()}


@router.get("/suggestions/{suggestion_id}")
async def get_suggestion(
    project_id: str,
    suggestion_id: str,
    service: TestCaseSuggestionService = Depends(get_suggestion_service)
):
    record: Optional[AISuggestionRecord] = await service.get_suggestion(suggestion_id)
    if not record or record.project_id != project_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Suggestion not found"
        )
    return {"success": True, "data": record.model_dump()}

import time
from typing import List, Optional, Tuple
import structlog
from app.config.settings import settings
from app.core.exceptions import NotFoundError, SecondaryEffectError
from app.core.metadata import Metadata
from app.models.schemas import (
    AIGenerationData,
    AIGenerationRecord,
    AIGenerationRequest,
    AIGenerationResponse,
    AuditStatus,
    CodeInsertion,
    GeneratedCode,
    GenerationMetadata,
    Project,
    TestCase,
)
from app.repositories.interfaces.audit_ledger import IAuditLedger
from app.repositories.interfaces.project_repository import IEndpointRepository, IProjectRepository
from app.repositories.interfaces.test_case_repository import ITestCaseRepository
from app.services.assistant_run import AssistantConversation, ConversationResult, new_correlation_id
from app.services.code_insertion_service import CodeInsertionService
from app.services.code_parsing import extract_test_case, parse_generated_code
from app.services.prompts import build_generation_prompt
from app.services.workspace_files import artifact_paths, read_text_if_exists

logger = structlog.get_logger()


class TestCaseGenerationService:
    """Generates BDD scenarios and steps for an entity through the project's assistant.

    Every call leaves exactly one audit record in a terminal state and returns
    a structured result instead of raising.
    """

    def __init__(
        self,
        conversation: AssistantConversation,
        generation_ledger: IAuditLedger[AIGenerationRecord],
        project_repository: IProjectRepository,
        endpoint_repository: IEndpointRepository,
        test_case_repository: ITestCaseRepository,
        code_insertion_service: CodeInsertionService,
    ):
        self.conversation = conversation
        self.generation_ledger = generation_ledger
        self.project_repository = project_repository
        self.endpoint_repository = endpoint_repository
        self.test_case_repository = test_case_repository
        self.code_insertion_service = code_insertion_service

    async def generate(self, project_id: str, request: AIGenerationRequest) -> AIGenerationResponse:
        started = time.monotonic()
        generation_id = new_correlation_id("AI-GEN")
        progress: Metadata = {}
        logger.info(
            "Starting test generation",
            generation_id=generation_id,
            project_id=project_id,
            entity_name=request.entity_name,
            section=request.section,
        )

        await self.generation_ledger.create(
            {
                "generation_id": generation_id,
                "project_id": project_id,
                "entity_name": request.entity_name,
                "method": "POST",
                "scenario_name": request.requirements[:100],
                "section": request.section,
                "requirements": request.requirements,
                "request_data": request.model_dump_json(),
                "metadata": {"operation": request.operation.value, "requirements": request.requirements},
            }
        )

        try:
            self.conversation.provider()
            await self.generation_ledger.update_status(generation_id, AuditStatus.PROCESSING)

            project = await self.project_repository.find_by_id(project_id)
            if not project:
                raise NotFoundError(f"Project with ID {project_id} not found")

            async def build_prompt() -> str:
                return await self._build_prompt(project, request)

            result = await self.conversation.exchange(project_id, build_prompt, progress, generation_id)
        except Exception as e:
            return await self._fail(generation_id, started, progress, e)

        return await self._complete(generation_id, started, progress, project, request, result)

    async def _build_prompt(self, project: Project, request: AIGenerationRequest) -> str:
        endpoint = await self.endpoint_repository.find_one(project.id, request.section, request.entity_name)
        if not endpoint:
            logger.warning(
                "No endpoint registered for entity",
                project_id=project.id,
                entity_name=request.entity_name,
                section=request.section,
            )
        paths = artifact_paths(project, endpoint, request.section, request.entity_name)
        contents = {kind: read_text_if_exists(path) for kind, path in paths.items()}
        return build_generation_prompt(
            request.entity_name,
            request.section,
            request.operation.value,
            request.requirements,
            paths,
            contents,
        )

    async def _complete(
        self,
        generation_id: str,
        started: float,
        progress: Metadata,
        project: Project,
        request: AIGenerationRequest,
        result: ConversationResult,
    ) -> AIGenerationResponse:
        code = parse_generated_code(result.text)
        logger.info(
            "Generated code parsed",
            generation_id=generation_id,
            has_feature=bool(code.feature),
            has_steps=bool(code.steps),
        )

        secondary_errors: List[str] = []
        insertions: List[CodeInsertion] = []
        modified_files: List[str] = []
        saved_test_case = None
        try:
            insertions, modified_files = await self._insert_code(generation_id, project, request, code, secondary_errors)
        except SecondaryEffectError as e:
            logger.error("Code insertion failed", generation_id=generation_id, error=str(e))
            secondary_errors.append(str(e))
        try:
            saved_test_case = await self._save_test_case(generation_id, project.id, request, code)
        except SecondaryEffectError as e:
            logger.error("Error saving test case", generation_id=generation_id, error=str(e))
            secondary_errors.append(str(e))

        if saved_test_case and saved_test_case.method:
            try:
                await self.generation_ledger.update_fields(generation_id, {"method": saved_test_case.method})
            except Exception as e:
                logger.warning("Error updating generation method", generation_id=generation_id, error=str(e))

        processing_time_ms = int((time.monotonic() - started) * 1000)
        final_metadata = dict(progress)
        final_metadata.update(
            {
                "model_used": result.assistant.model,
                "processing_time_ms": processing_time_ms,
                "tokens_used": result.usage.total_tokens,
                "prompt_tokens": result.usage.prompt_tokens,
                "completion_tokens": result.usage.completion_tokens,
                "files_modified": modified_files,
                "new_scenarios": [kind for kind in ("feature", "steps") if getattr(code, kind)],
                "assistant_id": result.assistant.assistant_id,
                "thread_id": result.thread.thread_id,
                "run_id": result.run_id,
                "message_id": result.message_id,
            }
        )
        if secondary_errors:
            final_metadata["secondary_errors"] = secondary_errors

        try:
            await self.generation_ledger.mark_completed(generation_id, code.model_dump_json(), final_metadata)
        except Exception as e:
            logger.error("Error marking generation as completed", generation_id=generation_id, error=str(e))

        logger.info(
            "Generation completed",
            generation_id=generation_id,
            processing_time_ms=processing_time_ms,
            tokens_used=result.usage.total_tokens,
        )
        return AIGenerationResponse(
            success=True,
            data=AIGenerationData(new_code=code, insertions=insertions, saved_test_case=saved_test_case),
            metadata=GenerationMetadata(
                processing_time_ms=processing_time_ms,
                tokens_used=result.usage.total_tokens,
                model_used=result.assistant.model,
                generation_id=generation_id,
                assistant_id=result.assistant.assistant_id,
                thread_id=result.thread.thread_id,
            ),
        )

    async def _insert_code(
        self,
        generation_id: str,
        project: Project,
        request: AIGenerationRequest,
        code: GeneratedCode,
        secondary_errors: List[str],
    ) -> Tuple[List[CodeInsertion], List[str]]:
        if not code.feature and not code.steps:
            return [], []

        try:
            endpoint = await self.endpoint_repository.find_one(project.id, request.section, request.entity_name)
            paths = artifact_paths(project, endpoint, request.section, request.entity_name)
            insertions = self.code_insertion_service.determine_insertions(code, paths["feature"], paths["steps"])
            outcome = self.code_insertion_service.insert_code(insertions, generation_id)
        except Exception as e:
            raise SecondaryEffectError(f"Code insertion failed: {e}") from e

        secondary_errors.extend(outcome.errors)
        return insertions, outcome.modified_files

    async def _save_test_case(
        self,
        generation_id: str,
        project_id: str,
        request: AIGenerationRequest,
        code: GeneratedCode,
    ) -> Optional[TestCase]:
        if not code.feature:
            logger.warning("No feature code found to save", generation_id=generation_id)
            return None

        try:
            test_case = extract_test_case(code.feature, request.section, request.entity_name, request.requirements)
            saved = await self.test_case_repository.create(project_id, test_case, generation_id=generation_id)
        except Exception as e:
            raise SecondaryEffectError(f"Test case not saved: {e}") from e

        logger.info("Test case saved", generation_id=generation_id, test_case_id=saved.test_case_id)
        return saved

    async def _fail(
        self, generation_id: str, started: float, progress: Metadata, error: Exception
    ) -> AIGenerationResponse:
        processing_time_ms = int((time.monotonic() - started) * 1000)
        model_used = progress.get("model_used") or settings.assistant_model
        tokens_used = progress.get("tokens_used", 0)
        logger.error(
            "Test generation failed",
            generation_id=generation_id,
            error=str(error),
            error_type=type(error).__name__,
            tokens_used=tokens_used,
        )

        failure_metadata = dict(progress)
        failure_metadata.update(
            {
                "processing_time_ms": processing_time_ms,
                "tokens_used": tokens_used,
                "model_used": model_used,
                "error": str(error),
                "error_type": type(error).__name__,
            }
        )
        try:
            await self.generation_ledger.mark_failed(generation_id, str(error), failure_metadata)
        except Exception as e:
            logger.error("Error marking generation as failed", generation_id=generation_id, error=str(e))

        return AIGenerationResponse(
            success=False,
            error=str(error),
            metadata=GenerationMetadata(
                processing_time_ms=processing_time_ms,
                tokens_used=tokens_used,
                model_used=model_used,
                generation_id=generation_id,
                assistant_id=progress.get("assistant_id"),
                thread_id=progress.get("thread_id"),
            ),
        )

    async def get_project_generations(self, project_id: str) -> List[AIGenerationRecord]:
        return await self.generation_ledger.find_by_project(project_id)

    async def get_generation(self, generation_id: str) -> Optional[AIGenerationRecord]:
        return await self.generation_ledger.find_by_id(generation_id)

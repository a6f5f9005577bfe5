import json
from datetime import datetime
import time
from typing import List, Optional
import structlog
from app.config.settings import settings
from app.core.exceptions import ConflictError, NotFoundError, RemoteResourceGoneError
from app.core.teardown import TeardownReport, TeardownStep, run_teardown
from app.core.locks import ProjectLocks
from app.models.schemas import AIAssistant, Project, RemoteAssistant
from app.repositories.interfaces.assistant_provider import IAssistantProvider
from app.repositories.interfaces.assistant_repository import IAssistantRepository
from app.repositories.interfaces.credential_store import ICredentialStore
from app.repositories.interfaces.project_repository import IProjectRepository
from app.services.provider_access import ProviderFactory, open_provider
from app.services.thread_manager import ThreadManager

logger = structlog.get_logger()


def build_assistant_instructions(project: Project) -> str:
    return f"""You are an assistant specialized in generating REST API tests with Playwright and BDD for {project.name}.

MAIN INSTRUCTIONS:
1. **CONTEXT ANALYSIS**: Current feature and steps files are included directly in the prompt
2. **INTELLIGENT GENERATION**: Analyze existing files to avoid duplications
3. **CONSISTENT FORMAT**: Maintain the style and structure of existing files
4. **STRUCTURED RESPONSE**: Use the specific format requested in the prompt

STRICT RULES:
1. REST APIs ONLY
2. DO NOT duplicate existing steps or scenarios
3. Respect sections: Given before "// When steps", When before "// Then steps"
4. Add incremental ID: @TC-{project.name}-{{entityName}}-Number
5. Use existing API clients (ProductClient, etc.)
6. DO NOT include "Feature:" or paths in the response
7. Generate ONLY the code necessary to complete the operation
8. Follow EXACTLY the response format specified in the prompt

CONTEXT: Current files are provided in the prompt so you can analyze them and generate complementary content. The prompt will give you specific instructions about the required response format."""


class AssistantManager:
    """Keeps at most one live remote assistant per project"""

    def __init__(
        self,
        assistant_repository: IAssistantRepository,
        project_repository: IProjectRepository,
        thread_manager: ThreadManager,
        credential_store: ICredentialStore,
        provider_factory: ProviderFactory,
        project_locks: ProjectLocks,
    ):
        self.assistant_repository = assistant_repository
        self.project_repository = project_repository
        self.thread_manager = thread_manager
        self.credential_store = credential_store
        self.provider_factory = provider_factory
        self.project_locks = project_locks

    def _provider(self) -> IAssistantProvider:
        return open_provider(self.credential_store, self.provider_factory)

    def _assistant_name(self, project: Project) -> str:
        return f"{settings.assistant_name_prefix}-{project.name}"

    async def get_assistant(self, project_id: str) -> Optional[AIAssistant]:
        """Return the project's assistant after checking it still exists remotely.

        A record whose remote assistant is gone is purged and None is returned.
        """
        provider = self._provider()
        assistant = await self.assistant_repository.find_by_project(project_id)
        if not assistant:
            logger.info("No assistant found for project", project_id=project_id)
            return None

        try:
            await provider.retrieve_assistant(assistant.assistant_id)
        except RemoteResourceGoneError:
            logger.warning(
                "Assistant not found remotely, removing local record",
                project_id=project_id,
                assistant_id=assistant.assistant_id,
            )
            # Owned threads go with the record
            try:
                await self.thread_manager.delete_all_project_threads(project_id)
            except Exception as e:
                logger.warning("Error removing threads of stale assistant", project_id=project_id, error=str(e))
            await self.assistant_repository.delete(assistant.id)
            return None

        logger.info("Assistant verified", project_id=project_id, assistant_id=assistant.assistant_id)
        return assistant

    async def create_assistant(self, project_id: str) -> AIAssistant:
        async with self.project_locks.hold(project_id):
            existing = await self.get_assistant(project_id)
            if existing:
                raise ConflictError(
                    f"An assistant already exists for project {project_id}. Use get_assistant() to retrieve it."
                )
            return await self._create(project_id)

    async def _create(self, project_id: str) -> AIAssistant:
        provider = self._provider()
        project = await self.project_repository.find_by_id(project_id)
        if not project:
            raise NotFoundError(f"Project with ID {project_id} not found")

        remote = await provider.create_assistant(
            name=self._assistant_name(project),
            instructions=build_assistant_instructions(project),
            model=settings.assistant_model,
            # Files are sent in the prompt, no retrieval tools
            tools=[],
        )
        logger.info("Assistant created remotely", project_id=project_id, assistant_id=remote.id)

        assistant = await self.assistant_repository.create(
            project_id=project_id,
            assistant_id=remote.id,
            instructions=remote.instructions or "",
            tools=json.dumps(remote.tools),
            model=remote.model,
        )
        logger.info("Assistant saved", project_id=project_id, record_id=assistant.id)

        await self.project_repository.update(
            project_id,
            {"assistant_id": remote.id, "assistant_created_at": datetime.utcnow()},
        )
        return assistant

    async def init_assistant(self, project_id: str) -> AIAssistant:
        """Get or create the project's assistant, rolling back on failure"""
        async with self.project_locks.hold(project_id):
            assistant = None
            try:
                assistant = await self.get_assistant(project_id)
                if assistant is not None:
                    return assistant

                logger.info("No assistant exists, creating a new one", project_id=project_id)
                assistant = await self._create(project_id)
                if not await self.verify_assistant_access(project_id):
                    raise RemoteResourceGoneError("assistant", assistant.assistant_id)
                return assistant
            except Exception as e:
                logger.error("Assistant initialization failed", project_id=project_id, error=str(e))
                if assistant is not None:
                    try:
                        await self._delete(project_id)
                    except Exception as rollback_error:
                        logger.error(
                            "Assistant rollback failed",
                            project_id=project_id,
                            error=str(rollback_error),
                        )
                raise

    async def verify_assistant_access(self, project_id: str) -> bool:
        assistant = await self.assistant_repository.find_by_project(project_id)
        if not assistant:
            return False

        try:
            await self._provider().retrieve_assistant(assistant.assistant_id)
            return True
        except Exception as e:
            logger.warning("Error verifying assistant access", project_id=project_id, error=str(e))
            return False

    async def delete_assistant(self, project_id: str) -> TeardownReport:
        async with self.project_locks.hold(project_id):
            return await self._delete(project_id)

    async def _delete(self, project_id: str) -> TeardownReport:
        assistant = await self.assistant_repository.find_by_project(project_id)
        if not assistant:
            logger.warning("No assistant found to delete", project_id=project_id)
            return TeardownReport()

        async def delete_remote():
            await self._provider().delete_assistant(assistant.assistant_id)

        async def delete_local():
            if not await self.assistant_repository.delete(assistant.id):
                raise NotFoundError(f"Assistant record {assistant.id} disappeared during deletion")

        # Threads go before the assistant; the local record goes last and is the only fatal step
        steps = [
            TeardownStep("threads", lambda: self.thread_manager.delete_all_project_threads(project_id)),
            TeardownStep(
                "project_reference",
                lambda: self.project_repository.update(
                    project_id, {"assistant_id": None, "assistant_created_at": None}
                ),
            ),
            TeardownStep("remote_assistant", delete_remote),
            TeardownStep("local_record", delete_local, fatal=True),
        ]
        report = await run_teardown(steps, project_id=project_id, assistant_id=assistant.assistant_id)
        logger.info("Assistant deletion completed", project_id=project_id, errors=len(report.errors))
        return report

    async def cleanup_threads(self, project_id: str, keep: Optional[int] = None) -> int:
        """Apply thread retention to the project's assistant, if it has one"""
        assistant = await self.assistant_repository.find_by_project(project_id)
        if not assistant:
            return 0
        return await self.thread_manager.cleanup_old_threads(project_id, assistant.assistant_id, keep=keep)

    async def find_orphaned_remote_assistants(self, grace_seconds: int = 3600) -> List[RemoteAssistant]:
        """Remote assistants created by this service that no local record points at"""
        provider = self._provider()
        known = {a.assistant_id for a in await self.assistant_repository.get_all()}
        prefix = f"{settings.assistant_name_prefix}-"
        cutoff = time.time() - grace_seconds

        orphans = []
        for remote in await provider.list_assistants():
            if remote.id in known or not (remote.name or "").startswith(prefix):
                continue
            # Too recent: a create may still be persisting its record
            if remote.created_at is not None and remote.created_at > cutoff:
                continue
            orphans.append(remote)
        logger.info("Orphaned assistant scan completed", orphans=len(orphans), grace_seconds=grace_seconds)
        return orphans

    async def reconcile_orphaned_assistants(self, grace_seconds: int = 3600, apply: bool = False) -> List[str]:
        orphans = await self.find_orphaned_remote_assistants(grace_seconds)
        if not apply:
            return [o.id for o in orphans]

        provider = self._provider()
        removed = []
        for orphan in orphans:
            try:
                await provider.delete_assistant(orphan.id)
                removed.append(orphan.id)
                logger.info("Orphaned assistant deleted", assistant_id=orphan.id, name=orphan.name)
            except Exception as e:
                logger.error("Error deleting orphaned assistant", assistant_id=orphan.id, error=str(e))
        return removed

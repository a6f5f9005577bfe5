from datetime import datetime
from typing import Optional
import structlog
from app.config.settings import settings
from app.core.exceptions import CredentialNotConfiguredError, RemoteResourceGoneError
from app.models.schemas import AIThread, ThreadStats, ThreadStatus
from app.repositories.interfaces.assistant_provider import IAssistantProvider
from app.repositories.interfaces.credential_store import ICredentialStore
from app.repositories.interfaces.thread_repository import IThreadRepository
from app.services.provider_access import ProviderFactory, open_provider

logger = structlog.get_logger()


class ThreadManager:
    """Owns the conversation threads of each (project, assistant) pair.

    Generation and suggestion requests always rotate to a fresh thread with
    create_thread; get_thread is for callers that want to reuse context.
    """

    def __init__(
        self,
        thread_repository: IThreadRepository,
        credential_store: ICredentialStore,
        provider_factory: ProviderFactory,
        max_messages: Optional[int] = None,
    ):
        self.thread_repository = thread_repository
        self.credential_store = credential_store
        self.provider_factory = provider_factory
        self.max_messages = max_messages or settings.thread_max_messages

    def _provider(self) -> IAssistantProvider:
        return open_provider(self.credential_store, self.provider_factory)

    def _provider_for_removal(self) -> Optional[IAssistantProvider]:
        """Provider for teardown paths; without a key only local rows are removed"""
        try:
            return self._provider()
        except CredentialNotConfiguredError:
            logger.warning("No OpenAI API key, remote threads will not be deleted")
            return None

    async def get_thread(self, project_id: str, assistant_id: str) -> Optional[AIThread]:
        """Return the most recently used live thread that still has room, if any"""
        provider = self._provider()
        candidates = await self.thread_repository.find_for_pair(project_id, assistant_id, ThreadStatus.ACTIVE)
        if not candidates:
            logger.info("No active threads found", project_id=project_id, assistant_id=assistant_id)
            return None

        for thread in candidates:
            try:
                await provider.retrieve_thread(thread.thread_id)
            except RemoteResourceGoneError:
                logger.warning("Thread not found remotely, removing local record", thread_id=thread.thread_id)
                await self.thread_repository.delete(thread.id)
                continue

            if thread.message_count < thread.max_messages:
                logger.info("Reusing active thread", thread_id=thread.thread_id, message_count=thread.message_count)
                return thread

            logger.info(
                "Thread full, marking as inactive",
                thread_id=thread.thread_id,
                message_count=thread.message_count,
                max_messages=thread.max_messages,
            )
            await self.deactivate_thread(thread.id)

        logger.info("No reusable thread found", project_id=project_id, assistant_id=assistant_id)
        return None

    async def create_thread(self, project_id: str, assistant_id: str) -> AIThread:
        """Rotate out every existing thread of the pair and start a fresh one"""
        provider = self._provider()
        existing = await self.thread_repository.find_for_pair(project_id, assistant_id)
        for old_thread in existing:
            logger.info("Cleaning up previous thread", thread_id=old_thread.thread_id, project_id=project_id)
            await self._remove(provider, old_thread)

        thread_id = await provider.create_thread()
        logger.info("Thread created remotely", thread_id=thread_id, project_id=project_id)
        thread = await self.thread_repository.create(project_id, thread_id, assistant_id, self.max_messages)
        logger.info("Thread saved", record_id=thread.id, thread_id=thread_id)
        return thread

    async def increment_message_count(self, thread_id: str) -> Optional[AIThread]:
        thread = await self.thread_repository.increment_message_count(thread_id, datetime.utcnow())
        if thread is None:
            return None

        logger.info(
            "Thread message count updated",
            thread_id=thread_id,
            message_count=thread.message_count,
            max_messages=thread.max_messages,
        )
        if thread.status == ThreadStatus.INACTIVE:
            logger.info("Thread full, marked as inactive", thread_id=thread_id)
        return thread

    async def deactivate_thread(self, record_id: int) -> Optional[AIThread]:
        thread = await self.thread_repository.set_status(record_id, ThreadStatus.INACTIVE)
        logger.info("Thread marked as inactive", record_id=record_id)
        return thread

    async def reactivate_thread(self, record_id: int) -> Optional[AIThread]:
        """Give the record a brand new remote conversation and reset its counter.

        The previous remote thread is deleted best-effort so no old history
        is carried into the reactivated record.
        """
        thread = await self.thread_repository.get_by_id(record_id)
        if thread is None:
            return None

        provider = self._provider()
        new_thread_id = await provider.create_thread()
        try:
            await provider.delete_thread(thread.thread_id)
        except Exception as e:
            logger.warning("Error deleting replaced thread", thread_id=thread.thread_id, error=str(e))

        reactivated = await self.thread_repository.repoint(record_id, new_thread_id, datetime.utcnow())
        logger.info(
            "Thread reactivated",
            record_id=record_id,
            old_thread_id=thread.thread_id,
            thread_id=new_thread_id,
        )
        return reactivated

    async def find_inactive_thread(self, project_id: str, assistant_id: str) -> Optional[AIThread]:
        threads = await self.thread_repository.find_for_pair(project_id, assistant_id, ThreadStatus.INACTIVE)
        return threads[0] if threads else None

    async def get_thread_stats(self, project_id: str) -> ThreadStats:
        threads = await self.thread_repository.find_by_project(project_id)
        return ThreadStats(
            total=len(threads),
            active=len([t for t in threads if t.status == ThreadStatus.ACTIVE]),
            inactive=len([t for t in threads if t.status == ThreadStatus.INACTIVE]),
            total_messages=sum(t.message_count for t in threads),
        )

    async def cleanup_old_threads(self, project_id: str, assistant_id: str, keep: Optional[int] = None) -> int:
        """Keep the most recently used threads of the pair, delete the rest"""
        keep = settings.threads_to_keep if keep is None else keep
        threads = await self.thread_repository.find_for_pair(project_id, assistant_id)
        stale = threads[keep:]
        if not stale:
            return 0

        provider = self._provider_for_removal()
        for thread in stale:
            await self._remove(provider, thread)
        logger.info("Old threads cleaned up", project_id=project_id, removed=len(stale), kept=keep)
        return len(stale)

    async def delete_all_project_threads(self, project_id: str) -> int:
        threads = await self.thread_repository.find_by_project(project_id)
        if not threads:
            return 0

        provider = self._provider_for_removal()
        for thread in threads:
            await self._remove(provider, thread)
        logger.info("All project threads deleted", project_id=project_id, removed=len(threads))
        return len(threads)

    async def _remove(self, provider: Optional[IAssistantProvider], thread: AIThread) -> None:
        # Remote first; a failure there never keeps the local row alive
        if provider is None:
            logger.warning("Skipping remote thread deletion", thread_id=thread.thread_id)
        else:
            try:
                await provider.delete_thread(thread.thread_id)
                logger.info("Thread deleted remotely", thread_id=thread.thread_id)
            except RemoteResourceGoneError:
                logger.info("Thread already gone remotely", thread_id=thread.thread_id)
            except Exception as e:
                logger.warning("Error deleting thread remotely", thread_id=thread.thread_id, error=str(e))
        await self.thread_repository.delete(thread.id)
        logger.info("Thread deleted from database", record_id=thread.id)

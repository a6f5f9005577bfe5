import asyncio
import math
import secrets
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional
import structlog
from app.config.settings import settings
from app.core.exceptions import AssistantNotInitializedError, EmptyResponseError, RunFailureError
from app.core.locks import ProjectLocks
from app.core.metadata import Metadata
from app.models.schemas import AIAssistant, AIThread, RemoteRun, TokenUsage
from app.repositories.interfaces.assistant_provider import IAssistantProvider
from app.repositories.interfaces.credential_store import ICredentialStore
from app.services.assistant_manager import AssistantManager
from app.services.provider_access import ProviderFactory, open_provider
from app.services.run_poller import Sleep, wait_for_run_completion
from app.services.thread_manager import ThreadManager

logger = structlog.get_logger()

PROMPT_TOKEN_WARNING = 3000
TOTAL_TOKEN_WARNING = 2000


@dataclass
class ConversationResult:
    text: str
    assistant: AIAssistant
    thread: AIThread
    run_id: str
    message_id: str
    usage: TokenUsage


class AssistantConversation:
    """One prompt/response exchange with a project's assistant on a fresh thread.

    The exchange (assistant lookup, thread rotation, message, run, response)
    runs under the project's lock. Progress is written into the caller's
    metadata map as it happens so a failure still leaves the remote ids and
    token counts that were collected.
    """

    def __init__(
        self,
        assistant_manager: AssistantManager,
        thread_manager: ThreadManager,
        credential_store: ICredentialStore,
        provider_factory: ProviderFactory,
        project_locks: ProjectLocks,
        poll_interval: Optional[float] = None,
        max_wait: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.assistant_manager = assistant_manager
        self.thread_manager = thread_manager
        self.credential_store = credential_store
        self.provider_factory = provider_factory
        self.project_locks = project_locks
        self.poll_interval = settings.run_poll_interval_seconds if poll_interval is None else poll_interval
        self.max_wait = settings.run_max_wait_seconds if max_wait is None else max_wait
        self.sleep = sleep

    @property
    def max_attempts(self) -> int:
        if self.poll_interval <= 0:
            return max(1, int(self.max_wait))
        return max(1, math.ceil(self.max_wait / self.poll_interval))

    def provider(self) -> IAssistantProvider:
        return open_provider(self.credential_store, self.provider_factory)

    async def exchange(
        self,
        project_id: str,
        build_prompt: Callable[[], Awaitable[str]],
        progress: Metadata,
        correlation_id: str,
    ) -> ConversationResult:
        provider = self.provider()
        async with self.project_locks.hold(project_id):
            assistant = await self.assistant_manager.get_assistant(project_id)
            if not assistant:
                logger.error("No assistant created for project", project_id=project_id, correlation_id=correlation_id)
                raise AssistantNotInitializedError()
            progress["assistant_id"] = assistant.assistant_id
            progress["model_used"] = assistant.model

            thread = await self.thread_manager.create_thread(project_id, assistant.assistant_id)
            progress["thread_id"] = thread.thread_id
            logger.info(
                "New thread ready",
                correlation_id=correlation_id,
                thread_id=thread.thread_id,
                max_messages=thread.max_messages,
            )

            prompt = await build_prompt()
            logger.info("Prompt built", correlation_id=correlation_id, characters=len(prompt))

            message = await provider.create_message(thread.thread_id, prompt)
            await self.thread_manager.increment_message_count(thread.thread_id)
            logger.info("Message sent", correlation_id=correlation_id, message_id=message.id)

            run = await provider.create_run(thread.thread_id, assistant.assistant_id)
            progress["run_id"] = run.id
            logger.info("Run started", correlation_id=correlation_id, run_id=run.id, status=run.status)

            outcome = await wait_for_run_completion(
                provider,
                thread.thread_id,
                run.id,
                poll_interval=self.poll_interval,
                max_attempts=self.max_attempts,
                sleep=self.sleep,
                correlation_id=correlation_id,
            )
            if not outcome.completed:
                raise RunFailureError(outcome.status.value, outcome.message or "Run did not complete")

            usage = await self._resolve_usage(provider, thread.thread_id, outcome.run, correlation_id)
            progress["prompt_tokens"] = usage.prompt_tokens
            progress["completion_tokens"] = usage.completion_tokens
            progress["tokens_used"] = usage.total_tokens

            messages = await provider.list_messages(thread.thread_id, limit=1)
            latest = messages[0] if messages else None
            if latest is None or not (latest.text or "").strip():
                raise EmptyResponseError("No response received from assistant")
            progress["message_id"] = latest.id
            logger.info("Response received", correlation_id=correlation_id, characters=len(latest.text))

        return ConversationResult(
            text=latest.text,
            assistant=assistant,
            thread=thread,
            run_id=run.id,
            message_id=latest.id,
            usage=usage,
        )

    async def _resolve_usage(
        self, provider: IAssistantProvider, thread_id: str, run: Optional[RemoteRun], correlation_id: str
    ) -> TokenUsage:
        usage = run.usage if run else None
        if usage is None and run is not None:
            logger.warning("No token usage on run, inspecting run steps", correlation_id=correlation_id)
            try:
                for step in await provider.list_run_steps(thread_id, run.id):
                    if step.type != "message_creation" or not step.message_id:
                        continue
                    message = await provider.retrieve_message(thread_id, step.message_id)
                    if message.usage:
                        usage = message.usage
                        break
            except Exception as e:
                logger.warning("Error getting usage from run steps", correlation_id=correlation_id, error=str(e))

        if usage is None:
            return TokenUsage()

        if usage.prompt_tokens > PROMPT_TOKEN_WARNING:
            logger.warning("Prompt tokens too high", correlation_id=correlation_id, prompt_tokens=usage.prompt_tokens)
        if usage.total_tokens > TOTAL_TOKEN_WARNING:
            logger.warning("Total tokens too high", correlation_id=correlation_id, total_tokens=usage.total_tokens)
        return usage


def new_correlation_id(prefix: str) -> str:
    """Time-derived id such as AI-GEN-1718000000000-a1b2c3"""
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(3)}"

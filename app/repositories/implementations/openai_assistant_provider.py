from typing import Any, Dict, List, Optional
import httpx
from openai import AsyncOpenAI, NotFoundError
import structlog
from app.config.settings import settings
from app.core.exceptions import RemoteResourceGoneError
from app.models.schemas import RemoteAssistant, RemoteMessage, RemoteRun, RemoteRunStep, TokenUsage
from app.repositories.interfaces.assistant_provider import IAssistantProvider

logger = structlog.get_logger()


def create_assistant_provider(api_key: str) -> IAssistantProvider:
    """Build a provider bound to one credential.

    Called at the start of every operation so a rotated key is always picked up;
    the returned provider is never mutated afterwards.
    """
    client = AsyncOpenAI(
        api_key=api_key,
        base_url=settings.openai_base_url,
        timeout=httpx.Timeout(settings.openai_timeout_seconds, connect=10.0),
        max_retries=settings.openai_max_retries,
    )
    return OpenAIAssistantProvider(client)


class OpenAIAssistantProvider(IAssistantProvider):
    """OpenAI Assistants API (beta) implementation of the provider"""

    def __init__(self, client: AsyncOpenAI):
        self._client = client

    # Assistants

    async def create_assistant(
        self, name: str, instructions: str, model: str, tools: Optional[List[Dict[str, Any]]] = None
    ) -> RemoteAssistant:
        assistant = await self._client.beta.assistants.create(
            name=name,
            instructions=instructions,
            model=model,
            tools=tools or [],
        )
        return self._to_assistant(assistant)

    async def retrieve_assistant(self, assistant_id: str) -> RemoteAssistant:
        try:
            assistant = await self._client.beta.assistants.retrieve(assistant_id)
        except NotFoundError as e:
            raise RemoteResourceGoneError("assistant", assistant_id) from e
        return self._to_assistant(assistant)

    async def delete_assistant(self, assistant_id: str) -> None:
        try:
            await self._client.beta.assistants.delete(assistant_id)
        except NotFoundError as e:
            raise RemoteResourceGoneError("assistant", assistant_id) from e

    async def list_assistants(self) -> List[RemoteAssistant]:
        assistants: List[RemoteAssistant] = []
        async for assistant in self._client.beta.assistants.list(limit=100):
            assistants.append(self._to_assistant(assistant))
        return assistants

    # Threads

    async def create_thread(self) -> str:
        thread = await self._client.beta.threads.create()
        return thread.id

    async def retrieve_thread(self, thread_id: str) -> str:
        try:
            thread = await self._client.beta.threads.retrieve(thread_id)
        except NotFoundError as e:
            raise RemoteResourceGoneError("thread", thread_id) from e
        return thread.id

    async def delete_thread(self, thread_id: str) -> None:
        try:
            await self._client.beta.threads.delete(thread_id)
        except NotFoundError as e:
            raise RemoteResourceGoneError("thread", thread_id) from e

    # Messages

    async def create_message(self, thread_id: str, content: str) -> RemoteMessage:
        try:
            message = await self._client.beta.threads.messages.create(thread_id, role="user", content=content)
        except NotFoundError as e:
            raise RemoteResourceGoneError("thread", thread_id) from e
        return self._to_message(message)

    async def list_messages(self, thread_id: str, limit: int = 20) -> List[RemoteMessage]:
        page = await self._client.beta.threads.messages.list(thread_id, order="desc", limit=limit)
        return [self._to_message(message) for message in page.data]

    async def retrieve_message(self, thread_id: str, message_id: str) -> RemoteMessage:
        try:
            message = await self._client.beta.threads.messages.retrieve(message_id, thread_id=thread_id)
        except NotFoundError as e:
            raise RemoteResourceGoneError("message", message_id) from e
        return self._to_message(message)

    # Runs

    async def create_run(self, thread_id: str, assistant_id: str) -> RemoteRun:
        run = await self._client.beta.threads.runs.create(
            thread_id,
            assistant_id=assistant_id,
            tool_choice="auto",
            # Old context is truncated server side
            truncation_strategy={"type": "auto"},
        )
        return self._to_run(run)

    async def retrieve_run(self, thread_id: str, run_id: str) -> RemoteRun:
        try:
            run = await self._client.beta.threads.runs.retrieve(run_id, thread_id=thread_id)
        except NotFoundError as e:
            raise RemoteResourceGoneError("run", run_id) from e
        return self._to_run(run)

    async def list_run_steps(self, thread_id: str, run_id: str) -> List[RemoteRunStep]:
        page = await self._client.beta.threads.runs.steps.list(run_id, thread_id=thread_id)
        steps: List[RemoteRunStep] = []
        for step in page.data:
            message_id = None
            details = getattr(step, "step_details", None)
            if getattr(details, "type", None) == "message_creation":
                message_id = details.message_creation.message_id
            steps.append(RemoteRunStep(id=step.id, type=step.type, message_id=message_id))
        return steps

    async def list_models(self) -> List[str]:
        page = await self._client.models.list()
        return [model.id for model in page.data]

    # Mapping

    @staticmethod
    def _to_usage(usage: Any) -> Optional[TokenUsage]:
        if not usage:
            return None
        return TokenUsage(
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
            total_tokens=getattr(usage, "total_tokens", 0) or 0,
        )

    def _to_assistant(self, assistant: Any) -> RemoteAssistant:
        tools = []
        for tool in getattr(assistant, "tools", None) or []:
            tools.append(tool.model_dump() if hasattr(tool, "model_dump") else dict(tool))
        return RemoteAssistant(
            id=assistant.id,
            name=getattr(assistant, "name", None),
            instructions=getattr(assistant, "instructions", None),
            model=assistant.model,
            tools=tools,
            created_at=getattr(assistant, "created_at", None),
        )

    def _to_message(self, message: Any) -> RemoteMessage:
        text = None
        for part in getattr(message, "content", None) or []:
            if getattr(part, "type", None) == "text":
                text = part.text.value
                break
        return RemoteMessage(
            id=message.id,
            role=getattr(message, "role", "assistant"),
            text=text,
            # Messages do not always carry usage; the run is the primary source
            usage=self._to_usage(getattr(message, "usage", None)),
        )

    def _to_run(self, run: Any) -> RemoteRun:
        last_error = getattr(run, "last_error", None)
        return RemoteRun(
            id=run.id,
            status=run.status,
            usage=self._to_usage(getattr(run, "usage", None)),
            last_error=getattr(last_error, "message", None) if last_error else None,
        )

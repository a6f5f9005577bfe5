from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any
from app.models.schemas import RemoteAssistant, RemoteMessage, RemoteRun, RemoteRunStep


class IAssistantProvider(ABC):
    """Interface for the remote Assistants API.

    Retrieve/delete calls against an id the provider no longer knows raise
    RemoteResourceGoneError; every other failure propagates unchanged.
    """

    @abstractmethod
    async def create_assistant(
        self, name: str, instructions: str, model: str, tools: Optional[List[Dict[str, Any]]] = None
    ) -> RemoteAssistant:
        pass

    @abstractmethod
    async def retrieve_assistant(self, assistant_id: str) -> RemoteAssistant:
        pass

    @abstractmethod
    async def delete_assistant(self, assistant_id: str) -> None:
        pass

    @abstractmethod
    async def list_assistants(self) -> List[RemoteAssistant]:
        pass

    @abstractmethod
    async def create_thread(self) -> str:
        """Create a conversation thread and return its id"""
        pass

    @abstractmethod
    async def retrieve_thread(self, thread_id: str) -> str:
        pass

    @abstractmethod
    async def delete_thread(self, thread_id: str) -> None:
        pass

    @abstractmethod
    async def create_message(self, thread_id: str, content: str) -> RemoteMessage:
        """Append a user message to the thread"""
        pass

    @abstractmethod
    async def list_messages(self, thread_id: str, limit: int = 20) -> List[RemoteMessage]:
        """Return thread messages, most recent first"""
        pass

    @abstractmethod
    async def retrieve_message(self, thread_id: str, message_id: str) -> RemoteMessage:
        pass

    @abstractmethod
    async def create_run(self, thread_id: str, assistant_id: str) -> RemoteRun:
        pass

    @abstractmethod
    async def retrieve_run(self, thread_id: str, run_id: str) -> RemoteRun:
        pass

    @abstractmethod
    async def list_run_steps(self, thread_id: str, run_id: str) -> List[RemoteRunStep]:
        pass

    @abstractmethod
    async def list_models(self) -> List[str]:
        pass

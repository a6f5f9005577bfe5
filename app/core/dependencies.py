from functools import lru_cache
from fastapi import Depends
from sqlalchemy.orm import Session
from app.config.settings import settings
from app.core.database import get_database
from app.core.locks import ProjectLocks
from app.repositories.interfaces.credential_store import ICredentialStore
from app.repositories.interfaces.project_repository import IEndpointRepository, IProjectRepository
from app.repositories.interfaces.test_case_repository import ITestCaseRepository

from app.repositories.implementations.env_file_credential_store import EnvFileCredentialStore
from app.repositories.implementations.openai_assistant_provider import create_assistant_provider
from app.repositories.implementations.sql_assistant_repository import SQLAssistantRepository
from app.repositories.implementations.sql_audit_ledger import SQLGenerationLedger, SQLSuggestionLedger
from app.repositories.implementations.sql_project_repository import SQLEndpointRepository, SQLProjectRepository
from app.repositories.implementations.sql_test_case_repository import SQLTestCaseRepository
from app.repositories.implementations.sql_thread_repository import SQLThreadRepository

from app.services.assistant_manager import AssistantManager
from app.services.assistant_run import AssistantConversation
from app.services.code_insertion_service import CodeInsertionService
from app.services.provider_access import ProviderFactory
from app.services.test_case_generation_service import TestCaseGenerationService
from app.services.test_case_suggestion_service import TestCaseSuggestionService
from app.services.thread_manager import ThreadManager


class Container:
    """Dependency injection container"""

    def __init__(self):
        self._credential_store = None
        self._project_locks = None
        self.provider_factory: ProviderFactory = create_assistant_provider

    @lru_cache()
    def credential_store(self) -> ICredentialStore:
        """Get credential store instance (singleton)"""
        if self._credential_store is None:
            self._credential_store = EnvFileCredentialStore(settings.credentials_env_file)
        return self._credential_store

    @lru_cache()
    def project_locks(self) -> ProjectLocks:
        """Get the process wide per-project locks (singleton)"""
        if self._project_locks is None:
            self._project_locks = ProjectLocks(enabled=settings.serialize_project_sessions)
        return self._project_locks

    def project_repository(self, db: Session) -> IProjectRepository:
        return SQLProjectRepository(db)

    def endpoint_repository(self, db: Session) -> IEndpointRepository:
        return SQLEndpointRepository(db)

    def test_case_repository(self, db: Session) -> ITestCaseRepository:
        return SQLTestCaseRepository(db)

    def thread_manager(self, db: Session) -> ThreadManager:
        return ThreadManager(
            thread_repository=SQLThreadRepository(db),
            credential_store=self.credential_store(),
            provider_factory=self.provider_factory,
        )

    def assistant_manager(self, db: Session) -> AssistantManager:
        return AssistantManager(
            assistant_repository=SQLAssistantRepository(db),
            project_repository=self.project_repository(db),
            thread_manager=self.thread_manager(db),
            credential_store=self.credential_store(),
            provider_factory=self.provider_factory,
            project_locks=self.project_locks(),
        )

    def assistant_conversation(self, db: Session) -> AssistantConversation:
        assistant_manager = self.assistant_manager(db)
        return AssistantConversation(
            assistant_manager=assistant_manager,
            thread_manager=assistant_manager.thread_manager,
            credential_store=self.credential_store(),
            provider_factory=self.provider_factory,
            project_locks=self.project_locks(),
        )

    def generation_service(self, db: Session) -> TestCaseGenerationService:
        return TestCaseGenerationService(
            conversation=self.assistant_conversation(db),
            generation_ledger=SQLGenerationLedger(db),
            project_repository=self.project_repository(db),
            endpoint_repository=self.endpoint_repository(db),
            test_case_repository=self.test_case_repository(db),
            code_insertion_service=CodeInsertionService(),
        )

    def suggestion_service(self, db: Session) -> TestCaseSuggestionService:
        return TestCaseSuggestionService(
            conversation=self.assistant_conversation(db),
            suggestion_ledger=SQLSuggestionLedger(db),
            project_repository=self.project_repository(db),
            endpoint_repository=self.endpoint_repository(db),
        )


# Global container instance
container = Container()


# Dependency providers for FastAPI
def get_credential_store() -> ICredentialStore:
    """FastAPI dependency for the credential store"""
    return container.credential_store()


def get_provider_factory() -> ProviderFactory:
    return container.provider_factory


def get_project_repository(db: Session = Depends(get_database)) -> IProjectRepository:
    return container.project_repository(db)


def get_endpoint_repository(db: Session = Depends(get_database)) -> IEndpointRepository:
    return container.endpoint_repository(db)


def get_test_case_repository(db: Session = Depends(get_database)) -> ITestCaseRepository:
    """FastAPI dependency for test case repository"""
    return container.test_case_repository(db)


def get_thread_manager(db: Session = Depends(get_database)) -> ThreadManager:
    return container.thread_manager(db)


def get_assistant_manager(db: Session = Depends(get_database)) -> AssistantManager:
    return container.assistant_manager(db)


def get_generation_service(db: Session = Depends(get_database)) -> TestCaseGenerationService:
    """FastAPI dependency for the test case generation service"""
    return container.generation_service(db)


def get_suggestion_service(db: Session = Depends(get_database)) -> TestCaseSuggestionService:
    """FastAPI dependency for the suggestion service"""
    return container.suggestion_service(db)

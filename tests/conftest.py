import asyncio
import itertools
import time
import uuid
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from app.core import dependencies
from app.core.database import build_engine, get_database
from app.core.dependencies import Container
from app.core.exceptions import RemoteResourceGoneError
from app.core.locks import ProjectLocks
from app.models.database import Base, ProjectModel
from app.models.schemas import (
    Project,
    RemoteAssistant,
    RemoteMessage,
    RemoteRun,
    RemoteRunStep,
    TokenUsage,
)
from app.repositories.implementations.sql_assistant_repository import SQLAssistantRepository
from app.repositories.implementations.sql_audit_ledger import SQLGenerationLedger, SQLSuggestionLedger
from app.repositories.implementations.sql_project_repository import SQLEndpointRepository, SQLProjectRepository
from app.repositories.implementations.sql_test_case_repository import SQLTestCaseRepository
from app.repositories.implementations.sql_thread_repository import SQLThreadRepository
from app.repositories.interfaces.assistant_provider import IAssistantProvider
from app.repositories.interfaces.credential_store import ICredentialStore
from app.services.assistant_manager import AssistantManager
from app.services.assistant_run import AssistantConversation
from app.services.code_insertion_service import CodeInsertionService
from app.services.test_case_generation_service import TestCaseGenerationService
from app.services.test_case_suggestion_service import TestCaseSuggestionService
from app.services.thread_manager import ThreadManager

TEST_API_KEY = "sk-test-0123456789abcdef"

GENERATED_RESPONSE = """***Features:***
```gherkin
@TC-ecommerce-Product-3 @negative @create
Scenario: Create product without name
  Given I have a product payload without name
  When I send the create product request
  Then the response status should be 400
```

***Steps:***
```typescript
Given('I have a product payload without name', async function () {
  this.payload = { price: 10 };
});
```
"""

SUGGESTIONS_RESPONSE = "\n\n".join(
    f"""***Suggestion {n}:***
**Short Prompt:** Prompt {n}
**Short Description:** Description {n}
**Detailed Description:** Detailed description number {n}"""
    for n in range(1, 6)
)

FEATURE_FILE = """Feature: Product

  @TC-ecommerce-Product-1
  Scenario: List products
    Given I am authenticated
    When I request the product list
    Then the response status should be 200
"""

STEPS_FILE = """import { Given, When, Then } from '@cucumber/cucumber';

Given('I am authenticated', async function () {
});
// End of Given steps

When('I request the product list', async function () {
});
// End of When steps

Then('the response status should be {int}', async function (status) {
});
// End of Then steps
"""


class FakeAssistantProvider(IAssistantProvider):
    """In-memory Assistants API that records every call in order"""

    def __init__(self):
        self.calls: List[tuple] = []
        self.assistants: Dict[str, RemoteAssistant] = {}
        self.threads: Dict[str, List[RemoteMessage]] = {}
        self.runs: Dict[str, Dict[str, Any]] = {}
        self.models = ["gpt-4o-mini", "gpt-4o"]

        # Behaviour knobs
        self.run_statuses = ["queued", "in_progress", "completed"]
        self.run_usage: Optional[TokenUsage] = TokenUsage(prompt_tokens=120, completion_tokens=80, total_tokens=200)
        self.run_steps: List[RemoteRunStep] = []
        self.last_error: Optional[str] = None
        self.response_text = GENERATED_RESPONSE
        self.failures: Dict[str, Exception] = {}

        self._ids = itertools.count(1)

    def _call(self, name: str, *args):
        self.calls.append((name,) + args)
        if name in self.failures:
            raise self.failures[name]

    def _new_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids)}"

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    async def create_assistant(self, name, instructions, model, tools=None):
        self._call("create_assistant", name)
        assistant = RemoteAssistant(
            id=self._new_id("asst"),
            name=name,
            instructions=instructions,
            model=model,
            tools=tools or [],
            created_at=int(time.time()),
        )
        self.assistants[assistant.id] = assistant
        return assistant

    async def retrieve_assistant(self, assistant_id):
        self._call("retrieve_assistant", assistant_id)
        if assistant_id not in self.assistants:
            raise RemoteResourceGoneError("assistant", assistant_id)
        return self.assistants[assistant_id]

    async def delete_assistant(self, assistant_id):
        self._call("delete_assistant", assistant_id)
        if self.assistants.pop(assistant_id, None) is None:
            raise RemoteResourceGoneError("assistant", assistant_id)

    async def list_assistants(self):
        self._call("list_assistants")
        return list(self.assistants.values())

    async def create_thread(self):
        self._call("create_thread")
        thread_id = self._new_id("thread")
        self.threads[thread_id] = []
        return thread_id

    async def retrieve_thread(self, thread_id):
        self._call("retrieve_thread", thread_id)
        if thread_id not in self.threads:
            raise RemoteResourceGoneError("thread", thread_id)
        return thread_id

    async def delete_thread(self, thread_id):
        self._call("delete_thread", thread_id)
        if self.threads.pop(thread_id, None) is None:
            raise RemoteResourceGoneError("thread", thread_id)

    async def create_message(self, thread_id, content):
        self._call("create_message", thread_id)
        message = RemoteMessage(id=self._new_id("msg"), role="user", text=content)
        self.threads[thread_id].insert(0, message)
        return message

    async def list_messages(self, thread_id, limit=20):
        self._call("list_messages", thread_id)
        return self.threads.get(thread_id, [])[:limit]

    async def retrieve_message(self, thread_id, message_id):
        self._call("retrieve_message", thread_id, message_id)
        for message in self.threads.get(thread_id, []):
            if message.id == message_id:
                return message
        raise RemoteResourceGoneError("message", message_id)

    async def create_run(self, thread_id, assistant_id):
        self._call("create_run", thread_id, assistant_id)
        run_id = self._new_id("run")
        self.runs[run_id] = {"thread_id": thread_id, "statuses": list(self.run_statuses), "answered": False}
        return RemoteRun(id=run_id, status="queued")

    async def retrieve_run(self, thread_id, run_id):
        self._call("retrieve_run", thread_id, run_id)
        run = self.runs[run_id]
        statuses = run["statuses"]
        status = statuses.pop(0) if len(statuses) > 1 else statuses[0]
        if status == "completed" and not run["answered"]:
            run["answered"] = True
            reply = RemoteMessage(id=self._new_id("msg"), role="assistant", text=self.response_text)
            self.threads[thread_id].insert(0, reply)
        usage = self.run_usage if status == "completed" else None
        return RemoteRun(id=run_id, status=status, usage=usage, last_error=self.last_error)

    async def list_run_steps(self, thread_id, run_id):
        self._call("list_run_steps", thread_id, run_id)
        return list(self.run_steps)

    async def list_models(self):
        self._call("list_models")
        return list(self.models)


class InMemoryCredentialStore(ICredentialStore):
    def __init__(self, value: Optional[str] = None):
        self.value = value

    def get(self) -> Optional[str]:
        return self.value

    def set(self, value: str) -> None:
        if not value or not value.strip():
            raise ValueError("API key is required")
        self.value = value.strip()


class RecordingSleep:
    """Records poll delays and yields to the loop without waiting"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def db_session():
    """Fresh in-memory database per test"""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def provider():
    return FakeAssistantProvider()


@pytest.fixture
def credential_store():
    return InMemoryCredentialStore(TEST_API_KEY)


@pytest.fixture
def provider_factory(provider):
    def factory(api_key: str) -> IAssistantProvider:
        assert api_key
        return provider
    return factory


@pytest.fixture
def project_locks():
    return ProjectLocks()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def workspace(tmp_path):
    """Test workspace holding the Product feature and steps files"""
    feature = tmp_path / "src" / "features" / "ecommerce" / "product.feature"
    steps = tmp_path / "src" / "steps" / "ecommerce" / "product.steps.ts"
    feature.parent.mkdir(parents=True)
    steps.parent.mkdir(parents=True)
    feature.write_text(FEATURE_FILE, encoding="utf-8")
    steps.write_text(STEPS_FILE, encoding="utf-8")
    return tmp_path


@pytest.fixture
def project(db_session, workspace):
    db_project = ProjectModel(id=str(uuid.uuid4()), name="ecommerce", path=str(workspace))
    db_session.add(db_project)
    db_session.commit()
    db_session.refresh(db_project)
    return Project.model_validate(db_project)


@pytest.fixture
def thread_repository(db_session):
    return SQLThreadRepository(db_session)


@pytest.fixture
def thread_manager(thread_repository, credential_store, provider_factory):
    return ThreadManager(thread_repository, credential_store, provider_factory)


@pytest.fixture
def assistant_manager(db_session, thread_manager, credential_store, provider_factory, project_locks):
    return AssistantManager(
        assistant_repository=SQLAssistantRepository(db_session),
        project_repository=SQLProjectRepository(db_session),
        thread_manager=thread_manager,
        credential_store=credential_store,
        provider_factory=provider_factory,
        project_locks=project_locks,
    )


@pytest.fixture
def conversation(assistant_manager, thread_manager, credential_store, provider_factory, project_locks, sleep):
    return AssistantConversation(
        assistant_manager=assistant_manager,
        thread_manager=thread_manager,
        credential_store=credential_store,
        provider_factory=provider_factory,
        project_locks=project_locks,
        poll_interval=1.0,
        max_wait=10.0,
        sleep=sleep,
    )


@pytest.fixture
def generation_ledger(db_session):
    return SQLGenerationLedger(db_session)


@pytest.fixture
def suggestion_ledger(db_session):
    return SQLSuggestionLedger(db_session)


@pytest.fixture
def test_case_repository(db_session):
    return SQLTestCaseRepository(db_session)


@pytest.fixture
def generation_service(conversation, generation_ledger, db_session, test_case_repository):
    return TestCaseGenerationService(
        conversation=conversation,
        generation_ledger=generation_ledger,
        project_repository=SQLProjectRepository(db_session),
        endpoint_repository=SQLEndpointRepository(db_session),
        test_case_repository=test_case_repository,
        code_insertion_service=CodeInsertionService(),
    )


@pytest.fixture
def suggestion_service(conversation, suggestion_ledger, db_session):
    return TestCaseSuggestionService(
        conversation=conversation,
        suggestion_ledger=suggestion_ledger,
        project_repository=SQLProjectRepository(db_session),
        endpoint_repository=SQLEndpointRepository(db_session),
    )


@pytest.fixture
def test_client(db_session, credential_store, provider_factory, project_locks):
    """Synchronous test client wired to the in-memory database and fake provider"""
    container = Container()
    container._credential_store = credential_store
    container._project_locks = project_locks
    container.provider_factory = provider_factory

    def override_get_db():
        yield db_session

    overrides = {
        get_database: override_get_db,
        dependencies.get_credential_store: lambda: credential_store,
        dependencies.get_provider_factory: lambda: provider_factory,
        dependencies.get_project_repository: lambda: container.project_repository(db_session),
        dependencies.get_endpoint_repository: lambda: container.endpoint_repository(db_session),
        dependencies.get_test_case_repository: lambda: container.test_case_repository(db_session),
        dependencies.get_thread_manager: lambda: container.thread_manager(db_session),
        dependencies.get_assistant_manager: lambda: container.assistant_manager(db_session),
        dependencies.get_generation_service: lambda: container.generation_service(db_session),
        dependencies.get_suggestion_service: lambda: container.suggestion_service(db_session),
    }
    app.dependency_overrides.update(overrides)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

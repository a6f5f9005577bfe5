import asyncio
import json

import pytest

from app.models.schemas import AIGenerationRequest, AuditStatus, RemoteRunStep, TestType, TokenUsage
from app.repositories.implementations.sql_project_repository import SQLEndpointRepository, SQLProjectRepository
from app.services.code_insertion_service import CodeInsertionService
from app.services.test_case_generation_service import TestCaseGenerationService


def make_request(**overrides):
    data = {
        "entity_name": "Product",
        "section": "ecommerce",
        "requirements": "Create a product without name and expect a validation error",
    }
    data.update(overrides)
    return AIGenerationRequest(**data)


class ExplodingInsertionService(CodeInsertionService):
    def insert_code(self, insertions, generation_id):
        raise RuntimeError("disk full")


@pytest.mark.asyncio
async def test_generate_success(generation_service, assistant_manager, project, provider, workspace, test_case_repository):
    await assistant_manager.create_assistant(project.id)

    result = await generation_service.generate(project.id, make_request())

    assert result.success
    assert result.error is None
    assert "Scenario: Create product without name" in result.data.new_code.feature
    assert "Given('I have a product payload without name'" in result.data.new_code.steps
    assert result.metadata.generation_id.startswith("AI-GEN-")
    assert result.metadata.tokens_used == 200
    assert result.metadata.model_used == "gpt-4o-mini"

    saved = result.data.saved_test_case
    assert saved.test_case_id == "TC-ecommerce-Product-3"
    assert saved.test_type == TestType.NEGATIVE
    assert saved.method == "POST"
    assert saved.generation_id == result.metadata.generation_id
    assert len(await test_case_repository.get_by_project(project.id)) == 1

    feature = (workspace / "src" / "features" / "ecommerce" / "product.feature").read_text()
    steps = (workspace / "src" / "steps" / "ecommerce" / "product.steps.ts").read_text()
    assert "@TC-ecommerce-Product-3" in feature
    assert steps.index("I have a product payload without name") < steps.index("// End of Given steps")

    record = await generation_service.get_generation(result.metadata.generation_id)
    assert record.status == AuditStatus.COMPLETED
    assert record.method == "POST"
    assert json.loads(record.generated_code)["feature"] == result.data.new_code.feature
    assert record.metadata["operation"] == "add-scenario"
    assert record.metadata["thread_id"] == result.metadata.thread_id
    assert record.metadata["tokens_used"] == 200
    assert len(record.metadata["files_modified"]) == 2
    assert "secondary_errors" not in record.metadata


@pytest.mark.asyncio
async def test_generate_counts_the_message_once(generation_service, assistant_manager, project):
    await assistant_manager.create_assistant(project.id)

    result = await generation_service.generate(project.id, make_request())

    thread = await generation_service.conversation.thread_manager.thread_repository.find_by_thread_id(
        result.metadata.thread_id
    )
    assert thread.message_count == 1


@pytest.mark.asyncio
async def test_generate_uses_a_fresh_thread_each_time(generation_service, assistant_manager, project, provider):
    created = await assistant_manager.create_assistant(project.id)

    first = await generation_service.generate(project.id, make_request())
    second = await generation_service.generate(project.id, make_request(requirements="List products"))

    assert first.metadata.thread_id != second.metadata.thread_id
    threads = await generation_service.conversation.thread_manager.thread_repository.find_for_pair(
        project.id, created.assistant_id
    )
    assert [t.thread_id for t in threads] == [second.metadata.thread_id]
    assert first.metadata.thread_id not in provider.threads


@pytest.mark.asyncio
async def test_generate_without_assistant_fails_with_a_record(generation_service, project, provider):
    result = await generation_service.generate(project.id, make_request())

    assert not result.success
    assert "No assistant created for the project" in result.error
    assert "create_thread" not in provider.call_names()

    records = await generation_service.get_project_generations(project.id)
    assert len(records) == 1
    assert records[0].status == AuditStatus.FAILED
    assert records[0].error_message == result.error


@pytest.mark.asyncio
async def test_generate_run_failure(generation_service, assistant_manager, project, provider):
    """A run ending in failed yields a failed result and record, no exception"""
    await assistant_manager.create_assistant(project.id)
    provider.run_statuses = ["in_progress", "failed"]
    provider.last_error = "Rate limit reached"

    result = await generation_service.generate(project.id, make_request())

    assert not result.success
    assert result.error == "Run failed: Rate limit reached"
    assert result.data is None

    record = await generation_service.get_generation(result.metadata.generation_id)
    assert record.status == AuditStatus.FAILED
    assert record.error_message == "Run failed: Rate limit reached"
    assert record.metadata["error_type"] == "RunFailureError"
    assert record.metadata["thread_id"] == result.metadata.thread_id
    assert record.metadata["run_id"]


@pytest.mark.asyncio
async def test_generate_run_timeout(generation_service, assistant_manager, project, provider, sleep):
    await assistant_manager.create_assistant(project.id)
    provider.run_statuses = ["in_progress"]

    result = await generation_service.generate(project.id, make_request())

    assert not result.success
    assert result.error == "Run timeout after 10 attempts"
    assert sleep.delays == [1.0] * 9


@pytest.mark.asyncio
async def test_generate_empty_response(generation_service, assistant_manager, project, provider):
    await assistant_manager.create_assistant(project.id)
    provider.response_text = "   "

    result = await generation_service.generate(project.id, make_request())

    assert not result.success
    assert result.error == "No response received from assistant"
    record = await generation_service.get_generation(result.metadata.generation_id)
    assert record.status == AuditStatus.FAILED


@pytest.mark.asyncio
async def test_generate_insertion_failure_is_secondary(
    conversation, generation_ledger, db_session, test_case_repository, assistant_manager, project
):
    """File insertion blowing up does not turn a good response into a failure"""
    service = TestCaseGenerationService(
        conversation=conversation,
        generation_ledger=generation_ledger,
        project_repository=SQLProjectRepository(db_session),
        endpoint_repository=SQLEndpointRepository(db_session),
        test_case_repository=test_case_repository,
        code_insertion_service=ExplodingInsertionService(),
    )
    await assistant_manager.create_assistant(project.id)

    result = await service.generate(project.id, make_request())

    assert result.success
    assert result.data.new_code.feature
    assert result.data.insertions == []
    assert result.data.saved_test_case is not None

    record = await generation_ledger.find_by_id(result.metadata.generation_id)
    assert record.status == AuditStatus.COMPLETED
    assert record.metadata["secondary_errors"] == ["Code insertion failed: disk full"]


@pytest.mark.asyncio
async def test_generate_missing_workspace_files(generation_service, assistant_manager, project, workspace):
    await assistant_manager.create_assistant(project.id)
    (workspace / "src" / "steps" / "ecommerce" / "product.steps.ts").unlink()

    result = await generation_service.generate(project.id, make_request())

    assert result.success
    record = await generation_service.get_generation(result.metadata.generation_id)
    assert any("File not found" in error for error in record.metadata["secondary_errors"])
    assert len(record.metadata["files_modified"]) == 1


@pytest.mark.asyncio
async def test_generate_without_test_case_id_still_succeeds(generation_service, assistant_manager, project, provider):
    await assistant_manager.create_assistant(project.id)
    provider.response_text = "***Features:***\nScenario: Untagged\n  Given something\n"

    result = await generation_service.generate(project.id, make_request())

    assert result.success
    assert result.data.saved_test_case is None
    record = await generation_service.get_generation(result.metadata.generation_id)
    assert any("@TC-" in error for error in record.metadata["secondary_errors"])


@pytest.mark.asyncio
async def test_generate_usage_from_run_steps(generation_service, assistant_manager, project, provider):
    await assistant_manager.create_assistant(project.id)
    provider.run_usage = None
    provider.run_steps = [RemoteRunStep(id="step_1", type="message_creation", message_id="msg_missing")]

    result = await generation_service.generate(project.id, make_request())

    assert result.success
    assert result.metadata.tokens_used == 0
    assert "list_run_steps" in provider.call_names()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "setup",
    ["no_credential", "no_project", "remote_error", "failed_run", "ok"],
)
async def test_generate_always_leaves_one_terminal_record(
    setup, generation_service, assistant_manager, project, provider, credential_store
):
    project_id = project.id
    await assistant_manager.create_assistant(project.id)
    if setup == "no_credential":
        credential_store.value = None
    elif setup == "no_project":
        project_id = "unknown-project"
    elif setup == "remote_error":
        provider.failures["create_message"] = ConnectionError("connection reset")
    elif setup == "failed_run":
        provider.run_statuses = ["incomplete"]

    result = await generation_service.generate(project_id, make_request())

    records = await generation_service.get_project_generations(project_id)
    assert len(records) == 1
    assert records[0].generation_id == result.metadata.generation_id
    expected = AuditStatus.COMPLETED if setup == "ok" else AuditStatus.FAILED
    assert records[0].status == expected
    assert result.success == (setup == "ok")


@pytest.mark.asyncio
async def test_concurrent_generations_are_serialized_per_project(generation_service, assistant_manager, project, provider):
    created = await assistant_manager.create_assistant(project.id)
    provider.run_usage = TokenUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15)

    results = await asyncio.gather(
        generation_service.generate(project.id, make_request()),
        generation_service.generate(project.id, make_request(requirements="List products")),
    )

    assert all(result.success for result in results)
    threads = await generation_service.conversation.thread_manager.thread_repository.find_for_pair(
        project.id, created.assistant_id
    )
    assert len(threads) == 1
    # Each run was started on the thread its own message went to
    create_messages = [call[1] for call in provider.calls if call[0] == "create_message"]
    create_runs = [call[1] for call in provider.calls if call[0] == "create_run"]
    assert create_messages == create_runs

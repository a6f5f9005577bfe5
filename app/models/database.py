from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, JSON, ForeignKey
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
from app.models.schemas import AssistantStatus, AuditStatus, ThreadStatus, TestCaseStatus, TestType

Base = declarative_base()


class ProjectModel(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    path = Column(Text, nullable=False)
    assistant_id = Column(String(100), nullable=True)
    assistant_created_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Project(id={self.id}, name='{self.name}')>"


class EndpointModel(Base):
    __tablename__ = "endpoints"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
    section = Column(String(100), nullable=False)
    entity_name = Column(String(100), nullable=False)
    # {"feature": "src/features/...", "steps": "src/steps/..."}
    generated_artifacts = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AIAssistantModel(Base):
    __tablename__ = "ai_assistants"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False, unique=True, index=True)
    assistant_id = Column(String(100), nullable=False, unique=True, index=True)
    instructions = Column(Text, nullable=True)
    tools = Column(Text, nullable=True)  # JSON array
    model = Column(String(100), nullable=False, default="gpt-4o-mini")
    status = Column(Enum(AssistantStatus), default=AssistantStatus.ACTIVE, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<AIAssistant(project_id={self.project_id}, assistant_id='{self.assistant_id}')>"


class AIThreadModel(Base):
    __tablename__ = "ai_threads"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
    thread_id = Column(String(100), nullable=False, unique=True, index=True)
    assistant_id = Column(String(100), ForeignKey("ai_assistants.assistant_id"), nullable=False, index=True)
    status = Column(Enum(ThreadStatus), default=ThreadStatus.ACTIVE, index=True)
    message_count = Column(Integer, nullable=False, default=0)
    max_messages = Column(Integer, nullable=False, default=1000)
    last_used_at = Column(DateTime(timezone=True), server_default=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return (
            f"<AIThread(thread_id='{self.thread_id}', status='{self.status}', "
            f"messages={self.message_count}/{self.max_messages})>"
        )


class AIGenerationModel(Base):
    __tablename__ = "ai_generations"

    id = Column(Integer, primary_key=True, index=True)
    generation_id = Column(String(64), nullable=False, unique=True, index=True)
    # Informational only: audit rows outlive the assistant/thread they mention
    project_id = Column(String(36), nullable=False, index=True)
    type = Column(String(50), default="bdd-test-case")
    entity_name = Column(String(100), nullable=False)
    method = Column(String(20), nullable=False, default="POST")
    scenario_name = Column(String(255), nullable=False)
    section = Column(String(100), nullable=False)
    requirements = Column(Text, nullable=True)
    request_data = Column(Text, nullable=True)
    generated_code = Column(Text, nullable=True)
    status = Column(Enum(AuditStatus), default=AuditStatus.PENDING, index=True)
    error_message = Column(Text, nullable=True)
    record_metadata = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<AIGeneration(generation_id='{self.generation_id}', status='{self.status}')>"


class AISuggestionModel(Base):
    __tablename__ = "ai_suggestions"

    id = Column(Integer, primary_key=True, index=True)
    suggestion_id = Column(String(64), nullable=False, unique=True, index=True)
    project_id = Column(String(36), nullable=False, index=True)
    entity_name = Column(String(100), nullable=False, index=True)
    section = Column(String(100), nullable=False, index=True)
    requirements = Column(Text, nullable=False)
    request_data = Column(Text, nullable=True)
    suggestions = Column(JSON, nullable=False, default=list)
    total_suggestions = Column(Integer, default=0)
    assistant_id = Column(String(100), nullable=True)
    thread_id = Column(String(100), nullable=True)
    run_id = Column(String(100), nullable=True)
    processing_time = Column(Integer, nullable=True)
    status = Column(Enum(AuditStatus), default=AuditStatus.PENDING, index=True)
    error_message = Column(Text, nullable=True)
    record_metadata = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<AISuggestion(suggestion_id='{self.suggestion_id}', status='{self.status}')>"


class TestCaseModel(Base):
    __tablename__ = "test_cases"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
    test_case_id = Column(String(255), nullable=False, index=True)
    section = Column(String(100), nullable=False)
    entity_name = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    method = Column(String(20), nullable=False, default="GET")
    test_type = Column(Enum(TestType), default=TestType.POSITIVE)
    status = Column(Enum(TestCaseStatus), default=TestCaseStatus.DRAFT)
    tags = Column(JSON, default=list)
    scenario = Column(Text, nullable=False)
    generation_id = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<TestCase(id={self.id}, test_case_id='{self.test_case_id}', name='{self.name}')>"

from pydantic import AliasChoices, BaseModel, Field
from typing import List, Optional, Dict, Any
from datetime import datetime
from enum import Enum


class AssistantStatus(str, Enum):
    ACTIVE = "active"


class ThreadStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class AuditStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class AIOperationType(str, Enum):
    ADD_SCENARIO = "add-scenario"
    MODIFY_SCENARIO = "modify-scenario"
    CREATE_NEW = "create-new"


class TestCaseStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    DEPRECATED = "deprecated"


class TestType(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


# --- Remote provider values -------------------------------------------------


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class RemoteAssistant(BaseModel):
    id: str
    name: Optional[str] = None
    instructions: Optional[str] = None
    model: str
    tools: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: Optional[int] = Field(None, description="Unix timestamp in seconds")


class RemoteMessage(BaseModel):
    id: str
    role: str = "assistant"
    text: Optional[str] = Field(None, description="Text of the first content part, if it is text")
    usage: Optional[TokenUsage] = None


class RemoteRun(BaseModel):
    id: str
    status: str
    usage: Optional[TokenUsage] = None
    last_error: Optional[str] = None


class RemoteRunStep(BaseModel):
    id: str
    type: str
    message_id: Optional[str] = None


# --- Collaborators ----------------------------------------------------------


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, description="Project name")
    path: str = Field(..., min_length=1, description="Absolute path of the test workspace")


class Project(BaseModel):
    id: str
    name: str
    path: str
    assistant_id: Optional[str] = None
    assistant_created_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EndpointCreate(BaseModel):
    section: str = Field(..., min_length=1)
    entity_name: str = Field(..., min_length=1)
    generated_artifacts: Dict[str, str] = Field(
        default_factory=dict,
        description="Artifact kind ('feature', 'steps') to path relative to the project",
    )


class Endpoint(EndpointCreate):
    id: int
    project_id: str

    class Config:
        from_attributes = True


# --- Session records --------------------------------------------------------


class AIAssistant(BaseModel):
    id: int
    project_id: str
    assistant_id: str
    instructions: Optional[str] = None
    tools: Optional[str] = None
    model: str
    status: AssistantStatus = AssistantStatus.ACTIVE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AIThread(BaseModel):
    id: int
    project_id: str
    thread_id: str
    assistant_id: str
    status: ThreadStatus = ThreadStatus.ACTIVE
    message_count: int = 0
    max_messages: int = 1000
    last_used_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ThreadStats(BaseModel):
    total: int = 0
    active: int = 0
    inactive: int = 0
    total_messages: int = 0


# --- Generation -------------------------------------------------------------


class AIGenerationRequest(BaseModel):
    entity_name: str = Field(..., min_length=1, description="Entity name for which to generate tests")
    section: str = Field(..., min_length=1, description="Project section")
    operation: AIOperationType = Field(default=AIOperationType.ADD_SCENARIO)
    requirements: str = Field(..., min_length=1, description="Specific requirements for generation")
    metadata: Optional[Dict[str, Any]] = None


class GeneratedCode(BaseModel):
    feature: Optional[str] = None
    steps: Optional[str] = None


class CodeInsertion(BaseModel):
    file: str
    line: int = Field(..., ge=1)
    content: str
    type: str = Field(..., description="'scenario' or 'step'")
    description: Optional[str] = None


class InsertionResult(BaseModel):
    success: bool = True
    modified_files: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class TestCaseBase(BaseModel):
    test_case_id: str = Field(..., description="Tag id such as TC-ecommerce-Product-3")
    section: str
    entity_name: str
    name: str
    description: Optional[str] = None
    method: str = "GET"
    test_type: TestType = TestType.POSITIVE
    tags: List[str] = Field(default_factory=list)
    scenario: str


class TestCaseCreate(TestCaseBase):
    pass


class TestCase(TestCaseBase):
    id: int
    project_id: str
    status: TestCaseStatus = TestCaseStatus.DRAFT
    generation_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GenerationMetadata(BaseModel):
    processing_time_ms: int = 0
    tokens_used: int = 0
    model_used: Optional[str] = None
    generation_id: str
    assistant_id: Optional[str] = None
    thread_id: Optional[str] = None


class AIGenerationData(BaseModel):
    new_code: GeneratedCode
    insertions: List[CodeInsertion] = Field(default_factory=list)
    saved_test_case: Optional[TestCase] = None


class AIGenerationResponse(BaseModel):
    success: bool
    data: Optional[AIGenerationData] = None
    error: Optional[str] = None
    metadata: GenerationMetadata


class AIGenerationRecord(BaseModel):
    id: int
    generation_id: str
    project_id: str
    type: str
    entity_name: str
    method: str
    scenario_name: str
    section: str
    requirements: Optional[str] = None
    request_data: Optional[str] = None
    generated_code: Optional[str] = None
    status: AuditStatus
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("record_metadata", "metadata")
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# --- Suggestions ------------------------------------------------------------


class TestCaseSuggestionRequest(BaseModel):
    section: str = Field(..., min_length=1, description="Section of the API (e.g., ecommerce, auth)")
    entity_name: str = Field(..., min_length=1, description="Entity name (e.g., Product, User)")
    requirements: str = Field(..., min_length=1, description="What test cases the user expects")


class TestCaseSuggestion(BaseModel):
    short_prompt: str
    short_description: str
    detailed_description: str


class SuggestionGenerationData(BaseModel):
    suggestions: List[TestCaseSuggestion] = Field(default_factory=list)
    total_suggestions: int = 0


class SuggestionGenerationResponse(BaseModel):
    success: bool
    data: Optional[SuggestionGenerationData] = None
    error: Optional[str] = None
    metadata: GenerationMetadata


class AISuggestionRecord(BaseModel):
    id: int
    suggestion_id: str
    project_id: str
    entity_name: str
    section: str
    requirements: str
    request_data: Optional[str] = None
    suggestions: List[TestCaseSuggestion] = Field(default_factory=list)
    total_suggestions: int = 0
    assistant_id: Optional[str] = None
    thread_id: Optional[str] = None
    run_id: Optional[str] = None
    processing_time: Optional[int] = None
    status: AuditStatus
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("record_metadata", "metadata")
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SuggestionStats(BaseModel):
    total: int = 0
    completed: int = 0
    failed: int = 0
    total_suggestions: int = 0
    average_processing_time: float = 0.0


# --- Assistant / settings endpoints -----------------------------------------


class AssistantInitResponse(BaseModel):
    assistant_id: str
    message: str


class SaveApiKeyRequest(BaseModel):
    api_key: str = Field(..., description="OpenAI API key")

import re
from typing import List, Optional
import structlog
from app.models.schemas import GeneratedCode, TestCaseCreate, TestCaseSuggestion, TestType

logger = structlog.get_logger()

_FEATURES_MARKER = re.compile(r"\*{3}\s*Features?\s*:\s*\*{3}", re.IGNORECASE)
_STEPS_MARKER = re.compile(r"\*{3}\s*Steps\s*:\s*\*{3}", re.IGNORECASE)
_FENCE = re.compile(r"^\s*```[\w-]*\s*$")

_SUGGESTION_BLOCK = re.compile(
    r"\*\*\*Suggestion (\d+):\*\*\*\s*"
    r"\*\*Short Prompt:\*\*\s*([^\n]+)\s*"
    r"\*\*Short Description:\*\*\s*([^\n]+)\s*"
    r"\*\*Detailed Description:\*\*\s*([^\n]+)"
)

DEFAULT_SUGGESTIONS = [
    TestCaseSuggestion(
        short_prompt="Validate required fields",
        short_description="Test API validation for missing required fields",
        detailed_description=(
            "This test case validates that the API correctly returns validation errors "
            "when required fields are missing from the request body."
        ),
    ),
    TestCaseSuggestion(
        short_prompt="Test successful creation",
        short_description="Verify successful resource creation with valid data",
        detailed_description=(
            "This test case ensures that the API successfully creates a resource when all "
            "required fields are provided with valid data."
        ),
    ),
    TestCaseSuggestion(
        short_prompt="Test error handling",
        short_description="Validate proper error responses for invalid data",
        detailed_description=(
            "This test case verifies that the API returns appropriate error messages and "
            "status codes when invalid data is submitted."
        ),
    ),
    TestCaseSuggestion(
        short_prompt="Test edge cases",
        short_description="Validate behavior with boundary values and edge cases",
        detailed_description=(
            "This test case covers edge cases such as maximum/minimum values, empty strings, "
            "and boundary conditions."
        ),
    ),
    TestCaseSuggestion(
        short_prompt="Test data integrity",
        short_description="Verify data consistency and integrity after operations",
        detailed_description=(
            "This test case ensures that data remains consistent and accurate after create, "
            "update, or delete operations."
        ),
    ),
]


def _clean_block(block: str) -> Optional[str]:
    lines = [line for line in block.splitlines() if not _FENCE.match(line)]
    cleaned = "\n".join(lines).strip()
    return cleaned or None


def parse_generated_code(text: str) -> GeneratedCode:
    """Split a response into its ***Features:*** and ***Steps:*** blocks.

    Either block may be missing. A response without markers that still looks
    like Gherkin is taken as feature code.
    """
    if not text:
        return GeneratedCode()

    features_match = _FEATURES_MARKER.search(text)
    steps_match = _STEPS_MARKER.search(text)

    if not features_match and not steps_match:
        if re.search(r"Scenario(?: Outline)?:", text):
            logger.warning("Response has no block markers, using it as feature code")
            return GeneratedCode(feature=_clean_block(text))
        logger.warning("Response has no recognizable code blocks")
        return GeneratedCode()

    feature = None
    steps = None
    if features_match:
        end = len(text)
        if steps_match and steps_match.start() > features_match.end():
            end = steps_match.start()
        feature = _clean_block(text[features_match.end():end])
    if steps_match:
        end = len(text)
        if features_match and features_match.start() > steps_match.end():
            end = features_match.start()
        steps = _clean_block(text[steps_match.end():end])

    return GeneratedCode(feature=feature, steps=steps)


def _parse_suggestion_lines(text: str) -> List[TestCaseSuggestion]:
    suggestions = []
    current = {}
    for line in text.splitlines():
        if "Short Prompt:" in line:
            if len(current) == 3:
                suggestions.append(TestCaseSuggestion(**current))
                current = {}
            current["short_prompt"] = line.split("Short Prompt:", 1)[1].strip(" *")
        elif "Short Description:" in line:
            current["short_description"] = line.split("Short Description:", 1)[1].strip(" *")
        elif "Detailed Description:" in line:
            current["detailed_description"] = line.split("Detailed Description:", 1)[1].strip(" *")
    if len(current) == 3:
        suggestions.append(TestCaseSuggestion(**current))
    return suggestions


def parse_suggestions(text: str) -> List[TestCaseSuggestion]:
    suggestions = [
        TestCaseSuggestion(
            short_prompt=match.group(2).strip(),
            short_description=match.group(3).strip(),
            detailed_description=match.group(4).strip(),
        )
        for match in _SUGGESTION_BLOCK.finditer(text or "")
    ]

    if not suggestions:
        logger.warning("Could not parse suggestions with standard pattern, trying line based parsing")
        suggestions = _parse_suggestion_lines(text or "")

    if not suggestions:
        logger.warning("Could not parse suggestions, using default suggestions")
        suggestions = [s.model_copy() for s in DEFAULT_SUGGESTIONS]

    logger.info("Suggestions parsed", count=len(suggestions))
    return suggestions


def _http_method(requirements: str, tags: List[str]) -> str:
    requirements = requirements.lower()
    for keyword, method in (("create", "POST"), ("update", "PUT"), ("delete", "DELETE")):
        if keyword in requirements or any(keyword in tag for tag in tags):
            return method
    return "GET"


def extract_test_case(feature_code: str, section: str, entity_name: str, requirements: str) -> TestCaseCreate:
    """Derive a test case row from generated feature code.

    Raises ValueError when the code carries no @TC- identifier.
    """
    tc_match = re.search(r"@(TC-\S+)", feature_code)
    if not tc_match:
        raise ValueError(
            "No test case ID (@TC-) found in generated response. "
            "AI must always generate a test case with format @TC-{section}-{entity}-{number}"
        )

    tags = [tag for tag in re.findall(r"@\S+", feature_code) if not tag.startswith("@TC-")]
    scenario_match = re.search(r"Scenario(?: Outline)?:\s*(.+?)(?:\n|$)", feature_code, re.IGNORECASE)
    name = scenario_match.group(1).strip() if scenario_match else "AI Generated Test Case"
    test_type = TestType.NEGATIVE if any("negative" in tag for tag in tags) else TestType.POSITIVE

    return TestCaseCreate(
        test_case_id=tc_match.group(1),
        section=section,
        entity_name=entity_name,
        name=name,
        description=name,
        method=_http_method(requirements, tags),
        test_type=test_type,
        tags=tags,
        scenario=feature_code.strip(),
    )

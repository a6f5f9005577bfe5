from pathlib import Path
from typing import Dict

_MISSING_PATH = "Does not exist"


def _current_files(paths: Dict[str, Path], contents: Dict[str, str]) -> str:
    feature_path = str(paths["feature"]) if contents.get("feature") else _MISSING_PATH
    steps_path = str(paths["steps"]) if contents.get("steps") else _MISSING_PATH
    return f"""CURRENT FILES INCLUDED IN PROMPT:

=== FEATURE FILE ({feature_path}) ===
{contents.get("feature") or "No feature file exists for this entity"}

=== STEPS FILE ({steps_path}) ===
{contents.get("steps") or "No steps file exists for this entity"}"""


def build_generation_prompt(
    entity_name: str,
    section: str,
    operation: str,
    requirements: str,
    paths: Dict[str, Path],
    contents: Dict[str, str],
) -> str:
    return f"""Generate tests for "{entity_name}" ({section}).

OPERATION: {operation}
REQUIREMENTS: {requirements}

{_current_files(paths, contents)}

DETAILED INSTRUCTIONS:

1. **ANALYSIS OF EXISTING FILES:**
   - Review the FEATURE FILE to see what scenarios already exist
   - Review the STEPS FILE to see what steps are already implemented
   - DO NOT duplicate existing scenarios or steps
   - Identify the next available incremental ID

2. **GENERATION OF NEW CONTENT:**
   - If no feature file exists: Create a new one with Gherkin scenarios
   - If feature file exists: Add only the requested new scenario
   - If no steps file exists: Create a new one with Cucumber steps
   - If steps file exists: Add only the missing steps

3. **STRICT RULES:**
   - REST APIs ONLY
   - DO NOT include "Feature:" or routes in the response
   - Use existing API clients (ProductClient, etc.)
   - Respect sections: Given before "// When steps", When before "// Then steps"
   - Add feature tag and incremental ID: @TC-{section}-{{entityName}}-{{Number}}
   - DO NOT include duplicate imports
   - Maintain existing format and structure
   - Use specific imports only if necessary

4. **MANDATORY RESPONSE FORMAT:**
   YOU MUST use exactly this format for the system to process your response:

   ***Features:***
   [Here goes the complete feature/scenario code]

   ***Steps:***
   [Here goes the steps code]

   - If you only add feature: Leave ***Steps:*** empty
   - If you only add steps: Leave ***Features:*** empty
   - If you add both: Include both blocks
   - DO NOT include other markers or comments outside these blocks
   - DO NOT include explanatory comments outside the blocks

5. **SPECIFIC STRUCTURE:**
   - FEATURE: Include tags (@create, @smoke, etc.) and the complete scenario
   - STEPS: Include only the new step, without imports if they already exist
   - Maintain exact indentation and format of the existing file

Generate ONLY the necessary code to complete the requested operation using the specified format."""


def build_suggestion_prompt(
    entity_name: str,
    section: str,
    requirements: str,
    paths: Dict[str, Path],
    contents: Dict[str, str],
) -> str:
    return f"""Generate 5 test case suggestions for "{entity_name}" ({section}).

USER REQUIREMENTS: {requirements}

{_current_files(paths, contents)}

DETAILED INSTRUCTIONS:

1. **ANALYSIS OF EXISTING FILES:**
   - Review the FEATURE FILE to see what scenarios already exist
   - Review the STEPS FILE to see what steps are already implemented
   - DO NOT suggest test cases that already exist
   - Identify coverage areas that might be missing

2. **SUGGESTION GENERATION:**
   - Generate EXACTLY 5 suggestions
   - Each suggestion must be unique and add value
   - Focus on edge cases, validations, and error scenarios
   - Consider positive and negative cases
   - Keep suggestions concise but informative

3. **STRICT RULES:**
   - REST APIs ONLY
   - DO NOT duplicate existing scenarios
   - Suggestions must be specific and actionable
   - Focus on code coverage and edge cases

4. **MANDATORY RESPONSE FORMAT:**
   YOU MUST use exactly this format for the system to process your response:

   ***Suggestion 1:***
   **Short Prompt:** [Short and descriptive prompt]
   **Short Description:** [Brief test case description]
   **Detailed Description:** [Detailed description explaining purpose and coverage]

   ***Suggestion 2:***
   **Short Prompt:** [Short and descriptive prompt]
   **Short Description:** [Brief test case description]
   **Detailed Description:** [Detailed description explaining purpose and coverage]

   [Continue for all 5 suggestions...]

5. **SPECIFIC STRUCTURE:**
   - SHORT PROMPT: Maximum 10 words, clear and direct
   - SHORT DESCRIPTION: Maximum 20 words, explains what it validates
   - DETAILED DESCRIPTION: Maximum 100 words, explains purpose, coverage and value

Generate ONLY the 5 suggestions using the specified format. DO NOT include other comments or explanations outside the required format."""

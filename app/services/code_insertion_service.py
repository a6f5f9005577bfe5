import re
from pathlib import Path
from typing import Dict, List, Optional
import structlog
from app.models.schemas import CodeInsertion, GeneratedCode, InsertionResult

logger = structlog.get_logger()

_STEP_START = re.compile(r"^\s*(Given|When|Then)\s*\(")
_STEP_PATTERN = re.compile(r"(Given|When|Then)\(\s*['\"`]([^'\"`]+)['\"`]")
_SECTION_END = {
    "Given": "// End of Given steps",
    "When": "// End of When steps",
    "Then": "// End of Then steps",
}


def split_step_blocks(steps_code: str) -> Dict[str, str]:
    """Group step definitions by keyword, dropping imports"""
    blocks: Dict[str, List[str]] = {}
    current: Optional[str] = None
    for line in steps_code.splitlines():
        stripped = line.strip()
        if stripped.startswith("import "):
            continue
        start = _STEP_START.match(line)
        if start:
            current = start.group(1)
        if current is None:
            continue
        blocks.setdefault(current, []).append(line)
    return {keyword: "\n".join(lines).strip() for keyword, lines in blocks.items() if "".join(lines).strip()}


class CodeInsertionService:
    """Places generated scenarios and step definitions into workspace files"""

    def determine_insertions(self, code: GeneratedCode, feature_path: Path, steps_path: Path) -> List[CodeInsertion]:
        insertions = []

        if code.feature:
            line_count = self._line_count(feature_path)
            insertions.append(
                CodeInsertion(
                    file=str(feature_path),
                    line=line_count + 1,
                    content="\n" + code.feature,
                    type="scenario",
                    description="Append new scenario",
                )
            )

        if code.steps:
            insertions.extend(self._step_insertions(code.steps, steps_path))

        logger.info("Insertions determined", count=len(insertions))
        return insertions

    def _line_count(self, path: Path) -> int:
        if not path.is_file():
            return 0
        return len(path.read_text(encoding="utf-8").split("\n"))

    def _step_insertions(self, steps_code: str, steps_path: Path) -> List[CodeInsertion]:
        lines = steps_path.read_text(encoding="utf-8").split("\n") if steps_path.is_file() else []
        existing = set(m.group(2) for m in _STEP_PATTERN.finditer("\n".join(lines)))

        insertions = []
        for keyword, block in split_step_blocks(steps_code).items():
            pattern = _STEP_PATTERN.search(block)
            if pattern and pattern.group(2) in existing:
                logger.info("Step already exists, skipping", keyword=keyword, step=pattern.group(2))
                continue

            marker = _SECTION_END[keyword]
            line = len(lines) + 1
            for index, text in enumerate(lines):
                if text.strip() == marker:
                    line = index + 1
                    break
            insertions.append(
                CodeInsertion(
                    file=str(steps_path),
                    line=line,
                    content="\n" + block,
                    type="step",
                    description=f"Insert new {keyword}",
                )
            )
        return insertions

    def insert_code(self, insertions: List[CodeInsertion], generation_id: str) -> InsertionResult:
        """Apply insertions; a missing file is reported, never raised"""
        result = InsertionResult()
        # Bottom-up per file so earlier line numbers stay valid
        ordered = sorted(insertions, key=lambda i: (i.file, -i.line))
        for insertion in ordered:
            try:
                error = self._insert(insertion)
            except OSError as e:
                error = f"Error inserting into {insertion.file}: {e}"
            if error:
                logger.error("Code insertion failed", generation_id=generation_id, file=insertion.file, error=error)
                result.errors.append(error)
            elif insertion.file not in result.modified_files:
                result.modified_files.append(insertion.file)

        result.success = not result.errors
        logger.info(
            "Code insertion completed",
            generation_id=generation_id,
            modified_files=len(result.modified_files),
            errors=len(result.errors),
        )
        return result

    def _insert(self, insertion: CodeInsertion) -> Optional[str]:
        path = Path(insertion.file)
        if not path.is_file():
            return f"File not found: {insertion.file}"

        lines = path.read_text(encoding="utf-8").split("\n")
        if insertion.line > len(lines):
            lines.append(insertion.content)
        else:
            lines.insert(insertion.line - 1, insertion.content)
        path.write_text("\n".join(lines), encoding="utf-8")
        return None

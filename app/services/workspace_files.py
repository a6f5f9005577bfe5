from pathlib import Path
from typing import Dict, Optional
import structlog
from app.models.schemas import Endpoint, Project

logger = structlog.get_logger()

ARTIFACT_KINDS = ("feature", "steps")


def default_artifact_path(kind: str, section: str, entity_name: str) -> str:
    entity = entity_name.lower()
    if kind == "feature":
        return f"src/features/{section}/{entity}.feature"
    return f"src/steps/{section}/{entity}.steps.ts"


def artifact_paths(project: Project, endpoint: Optional[Endpoint], section: str, entity_name: str) -> Dict[str, Path]:
    """Absolute feature/steps paths for an entity.

    Paths registered on the endpoint win; the conventional layout fills the gaps.
    """
    registered = (endpoint.generated_artifacts if endpoint else None) or {}
    paths = {}
    for kind in ARTIFACT_KINDS:
        relative = registered.get(kind) or default_artifact_path(kind, section, entity_name)
        paths[kind] = Path(project.path) / relative
    return paths


def read_text_if_exists(path: Path) -> str:
    if not path.is_file():
        logger.warning("Artifact file not found", path=str(path))
        return ""
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read artifact file", path=str(path), error=str(e))
        return ""
    logger.info("Artifact file read", path=str(path), characters=len(content))
    return content

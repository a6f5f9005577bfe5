from pathlib import Path
from typing import Optional
import structlog
from dotenv import dotenv_values, set_key
from app.repositories.interfaces.credential_store import ICredentialStore

logger = structlog.get_logger()

API_KEY_NAME = "OPENAI_API_KEY"


class EnvFileCredentialStore(ICredentialStore):
    """Keeps the OpenAI key in a dotenv file shared with the test workspaces"""

    def __init__(self, env_file: str):
        path = Path(env_file)
        if not path.is_absolute():
            path = (Path.cwd() / path).resolve()
        self.env_file = path

    def get(self) -> Optional[str]:
        if not self.env_file.exists():
            return None
        try:
            values = dotenv_values(self.env_file)
        except OSError as e:
            logger.error("Error reading OpenAI API key", path=str(self.env_file), error=str(e))
            return None
        value = (values.get(API_KEY_NAME) or "").strip()
        return value or None

    def set(self, value: str) -> None:
        if not value or not value.strip():
            raise ValueError("API key is required")
        self.env_file.parent.mkdir(parents=True, exist_ok=True)
        if not self.env_file.exists():
            self.env_file.touch()
        # set_key rewrites only our entry and keeps the rest of the file
        set_key(str(self.env_file), API_KEY_NAME, value.strip(), quote_mode="never")
        logger.info("OpenAI API key saved", path=str(self.env_file))

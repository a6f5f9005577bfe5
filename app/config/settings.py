from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # API Configuration
    debug: bool = False
    environment: str = "development"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_prefix: str = "/api/v1"

    # Credential file (the OpenAI key is read from here on every operation, not from env)
    credentials_env_file: str = "./data/workspaces/.env"

    # OpenAI Assistants Configuration
    openai_base_url: Optional[str] = None
    assistant_model: str = "gpt-4o-mini"
    assistant_name_prefix: str = "API-Test-Bot"
    openai_timeout_seconds: float = 60.0
    openai_max_retries: int = 2

    # Thread lifecycle
    thread_max_messages: int = 1000
    # Retention used by maintenance cleanup (createThread already keeps a single thread)
    threads_to_keep: int = 3

    # Run polling: 60 attempts x 5 seconds
    run_poll_interval_seconds: float = 5.0
    run_max_wait_seconds: float = 300.0

    # Serialize assistant/thread/message acquisition per project
    serialize_project_sessions: bool = True

    # Database Configuration
    database_url: str = "sqlite:///./data/testgen.db"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()

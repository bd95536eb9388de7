"""Application configuration."""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Environment
    env: str = os.getenv("APP_ENV", "development")
    api_secret_key: str = os.getenv("API_SECRET_KEY", "dev-secret-key")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Task store and run directories
    minion_home: Path = Path(
        os.getenv("MINION_HOME", str(Path.home() / ".minion"))
    ).expanduser()

    # LLM
    llm_provider: str = os.getenv("LLM_PROVIDER", "openai")
    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o")
    llm_api_key: str = os.getenv("LLM_API_KEY", "")
    llm_base_url: str | None = os.getenv("LLM_BASE_URL") or None
    llm_timeout: float = float(os.getenv("LLM_TIMEOUT", "300"))
    llm_max_tokens: int = int(os.getenv("LLM_MAX_TOKENS", "8192"))

    # Sandbox
    sandbox_image: str = os.getenv("SANDBOX_IMAGE", "minion-base")
    sandbox_memory: str = os.getenv("SANDBOX_MEMORY", "4g")
    sandbox_cpus: float = float(os.getenv("SANDBOX_CPUS", "2"))
    sandbox_network: str = os.getenv("SANDBOX_NETWORK", "bridge")
    sandbox_command: str = os.getenv("SANDBOX_COMMAND", "minion-sandbox")

    # Agent budgets
    agent_max_iterations: int = int(os.getenv("AGENT_MAX_ITERATIONS", "50"))
    agent_timeout: int = int(os.getenv("AGENT_TIMEOUT", "30"))  # minutes
    agent_max_token_cost: int = int(os.getenv("AGENT_MAX_TOKEN_COST", "0"))

    # Container presets (None = preset default)
    git_user_name: str | None = os.getenv("MINION_GIT_USER_NAME") or None
    git_user_email: str | None = os.getenv("MINION_GIT_USER_EMAIL") or None
    timezone: str | None = os.getenv("MINION_TIMEZONE") or None
    locale: str | None = os.getenv("MINION_LOCALE") or None

    # Orchestration
    max_concurrent_tasks: int = int(os.getenv("MINION_MAX_CONCURRENT_TASKS", "4"))
    status_staleness_seconds: int = int(os.getenv("MINION_STATUS_STALENESS", "0"))

    @property
    def tasks_file(self) -> Path:
        return self.minion_home / "tasks.json"

    @property
    def runs_dir(self) -> Path:
        return self.minion_home / "runs"

    def preset_overrides(self) -> dict[str, str]:
        """User-configured preset values keyed by preset key."""
        overrides = {
            "git.userName": self.git_user_name,
            "git.userEmail": self.git_user_email,
            "timezone": self.timezone,
            "locale": self.locale,
        }
        return {key: value for key, value in overrides.items() if value}


settings = Settings()

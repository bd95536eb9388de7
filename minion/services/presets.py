"""Container presets and the credential record handed to the sandbox."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import set_key
from pydantic import BaseModel, Field

from minion.core.config import Settings
from minion.llm.aliases import resolve_provider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContainerPreset:
    key: str  # config key, e.g. "git.userName"
    description: str
    default: str
    env_var: str  # variable written to the .env file


CONTAINER_PRESETS: tuple[ContainerPreset, ...] = (
    ContainerPreset("git.userName", "Author name for commits made in the sandbox", "Minion Agent", "GIT_AUTHOR_NAME"),
    ContainerPreset("git.userEmail", "Author email for commits made in the sandbox", "minion@localhost", "GIT_AUTHOR_EMAIL"),
    ContainerPreset("timezone", "Sandbox time zone", "UTC", "TZ"),
    ContainerPreset("locale", "Sandbox locale", "en_US.UTF-8", "LANG"),
)


def resolve_presets(overrides: dict[str, str] | None = None) -> dict[str, str]:
    """Merge preset defaults with user overrides into env var assignments."""
    overrides = overrides or {}
    return {p.env_var: overrides.get(p.key) or p.default for p in CONTAINER_PRESETS}


class SandboxCredentials(BaseModel):
    """Everything the sandbox reads from its environment, resolved once."""

    llm_provider: str
    llm_model: str
    llm_api_key: str = ""
    llm_base_url: str | None = None
    llm_timeout: float = 300.0
    llm_max_tokens: int = 8192
    max_token_cost: int = 0
    presets: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SandboxCredentials":
        resolved = resolve_provider(settings.llm_provider, settings.llm_base_url)
        return cls(
            llm_provider=resolved.provider,
            llm_model=settings.llm_model,
            llm_api_key=settings.llm_api_key,
            llm_base_url=resolved.base_url,
            llm_timeout=settings.llm_timeout,
            llm_max_tokens=settings.llm_max_tokens,
            max_token_cost=settings.agent_max_token_cost,
            presets=resolve_presets(settings.preset_overrides()),
        )

    def to_env(self) -> dict[str, str]:
        return {
            "LLM_PROVIDER": self.llm_provider,
            "LLM_MODEL": self.llm_model,
            "LLM_API_KEY": self.llm_api_key,
            "LLM_BASE_URL": self.llm_base_url or "",
            "LLM_TIMEOUT": str(self.llm_timeout),
            "LLM_MAX_TOKENS": str(self.llm_max_tokens),
            "AGENT_MAX_TOKEN_COST": str(self.max_token_cost),
            **self.presets,
        }

    def write(self, path: str | Path) -> None:
        """Write the record as a dotenv file readable only by the owner."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("")
        os.chmod(path, 0o600)
        for key, value in self.to_env().items():
            set_key(str(path), key, value, quote_mode="always")
        logger.info(f"Wrote sandbox credentials for {self.llm_provider}/{self.llm_model} to {path}")

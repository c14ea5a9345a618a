"""Provider configuration tree (the ``ai`` section of the settings)."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ProviderInstanceConfig(BaseModel):
    """One deployment/account of a provider: its own keys, models and limits."""

    name: str
    enabled: bool = True
    base_url: str = ""
    keys: list[str] = Field(default_factory=list)  # rotated round-robin
    models: list[str] = Field(default_factory=list)  # rotated round-robin unless the request names one
    max_tokens: int = 0  # 0 = vendor default
    temperature: float = 0.0
    top_p: float = 0.0  # 0 = vendor default
    top_k: int = 0  # Gemini only, 0 = vendor default
    timeout: int = 60  # seconds
    max_retries: int = 3
    rate_limit: str = "60/min"


class ProviderConfig(BaseModel):
    enabled: bool = False
    instances: list[ProviderInstanceConfig] = Field(default_factory=list)


class PromptConfig(BaseModel):
    dir: str = "configs/prompts"


class AIConfig(BaseModel):
    """AI service configuration: provider map (``openai``, ``gemini``) and prompt templates."""

    providers: dict[str, ProviderConfig] = Field(default_factory=dict)
    prompt: PromptConfig = Field(default_factory=PromptConfig)

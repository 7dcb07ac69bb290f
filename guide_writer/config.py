from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field
import yaml

class GenerationConfig(BaseModel):
    base_url: str = Field(default="https://api.openai.com/v1")
    api_key: str = Field(default="")
    model: str = Field(default="gpt-4o")
    temperature: float = Field(default=0.5, ge=0, le=2)
    max_tokens: int = Field(default=4000, gt=0)
    timeout_seconds: float = Field(default=120.0, gt=0)

class ServicesConfig(BaseModel):
    persistence_url: str = Field(default="http://admin-api:3005/api")
    standards_url: str = Field(default="http://mcp-standards:3002")
    research_url: str = Field(default="http://mcp-research:3003")
    api_token: Optional[str] = Field(default=None)
    timeout_seconds: float = Field(default=30.0, gt=0)

class RetryConfig(BaseModel):
    max_attempts: int = Field(default=3, gt=0)
    backoff_ms: int = Field(default=1000, ge=0)

class RevisionConfig(BaseModel):
    max_attempts: int = Field(default=3, gt=0)
    approval_threshold: float = Field(default=90, ge=0, le=100)
    coverage_threshold: float = Field(default=0.5, gt=0, le=1)

class PipelineConfig(BaseModel):
    max_parallel_chapters: int = Field(default=1, gt=0)
    job_timeout_seconds: float = Field(default=3600.0, gt=0)
    research_limit: int = Field(default=5, gt=0)
    history_digest_chars: int = Field(default=1000, ge=0)
    draft_context_chars: int = Field(default=3000, ge=0)
    evidence_chars: int = Field(default=2000, ge=0)
    code_max_corrections: int = Field(default=3, ge=0)
    enable_code: bool = Field(default=True)

class Config(BaseModel):
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    services: ServicesConfig = Field(default_factory=ServicesConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    revision: RevisionConfig = Field(default_factory=RevisionConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    log_level: str = Field(default="INFO")

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self, path: Path):
        with open(path, "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False)

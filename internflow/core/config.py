"""Configuration models and YAML loader for InternFlow."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

KNOWN_PROVIDERS = {"anthropic", "gemini", "ollama", "openai"}

DEFAULT_BODY_TEMPLATE = (
    "<p>{{opening_line}}, hello!</p>\n"
    "<p>My name is {{name}}, I studied {{undergrad_major}} at {{undergrad}}. "
    "{{master_info}}{{job_source_line}}, and my background matches the role "
    "closely, so please find my resume attached.</p>\n"
    "<p>I can work {{frequency}} for {{availability}} and can start {{arrival}}.</p>\n"
    "<p>{{praise_line}}, and I would be glad to contribute while learning "
    "from the team.</p>\n"
    "<p>Thank you for your time, I look forward to hearing from you.</p>\n"
    "<p>Best regards,<br>{{name}}</p>\n"
)


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/internflow.db"


class LLMConfig(BaseModel):
    """Model selection and credentials, passed explicitly to the ingest step."""

    provider: str = "gemini"
    model: str | None = None
    temperature: float = Field(default=0.5, ge=0.0, le=2.0)
    api_key: str | None = None

    @field_validator("provider")
    @classmethod
    def provider_known(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in KNOWN_PROVIDERS:
            msg = f"provider must be one of {sorted(KNOWN_PROVIDERS)}, got '{v}'"
            raise ValueError(msg)
        return v


class CandidateProfile(BaseModel):
    """The applicant: feeds both the system prompt and the mail template."""

    name: str
    undergrad: str
    undergrad_major: str = ""
    master: str = ""
    master_major: str = ""
    master_year: str = ""
    current_grade: str = ""
    availability: str = "6 months"
    frequency: str = "5 days a week"
    arrival: str = "immediately"
    filter_criteria: str = ""
    sender_email: str = ""

    @property
    def base_school(self) -> str:
        return self.undergrad

    @property
    def full_school(self) -> str:
        return f"{self.undergrad}&{self.master}"


class MailConfig(BaseModel):
    """Send endpoint and batch pacing."""

    endpoint: str = "http://localhost:3000/api/send_email"
    from_name: str = ""
    smtp_user: str = ""
    smtp_password: str = ""
    delay_seconds: float = Field(default=10.0, ge=0.0)
    timeout_seconds: float = Field(default=30.0, gt=0.0)
    body_template: str = DEFAULT_BODY_TEMPLATE
    body_template_path: str | None = None

    @model_validator(mode="after")
    def load_template_file(self) -> "MailConfig":
        if self.body_template_path:
            path = Path(self.body_template_path)
            if not path.exists():
                msg = f"Mail template not found: {path}"
                raise ValueError(msg)
            self.body_template = path.read_text()
        return self


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    owner_id: str
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    candidate: CandidateProfile
    mail: MailConfig = Field(default_factory=MailConfig)

    @field_validator("owner_id")
    @classmethod
    def owner_not_empty(cls, v: str) -> str:
        if not v.strip():
            msg = "owner_id must not be empty"
            raise ValueError(msg)
        return v.strip()

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)

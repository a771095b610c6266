from __future__ import annotations

import os
from pathlib import Path
from typing import List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


class SecretRef(BaseModel):
    """Reference to a secret source without storing the secret in code.

    Pre-acquired access tokens should be injected through environment variables.
    Inline values are accepted for local experiments only.
    """

    env: Optional[str] = Field(
        default=None, description="Environment variable name containing the secret"
    )
    value: Optional[str] = Field(
        default=None,
        description="Inline value (use only for local development; avoid in production)",
    )

    model_config = ConfigDict(extra="forbid")

    def resolve(self) -> str:
        if self.env:
            env_value = os.getenv(self.env)
            if env_value:
                return env_value
            raise ValueError(f"Environment variable {self.env} is not set")
        if self.value:
            return self.value
        raise ValueError("No secret reference provided for resolution")


class DeviceCodeAuth(BaseModel):
    type: Literal["device_code"]
    client_id: str
    authority_host: str = Field(
        default="https://login.microsoftonline.com",
        description="AAD authority host",
    )

    model_config = ConfigDict(extra="forbid")


class InteractiveBrowserAuth(BaseModel):
    type: Literal["interactive_browser"]
    client_id: str
    redirect_uri: Optional[str] = Field(
        default=None, description="Redirect URI registered for the public client"
    )

    model_config = ConfigDict(extra="forbid")


class AccessTokenAuth(BaseModel):
    type: Literal["access_token"]
    token: SecretRef

    model_config = ConfigDict(extra="forbid")


AuthConfig = Union[DeviceCodeAuth, InteractiveBrowserAuth, AccessTokenAuth]


class SnippetAppConfig(BaseModel):
    tenant_id: str = Field(
        default="common",
        description="Tenant ID or 'common'/'organizations' for multi-tenant sign-in",
    )
    auth: AuthConfig = Field(discriminator="type")
    scopes: List[str] = Field(
        default_factory=lambda: ["User.Read", "User.ReadBasic.All", "GroupMember.Read.All"]
    )
    graph_base_url: str = Field(
        default="https://graph.microsoft.com",
        description="Graph endpoint. Override for national clouds if needed.",
    )
    api_version: Literal["v1.0", "beta"] = "v1.0"
    timeout: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=0)

    model_config = ConfigDict(extra="forbid")

    @field_validator("scopes")
    @classmethod
    def ensure_scopes(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("At least one scope must be provided")
        return value

    @field_validator("graph_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    def qualified_scopes(self) -> List[str]:
        return [
            scope if "://" in scope else f"{self.graph_base_url}/{scope}"
            for scope in self.scopes
        ]

    @classmethod
    def load(cls, path: Union[str, Path]) -> "SnippetAppConfig":
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}

        return cls(**raw)

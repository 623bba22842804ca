"""Configuration models for the influence MCP server."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, Field

EMBEDDING_DIMENSION = 1536


def _first(environ: Mapping[str, str], *names: str) -> str | None:
    for name in names:
        value = environ.get(name)
        if value:
            return value
    return None


def _flag(value: str | None) -> bool:
    return (value or "false").strip().lower() in {"1", "true", "yes", "on"}


class GatewayConfig(BaseModel):
    """Configures the PostgREST-style RPC gateway."""

    base_url: str | None = None
    api_key: str | None = None
    timeout_seconds: float = Field(default=30.0, gt=0.0)
    body_excerpt_chars: int = Field(default=500, ge=0)


class EmbeddingConfig(BaseModel):
    """Configures the text embedding provider."""

    provider: str = "openai"
    api_key: str | None = None
    model: str = "text-embedding-3-small"
    endpoint: str = "https://api.openai.com/v1/embeddings"
    dimension: int = Field(default=EMBEDDING_DIMENSION, ge=1)
    timeout_seconds: float = Field(default=30.0, gt=0.0)


class DatabaseConfig(BaseModel):
    """Configures the shared Postgres pool used by the `sql` tool."""

    host: str | None = None
    port: int = Field(default=5432, ge=1, le=65535)
    name: str | None = None
    user: str | None = None
    password: str | None = None
    max_size: int = Field(default=5, ge=1)
    acquire_timeout_seconds: float = Field(default=5.0, gt=0.0)
    idle_lifetime_seconds: float = Field(default=30.0, gt=0.0)
    allow_write: bool = False

    @property
    def configured(self) -> bool:
        return all((self.host, self.name, self.user, self.password))


class ServerConfig(BaseModel):
    """Configures server identity, the exposed tool surface and budgets."""

    name: str = "influence-mcp"
    version: str = "1.0.0"
    expose_domain_tools: bool = False
    tool_timeout_seconds: float = Field(default=60.0, gt=0.0)
    log_level: str = "INFO"
    log_file: str | None = None


class Settings(BaseModel):
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from environment variables.

        Missing credentials are not an error here; tools that need them raise
        `ConfigurationMissing` when they are invoked.
        """

        env = os.environ if environ is None else environ

        gateway = GatewayConfig(
            base_url=_first(env, "SUPABASE_SECONDARY_URL", "CAMPAIGN_FINANCE_SUPABASE_URL"),
            api_key=_first(
                env,
                "SUPABASE_SECONDARY_SERVICE_ROLE_KEY",
                "CAMPAIGN_FINANCE_SUPABASE_SERVICE_KEY",
                "SUPABASE_SECONDARY_ANON_KEY",
                "CAMPAIGN_FINANCE_SUPABASE_ANON_KEY",
            ),
            timeout_seconds=float(env.get("RPC_TIMEOUT_SECONDS", "30")),
        )
        embedding = EmbeddingConfig(
            provider=env.get("EMBEDDING_PROVIDER", "openai").strip().lower(),
            api_key=_first(env, "OPENAI_API_KEY"),
            model=env.get("EMBEDDING_MODEL", "text-embedding-3-small"),
            endpoint=env.get("EMBEDDING_ENDPOINT", "https://api.openai.com/v1/embeddings"),
        )
        database = DatabaseConfig(
            host=_first(env, "DB_HOST"),
            port=int(env.get("DB_PORT", "5432")),
            name=_first(env, "DB_NAME"),
            user=_first(env, "DB_USER"),
            password=_first(env, "DB_PASSWORD"),
            allow_write=_flag(env.get("SQL_TOOL_ALLOW_WRITE")),
        )
        server = ServerConfig(
            expose_domain_tools=_flag(env.get("MCP_EXPOSE_DOMAIN_TOOLS")),
            tool_timeout_seconds=float(env.get("TOOL_TIMEOUT_SECONDS", "60")),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            log_file=_first(env, "LOG_FILE"),
        )
        return cls(gateway=gateway, embedding=embedding, database=database, server=server)

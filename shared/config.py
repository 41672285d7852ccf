"""Configuration management for the documentation assistant."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_ANSWER_TEMPLATE = "{prompt}\n Context: {context}\n Be concise"


class SourceConfig(BaseModel):
    """Configuration for the documentation source."""

    type: str = Field(
        default="github", description="Source type: 'github' or 'local'"
    )
    local_dir: Optional[str] = Field(
        default=None, description="Directory to read documents from (local source)"
    )
    github_owner: Optional[str] = Field(
        default=None, description="Owner of the documentation repository"
    )
    github_repo: Optional[str] = Field(
        default=None, description="Name of the documentation repository"
    )
    github_token: Optional[str] = Field(
        default=None, description="Personal access token for the GitHub API"
    )
    github_ref: Optional[str] = Field(
        default=None, description="Branch or ref to follow. Defaults to the repo HEAD"
    )
    api_url: str = Field(
        default="https://api.github.com", description="GitHub API base URL"
    )
    docs_subdir: Optional[str] = Field(
        default=None, description="Subdirectory of the tree holding the documents"
    )

    def get_local_path(self) -> Optional[Path]:
        """Get the local source directory as a resolved Path, if any."""
        if not self.local_dir:
            return None
        return Path(self.local_dir).expanduser().resolve()


class IndexingConfig(BaseModel):
    """Configuration for document selection."""

    extensions: List[str] = Field(
        default_factory=lambda: [".md"],
        description="File suffixes treated as documentation",
    )
    excluded_dirs: List[str] = Field(
        default_factory=lambda: ["templates"],
        description="Directory names (case-insensitive) whose contents are skipped",
    )


class VectorStoreConfig(BaseModel):
    """Configuration for the ChromaDB vector index."""

    collection_name: str = Field(default="brain", description="Base collection name")
    url: Optional[str] = Field(
        default=None, description="URL of a remote Chroma server"
    )
    api_key: Optional[str] = Field(
        default=None, description="Bearer token for the remote Chroma server"
    )
    persist_directory: Optional[str] = Field(
        default=None,
        description="Directory for an embedded persistent Chroma (in-memory if unset)",
    )


class BackendConfig(BaseModel):
    """Selects the embedding/generation backend."""

    provider: str = Field(
        default="openai", description="Backend provider: 'openai' or 'local'"
    )
    wrapper_class: Optional[str] = Field(
        default=None,
        description="Dotted path to a custom LLMBackend subclass taking the Config",
    )


class EmbeddingModelConfig(BaseModel):
    """Configuration for embedding models."""

    model_name: str = Field(
        default="text-embedding-ada-002", description="Model name or identifier"
    )
    dimension: int = Field(
        default=1536, description="Vector size produced by the remote model"
    )
    endpoint_url: Optional[str] = Field(
        default=None, description="OpenAI-compatible API base URL"
    )
    api_key: Optional[str] = Field(
        default=None, description="API key for the OpenAI-compatible API"
    )


class GenerationModelConfig(BaseModel):
    """Configuration for text generation models."""

    model_name: str = Field(
        default="gpt-3.5-turbo",
        description="Chat model (OpenAI) or LiteLLM model identifier (local)",
    )
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"temperature": 0.0},
        description="Extra parameters passed to the completion call",
    )


class WatcherConfig(BaseModel):
    """Configuration for file watching of local sources."""

    enabled: bool = Field(default=False, description="Enable file watching")
    debounce_seconds: float = Field(
        default=2, description="Quiet period before a change triggers a rebuild"
    )


class ServerConfig(BaseModel):
    """Configuration for the server."""

    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    static_dir: Optional[str] = Field(
        default="static", description="Directory served at '/' when it exists"
    )


class WebhookConfig(BaseModel):
    """Configuration for the GitHub webhook endpoint."""

    secret: Optional[str] = Field(
        default=None, description="Shared secret used to verify payload signatures"
    )


class Config(BaseModel):
    """Main configuration model."""

    source: SourceConfig = Field(default_factory=SourceConfig)
    indexing: IndexingConfig = Field(default_factory=IndexingConfig)
    vector_store: VectorStoreConfig = Field(default_factory=VectorStoreConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    embedding_model: EmbeddingModelConfig = Field(default_factory=EmbeddingModelConfig)
    generation_model: GenerationModelConfig = Field(
        default_factory=GenerationModelConfig
    )
    watcher: WatcherConfig = Field(default_factory=WatcherConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    prompts: Dict[str, Any] = Field(
        default_factory=dict, description="Loaded prompts from prompts.toml"
    )

    @classmethod
    def load_from_file(cls, config_path: str) -> "Config":
        """Load configuration from a TOML file."""
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_file, "r") as f:
            config_data = toml.load(f)

        return cls(**config_data)

    def get_answer_template(self) -> str:
        """The instruction template used to ground answers in a document."""
        try:
            return str(self.prompts["answer"]["template"])
        except (KeyError, TypeError):
            return DEFAULT_ANSWER_TEMPLATE


# Environment variable -> (section, field)
ENV_OVERRIDES = {
    "GITHUB_PERSONAL_ACCESS_TOKEN": ("source", "github_token"),
    "GITHUB_USERNAME": ("source", "github_owner"),
    "GITHUB_REPO": ("source", "github_repo"),
    "GITHUB_WEBHOOK_SECRET": ("webhook", "secret"),
    "CHROMA_URL": ("vector_store", "url"),
    "CHROMA_API_KEY": ("vector_store", "api_key"),
    "OPENAI_KEY": ("embedding_model", "api_key"),
    "OPENAI_API_KEY": ("embedding_model", "api_key"),
}


def apply_env_overrides(
    config: Config, environ: Optional[Dict[str, str]] = None
) -> Config:
    """Overlay secrets and endpoints from the environment onto the config."""
    env = os.environ if environ is None else environ
    for var, (section, field) in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            logger.debug(f"Using {var} from environment for {section}.{field}")
            setattr(getattr(config, section), field, value)
    return config


def load_config(
    config_dir: Optional[str] = None,
    app_config_path: Optional[str] = None,
    prompts_config_path: Optional[str] = None,
) -> Config:
    """Load all configurations, handling CLI overrides."""
    base_dir = Path(config_dir) if config_dir else Path("config")

    app_path = Path(app_config_path) if app_config_path else base_dir / "app.toml"
    prompts_path = (
        Path(prompts_config_path) if prompts_config_path else base_dir / "prompts.toml"
    )

    # An explicitly requested app config must exist; the default one may not.
    try:
        logger.info(f"Loading app config from: {app_path}")
        with open(app_path, "r") as f:
            app_data = toml.load(f)
    except FileNotFoundError:
        if app_config_path:
            logger.error(f"Application config file not found at {app_path}. Aborting.")
            raise
        logger.warning(
            f"Application config file not found at {app_path}. Using defaults."
        )
        app_data = {}

    try:
        logger.info(f"Loading prompts from: {prompts_path}")
        with open(prompts_path, "r") as f:
            prompts_data = toml.load(f)
    except FileNotFoundError:
        logger.warning(
            f"Prompts config file not found at {prompts_path}. Using built-in prompts."
        )
        prompts_data = {}

    config = Config(**app_data)
    config.prompts = prompts_data

    return apply_env_overrides(config)

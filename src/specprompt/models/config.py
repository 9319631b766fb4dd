"""Configuration models for specprompt."""

from pydantic import BaseModel, Field, HttpUrl, field_validator
from pathlib import Path
import yaml
import stat


DEFAULT_CONFIG_PATH = Path.home() / ".config" / "specprompt" / "config.yaml"

EXAMPLE_CONFIG = """\
llm:
  endpoint: https://api.openai.com/v1
  api_key: YOUR_API_KEY_HERE
  model: gpt-4o-mini

workspace:
  root: ~/projects/my-spec
  templates_dir: .gptools

generation:
  temperature: 0.2
"""


class LLMConfig(BaseModel):
    """Chat-completion server used to run templates."""

    endpoint: HttpUrl = Field(
        ...,
        description="Base URL of an OpenAI-compatible API or an Ollama server"
    )
    api_key: str = Field(..., description="Bearer token sent with every request")
    model: str = Field(..., description="Model name, e.g. 'gpt-4o-mini' or 'llama3'")
    num_ctx: int = Field(
        default=32768,
        ge=1024,
        description="Ollama context window in tokens (ignored by other servers)"
    )

    model_config = {"frozen": True}


class WorkspaceConfig(BaseModel):
    """Configuration for the specification workspace."""

    root: str = Field(
        default=".",
        validate_default=True,
        description="Workspace directory holding *.gpspec.md documents"
    )

    templates_dir: str = Field(
        default=".gptools",
        description="Directory of *.gptool.yaml templates, relative to root"
    )

    @field_validator('root')
    @classmethod
    def validate_root(cls, v: str) -> str:
        """Expand and resolve the root; it must be an existing directory."""
        root = Path(v).expanduser()
        if not root.exists():
            raise ValueError(f"Workspace path does not exist: {root}")
        if not root.is_dir():
            raise ValueError(f"Workspace path is not a directory: {root}")
        return str(root.resolve())

    model_config = {"frozen": True}


class GenerationConfig(BaseModel):
    """Configuration for generation requests."""

    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=2.0,
        description="Sampling temperature"
    )

    cancel_timeout: float = Field(
        default=5.0,
        gt=0.0,
        description="Seconds to wait for a cancelled request to tear down"
    )

    max_retries: int = Field(
        default=1,
        ge=0,
        le=5,
        description="Automatic retries on transient connection errors"
    )

    model_config = {"frozen": True}


def _check_private(path: Path) -> None:
    # The file holds an API key: owner access only
    mode = path.stat().st_mode
    if mode & (stat.S_IRWXG | stat.S_IRWXO):
        raise PermissionError(
            f"{path} is accessible by other users (mode {oct(mode & 0o777)}).\n"
            f"Run: chmod 600 {path}"
        )


class Config(BaseModel):
    """Root configuration: llm is required, the other sections have defaults."""

    llm: LLMConfig
    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)

    @classmethod
    def load(cls, path: Path) -> "Config":
        """
        Read and validate a YAML configuration file.

        Args:
            path: Configuration file (normally DEFAULT_CONFIG_PATH)

        Raises:
            FileNotFoundError: If the file is missing (the message shows an example)
            PermissionError: If group or others have any access to the file
            ValueError: If the YAML is empty, not a mapping or fails validation
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(
                f"Configuration file not found at {path}\n\n"
                f"Create it (mode 600) with content like:\n\n{EXAMPLE_CONFIG}"
            )
        _check_private(path)

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file is empty or not a mapping: {path}")
        return cls.model_validate(data)

    def with_workspace_root(self, root: Path) -> "Config":
        """Copy with workspace.root replaced (the --workspace option)."""
        workspace = WorkspaceConfig(root=str(root), templates_dir=self.workspace.templates_dir)
        return self.model_copy(update={"workspace": workspace})

    model_config = {"frozen": True}

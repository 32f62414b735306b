"""Settings resolution: env vars > .env > <project>/.taskbridge/config.toml > defaults."""

from functools import lru_cache
from pathlib import Path

import tomlkit
import typer
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict
from tomlkit.exceptions import TOMLKitError

CONFIG_DIR = ".taskbridge"
CONFIG_FILE = "config.toml"


class TaskbridgeSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TASKBRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    project_root: Path = Path(".")

    # Store locations, relative to project_root
    planning_file: Path = Path(".taskmaster/tasks/tasks.json")
    beads_file: Path = Path(".beads/issues.jsonl")
    link_store: Path = Path(f"{CONFIG_DIR}/links.json")

    # bd CLI
    bd_command: str = "bd"
    bd_timeout: float = 30
    issue_type: str = "task"  # type for issues created from Task Master tasks
    close_reason: str = "Synced from Task Master"

    log_level: str = "WARNING"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # config.toml values arrive as init kwargs; env must still win over them
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    def resolve(self, path: Path) -> Path:
        return path if path.is_absolute() else self.project_root / path

    @property
    def planning_path(self) -> Path:
        return self.resolve(self.planning_file)

    @property
    def beads_path(self) -> Path:
        return self.resolve(self.beads_file)

    @property
    def link_store_path(self) -> Path:
        return self.resolve(self.link_store)


def config_path(project_root: Path) -> Path:
    return project_root / CONFIG_DIR / CONFIG_FILE


@lru_cache(maxsize=8)
def _load_toml(path: Path) -> tomlkit.TOMLDocument:
    """Load a project config.toml, returning empty document if missing."""
    if not path.exists():
        return tomlkit.document()
    with path.open() as fh:
        return tomlkit.load(fh)


def get_settings(project: Path | None = None) -> TaskbridgeSettings:
    """Resolve settings for the project at `project` (default: cwd).

    Precedence (highest to lowest):
    1. TASKBRIDGE_* env vars
    2. .env in cwd
    3. <project>/.taskbridge/config.toml
    4. Field defaults
    """
    project_root = (project or Path.cwd()).expanduser().resolve()
    if not project_root.is_dir():
        typer.echo(f"Project directory '{project_root}' does not exist.")
        raise typer.Exit(1)

    path = config_path(project_root)
    try:
        toml_config = _load_toml(path)
    except TOMLKitError as exc:
        typer.echo(f"Could not parse {path}: {exc}")
        raise typer.Exit(1) from exc

    # Unknown keys are ignored; project_root always comes from the CLI.
    defaults = {k: v for k, v in toml_config.unwrap().items() if k in TaskbridgeSettings.model_fields}
    defaults["project_root"] = project_root
    settings = TaskbridgeSettings(**defaults)
    return settings.model_copy(update={"project_root": project_root})

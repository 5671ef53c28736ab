from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from retune.domain.constants import (
    DEFAULT_DAYS_TO_SIMULATE,
    DEFAULT_DECK_SIZE,
    DEFAULT_LOSS_AVERSION,
    DEFAULT_MAX_INTERVAL,
    DEFAULT_MAX_MINUTES_PER_DAY,
    FSRS_DEFAULT_WEIGHTS,
)
from retune.domain.stats.models import SimulationRequest


def config_file_path() -> Path:
    return Path.home() / ".config/retune/config.toml"


class AppConfig(BaseSettings):
    """
    Configuration model for retune.
    Supports loading from:
    1. Environment variables (RETUNE_*)
    2. Config file (~/.config/retune/config.toml)
    3. Manual overrides (CLI / HTTP request)
    """

    model_config = SettingsConfigDict(
        env_prefix="RETUNE_",
        extra="ignore",
    )

    # Backend
    backend: Literal["auto", "direct", "ankiconnect"] = "auto"
    anki_base: Path | None = None
    anki_connect_url: str = "http://localhost:8765"

    # Simulation defaults (Anki deck options)
    search: str = ""
    deck_size: int = Field(default=DEFAULT_DECK_SIZE, ge=1)
    days_to_simulate: int = Field(default=DEFAULT_DAYS_TO_SIMULATE, ge=0)
    max_minutes_of_study_per_day: int = Field(default=DEFAULT_MAX_MINUTES_PER_DAY, ge=0)
    max_interval: int = Field(default=DEFAULT_MAX_INTERVAL, ge=1)
    loss_aversion: float = Field(default=DEFAULT_LOSS_AVERSION, ge=0.0)
    weights: Annotated[list[float], NoDecode] = Field(
        default_factory=lambda: list(FSRS_DEFAULT_WEIGHTS)
    )

    # Engine tuning
    simulation_samples: int = Field(default=1, ge=1)
    simulation_seed: int = 42

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Overrides first, then env, then the TOML file
        config_file = config_file_path()
        if config_file.exists():
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=config_file),
            )
        return (init_settings, env_settings)

    @field_validator("anki_base", mode="before")
    @classmethod
    def resolve_anki_base(cls, v: Any) -> Path | None:
        if v:
            return Path(v).expanduser().resolve()
        return None

    @field_validator("weights", mode="before")
    @classmethod
    def parse_weights(cls, v: Any) -> Any:
        # Accept "0.4, 1.2, ..." from env vars and the CLI
        if isinstance(v, str):
            return [float(w) for w in v.replace(",", " ").split()]
        return v

    def to_request(self) -> SimulationRequest:
        return SimulationRequest(
            deck_size=self.deck_size,
            days_to_simulate=self.days_to_simulate,
            max_minutes_of_study_per_day=self.max_minutes_of_study_per_day,
            max_interval=self.max_interval,
            loss_aversion=self.loss_aversion,
            weights=tuple(self.weights),
            search=self.search,
        )


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/retune/config.toml (if exists)
    3. Environment variables (RETUNE_*)
    4. cli_overrides (passed from Typer or the HTTP request)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)

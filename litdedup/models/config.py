from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator, ConfigDict

from litdedup.models.batch_import import ImportOptions
from litdedup.models.checkpoint import CheckpointConfig
from litdedup.models.dedup import DetectionConfig


class CatalogProviderType(str, Enum):
    PUBMED = "pubmed"


class StoreSettings(BaseModel):
    """Where records are persisted"""

    path: str = Field("./data/records.json", min_length=1)
    project_id: Optional[str] = Field(
        default=None, description="Project scope for scans and imports"
    )


class CatalogSettings(BaseModel):
    """External catalog used to resolve identifier lists"""

    provider: CatalogProviderType = CatalogProviderType.PUBMED
    api_key: Optional[str] = Field(
        default=None, description="NCBI API key (raises the rate ceiling)"
    )
    email: Optional[str] = None
    tool: str = "litdedup"
    requests_per_second: Optional[float] = Field(
        default=None,
        gt=0,
        le=10,
        description="Override; defaults to 3 without an API key, 10 with one",
    )

    @field_validator("api_key", "email")
    @classmethod
    def unset_placeholder_is_none(cls, v: Optional[str]) -> Optional[str]:
        # Unset ${VAR} placeholders survive safe_substitute verbatim
        if v is None or not v.strip() or v.strip().startswith("${"):
            return None
        return v.strip()


class LoggingSettings(BaseModel):
    level: str = Field("INFO", pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    json_output: bool = False

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class AppConfig(BaseModel):
    """Top-level application configuration"""

    model_config = ConfigDict(protected_namespaces=())

    store: StoreSettings = Field(default_factory=StoreSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    import_settings: ImportOptions = Field(default_factory=ImportOptions)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    checkpoints: CheckpointConfig = Field(default_factory=CheckpointConfig)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

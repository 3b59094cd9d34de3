"""
Configuration Schemas.

One pydantic model per file in config/settings/:

    ApplicationSchema  - application.yaml
    LoggingSchema      - logging.yaml
    FeaturesSchema     - features.yaml

Unknown keys are rejected so a typo in a YAML file fails at startup.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _StrictBase(BaseModel):
    model_config = ConfigDict(extra="forbid")


# =============================================================================
# application.yaml
# =============================================================================


class ApiSchema(_StrictBase):
    base_url: str
    client_id: str


class TimeoutsSchema(_StrictBase):
    connect: int
    read: int


class PaginationSchema(_StrictBase):
    default_page_size: int = Field(ge=1)
    max_page_size: int = Field(ge=1)


class SortingSchema(_StrictBase):
    default_field: Literal["created_at", "updated_at", "title", "priority"]
    default_direction: Literal["asc", "desc"]


class ApplicationSchema(_StrictBase):
    name: str
    version: str
    description: str
    environment: str
    debug: bool
    api: ApiSchema
    timeouts: TimeoutsSchema
    pagination: PaginationSchema
    sorting: SortingSchema


# =============================================================================
# logging.yaml
# =============================================================================


class ConsoleHandlerSchema(_StrictBase):
    enabled: bool


class FileHandlerSchema(_StrictBase):
    enabled: bool
    path: str
    max_bytes: int
    backup_count: int


class LoggingHandlersSchema(_StrictBase):
    console: ConsoleHandlerSchema
    file: FileHandlerSchema


class LoggingSchema(_StrictBase):
    level: str
    format: Literal["json", "console"]
    handlers: LoggingHandlersSchema


# =============================================================================
# features.yaml
# =============================================================================


class FeaturesSchema(_StrictBase):
    demo_mode: bool
    demo_latency_ms: int = Field(default=0, ge=0)

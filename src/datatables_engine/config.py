"""Engine settings loaded with pydantic-settings.

Environment variables use the DATATABLES_ prefix.
Example: DATATABLES_CASE_INSENSITIVE=false, DATATABLES_DEBUG=true
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DataTablesSettings(BaseSettings):
    """Behaviour shared by every engine instance.

    Environment prefix: DATATABLES_
    """

    model_config = SettingsConfigDict(
        env_prefix="DATATABLES_",
        extra="ignore",
        frozen=True,
    )

    case_insensitive: bool = Field(
        default=True, description="Lower-case both sides when searching and ordering"
    )
    default_page_size: int = Field(
        default=10, ge=1, description="Page size used when the request length is not positive"
    )
    debug: bool = Field(
        default=False, description="Echo the request and executed queries in the response"
    )
    error_message: str = Field(
        default="Server error while processing the grid request.",
        description="Message returned in the error payload outside debug mode",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"


@lru_cache(maxsize=1)
def get_settings() -> DataTablesSettings:
    return DataTablesSettings()

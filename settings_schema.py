from pydantic import BaseModel, Field, ValidationError


class SettingsSchema(BaseModel):
    db_path: str = "workout.db"
    catalog_base_url: str = "https://exercisedb.p.rapidapi.com"
    catalog_host: str = "exercisedb.p.rapidapi.com"
    catalog_api_key: str | None = None
    catalog_timeout: float = Field(default=5.0, gt=0)
    catalog_cache_size: int = Field(default=512, ge=1)
    catalog_cache_ttl: float = Field(default=3600.0, gt=0)
    catalog_max_workers: int = Field(default=8, ge=1)
    log_level: str = "INFO"
    log_format: str = "text"
    rate_limit: int | None = Field(default=None, ge=1)
    rate_window: float = Field(default=60.0, gt=0)


def validate_settings(data: dict) -> SettingsSchema:
    try:
        return SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")

    gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
    gemini_text_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_TEXT_MODEL")
    gemini_image_model: str = Field(
        default="gemini-2.5-flash-image-preview",
        validation_alias="GEMINI_IMAGE_MODEL",
    )
    gemini_timeout_seconds: float = Field(default=120.0, validation_alias="GEMINI_TIMEOUT_SECONDS")

    run_recursion_margin: int = Field(default=10, validation_alias="RUN_RECURSION_MARGIN")

    job_retention_seconds: float = Field(default=3600.0, validation_alias="JOB_RETENTION_SECONDS")
    job_max_finished: int = Field(default=20, validation_alias="JOB_MAX_FINISHED")

    media_root: str = Field(default="./storage/media", validation_alias="MEDIA_ROOT")
    media_url_prefix: str = Field(default="/media", validation_alias="MEDIA_URL_PREFIX")


settings = Settings()

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Source site
    rage_base_url: str = "https://rage.dk"
    rage_feed_path: str = "/feed/"
    rage_sitemap_index: str = "/sitemap_index.xml"
    rage_rate_limit_rps: float = Field(default=1.0, gt=0)
    rage_user_agent: str = Field(default="rage-ingest/1.0 (+editorial tooling)", min_length=1)

    # Storage (sqlite file lives inside this directory)
    rage_storage_dir: str = "data"

    llm_provider: str = "openai"  # openai | anthropic | custom

    # OpenAI / custom
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    openai_base_url: str = "https://api.openai.com/v1"

    # Anthropic
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5"

    @field_validator("rage_base_url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("RAGE_BASE_URL must be an http(s) URL")
        return value.rstrip("/")

    @field_validator("rage_feed_path", "rage_sitemap_index")
    @classmethod
    def _absolute_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("path must start with '/'")
        return value

    @property
    def feed_url(self) -> str:
        return self.rage_base_url + self.rage_feed_path

    @property
    def sitemap_index_url(self) -> str:
        return self.rage_base_url + self.rage_sitemap_index


settings = Settings()

from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    secret_key: str
    database_url: str
    backend_cors_origins: str = "http://localhost:3000,http://localhost:3001"
    sql_echo: bool = False
    log_level: str = "INFO"

    openrouter_api_key: str = ""
    openrouter_url: str = "https://openrouter.ai/api/v1/chat/completions"
    openrouter_model: str = "x-ai/grok-4-fast:free"
    openrouter_referer: str = "http://localhost:3000"
    openrouter_title: str = "Mini AI App Portal"
    llm_temperature: float = 0.3
    llm_timeout: float = 60
    llm_max_attempts: int = 3

    pipeline_max_concurrent: int = 5

    class Config:
        env_file = ".env"
        extra = "allow"

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.backend_cors_origins.split(",") if origin.strip()]

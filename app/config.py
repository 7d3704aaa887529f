from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    firebase_project_id: str = ""
    firebase_client_email: str = ""
    firebase_private_key: str = ""
    products_collection: str = "products"

    llm_provider: Literal["gemini-rest", "grok", "gemini-sdk"] = "gemini-rest"
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-1.5-flash"
    xai_api_key: str | None = None
    grok_model: str = "grok-4"
    grok_temperature: float = 0.7
    provider_timeout: float | None = None
    prompt_style: Literal["detailed", "concise"] = "detailed"

    write_mode: Literal["merge", "update"] = "merge"
    missing_product_policy: Literal["empty_ingredients", "not_found"] = "empty_ingredients"
    response_keys: Literal["product_id", "field_name"] = "product_id"

    cors_enabled: bool = True
    cors_allow_origin: str = "http://localhost:3000"

    @property
    def firebase_private_key_pem(self) -> str:
        # Keys pasted into env vars usually carry escaped newlines
        return self.firebase_private_key.replace("\\n", "\n")


settings = Settings()

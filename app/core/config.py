from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global configuration for environment variables."""

    APP_NAME: str = "EMO Robot"
    ENV: str = "development"

    # Server config
    HOST: str = "0.0.0.0"
    PORT: int = 8080
    DEBUG: bool = False
    LOG_LEVEL: str = "DEBUG"

    # Access control: JSON object {"name": "secret", ...}
    USER_SECRETS: Optional[str] = None
    ADMIN_API_KEY: Optional[str] = None

    # Room
    AI_ROBOT_NAME: str = "EMO"
    ROOM_ID: str = "ai-robot-main"
    ROOM_MODE: str = "single"  # Options: "single", "shared"
    MAX_MESSAGE_LENGTH: int = 4096
    RATE_LIMIT_MS: int = 1000
    MEMORY_MAX_SIZE: int = 100
    DEFAULT_TIMEZONE: str = "Asia/Shanghai"
    ENABLE_TOOL_CALLING: bool = True
    ENABLE_COMMANDS: bool = True

    # LLM
    AI_PROVIDER: str = "cloudflare"  # Options: "cloudflare", "ollama", "openai", "deepseek", "gemini", "anthropic"
    TEMPERATURE: float = 0.6
    MAX_TOKENS: int = 256
    REQUEST_TIMEOUT_MS: int = 15000

    CLOUDFLARE_ACCOUNT_ID: Optional[str] = None
    CLOUDFLARE_API_TOKEN: Optional[str] = None
    CLOUDFLARE_MODEL: str = "@cf/meta/llama-3-8b-instruct"
    # hermes-2-pro-mistral-7b is unreliable at tool calls
    CLOUDFLARE_TOOL_MODEL: str = "@cf/meta/llama-3.1-8b-instruct"

    OLLAMA_HOST: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "llama3"
    OLLAMA_API_KEY: Optional[str] = None

    OPENAI_API_KEY: Optional[str] = None
    OPENAI_HOST: str = "https://api.openai.com"
    OPENAI_MODEL: str = "gpt-3.5-turbo"
    OPENAI_TOOL_MODEL: Optional[str] = None

    DEEPSEEK_API_KEY: Optional[str] = None
    DEEPSEEK_BASE_URL: str = "https://api.deepseek.com/v1"
    DEEPSEEK_MODEL: str = "deepseek-chat"

    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_ENDPOINT: str = "https://generativelanguage.googleapis.com"

    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"

    # Durable store
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: Optional[str] = None
    REDIS_SSL: bool = False
    UPSTASH_REDIS_REST_URL: Optional[str] = None
    UPSTASH_REDIS_REST_TOKEN: Optional[str] = None

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    @property
    def memory_storage_key(self) -> str:
        return f"room:{self.ROOM_ID}:chat_history"


settings = Settings()

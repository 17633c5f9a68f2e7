from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
	BASE_CURRENCY: str = 'EUR'

	REDIS_URL: str = 'redis://localhost:6379'
	REDIS_NAMESPACE: str = 'currency'

	OPENEXCHANGE_APP_ID: str = ''
	OPENEXCHANGE_TIMEOUT: float = 15
	OPENEXCHANGE_ACCOUNT_TYPE: str = 'enterprise'

	# Resilience
	RETRY_ATTEMPTS: int = 1

	# Logging
	LOG_LEVEL: str = 'INFO'
	LOG_DIRECTORY: str | None = None

	model_config = SettingsConfigDict(env_file='.env', case_sensitive=False, extra='ignore')


@lru_cache
def get_settings() -> Settings:
	return Settings()

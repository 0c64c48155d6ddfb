from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field

class Settings(BaseSettings):
	# Backend base URL; the NEXT_PUBLIC_* name is accepted so an existing front-end .env can be reused
	backend_url: str = Field(
		default="http://localhost:8001",
		validation_alias=AliasChoices("BACKEND_URL", "NEXT_PUBLIC_BACKEND_URL"),
	)
	# Results are served from a separate API host in some deployments; falls back to backend_url
	results_api_url: str | None = Field(default=None, validation_alias=AliasChoices("API_URL", "NEXT_PUBLIC_API_URL"))
	request_timeout_seconds: float = Field(default=30.0, validation_alias="REQUEST_TIMEOUT_SECONDS")

	# Local scoring policy
	pass_threshold: float = Field(default=70.0, validation_alias="PASS_THRESHOLD")
	# Placeholder credit ratio for SAQ / case study items that are not graded locally
	subjective_credit_ratio: float = Field(default=0.7, validation_alias="SUBJECTIVE_CREDIT_RATIO")

	# Session timing
	timer_tick_seconds: float = Field(default=1.0, validation_alias="TIMER_TICK_SECONDS")
	autosave_delay_seconds: float = Field(default=3.0, validation_alias="AUTOSAVE_DELAY_SECONDS")

	# Generation polling and cache
	status_poll_seconds: float = Field(default=2.0, validation_alias="STATUS_POLL_SECONDS")
	generation_cache_hours: int = Field(default=24, validation_alias="GENERATION_CACHE_HOURS")
	default_estimated_completion_seconds: int = Field(default=180, validation_alias="DEFAULT_ESTIMATED_COMPLETION_SECONDS")

	# In-memory sessions: idle ones are closed, submitted ones kept briefly for result views
	session_idle_minutes: float = Field(default=120.0, validation_alias="SESSION_IDLE_MINUTES")
	submitted_session_grace_minutes: float = Field(default=30.0, validation_alias="SUBMITTED_SESSION_GRACE_MINUTES")
	session_sweep_seconds: float = Field(default=300.0, validation_alias="SESSION_SWEEP_SECONDS")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

	@property
	def results_base_url(self) -> str:
		return self.results_api_url or self.backend_url

settings = Settings()

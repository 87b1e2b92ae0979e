from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./boss_battle.db"

    # Newest-first log entries kept on each battle record
    battle_log_limit: int = 50
    # Optimistic-concurrency attempts before a write conflict is surfaced
    transaction_max_attempts: int = 10
    default_avg_team_size: int = 4
    hint_mana_cost: int = 5
    stream_keepalive_seconds: float = 15.0


settings = Settings()

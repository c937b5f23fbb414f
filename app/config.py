from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    database_url: str = 'sqlite:///./requisition_cache.db'
    log_level: str = 'INFO'

    device_cookie_name: str = 'requisition_device'
    device_cookie_secure: bool = False
    device_cookie_samesite: str = 'lax'

    remote_provider: str = 'mock'
    remote_api_url: str | None = None
    remote_timeout_seconds: int | None = None

    poll_interval_seconds: float = 15.0
    toast_window_seconds: float = 10.0
    client_idle_ttl_seconds: float = 3600.0
    notification_title: str = 'Requisitions'
    notification_icon_url: str | None = 'https://cdn-icons-png.flaticon.com/512/1048/1048329.png'

    @property
    def database_url_normalized(self) -> str:
        url = self.database_url.strip()
        if url.startswith('postgres://'):
            return 'postgresql+psycopg://' + url[len('postgres://') :]
        if url.startswith('postgresql://'):
            return 'postgresql+psycopg://' + url[len('postgresql://') :]
        return url


settings = Settings()

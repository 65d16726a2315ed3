from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url

DEFAULT_SQLITE_URL = "sqlite:///./consultations.db"
DRIVER_NORMALIZATION = {
    # async -> sync
    "mysql+asyncmy": "mysql+pymysql",
    "sqlite+aiosqlite": "sqlite",
    "postgresql+asyncpg": "postgresql+psycopg2",
    # mysql connector flavors -> pymysql (default in requirements)
    "mysql+mysqlconnector": "mysql+pymysql",
    "mysql+mysqldb": "mysql+pymysql",
    "mysql": "mysql+pymysql",
}

DEFAULT_ALLOWED_MIME_TYPES = [
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
]


class Settings(BaseSettings):
    db_host: str = Field(default="localhost", validation_alias=AliasChoices("DB_HOST"))
    db_port: int = Field(default=3306, validation_alias=AliasChoices("DB_PORT"))
    db_username: str | None = Field(default=None, validation_alias=AliasChoices("DB_USERNAME"))
    db_password: str | None = Field(default=None, validation_alias=AliasChoices("DB_PASSWORD"))
    db_name: str | None = Field(default="consultations", validation_alias=AliasChoices("DB_NAME"))
    database_url: str | None = Field(default=None, validation_alias=AliasChoices("DATABASE_URL"))
    app_env: str | None = Field(default=None, validation_alias=AliasChoices("APP_ENV"))

    # All booking times, working hours and holiday dates are interpreted in this zone.
    app_timezone: str = Field(default="Asia/Riyadh", validation_alias=AliasChoices("APP_TIMEZONE"))

    booking_hold_minutes: int = Field(default=15, validation_alias=AliasChoices("BOOKING_HOLD_MINUTES"))
    booking_granularity_minutes: int = Field(
        default=5,
        validation_alias=AliasChoices("BOOKING_GRANULARITY_MINUTES"),
    )
    availability_slot_step_minutes: int = Field(
        default=30,
        validation_alias=AliasChoices("AVAILABILITY_SLOT_STEP_MINUTES"),
    )
    default_direct_duration_minutes: int = Field(
        default=60,
        validation_alias=AliasChoices("DEFAULT_DIRECT_DURATION_MINUTES"),
    )

    chat_max_files: int = Field(default=5, validation_alias=AliasChoices("CHAT_MAX_FILES"))
    chat_max_file_size_mb: int = Field(default=25, validation_alias=AliasChoices("CHAT_MAX_FILE_SIZE_MB"))
    chat_allowed_mime_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_MIME_TYPES),
        validation_alias=AliasChoices("CHAT_ALLOWED_MIME_TYPES"),
    )
    chat_client_out_of_session_limit: int = Field(
        default=2,
        validation_alias=AliasChoices("CHAT_CLIENT_OUT_OF_SESSION_LIMIT"),
    )
    chat_max_message_length: int = Field(default=5000, validation_alias=AliasChoices("CHAT_MAX_MESSAGE_LENGTH"))
    chat_messages_per_page: int = Field(default=50, validation_alias=AliasChoices("CHAT_MESSAGES_PER_PAGE"))
    chat_attachment_disk: str = Field(default="private", validation_alias=AliasChoices("CHAT_ATTACHMENT_DISK"))
    chat_attachment_path: str = Field(
        default="chat-attachments",
        validation_alias=AliasChoices("CHAT_ATTACHMENT_PATH"),
    )

    storage_root: str = Field(default="./storage", validation_alias=AliasChoices("STORAGE_ROOT"))

    enable_scheduler: bool = Field(default=False, validation_alias=AliasChoices("ENABLE_SCHEDULER"))
    expire_sweep_interval_seconds: int = Field(
        default=60,
        validation_alias=AliasChoices("EXPIRE_SWEEP_INTERVAL_SECONDS"),
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


def get_db_url(settings: "Settings") -> str:
    app_env = (settings.app_env or "").strip().lower()
    if app_env in {"local", "dev", "development"}:
        # Local runs always use SQLite so no MySQL/SSL setup is needed.
        return DEFAULT_SQLITE_URL

    if settings.database_url:
        return settings.database_url

    if settings.db_username and settings.db_password and settings.db_name:
        return (
            f"mysql+pymysql://{settings.db_username}:"
            f"{settings.db_password}@{settings.db_host}:{settings.db_port}/"
            f"{settings.db_name}"
        )

    if app_env in {"production", "prod", "staging"}:
        raise ValueError("APP_ENV is set to production/staging but DB configuration is missing")

    return DEFAULT_SQLITE_URL


def normalize_db_url(url: str) -> str:
    """
    Convert async driver URLs to sync equivalents so they can be used
    with the synchronous SQLAlchemy engine/session setup.
    """
    url_obj = make_url(url)
    driver = url_obj.drivername
    if driver in DRIVER_NORMALIZATION:
        url_obj = url_obj.set(drivername=DRIVER_NORMALIZATION[driver])
    return url_obj.render_as_string(hide_password=False)


settings = Settings()

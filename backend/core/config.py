import os
import logging
from typing import List, Literal
from dotenv import load_dotenv


logger = logging.getLogger(__name__)

# Load environment variables from .env file located in the backend directory.
# Environment variables explicitly set (e.g., by Docker Compose) take precedence.
BASE_DIR = os.path.dirname(os.path.dirname(__file__))
ENV_PATH = os.path.join(BASE_DIR, '.env')
load_dotenv(ENV_PATH)


def parse_brokers(value: str) -> List[str]:
    """
    Parses the Kafka broker list. Accepts a comma-separated string.
    Example: "kafka-1:9092, kafka-2:9092" → ["kafka-1:9092", "kafka-2:9092"]
    """
    if not value:
        return []
    return [broker.strip() for broker in value.split(",") if broker.strip()]


class Settings:
    # --- General Environment Settings ---
    # SERVICE_NAME identifies the running process ("inventory-service" or "products-service").
    SERVICE_NAME: str = os.getenv('SERVICE_NAME', 'inventory-service')
    # ENVIRONMENT determines application behavior (e.g., logging level, strict validation).
    ENVIRONMENT: Literal["local", "staging",
                         "production"] = os.getenv('ENVIRONMENT', 'local')
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO')

    # --- PostgreSQL Database Configuration ---
    # Each service owns its own database; defaults match the local Docker Compose setup.
    POSTGRES_USER: str = os.getenv('POSTGRES_USER', 'postgres')
    POSTGRES_PASSWORD: str = os.getenv('POSTGRES_PASSWORD', 'postgres')
    POSTGRES_SERVER: str = os.getenv('POSTGRES_SERVER', 'localhost')
    POSTGRES_PORT: int = int(os.getenv('POSTGRES_PORT', 5432))
    POSTGRES_DB: str = os.getenv('POSTGRES_DB', 'inventory_db')

    # Full PostgreSQL Database URL. Takes precedence over the individual components.
    POSTGRES_DB_URL: str = os.getenv('POSTGRES_DB_URL', "")

    # --- Redis Configuration ---
    # REDIS_URL for the read cache that consumers invalidate.
    REDIS_URL: str = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    # CACHE_TTL_INVENTORY is the lifetime of a cached inventory read, in seconds.
    CACHE_TTL_INVENTORY: int = int(os.getenv('CACHE_TTL_INVENTORY', 300))

    # --- Kafka Configuration ---
    RAW_KAFKA_BROKERS: str = os.getenv('KAFKA_BROKERS', 'localhost:9092')
    KAFKA_BROKERS: List[str] = parse_brokers(RAW_KAFKA_BROKERS)
    # Empty means derived from the service name ("<service>" and "<service>-consumer-group").
    KAFKA_CLIENT_ID: str = os.getenv('KAFKA_CLIENT_ID', '')
    KAFKA_GROUP_ID: str = os.getenv('KAFKA_GROUP_ID', '')
    KAFKA_SESSION_TIMEOUT_MS: int = int(os.getenv('KAFKA_SESSION_TIMEOUT_MS', 30000))
    KAFKA_HEARTBEAT_INTERVAL_MS: int = int(os.getenv('KAFKA_HEARTBEAT_INTERVAL_MS', 3000))
    KAFKA_REQUEST_TIMEOUT_MS: int = int(os.getenv('KAFKA_REQUEST_TIMEOUT_MS', 30000))
    KAFKA_RETRY_BACKOFF_MS: int = int(os.getenv('KAFKA_RETRY_BACKOFF_MS', 300))
    # Cold-start stagger applied before a delayed consumer subscribes (products service).
    KAFKA_CONSUMER_START_DELAY_SECONDS: float = float(
        os.getenv('KAFKA_CONSUMER_START_DELAY_SECONDS', 10))

    # --- Processed Event Ledger Retention ---
    # EVENT_RETENTION_DAYS specifies how old ledger rows must be before deletion.
    EVENT_RETENTION_DAYS: int = int(os.getenv('EVENT_RETENTION_DAYS', 30))
    # EVENT_CLEANUP_CRON is a five-field crontab expression, daily at 02:00 by default.
    EVENT_CLEANUP_CRON: str = os.getenv('EVENT_CLEANUP_CRON', '0 2 * * *')
    EVENT_CLEANUP_TIMEZONE: str = os.getenv('EVENT_CLEANUP_TIMEZONE', 'America/Santo_Domingo')

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        """
        Constructs the SQLAlchemy database URI.
        Prioritizes a full URL (POSTGRES_DB_URL) over individual components.
        """
        if self.POSTGRES_DB_URL:
            return self.POSTGRES_DB_URL

        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def is_local(self) -> bool:
        return self.ENVIRONMENT == "local"

    def validate(self) -> List[str]:
        """
        Returns a list of configuration problems. An empty list means the
        configuration is usable.
        """
        problems = []
        if not self.KAFKA_BROKERS:
            problems.append("KAFKA_BROKERS must list at least one broker")
        if self.EVENT_RETENTION_DAYS < 1:
            problems.append("EVENT_RETENTION_DAYS must be a positive number of days")
        if len(self.EVENT_CLEANUP_CRON.split()) != 5:
            problems.append(
                f"EVENT_CLEANUP_CRON must have five fields, got '{self.EVENT_CLEANUP_CRON}'")
        if self.KAFKA_HEARTBEAT_INTERVAL_MS >= self.KAFKA_SESSION_TIMEOUT_MS:
            problems.append("KAFKA_HEARTBEAT_INTERVAL_MS must be lower than KAFKA_SESSION_TIMEOUT_MS")
        return problems


# Instantiate the settings object to be used throughout the application
settings = Settings()

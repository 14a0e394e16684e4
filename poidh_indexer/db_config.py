# poidh_indexer/db_config.py
"""Database configuration and credentials management"""
from dataclasses import dataclass
from urllib.parse import quote_plus, urlparse

from poidh_indexer.config import Settings, settings

SUPPORTED_SCHEMES = ('postgresql', 'postgresql+psycopg2', 'sqlite')

@dataclass
class DatabaseCredentials:
    """Database credentials container with validation"""
    host: str
    port: str
    name: str
    user: str
    password: str
    ssl_mode: str = 'prefer'

    def to_connection_string(self) -> str:
        """Generate database connection string with proper escaping"""
        return (
            f"postgresql://{quote_plus(self.user)}:{quote_plus(self.password)}@{self.host}:{self.port}/"
            f"{self.name}?sslmode={self.ssl_mode}"
        )

    @classmethod
    def from_settings(cls, config: Settings) -> 'DatabaseCredentials':
        """Create credentials from the DB_* settings"""
        return cls(
            host=config.DB_HOST,
            port=config.DB_PORT,
            name=config.DB_NAME,
            user=config.DB_USER,
            password=config.DB_PASSWORD or '',
            ssl_mode=config.DB_SSL_MODE
        )

    @classmethod
    def validate_url(cls, url: str) -> bool:
        """Validate database URL scheme and required parts"""
        try:
            parsed = urlparse(url)
        except ValueError:
            return False

        if parsed.scheme not in SUPPORTED_SCHEMES:
            return False

        # sqlite URLs carry only a path (or nothing for in-memory)
        if parsed.scheme == 'sqlite':
            return True

        return bool(parsed.hostname) and bool(parsed.path.lstrip('/'))

class DatabaseManager:
    """Resolves the connection string the indexer should use"""

    @staticmethod
    def get_connection_string(config: Settings) -> str:
        """
        Generate database connection string from settings

        Args:
            config: Application settings

        Returns:
            DATABASE_URL when set, otherwise a PostgreSQL URL built from DB_* parts

        Raises:
            ValueError: If the URL is malformed or the password is missing
        """
        if config.DATABASE_URL:
            if not DatabaseCredentials.validate_url(config.DATABASE_URL):
                raise ValueError(f"Unsupported DATABASE_URL: {config.DATABASE_URL!r}")
            return config.DATABASE_URL

        if not config.DB_PASSWORD:
            raise ValueError("DB_PASSWORD setting is required when DATABASE_URL is not set")

        return DatabaseCredentials.from_settings(config).to_connection_string()

    @classmethod
    def initialize_from_env(cls) -> str:
        """
        Initialize database connection from environment variables

        Returns:
            Database connection string

        Raises:
            ValueError: If required environment variables are missing
        """
        return cls.get_connection_string(settings)

"""
Configuration loader for environment variables.
"""

import os
from dotenv import load_dotenv

# Load .env from project root
load_dotenv()


class Config:
    """Application configuration from environment variables."""
    
    # PostgreSQL
    POSTGRES_HOST = os.getenv('POSTGRES_HOST', 'localhost')
    POSTGRES_PORT = os.getenv('POSTGRES_PORT', '5432')
    POSTGRES_DATABASE = os.getenv('POSTGRES_DATABASE', 'buildledger')
    POSTGRES_USER = os.getenv('POSTGRES_USER')
    POSTGRES_PASSWORD = os.getenv('POSTGRES_PASSWORD')
    
    # Full URL override (tests, local SQLite)
    DATABASE_URL = os.getenv('DATABASE_URL')
    
    # Org-level default variance thresholds (percent of adjusted budget)
    VARIANCE_APPROACHING_PERCENT = int(os.getenv('VARIANCE_APPROACHING_PERCENT', '90'))
    VARIANCE_OVERRUN_PERCENT = int(os.getenv('VARIANCE_OVERRUN_PERCENT', '100'))
    
    # Gross margin floor for the project-level margin warning (0 disables it)
    MARGIN_WARNING_PERCENT = int(os.getenv('MARGIN_WARNING_PERCENT', '15'))
    
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    
    @classmethod
    def get_postgres_url(cls):
        """Get SQLAlchemy connection URL."""
        if cls.DATABASE_URL:
            return cls.DATABASE_URL
        return (
            f"postgresql://{cls.POSTGRES_USER}:{cls.POSTGRES_PASSWORD}"
            f"@{cls.POSTGRES_HOST}:{cls.POSTGRES_PORT}/{cls.POSTGRES_DATABASE}"
        )

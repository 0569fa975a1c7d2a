"""
Storage Configuration

Connection settings for the SQLite store and the Redis write channel.
Values come from the environment (a local .env file is honoured).
"""

from dataclasses import dataclass
from typing import Optional
import os

from dotenv import load_dotenv

DEFAULT_SQLITE_PATH = "candlewise.db"
DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_STREAM_PREFIX = "candlewise"


@dataclass
class StorageConfig:
    sqlite_path: str = DEFAULT_SQLITE_PATH
    redis_url: str = DEFAULT_REDIS_URL
    stream_prefix: str = DEFAULT_STREAM_PREFIX

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> 'StorageConfig':
        """
        Build from CANDLEWISE_SQLITE_PATH, REDIS_URL and
        CANDLEWISE_STREAM_PREFIX, after loading .env (existing
        environment variables win).
        """
        load_dotenv(dotenv_path)
        return cls(
            sqlite_path=os.environ.get('CANDLEWISE_SQLITE_PATH', DEFAULT_SQLITE_PATH),
            redis_url=os.environ.get('REDIS_URL', DEFAULT_REDIS_URL),
            stream_prefix=os.environ.get('CANDLEWISE_STREAM_PREFIX', DEFAULT_STREAM_PREFIX),
        )

    def to_dict(self) -> dict:
        return {
            'sqlite_path': self.sqlite_path,
            'redis_url': self.redis_url,
            'stream_prefix': self.stream_prefix,
        }

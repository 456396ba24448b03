"""Configuration management for GitLab Copy."""

from typing import Optional, Dict, Any
from pathlib import Path
import os

from pydantic import BaseModel, Field, validator
import yaml
from dotenv import load_dotenv


class GitLabInstanceConfig(BaseModel):
    """Configuration for a GitLab instance."""

    url: str = Field(..., description='GitLab instance URL')
    token: Optional[str] = Field(default=None, description='Personal access token')
    oauth_token: Optional[str] = Field(default=None, description='OAuth access token')
    api_version: str = Field(default='v4', description='GitLab API version')
    timeout: int = Field(default=30, description='Request timeout in seconds')

    @validator('url')
    def validate_url(cls, v):
        """Validate GitLab URL format."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('URL must start with http:// or https://')
        return v.rstrip('/')

    @validator('oauth_token', always=True)
    def validate_auth_complete(cls, v, values):
        """Ensure at least one authentication method is provided."""
        token = values.get('token')
        if not token and not v:
            raise ValueError('Either token or oauth_token must be provided')
        return v

    @validator('timeout')
    def validate_timeout(cls, v):
        """Validate request timeout is positive."""
        if v <= 0:
            raise ValueError('Request timeout must be positive')
        return v


class MigrationConfig(BaseModel):
    """Migration-specific configuration."""

    working_directory: str = Field(
        default='gitlab-copy-files',
        description='Root directory holding one working copy per project',
    )
    completed_file: str = Field(
        default='completed.txt',
        description='Ledger of fully migrated projects, one path per line',
    )
    concurrent: bool = Field(
        default=True, description='Migrate groups concurrently instead of one by one'
    )
    max_concurrent_groups: int = Field(
        default=8, description='Maximum groups migrated at the same time'
    )

    @validator('max_concurrent_groups')
    def validate_max_concurrent_groups(cls, v):
        """Validate the group concurrency limit is positive."""
        if v <= 0:
            raise ValueError('Max concurrent groups must be positive')
        return v

    @validator('working_directory', 'completed_file')
    def validate_not_empty(cls, v):
        """Validate paths are not blank."""
        if not v.strip():
            raise ValueError('Path must not be empty')
        return v


class GitConfig(BaseModel):
    """Git operations configuration."""

    executable: str = Field(default='git', description='Git executable to invoke')
    timeout: int = Field(
        default=7200,
        description='Maximum seconds a single git command may run (default: 2 hours)',
    )
    remote_name: str = Field(
        default='new', description='Name of the remote pointing at the destination'
    )
    transport: str = Field(
        default='ssh', description='Repository transport: ssh or http'
    )

    @validator('timeout')
    def validate_timeout(cls, v):
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError('Git timeout must be positive')
        return v

    @validator('transport')
    def validate_transport(cls, v):
        """Validate repository transport."""
        valid_transports = ['ssh', 'http']
        if v.lower() not in valid_transports:
            raise ValueError(f'Transport must be one of: {valid_transports}')
        return v.lower()

    @validator('remote_name')
    def validate_remote_name(cls, v):
        """Validate the remote name is a single token."""
        if not v or any(c.isspace() for c in v):
            raise ValueError('Remote name must be a non-empty word')
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default='INFO', description='Log level')
    file: Optional[str] = Field(default=None, description='Log file path')
    format: Optional[str] = Field(default=None, description='Console log format')

    @validator('level')
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()


class Config(BaseModel):
    """Main configuration class for GitLab Copy."""

    source: GitLabInstanceConfig = Field(..., description='Source GitLab instance')
    destination: GitLabInstanceConfig = Field(
        ..., description='Destination GitLab instance'
    )
    migration: MigrationConfig = Field(
        default_factory=MigrationConfig, description='Migration settings'
    )
    git: GitConfig = Field(
        default_factory=GitConfig, description='Git operations settings'
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description='Logging settings'
    )

    class Config:
        """Pydantic configuration."""

        extra = 'forbid'

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """Load configuration from YAML file."""
        config_file = Path(config_path)

        if not config_file.exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if not isinstance(config_data, dict):
            raise ValueError(f'Configuration file is not a mapping: {config_path}')

        return cls(**config_data)

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        load_dotenv()

        config_data = {
            'source': {
                'url': os.getenv('SOURCE_GITLAB_URL'),
                'token': os.getenv('SOURCE_GITLAB_TOKEN'),
            },
            'destination': {
                'url': os.getenv('DEST_GITLAB_URL'),
                'token': os.getenv('DEST_GITLAB_TOKEN'),
            },
            'migration': {
                'working_directory': os.getenv('MIGRATION_WORKING_DIRECTORY'),
                'completed_file': os.getenv('MIGRATION_COMPLETED_FILE'),
                'concurrent': os.getenv('MIGRATION_CONCURRENT', 'true').lower()
                == 'true',
                'max_concurrent_groups': int(
                    os.getenv('MIGRATION_MAX_CONCURRENT_GROUPS', 8)
                ),
            },
            'git': {
                'executable': os.getenv('GIT_EXECUTABLE'),
                'timeout': int(os.getenv('GIT_TIMEOUT', 7200)),
                'remote_name': os.getenv('GIT_REMOTE_NAME'),
                'transport': os.getenv('GIT_TRANSPORT'),
            },
            'logging': {
                'level': os.getenv('LOG_LEVEL', 'INFO'),
                'file': os.getenv('LOG_FILE'),
            },
        }

        config_data = cls._remove_none_values(config_data)

        return cls(**config_data)

    @staticmethod
    def _remove_none_values(data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively remove None values from dictionary."""
        if isinstance(data, dict):
            return {
                k: Config._remove_none_values(v)
                for k, v in data.items()
                if v is not None
            }
        return data

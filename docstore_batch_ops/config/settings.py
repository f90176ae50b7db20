"""
Pydantic Settings for DocStore Batch Operations

This module provides strongly-typed configuration settings using Pydantic,
with support for environment variables and YAML configuration files.
"""

from typing import Optional, Union
from pathlib import Path
import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_yaml import to_yaml_str, to_yaml_file

from ..batch_operations.batch_ops_config import BatchOperationConfig


class ExecutionSettings(BaseSettings):
    """
    Execution settings controlling how batch operations read and write.

    These settings control:
    - Pagination of large match sets
    - Retry behavior for transient read failures
    - Preview sampling and invocation timing
    """
    default_page_size: Optional[int] = Field(None, gt=0,
                                             description="Page size used when a call does not pass one; unset means a single page")
    max_page_size: int = Field(10000, gt=0,
                               description="Largest page size accepted")
    preview_sample_size: int = Field(10, ge=0,
                                     description="Number of before/after samples returned by preview")
    retry_transient_reads: bool = Field(True,
                                        description="Retry count and fetch queries on transient errors")
    max_read_retries: int = Field(3, ge=1,
                                  description="Maximum attempts for a transient read failure")
    read_retry_delay: float = Field(0.5, ge=0,
                                    description="Base delay in seconds between read attempts")
    enable_timing: bool = Field(True,
                                description="Record a timing result for each invocation")
    timing_history_size: int = Field(1000, ge=1,
                                     description="Number of most recent timing results kept for statistics")

    model_config = SettingsConfigDict(env_prefix="DOCSTORE_EXECUTION_", case_sensitive=False)


class LoggingSettings(BaseSettings):
    """
    Operation report settings.

    Reports are plain text audit files written per invocation when logging is
    enabled for that call.
    """
    log_path: str = Field("./logs",
                          description="Directory where operation reports are written")
    strict_persistence: bool = Field(False,
                                     description="Raise when a report cannot be written instead of returning without a path")
    log_level: str = Field("INFO",
                           description="Python logging level for the package (DEBUG, INFO, WARNING, ERROR, CRITICAL)")

    model_config = SettingsConfigDict(env_prefix="DOCSTORE_LOGGING_", case_sensitive=False)


class FirestoreSettings(BaseSettings):
    """
    Connection settings for the Firestore backend.

    Unset values fall back to the Google Cloud client defaults (application
    default credentials, the project from the environment, the default database).
    """
    project: Optional[str] = Field(None, description="Google Cloud project id")
    database: Optional[str] = Field(None, description="Firestore database id")
    credentials_path: Optional[str] = Field(None,
                                            description="Path to a service account JSON key file")
    executor_workers: int = Field(4, gt=0,
                                  description="Worker threads used for blocking Firestore calls")

    model_config = SettingsConfigDict(env_prefix="DOCSTORE_FIRESTORE_", case_sensitive=False)


class BatchOpsSettings(BaseSettings):
    """
    Main settings class consolidating all configuration categories.

    Usage:
        # Load from environment variables and defaults
        settings = BatchOpsSettings()

        # Load from YAML file
        settings = BatchOpsSettings.from_yaml('config.yaml')

        # Access nested settings
        page_size = settings.execution.default_page_size
        config = settings.to_operation_config()
    """
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings,
                                         description="Pagination, retry and timing settings")
    logging: LoggingSettings = Field(default_factory=LoggingSettings,
                                     description="Operation report settings")
    firestore: FirestoreSettings = Field(default_factory=FirestoreSettings,
                                         description="Firestore backend connection settings")

    model_config = SettingsConfigDict(
        env_prefix="DOCSTORE_",
        case_sensitive=False,
        env_nested_delimiter="__"
    )

    @classmethod
    def from_yaml(cls, yaml_file: Union[str, Path]) -> "BatchOpsSettings":
        """Load settings from YAML file"""
        import yaml
        with open(yaml_file, 'r') as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self) -> str:
        """Render the settings as YAML."""
        return to_yaml_str(self)

    def save_yaml(self, yaml_file: Union[str, Path]) -> None:
        """Write the settings to a YAML file."""
        to_yaml_file(yaml_file, self)

    def to_operation_config(self) -> BatchOperationConfig:
        """Build the BatchOperationConfig consumed by BatchUpdater."""
        return BatchOperationConfig(
            default_page_size=self.execution.default_page_size,
            max_page_size=self.execution.max_page_size,
            preview_sample_size=self.execution.preview_sample_size,
            retry_transient_reads=self.execution.retry_transient_reads,
            max_read_retries=self.execution.max_read_retries,
            read_retry_delay=self.execution.read_retry_delay,
            enable_timing=self.execution.enable_timing,
            timing_history_size=self.execution.timing_history_size,
            strict_log_persistence=self.logging.strict_persistence,
            default_log_path=self.logging.log_path
        )


def load_settings(config_path: Optional[str] = None) -> BatchOpsSettings:
    """
    Load settings from file and/or environment variables.

    - If config_path is provided and exists, loads settings from the YAML file
    - Otherwise, creates a new settings instance from environment variables and defaults

    Args:
        config_path: Path to YAML configuration file.

    Returns:
        BatchOpsSettings object with loaded configuration

    Example:
        settings = load_settings("/path/to/config.yaml")
        updater = BatchUpdater(store, config=settings.to_operation_config())
    """
    if config_path and os.path.exists(config_path):
        return BatchOpsSettings.from_yaml(config_path)
    return BatchOpsSettings()

"""Persistence layer - repository contracts and backends."""

from adaptive_auth.common.config.settings import Config, StorageBackend
from adaptive_auth.persistence.base import (
    AnomalyRepository,
    BaselineRepository,
    LoginAttemptRepository,
    OtpSessionRepository,
    SecurityEventRepository,
    UnitOfWork,
    UserRepository,
    UserSessionRepository,
)
from adaptive_auth.persistence.memory import InMemoryUnitOfWork
from adaptive_auth.persistence.dynamodb import DynamoDBUnitOfWork


def create_unit_of_work(config: Config) -> UnitOfWork:
    """Build the unit of work selected by `config.storage_backend`."""
    if config.storage_backend == StorageBackend.DYNAMODB:
        return DynamoDBUnitOfWork(table_name=config.dynamodb_table, region=config.aws_region)
    return InMemoryUnitOfWork()


__all__ = [
    "AnomalyRepository",
    "BaselineRepository",
    "LoginAttemptRepository",
    "OtpSessionRepository",
    "SecurityEventRepository",
    "UnitOfWork",
    "UserRepository",
    "UserSessionRepository",
    "InMemoryUnitOfWork",
    "DynamoDBUnitOfWork",
    "create_unit_of_work",
]

"""
Database Module
===============
Database connection and repository implementations.
"""
from translation_orchestrator.database.connection import Database, get_database, reset_database
from translation_orchestrator.database.queries import JobQuery
from translation_orchestrator.database.repositories import (
    TaskRepository,
    JobRepository,
    RunRepository,
    JobStatsRepository
)

__all__ = [
    'Database',
    'get_database',
    'reset_database',
    'JobQuery',
    'TaskRepository',
    'JobRepository',
    'RunRepository',
    'JobStatsRepository'
]

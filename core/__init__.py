#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Cross-Database Migrator Core Package
Exports the main components for clean imports
"""

from .errors import (
    ErrorCode,
    MigrationError,
    ConfigurationError,
    MetadataError,
    DdlExecutionError,
    DataCopyError,
    MigrationRunError,
)
from .db_config import DbConfig, DbType
from .strategy import BuildMode, ExecuteStrategy
from .type_registry import TypeCategory, TypeRegistry
from .schema_ir import ColumnDescriptor, IndexDescriptor, TableDescriptor, TableMeta
from .dialects import AbstractDdlCompiler, ActionType, build_compiler
from .database_manager import DataSourceProvider, SqlSession
from .monitor import MigrationListener, LoggingListener, MigrationReport, TableStatus
from .worker import MigrationWorker
from .migration import MigrationOrchestrator, partition_tables

# Export everything
__all__ = [
    # Errors
    'ErrorCode',
    'MigrationError',
    'ConfigurationError',
    'MetadataError',
    'DdlExecutionError',
    'DataCopyError',
    'MigrationRunError',

    # Configuration
    'DbConfig',
    'DbType',
    'BuildMode',
    'ExecuteStrategy',

    # Schema model
    'TypeCategory',
    'TypeRegistry',
    'ColumnDescriptor',
    'IndexDescriptor',
    'TableDescriptor',
    'TableMeta',

    # DDL
    'AbstractDdlCompiler',
    'ActionType',
    'build_compiler',

    # Execution
    'DataSourceProvider',
    'SqlSession',
    'MigrationListener',
    'LoggingListener',
    'MigrationReport',
    'TableStatus',
    'MigrationWorker',
    'MigrationOrchestrator',
    'partition_tables',
]

# Version info
__version__ = '1.0.0'
__description__ = 'Cross-database schema and data migrator'

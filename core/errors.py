#!/usr/bin/env python3
"""
Migrator Error Hierarchy
Canonical exception classes for schema and data migration.
"""

from enum import Enum

class ErrorCode(Enum):
    UNKNOWN = "UNKNOWN_ERROR"
    CONFIGURATION = "CONFIGURATION_ERROR"
    METADATA = "METADATA_ERROR"
    DDL = "DDL_ERROR"
    DATA_COPY = "DATA_COPY_ERROR"
    RUN_FAILED = "RUN_FAILED"

class MigrationError(Exception):
    """Base class for all migrator exceptions"""
    def __init__(self, message: str, code: ErrorCode = ErrorCode.UNKNOWN, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

class ConfigurationError(MigrationError):
    """Raised when a datasource, strategy or dialect is misconfigured"""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, ErrorCode.CONFIGURATION, details)

class MetadataError(MigrationError):
    """Raised when table metadata cannot be read or is inconsistent"""
    def __init__(self, message: str, table_name: str = None, details: dict = None):
        details = dict(details or {})
        details.setdefault('table', table_name)
        super().__init__(message, ErrorCode.METADATA, details)

class DdlExecutionError(MigrationError):
    """Raised when a DDL statement fails on the target"""
    def __init__(self, message: str, statement: str = None, cause: BaseException = None):
        super().__init__(message, ErrorCode.DDL, {'statement': statement})
        self.statement = statement
        self.cause = cause

class DataCopyError(MigrationError):
    """Raised when reading or writing a page of rows fails"""
    def __init__(self, message: str, table_name: str = None, page_index: int = None,
                 cause: BaseException = None):
        super().__init__(message, ErrorCode.DATA_COPY, {'table': table_name, 'page': page_index})
        self.cause = cause

class MigrationRunError(MigrationError):
    """Raised after a run when one or more worker buckets failed"""
    def __init__(self, message: str, failures: dict = None, report=None):
        super().__init__(message, ErrorCode.RUN_FAILED, {'failed_buckets': failures or {}})
        self.failures = failures or {}
        self.report = report


def root_cause(error: BaseException) -> BaseException:
    """Unwrap migrator wrappers down to the driver-level exception."""
    seen = set()
    current = error
    while id(current) not in seen:
        seen.add(id(current))
        nested = getattr(current, 'cause', None) or getattr(current, 'orig', None)
        if nested is None or not isinstance(nested, BaseException):
            break
        current = nested
    return current

"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class InvalidTaskStateException(DomainException):
    """Raised when a task transition is not allowed from its current status."""

    def __init__(
        self,
        task_id: str,
        status: str,
        details: Optional[dict] = None
    ):
        self.task_id = task_id
        self.status = status
        super().__init__(
            f"Task {task_id} already resolved (status: {status})",
            details or {"task_id": task_id, "status": status}
        )


class BatchExecutionException(ApplicationException):
    """Raised when a batch job cannot run at all."""

    def __init__(
        self,
        job_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.job_name = job_name
        super().__init__(f"{job_name}: {message}", details)

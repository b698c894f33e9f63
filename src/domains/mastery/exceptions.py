# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Mastery domain exceptions."""

from typing import Optional


class MasteryError(Exception):
    """Base exception for mastery engine errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(MasteryError):
    """Raised for a malformed partition query or assessment result."""

    pass


class NotFoundError(MasteryError):
    """Raised when a referenced student, subject, topic or record is missing."""

    pass


class StoreUnavailableError(MasteryError):
    """Raised when a backing store cannot be reached.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying driver error.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message

"""Exception hierarchy for docaudit.

Every error the tool raises on purpose derives from ``DocAuditError`` so the
CLI can turn it into a single error line and a stable exit code. Audit
findings (broken links, stale documents, ...) are report data and are never
raised.
"""

from __future__ import annotations

from typing import Any


class DocAuditError(Exception):
    """Base exception for all docaudit errors."""

    default_message: str = "An unexpected error occurred"
    default_error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str | None = None,
        *,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ConfigurationError(DocAuditError):
    default_message = "Invalid configuration"
    default_error_code = "CONFIGURATION_ERROR"

    def __init__(
        self,
        message: str | None = None,
        *,
        config_path: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        if config_path:
            details["config_path"] = config_path
        super().__init__(message, details=details, **kwargs)


class DocumentReadError(DocAuditError):
    default_message = "Cannot read document"
    default_error_code = "DOCUMENT_READ_ERROR"

    def __init__(self, path: str, reason: str | None = None, **kwargs: Any) -> None:
        self.path = path
        message = f"Cannot read document {path}"
        if reason:
            message = f"{message}: {reason}"
        details = kwargs.pop("details", {}) or {}
        details["path"] = path
        super().__init__(message, details=details, **kwargs)


class GitError(DocAuditError):
    """A git command failed or the project is not a git work tree."""

    default_message = "Git command failed"
    default_error_code = "GIT_ERROR"

    def __init__(
        self,
        message: str | None = None,
        *,
        command: list[str] | None = None,
        returncode: int | None = None,
        stderr: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        if command:
            details["command"] = " ".join(command)
        if returncode is not None:
            details["returncode"] = returncode
        if stderr:
            stderr = stderr.strip()
            details["stderr"] = stderr[:500] if len(stderr) > 500 else stderr
        super().__init__(message, details=details, **kwargs)


class BaselineError(DocAuditError):
    default_message = "Invalid baseline report"
    default_error_code = "BASELINE_ERROR"

"""Error taxonomy shared by the stores, clients and lifecycle components."""
from __future__ import annotations


class ReportSmithError(Exception):
    """Base class for expected service failures."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ReportSmithError):
    """Missing or malformed request fields. Raised before any I/O."""

    status_code = 400


class DependencyReadError(ReportSmithError):
    """A settings or sample store read failed."""


class DependencyWriteError(ReportSmithError):
    """A settings or sample store write failed."""


class RemoteServiceError(ReportSmithError):
    """Inference, upload, tuning-job or weather HTTP call failed."""

"""
Custom exception classes.

The engine never aborts on dirty data: InvalidRecordError is raised while
converting a single record and caught at the engine boundary, where it
becomes a DataQualityWarning. ConfigurationError is reserved for invalid
program rules supplied by the caller.
"""
from typing import Optional

from skystatus.models import DataQualityWarning, MonthKey, WarningCode


class EngineError(Exception):
    """Base engine exception with consistent structure."""

    def __init__(self, detail: str, error_code: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        self.error_code = error_code


class InvalidRecordError(EngineError):
    """A single input record could not be used."""

    def __init__(
        self,
        detail: str,
        code: WarningCode = WarningCode.INVALID_RECORD,
        record_id: Optional[str] = None,
        month: Optional[MonthKey] = None,
    ):
        super().__init__(detail, error_code=code.value.upper())
        self.code = code
        self.record_id = record_id
        self.month = month

    def to_warning(self) -> DataQualityWarning:
        return DataQualityWarning(
            code=self.code,
            message=self.detail,
            record_id=self.record_id,
            month=self.month,
        )


class ConfigurationError(EngineError):
    """Program rules are inconsistent (e.g., thresholds not increasing)."""

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"CONFIGURATION_ERROR_{field.upper()}" if field else "CONFIGURATION_ERROR"
        super().__init__(detail, error_code=error_code)
        self.field = field

"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for run failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class StageError(PipelineError):
    """Raised for stage failures that halt the run."""

    error_code = "STAGE_ERROR"


class CredentialError(StageError):
    """Raised when no spreadsheet credential can be obtained."""

    error_code = "CREDENTIAL_ERROR"


class SheetReadError(StageError):
    error_code = "SHEET_READ_ERROR"


class SheetWriteError(StageError):
    error_code = "SHEET_WRITE_ERROR"

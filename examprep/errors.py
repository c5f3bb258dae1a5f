class StorageError(Exception):
    """Persisted blob is missing, unreadable or does not match the schema."""

class GenerationError(Exception):
    """Question generation failed; nothing was appended."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

class GradingError(Exception):
    """Subjective grading call failed."""

class ExplanationError(Exception):
    """Answer explanation call failed."""

class InvalidEntryError(ValueError):
    """Manual set or question entry is missing required fields."""

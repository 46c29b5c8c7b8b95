class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

class APIClientError(AppError):
    """Raised when a call to the document workspace service fails."""
    def __init__(self, message: str, status_code: int = None, original_error: Exception = None):
        super().__init__(message, original_error)
        self.status_code = status_code

class APITimeoutError(APIClientError):
    """Raised when a call to the document workspace service times out."""
    pass

class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass

class ValidationError(AppError):
    """Raised when input validation fails (bad ids, names, path traversal)."""
    pass

class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass

class NotConfiguredError(ConfigurationError):
    """Raised when the workspace service API key has not been set."""
    pass

class CustomerNotFoundError(AppError):
    """Raised when a customer id does not exist."""
    pass

class DocumentNotFoundError(AppError):
    """Raised when an uploaded file cannot be found on disk."""
    pass

class ExtractionFailed(AppError):
    """Raised when metadata extraction exhausts its attempts."""
    pass

class JobNotFoundError(AppError):
    """Raised when a matching job id is unknown."""
    pass

class NoTemplatesAvailableError(AppError):
    """Raised when a matching job has no templates to score against."""
    pass

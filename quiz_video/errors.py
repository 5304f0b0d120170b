"""Error taxonomy for the quiz video pipeline."""


class QuizVideoError(Exception):
    """Base class for all service errors."""

    status_code = 500

    def __init__(self, message: str, job_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.job_id = job_id


class ConfigurationError(QuizVideoError):
    """Missing or invalid startup configuration."""


class ResourceError(QuizVideoError):
    """Working-directory creation or deletion failed."""


class SynthesisError(QuizVideoError):
    """Voice provider call failed."""


class RenderError(QuizVideoError):
    """Renderer invocation failed or produced no output."""


class UploadError(QuizVideoError):
    """Object storage call failed."""


class NotFoundError(QuizVideoError):
    """Unknown job id."""

    status_code = 404


class ValidationError(QuizVideoError):
    """Malformed request."""

    status_code = 400


class ConflictError(QuizVideoError):
    """Operation not allowed in the job's current state."""

    status_code = 409


class NotReadyError(QuizVideoError):
    """Audio staging server is not accepting connections."""

    status_code = 503


class DeadlineExceededError(QuizVideoError):
    """An external call exceeded its deadline."""

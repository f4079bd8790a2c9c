"""Error taxonomy shared by the service layer and the HTTP exception handlers."""


class VideoGenerationError(Exception):
    """Base class; ``status_code`` is the HTTP status the API maps it to."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(VideoGenerationError):
    status_code = 404

    def __init__(self, message: str = "Video generation not found"):
        super().__init__(message)


class ConflictError(VideoGenerationError):
    status_code = 400


class ProviderError(VideoGenerationError):
    """The Prediction Provider rejected a request or could not be reached."""

    status_code = 500

    def __init__(self, message: str, generation_id: str | None = None):
        super().__init__(message)
        self.generation_id = generation_id


class InvalidTransitionError(VideoGenerationError):
    """A status edge outside the state machine was requested."""

    def __init__(self, current: str, target: str):
        super().__init__(f"Invalid status transition {current!r} -> {target!r}")
        self.current = current
        self.target = target

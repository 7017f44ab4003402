class DualNBackError(Exception):
    """Base class for every error raised by this package."""


class InvalidConfiguration(DualNBackError, ValueError):
    """
    A session cannot be started with the given settings
    (e.g. n >= trials, empty alphabet or grid).
    """


class PresentationFailure(DualNBackError):
    """
    A presentation collaborator raised while handling a call from the engine.
    The engine logs it and keeps ticking.
    """

    def __init__(self, method: str, cause: BaseException):
        super().__init__(f"Presentation call {method}() failed: {cause!r}")
        self.method = method
        self.cause = cause

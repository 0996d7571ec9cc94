# crosspost/platforms/errors.py


class PlatformError(Exception):
    """
    A failure attributable to one platform (bad token, rejected media, API
    rejection). ``code`` is a stable string stored on the job result.
    """

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def __repr__(self) -> str:
        return f"PlatformError(code={self.code!r}, message={self.message!r})"

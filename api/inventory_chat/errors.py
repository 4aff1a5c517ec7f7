class ChatError(Exception):
    """Base for failures that end a chat request with an error envelope."""

    status_code = 500
    hint: str = ""

    def __init__(self, message: str, hint: str = ""):
        super().__init__(message)
        if hint:
            self.hint = hint


class ConfigError(ChatError):
    """Startup configuration is missing or malformed."""


class DatasetNotFoundError(ChatError):
    pass


class EmptyDatasetError(ChatError):
    pass


class MissingColumnError(ChatError):
    pass


class CsvParseError(ChatError):
    pass


class UpstreamResponseError(ChatError):
    """The completion API answered with something we can't use."""


class RequestTimeoutError(ChatError):
    hint = (
        "The request took too long. Try a more specific question, "
        "for example include the SKU or purchase order number."
    )

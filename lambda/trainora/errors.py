from botocore.exceptions import ClientError


class ValidationError(ValueError):
    """Missing or malformed request input. Raised before any store access."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def is_conditional_check_failed(exc: BaseException) -> bool:
    if not isinstance(exc, ClientError):
        return False
    return exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"

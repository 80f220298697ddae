from __future__ import annotations

from botocore.exceptions import BotoCoreError, ClientError

from .errors import AwsError, NotFoundError, RequestRejectedError, ThrottledError, TransportError

_THROTTLING_CODES = frozenset(
    {
        "ProvisionedThroughputExceededException",
        "RequestLimitExceeded",
        "ThrottlingException",
        "Throttling",
    }
)


def map_client_error(err: ClientError) -> Exception:
    code = str(err.response.get("Error", {}).get("Code", ""))
    message = str(err.response.get("Error", {}).get("Message", ""))

    if code in _THROTTLING_CODES:
        return ThrottledError(code=code, message=message or str(err))
    if code == "ValidationException":
        return RequestRejectedError(code=code, message=message or str(err))
    if code == "ResourceNotFoundException":
        return NotFoundError(message)

    return AwsError(code=code or "UnknownError", message=message or str(err))


def map_botocore_error(err: BotoCoreError) -> Exception:
    return TransportError(f"{type(err).__name__}: {err}")

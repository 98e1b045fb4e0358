"""Classification of botocore errors into reconciler error kinds."""

from __future__ import annotations

from botocore.exceptions import ClientError, ConnectionError, ReadTimeoutError

from .errors import ErrorKind

NOT_FOUND_CODES = frozenset(
    {
        "ResourceNotFoundException",
        "NotFoundException",
        "WAFNonexistentItemException",
    }
)

THROTTLED_CODES = frozenset(
    {
        "ThrottlingException",
        "Throttling",
        "TooManyRequestsException",
        "RequestLimitExceeded",
        "ServiceUnavailableException",
        "InternalServerException",
        # Change token was superseded by a concurrent change; fetch a new one
        "WAFStaleDataException",
        "WAFUnavailableEntityException",
    }
)

CONFLICT_CODES = frozenset(
    {
        "ResourceInUseException",
        "ConflictException",
        "WAFDuplicateItemException",
        "WAFReferencedItemException",
    }
)

# Substrings of InvalidParameterException messages caused by IAM eventual
# consistency: a freshly created role is not yet visible to the service
IAM_PROPAGATION_MESSAGES = (
    "does not exist",
    "not authorized to perform: sts:AssumeRole",
    "cannot be assumed",
)


def error_code(error: BaseException) -> str | None:
    """Get the AWS error code of a ClientError, if any."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code")
    return None


def error_message(error: BaseException) -> str:
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Message", "") or ""
    return str(error)


def classify_aws_error(error: BaseException) -> ErrorKind:
    """Classify a botocore error.

    Connection-level failures are transient. Unknown error codes are OTHER
    so the caller fails fast.
    """
    if isinstance(error, (ConnectionError, ReadTimeoutError)):
        return ErrorKind.THROTTLED

    code = error_code(error)
    if code is None:
        return ErrorKind.OTHER

    if code in NOT_FOUND_CODES:
        return ErrorKind.NOT_FOUND
    if code in THROTTLED_CODES:
        return ErrorKind.THROTTLED
    if code in CONFLICT_CODES:
        return ErrorKind.CONFLICT

    if code == "InvalidParameterException":
        message = error_message(error)
        if "role" in message.lower() and any(m in message for m in IAM_PROPAGATION_MESSAGES):
            return ErrorKind.THROTTLED

    return ErrorKind.OTHER

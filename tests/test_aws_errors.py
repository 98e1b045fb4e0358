"""Tests for botocore error classification."""

import pytest
from aws_mock import client_error
from botocore.exceptions import EndpointConnectionError, ReadTimeoutError

from lifecycle.aws_errors import classify_aws_error, error_code
from lifecycle.errors import ErrorKind


class TestClassifyAwsError:
    """Tests for classify_aws_error."""

    @pytest.mark.parametrize(
        ("code", "kind"),
        [
            ("ResourceNotFoundException", ErrorKind.NOT_FOUND),
            ("WAFNonexistentItemException", ErrorKind.NOT_FOUND),
            ("ThrottlingException", ErrorKind.THROTTLED),
            ("WAFStaleDataException", ErrorKind.THROTTLED),
            ("ResourceInUseException", ErrorKind.CONFLICT),
            ("WAFReferencedItemException", ErrorKind.CONFLICT),
            ("AccessDeniedException", ErrorKind.OTHER),
        ],
    )
    def test_error_codes(self, code: str, kind: ErrorKind) -> None:
        assert classify_aws_error(client_error(code)) == kind

    def test_iam_propagation_is_transient(self) -> None:
        """Test that a freshly created role not yet visible is retried."""
        error = client_error(
            "InvalidParameterException",
            "Role arn:aws:iam::123456789012:role/cni does not exist",
        )

        assert classify_aws_error(error) == ErrorKind.THROTTLED

    def test_other_invalid_parameter_fails_fast(self) -> None:
        error = client_error("InvalidParameterException", "Addon version v9 is not supported")

        assert classify_aws_error(error) == ErrorKind.OTHER

    def test_connection_errors_are_transient(self) -> None:
        assert (
            classify_aws_error(EndpointConnectionError(endpoint_url="https://eks"))
            == ErrorKind.THROTTLED
        )
        assert (
            classify_aws_error(ReadTimeoutError(endpoint_url="https://eks"))
            == ErrorKind.THROTTLED
        )

    def test_non_aws_error(self) -> None:
        assert classify_aws_error(ValueError("boom")) == ErrorKind.OTHER
        assert error_code(ValueError("boom")) is None

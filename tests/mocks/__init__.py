"""Mock implementations for third-party clients.

This module provides realistic mock implementations that match the Protocol
definitions, allowing tests to run without real cloud services.
"""

from tests.mocks.cloud_mocks import (
    MockS3Client,
    create_mock_s3_client,
    s3_client_error,
)

__all__ = [
    "MockS3Client",
    "create_mock_s3_client",
    "s3_client_error",
]

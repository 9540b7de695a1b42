"""
Identity provider administration
"""

from iam_service.idp.client import (
    IdpConflictError,
    IdpError,
    IdpOperationError,
    KeycloakAdminClient,
)

__all__ = [
    "IdpConflictError",
    "IdpError",
    "IdpOperationError",
    "KeycloakAdminClient",
]

"""
Tenant domain canonicalization and the URLs derived from it
"""

import re
from urllib.parse import quote_plus

from iam_service.core.errors import ErrorCode, IamOperationError

_LABEL = re.compile(r"^[a-z0-9-]+$")


class DomainNormalizer:
    """
    Maps free-form domain input onto ``<label><suffix>``.

    ``normalize`` is idempotent: a value that already carries the suffix is
    returned unchanged, so persisted canonical domains can be passed back in.
    """

    def __init__(self, suffix: str):
        self.suffix = suffix.strip().lower()

    def normalize(self, domain: str) -> str:
        value = (domain or "").strip().lower()
        for scheme in ("http://", "https://"):
            if value.startswith(scheme):
                value = value[len(scheme):]
        value = value.split("/", 1)[0].split(":", 1)[0]

        if not value:
            raise IamOperationError(ErrorCode.INVALID_DOMAIN)

        if value.endswith(self.suffix) or self.suffix in value:
            return value

        label = value.split(".", 1)[0]
        if not label or not _LABEL.match(label):
            raise IamOperationError(
                ErrorCode.INVALID_DOMAIN, f"'{domain}' is not a valid domain name."
            )
        return f"{label}{self.suffix}"

    def redirect_uri(self, domain: str) -> str:
        return f"https://{self.normalize(domain)}/*"

    def login_url(self, idp_base_url: str, tenant_name: str, domain: str) -> str:
        redirect = quote_plus(f"https://{self.normalize(domain)}")
        client_id = quote_plus(tenant_name)
        return (
            f"{idp_base_url.rstrip('/')}/realms/{tenant_name}/protocol/openid-connect/auth"
            f"?client_id={client_id}&redirect_uri={redirect}&response_type=code"
        )

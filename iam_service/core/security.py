"""
Per-request JWT verification dispatched on the token's issuer

Each tenant realm signs its own tokens. The issuer claim is read from the
unverified payload only to choose which tenant's JWKS to verify against;
the token is then fully verified by that tenant's verifier.
"""

from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Optional
import json

import httpx
from jose import ExpiredSignatureError, JWTError, jwt
from jose.utils import base64url_decode
from sqlmodel import Session, select
import structlog

from iam_service.core.config import Settings
from iam_service.core.errors import AuthenticationFailed
from iam_service.models.auth_provider_config import AuthProviderConfig

logger = structlog.get_logger(__name__)

BEARER_PREFIX = "Bearer "
TOKEN_EXPIRED = "TOKEN_EXPIRED"
INVALID_TOKEN = "Invalid token"


def extract_issuer(token: str) -> Optional[str]:
    """Read ``iss`` from the unverified payload; None when it cannot be read"""
    parts = token.split(".")
    if len(parts) < 2 or not parts[1]:
        return None
    try:
        payload = json.loads(base64url_decode(parts[1].encode("ascii")))
    except (ValueError, UnicodeError):
        return None
    if not isinstance(payload, dict):
        return None
    issuer = payload.get("iss")
    return issuer if isinstance(issuer, str) and issuer else None


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


class JwksTokenVerifier:
    """Verifies tokens of one issuer against its JWKS, cached for a while"""

    def __init__(
        self,
        issuer: str,
        jwks_uri: str,
        algorithms: list[str],
        timeout: float = 10.0,
        cache_seconds: int = 300,
        http_client: Optional[httpx.Client] = None,
    ):
        if not jwks_uri.startswith(("http://", "https://")):
            raise ValueError(f"Unsupported JWKS location: {jwks_uri}")
        self.issuer = issuer
        self.jwks_uri = jwks_uri
        self.algorithms = algorithms
        self.timeout = timeout
        self.cache_ttl = timedelta(seconds=cache_seconds)
        self._http = http_client
        self._jwks: Optional[dict] = None
        self._fetched_at: Optional[datetime] = None
        self._lock = Lock()

    def _fetch_jwks(self) -> dict:
        try:
            if self._http is not None:
                response = self._http.get(self.jwks_uri, timeout=self.timeout)
            else:
                response = httpx.get(self.jwks_uri, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Could not fetch JWKS from {self.jwks_uri}: {e}")
            raise AuthenticationFailed(INVALID_TOKEN) from e

    def jwks(self, refresh: bool = False) -> dict:
        with self._lock:
            stale = self._fetched_at is None or datetime.now(timezone.utc) - self._fetched_at > self.cache_ttl
            if refresh or stale or self._jwks is None:
                self._jwks = self._fetch_jwks()
                self._fetched_at = datetime.now(timezone.utc)
            return self._jwks

    def _known_kid(self, token: str, jwks: dict) -> bool:
        try:
            kid = jwt.get_unverified_header(token).get("kid")
        except JWTError:
            return True
        if kid is None:
            return True
        return any(key.get("kid") == kid for key in jwks.get("keys", []))

    def verify(self, token: str) -> dict:
        """Return verified claims or raise AuthenticationFailed"""
        jwks = self.jwks()
        if not self._known_kid(token, jwks):
            # Signing key rotated since the last fetch
            jwks = self.jwks(refresh=True)
        try:
            return jwt.decode(
                token,
                jwks,
                algorithms=self.algorithms,
                issuer=self.issuer,
                options={"verify_aud": False},
            )
        except ExpiredSignatureError as e:
            raise AuthenticationFailed(TOKEN_EXPIRED) from e
        except JWTError as e:
            logger.info(f"Token rejected for issuer {self.issuer}: {e}")
            raise AuthenticationFailed(INVALID_TOKEN) from e


class IssuerVerifierResolver:
    """
    Chooses the verifier for a request from the stored auth provider configs.

    The issuer map is rebuilt from the store on every resolve so newly
    provisioned tenants are honoured immediately; verifier instances (and
    their JWKS caches) are reused while a tenant's coordinates stay the same.
    """

    def __init__(self, settings: Settings, http_client: Optional[httpx.Client] = None):
        self.settings = settings
        self.http_client = http_client
        self._verifiers: dict[tuple[str, str], JwksTokenVerifier] = {}
        self._lock = Lock()

    def _verifier(self, issuer: str, jwks_uri: str) -> Optional[JwksTokenVerifier]:
        key = (issuer, jwks_uri)
        with self._lock:
            verifier = self._verifiers.get(key)
            if verifier is None:
                try:
                    verifier = JwksTokenVerifier(
                        issuer,
                        jwks_uri,
                        self.settings.JWT_ALGORITHMS,
                        timeout=self.settings.IDP_TIMEOUT_SECONDS,
                        cache_seconds=self.settings.JWKS_CACHE_SECONDS,
                        http_client=self.http_client,
                    )
                except ValueError as e:
                    logger.warning(f"Skipping verifier for issuer {issuer}: {e}")
                    return None
                self._verifiers[key] = verifier
            return verifier

    def verifiers_by_issuer(self, session: Session) -> dict[str, JwksTokenVerifier]:
        verifiers = {}
        for config in session.exec(select(AuthProviderConfig)).all():
            if not config.issuer_uri:
                continue
            verifier = self._verifier(config.issuer_uri, config.certs_uri())
            if verifier is not None:
                verifiers[config.issuer_uri] = verifier
        return verifiers

    def resolve(self, authorization: Optional[str], session: Session) -> Optional[JwksTokenVerifier]:
        """Verifier for the bearer token in the header, or None to decline"""
        token = bearer_token(authorization)
        if token is None:
            return None
        issuer = extract_issuer(token)
        if issuer is None:
            logger.debug("Bearer token without a readable issuer")
            return None
        verifier = self.verifiers_by_issuer(session).get(issuer)
        if verifier is None:
            logger.info(f"No auth provider configured for issuer {issuer}")
        return verifier

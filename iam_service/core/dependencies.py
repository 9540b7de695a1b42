"""
Dependency providers for FastAPI routes
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, Request
from sqlmodel import Session
import structlog

from iam_service.core.config import Settings, get_settings
from iam_service.core.database import get_session
from iam_service.core.errors import AuthenticationFailed
from iam_service.core.mailer import Mailer
from iam_service.core.security import INVALID_TOKEN, IssuerVerifierResolver, bearer_token

logger = structlog.get_logger(__name__)


def get_idp_client(request: Request):
    """Process-wide IdP admin session opened in the app lifespan"""
    return request.app.state.idp_client


def get_mailer(settings: Settings = Depends(get_settings)) -> Mailer:
    return Mailer(settings)


@lru_cache()
def get_verifier_resolver() -> IssuerVerifierResolver:
    return IssuerVerifierResolver(get_settings())


def get_token_claims(
    authorization: Optional[str] = Header(default=None),
    session: Session = Depends(get_session),
    resolver: IssuerVerifierResolver = Depends(get_verifier_resolver),
) -> Optional[dict]:
    """Verified claims, or None when the request carries no token we can place"""
    verifier = resolver.resolve(authorization, session)
    if verifier is None:
        return None
    return verifier.verify(bearer_token(authorization))


def require_token_claims(claims: Optional[dict] = Depends(get_token_claims)) -> dict:
    if claims is None:
        raise AuthenticationFailed(INVALID_TOKEN)
    logger.debug(f"Authenticated subject: {claims.get('sub')}")
    return claims

import logging
import os
import time
from typing import Any, Dict, List, Optional

import requests
from fastapi import HTTPException, Request
from jose import JWTError, jwt

logger = logging.getLogger(__name__)


class JwksVerifier:
    """Verifies RS256 bearer tokens against a JWKS endpoint.

    Keys are cached for `ttl_seconds`; if a refresh fails the last good key
    set keeps being used.
    """

    def __init__(self, jwks_url: str, audience: Optional[str] = None, ttl_seconds: int = 300):
        self.jwks_url = jwks_url
        self.audience = audience
        self.issuer = jwks_url.split("/.well-known/")[0]
        self.ttl_seconds = ttl_seconds
        self._keys: Optional[List[Dict[str, Any]]] = None
        self._fetched_at = 0.0

    def keys(self) -> List[Dict[str, Any]]:
        now = time.time()
        if self._keys is not None and (now - self._fetched_at) < self.ttl_seconds:
            return self._keys
        try:
            response = requests.get(self.jwks_url, timeout=3.0)
            response.raise_for_status()
            self._keys = response.json().get("keys", [])
            self._fetched_at = now
            return self._keys
        except Exception as e:
            if self._keys is not None:
                logger.warning("auth.jwks.stale: %s", e)
                return self._keys
            raise HTTPException(status_code=503, detail=f"Unable to fetch JWKS: {str(e)}")

    def _key_for(self, token: str) -> Dict[str, Any]:
        kid = jwt.get_unverified_header(token).get("kid")
        for key in self.keys():
            if key.get("kid") == kid:
                return key
        raise HTTPException(status_code=401, detail="Public key not found.")

    # Returns the decoded claims of a valid token
    def verify(self, token: str) -> Dict[str, Any]:
        if token.count(".") != 2:
            raise HTTPException(status_code=401, detail="Token is not a valid JWT.")
        try:
            return jwt.decode(
                token,
                self._key_for(token),
                algorithms=["RS256"],
                audience=self.audience,
                issuer=self.issuer,
                options={"verify_aud": False} if not self.audience else {},
            )
        except JWTError as e:
            raise HTTPException(status_code=401, detail=f"Token verification failed: {str(e)}")


_verifier: Optional[JwksVerifier] = None


def get_verifier() -> JwksVerifier:
    global _verifier
    if _verifier is not None:
        return _verifier
    jwks_url = os.getenv("AUTH_JWKS_URL")
    if not jwks_url:
        raise HTTPException(status_code=500, detail="AUTH_JWKS_URL is not configured.")
    audience = os.getenv("AUTH_AUDIENCE") or None
    if not audience:
        logger.warning("AUTH_AUDIENCE is not set; audience claim will not be checked.")
    _verifier = JwksVerifier(jwks_url, audience=audience)
    return _verifier


# FastAPI dependency: the authenticated caller's user id (JWT `sub`)
def current_user_id(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid token.")
    claims = get_verifier().verify(auth_header.split(" ", 1)[1])
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=400, detail="User identification is required")
    return str(user_id)

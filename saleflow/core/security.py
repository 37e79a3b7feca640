# saleflow/core/security.py

from jose import jwt, JWTError
from fastapi import HTTPException, status

from saleflow.core.config import (
    SHOPIFY_API_KEY,
    SHOPIFY_API_SECRET,
    SESSION_TOKEN_ALGORITHM,
)

# =====================================================
# SESSION TOKEN (App Bridge)
# =====================================================
def decode_session_token(token: str) -> dict:
    """
    Verifies a Shopify App Bridge session token.
    `dest` carries the shop URL, `aud` must be this app's API key.
    """
    try:
        payload = jwt.decode(
            token,
            SHOPIFY_API_SECRET,
            algorithms=[SESSION_TOKEN_ALGORITHM],
            audience=SHOPIFY_API_KEY,
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session token",
        )

    if not payload.get("dest"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session token has no shop",
        )

    return payload

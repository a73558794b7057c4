# routers/auth.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from starlette.status import HTTP_201_CREATED, HTTP_401_UNAUTHORIZED, HTTP_500_INTERNAL_SERVER_ERROR

from dependencies import get_gate
from hashing import TokenGenerationError
from models import TokenRequest, TokenResponse
from token_manager import TOKEN_MESSAGE, CredentialGate, CredentialPersistenceError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/auth",
    tags=["Authentication"],
)


@router.post("/token", response_model=TokenResponse, status_code=HTTP_201_CREATED)
def generate_token(payload: Optional[TokenRequest] = None, gate: CredentialGate = Depends(get_gate)):
    """
    Issues a new API token. The plaintext token is returned only here.

    The password is checked only when `require_password` is enabled in the
    configuration; otherwise any body (or none) is accepted.
    """
    if gate.config.require_password:
        password = payload.password if payload else None
        if not password or not gate.verify_password(password):
            raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Invalid password")

    try:
        token = gate.issue_token()
    except TokenGenerationError as e:
        logger.error("Token generation failed: %s", e)
        raise HTTPException(status_code=HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to generate token")
    except CredentialPersistenceError:
        raise HTTPException(status_code=HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to save token")

    return TokenResponse(token=token, message=TOKEN_MESSAGE)

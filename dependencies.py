# dependencies.py
from fastapi import Depends, HTTPException, Request
from fastapi.security import APIKeyHeader
from starlette.status import HTTP_401_UNAUTHORIZED

from storage import TaskStore
from token_manager import CredentialGate

API_KEY_HEADER = APIKeyHeader(name="X-API-Token", auto_error=False)


def get_store(request: Request) -> TaskStore:
    """The TaskStore built at startup and attached to app.state."""
    return request.app.state.store


def get_gate(request: Request) -> CredentialGate:
    return request.app.state.gate


def require_token(api_token: str = Depends(API_KEY_HEADER), gate: CredentialGate = Depends(get_gate)) -> str:
    """
    Validates the X-API-Token header against the issued token hashes.
    A missing and an unknown token both end in 401; only the message differs.
    """
    if not api_token:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Token required")
    if not gate.verify_token(api_token):
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return api_token

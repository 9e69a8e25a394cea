import time
import hashlib
from typing import Optional
from fastapi import Header, HTTPException, Request, Depends
from nacl.signing import VerifyKey
from nacl.exceptions import BadSignatureError

from app.auth.auth_utils import verify_bearer_token
from app.courses.config import REQUIRE_CLIENT_BINDING, CLIENT_TIMESTAMP_TOLERANCE_SECONDS


def verify_client_signature(
    path: str,
    token_payload: dict,
    public_key_hex: str,
    signature_hex: str,
    timestamp: str,
    now: Optional[int] = None
) -> dict:
    """
    Check that the request was signed by the client key the token is bound to.

    Signed message: "<timestamp>:<request_path>"
    """
    # 1. Timestamp replay protection
    try:
        ts = int(timestamp)
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid timestamp")

    now = int(time.time()) if now is None else now
    if abs(now - ts) > CLIENT_TIMESTAMP_TOLERANCE_SECONDS:
        raise HTTPException(status_code=401, detail="Stale request")

    # 2. Decode public key
    try:
        public_key_bytes = bytes.fromhex(public_key_hex)
        verify_key = VerifyKey(public_key_bytes)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid client public key")

    # 3. Client id is derived server-side and must match the token's cid
    derived_client_id = hashlib.sha256(public_key_bytes).hexdigest()
    token_client_id = token_payload.get("cid")
    if not token_client_id:
        raise HTTPException(status_code=401, detail="Token not client-bound")
    if token_client_id != derived_client_id:
        raise HTTPException(status_code=401, detail="Client mismatch")

    # 4. Signature
    message = f"{timestamp}:{path}".encode()
    try:
        verify_key.verify(message, bytes.fromhex(signature_hex))
    except (BadSignatureError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid client signature")

    return token_payload


def verify_client_bound_request(
    request: Request,
    token_payload: dict = Depends(verify_bearer_token),
    x_client_public_key: str = Header(None),
    x_client_signature: str = Header(None),
    x_client_timestamp: str = Header(None)
) -> dict:
    """
    Bearer token, plus the client signature when binding is enforced
    or when the client chose to send one
    """
    headers = (x_client_public_key, x_client_signature, x_client_timestamp)
    if not any(headers) and not REQUIRE_CLIENT_BINDING:
        return token_payload

    if not all(headers):
        raise HTTPException(status_code=401, detail="Missing client binding headers")

    return verify_client_signature(
        request.url.path, token_payload,
        x_client_public_key, x_client_signature, x_client_timestamp
    )

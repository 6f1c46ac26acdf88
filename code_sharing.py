import base64
import binascii
import logging
from typing import Optional
from urllib.parse import quote

logger = logging.getLogger(__name__)

SHARE_PARAM = "code"


def encode_share_token(code: str) -> str:
    """Encode source text as a URL-safe token"""
    return base64.urlsafe_b64encode(code.encode('utf-8')).decode('ascii')


def decode_share_token(token: Optional[str]) -> Optional[str]:
    """Decode a share token back to source text; None if it is malformed"""
    if not token or not token.strip():
        return None
    try:
        cleaned = token.strip().replace('+', '-').replace('/', '_').replace(' ', '-')
        cleaned += '=' * (-len(cleaned) % 4)
        decoded = base64.urlsafe_b64decode(cleaned.encode('ascii')).decode('utf-8')
        return decoded or None
    except (binascii.Error, ValueError) as e:
        logger.error(f"Failed to decode shared code: {str(e)}")
        return None


def build_share_url(code: str, base_url: str) -> str:
    token = encode_share_token(code)
    base = base_url.split('?', 1)[0]
    return f"{base}?{SHARE_PARAM}={quote(token)}"

# Security module
from hotelops.security.auth import (
    get_password_hash, verify_password, create_access_token, create_guest_token,
    get_current_user, get_current_guest, require_role
)

__all__ = [
    'get_password_hash', 'verify_password', 'create_access_token', 'create_guest_token',
    'get_current_user', 'get_current_guest', 'require_role'
]

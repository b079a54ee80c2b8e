import secrets

from cuid2 import cuid_wrapper

# Create a CUID generator with custom settings
cuid_generator = cuid_wrapper()

SHARE_TOKEN_BYTES = 32


def generate_cuid() -> str:
    """Generate a collision-resistant unique identifier"""
    result = cuid_generator()
    assert isinstance(result, str)
    return result


def generate_share_token() -> str:
    """Generate an unguessable URL-safe share grant identifier"""
    return secrets.token_urlsafe(SHARE_TOKEN_BYTES)

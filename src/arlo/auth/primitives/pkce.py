"""PKCE (Proof Key for Code Exchange) generation for the login flow.

Implements RFC 7636 parameter generation to prevent authorization code
interception attacks. All randomness comes from ``secrets`` (the OS CSPRNG);
if that is unavailable the error propagates instead of falling back to a
non-cryptographic generator.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import string

from arlo.auth.models.errors import PKCEError
from arlo.auth.models.security import PKCEParameters

# RFC 7636 Section 4.1: unreserved characters
VERIFIER_ALPHABET = string.ascii_letters + string.digits + "-._~"
VERIFIER_LENGTH = 64
STATE_BYTES = 32


def generate_code_verifier() -> str:
    """Generate a cryptographically secure code verifier.

    RFC 7636 Section 4.1: code verifier must be 43-128 characters long
    and use only unreserved characters:
        [A-Z] / [a-z] / [0-9] / "-" / "." / "_" / "~"

    Returns:
        A 64-character code verifier (about 386 bits of entropy)
    """
    return "".join(secrets.choice(VERIFIER_ALPHABET) for _ in range(VERIFIER_LENGTH))


async def generate_code_challenge(code_verifier: str) -> str:
    """Generate code challenge from code verifier using S256 method.

    RFC 7636 Section 4.2: For S256, the code challenge is:
    BASE64URL-ENCODE(SHA256(ASCII(code_verifier)))

    Args:
        code_verifier: The code verifier to hash

    Returns:
        Base64url-encoded SHA256 hash of the code verifier, without padding
    """
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()

    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def generate_state() -> str:
    """Generate a cryptographically secure state parameter.

    Drawn independently of the verifier. 32 random bytes, base64url-encoded
    to 43 characters.
    """
    return secrets.token_urlsafe(STATE_BYTES)


class PKCEManager:
    """Generates the PKCE material for one authorization request.

    This implementation follows RFC 7636 requirements:
    - Uses S256 code challenge method (SHA256 + base64url)
    - Generates cryptographically secure code verifiers
    - Generates an independent state parameter for CSRF protection
    """

    async def generate_parameters(self) -> PKCEParameters:
        """Generate new PKCE parameters for an authorization flow.

        Returns:
            PKCEParameters: Immutable parameters for the authorization flow

        Raises:
            PKCEError: If parameter generation fails
        """
        try:
            code_verifier = generate_code_verifier()
            code_challenge = await generate_code_challenge(code_verifier)
            state = generate_state()

            return PKCEParameters(
                code_verifier=code_verifier,
                code_challenge=code_challenge,
                code_challenge_method="S256",
                state=state,
            )

        except Exception as e:
            raise PKCEError(f"Failed to generate PKCE parameters: {e}") from e

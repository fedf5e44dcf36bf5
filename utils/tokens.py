from datetime import datetime, timezone, timedelta
from jose import jwt, JWTError, ExpiredSignatureError
from services.dto import TokenClaims

ALGORITHM = "HS512"


class TokenCodecError(Exception):
    pass


class InvalidSignature(TokenCodecError):
    """Token is malformed, signed with another algorithm, or forged."""


class Expired(TokenCodecError):
    """Token is authentic but past its expiry."""


class SigningError(TokenCodecError):
    """Claims could not be signed."""


class TokenCodec:
    """
    Signs and verifies the JWTs used as access and refresh tokens.

    Both token kinds share one claim shape and one symmetric key:
    access tokens carry ``sub``, ``ip`` and ``sid``; refresh tokens carry
    only ``sid``. ``iat`` and ``exp`` are added on signing.
    """

    def __init__(self, secret_key: str, access_ttl: timedelta, refresh_ttl: timedelta):
        if not secret_key:
            raise ValueError("Signing key cannot be empty")
        self._secret_key = secret_key
        self._access_ttl = access_ttl
        self._refresh_ttl = refresh_ttl

    @property
    def access_ttl(self) -> timedelta:
        return self._access_ttl

    @property
    def refresh_ttl(self) -> timedelta:
        return self._refresh_ttl

    def sign(self, claims: dict, ttl: timedelta, issued_at: datetime = None) -> str:
        """
        Signs claims into a compact JWT.

        Args:
            claims: Token-specific claims (``sub``, ``ip``, ``sid``)
            ttl: Lifetime, at least one second
            issued_at: Issuance time (default: now)

        Returns:
            Signed token string
        """
        ttl_seconds = int(ttl.total_seconds())
        if ttl_seconds < 1:
            raise ValueError("Token lifetime must be at least one second")

        if issued_at is None:
            issued_at = datetime.now(timezone.utc)

        iat = int(issued_at.timestamp())
        payload = {
            **claims,
            "iat": iat,
            "exp": iat + ttl_seconds,
        }

        try:
            return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)
        except JWTError as exc:
            raise SigningError(str(exc)) from exc

    def verify(self, token: str) -> TokenClaims:
        """
        Verifies signature and expiry, returning the claim set.

        Raises:
            InvalidSignature: Malformed token, wrong algorithm, bad signature
                or missing mandatory claims
            Expired: Authentic token whose ``exp`` has passed
        """
        try:
            header = jwt.get_unverified_header(token)
            if header.get("alg") != ALGORITHM:
                raise InvalidSignature(f"Unexpected signing algorithm: {header.get('alg')}")

            payload = jwt.decode(token, self._secret_key, algorithms=[ALGORITHM])

        except ExpiredSignatureError as exc:
            raise Expired("Token expired") from exc
        except JWTError as exc:
            raise InvalidSignature(str(exc)) from exc

        session_id = payload.get("sid")
        iat = payload.get("iat")
        exp = payload.get("exp")

        if not session_id or not isinstance(iat, int) or not isinstance(exp, int):
            raise InvalidSignature("Invalid token payload")

        if exp <= iat:
            raise InvalidSignature("Token expiry precedes issuance")

        return TokenClaims(
            session_id=session_id,
            issued_at=datetime.fromtimestamp(iat, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
            subject=payload.get("sub"),
            source_address=payload.get("ip"),
        )

    def create_access_token(self, subject: str, source_address: str, session_id: str) -> str:
        return self.sign(
            {"sub": subject, "ip": source_address, "sid": session_id},
            self._access_ttl,
        )

    def create_refresh_token(self, session_id: str) -> str:
        return self.sign({"sid": session_id}, self._refresh_ttl)

    def decode_access_token(self, token: str) -> TokenClaims:
        claims = self.verify(token)
        if not claims.subject:
            raise InvalidSignature("Access token required")
        return claims

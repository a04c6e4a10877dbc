from authlib.integrations.starlette_client import OAuth
from carpool.core.config import settings
import secrets

# A nonce is good for one callback within this many seconds
NONCE_TTL_SECONDS = 600

oauth = OAuth()

oauth.register(
    name="google",
    client_id=settings.GOOGLE_CLIENT_ID,
    client_secret=settings.GOOGLE_CLIENT_SECRET,
    server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
    client_kwargs={"scope": "openid email profile"},
)


def google_enabled() -> bool:
    return bool(settings.GOOGLE_CLIENT_ID and settings.GOOGLE_CLIENT_SECRET)


def _nonce_key(nonce: str) -> str:
    return f"carpool:google-nonce:{nonce}"


async def issue_nonce(redis_client) -> str:
    nonce = secrets.token_urlsafe(32)
    await redis_client.set(_nonce_key(nonce), "1", ex=NONCE_TTL_SECONDS)
    return nonce


async def consume_nonce(redis_client, nonce: str) -> bool:
    """True the first time a live nonce is presented, False afterwards."""
    return bool(await redis_client.delete(_nonce_key(nonce)))

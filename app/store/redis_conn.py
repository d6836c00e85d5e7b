from redis import Redis
from app.settings import settings


def get_redis(binary: bool = False) -> Redis:
    # Audio blobs need raw bytes; everything else is JSON text.
    return Redis.from_url(settings.REDIS_URL, decode_responses=not binary)

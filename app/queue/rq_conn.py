from rq import Queue
from app.settings import settings
from app.store.redis_conn import get_redis


def get_queue() -> Queue:
    # RQ pickles job payloads, so the connection must not decode responses
    return Queue(settings.RQ_QUEUE_NAME, connection=get_redis(binary=True))

import os
from redis import Redis
from rq import Queue

REDIS_RQ_URL = os.getenv("REDIS_RQ_URL", "redis://localhost:6379/1")
MEDIA_QUEUE_NAME = os.getenv("MEDIA_QUEUE_NAME", "media")

# RQ stores pickled job data, so responses must stay as bytes
redis_rq = Redis.from_url(REDIS_RQ_URL)

media_queue = Queue(MEDIA_QUEUE_NAME, connection=redis_rq)


def init_redis() -> None:
    redis_rq.ping()

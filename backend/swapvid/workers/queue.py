"""
RQ queue helpers.
"""

from typing import Optional

import redis
from rq import Queue, Retry

from swapvid.config.settings import settings


def get_redis_connection() -> redis.Redis:
    return redis.from_url(settings.redis_url)


def get_queue(name: Optional[str] = None) -> Queue:
    return Queue(name or settings.rq_queue_name, connection=get_redis_connection())


def get_long_queue() -> Queue:
    return get_queue(settings.rq_long_queue_name)


def step_retry() -> Retry:
    intervals = list(settings.step_retry_intervals_s)
    return Retry(max=len(intervals), interval=intervals)

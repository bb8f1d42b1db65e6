import asyncio
from collections import OrderedDict
from functools import wraps
from typing import Any


def lru_acache(maxsize: int = 128):
    """
    Caches an async function's return value each time it is called.

    Values are scoped to the running event loop, as connection pools cannot be shared across loops. If the maxsize is reached, the least recently used value is removed.
    """

    def decorator(func):
        cache: OrderedDict[tuple, Any] = OrderedDict()

        @wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            # Create a cache key from event loop, args and kwargs, using frozenset for kwargs to ensure hashability
            key = (
                id(asyncio.get_running_loop()),
                args,
                frozenset(kwargs.items()),
            )

            if key in cache:
                # Move the recently accessed key to the end (most recently used)
                cache.move_to_end(key)
                return cache[key]

            # Compute the value since it's not cached
            value = await func(*args, **kwargs)
            cache[key] = value

            # Remove the least recently used key if the cache is full
            if len(cache) > maxsize:
                cache.popitem(last=False)

            return value

        wrapper.cache_clear = cache.clear  # pyright: ignore
        return wrapper

    return decorator

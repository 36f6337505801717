import time
import functools
from loguru import logger


def timing_decorator_async(func):
    """
    Async decorator to log how long an async function took.
    Failures are logged with their duration and re-raised unchanged.
    """
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        logger.info(f"Async Function '{func.__name__}' started")

        try:
            result = await func(*args, **kwargs)
        except BaseException as e:
            duration = time.perf_counter() - start_time
            logger.error(f"Async Function '{func.__name__}' failed after {duration:.4f} seconds: {e!r}")
            raise

        duration = time.perf_counter() - start_time
        logger.info(f"Async Function '{func.__name__}' took {duration:.4f} seconds ({duration*1000:.2f} ms)")
        return result

    return wrapper

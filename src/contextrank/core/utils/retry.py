import time
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

T = TypeVar('T')


def retry_sync(
    func: Callable[[], T],
    max_attempts: int = 3,
    backoff: str = "exponential",
    initial_delay: float = 0.5,
    max_delay: float = 30.0,
    retry_on: Tuple[Type[Exception], ...] = (Exception,),
    logger: Optional[Any] = None,
) -> T:
    """
    Retry a blocking function with configurable backoff.

    Args:
        func: Zero-argument callable to retry
        max_attempts: Maximum number of attempts
        backoff: "exponential", "linear", or "constant"
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay between retries
        retry_on: Tuple of exceptions to retry on
        logger: Optional logger for retry attempts

    Returns:
        Result from successful function call

    Raises:
        Last exception if all retries fail
    """
    last_exception: Optional[Exception] = None

    for attempt in range(max_attempts):
        try:
            return func()
        except retry_on as e:
            last_exception = e

            if attempt < max_attempts - 1:
                if backoff == "exponential":
                    delay = min(initial_delay * (2**attempt), max_delay)
                elif backoff == "linear":
                    delay = min(initial_delay * (attempt + 1), max_delay)
                else:  # constant
                    delay = initial_delay

                if logger:
                    logger.warning(
                        "Retry attempt failed",
                        attempt=attempt + 1,
                        max_attempts=max_attempts,
                        delay=delay,
                        error=str(e),
                    )

                time.sleep(delay)
            else:
                if logger:
                    logger.error("All retry attempts failed", attempts=max_attempts, error=str(e))

    if last_exception is None:
        raise RuntimeError("No exception captured but all attempts failed")
    raise last_exception


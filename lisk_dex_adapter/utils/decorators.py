import functools
import inspect
import time
from typing import Any, Callable, TypeVar, Union

from loguru import logger as logging

C = TypeVar("C", bound=Callable[..., Any])


def log_execution(enabled: Union[bool, Callable[..., bool]] = True) -> Callable[[C], C]:
    """
    Decorator factory that logs how long an adapter action took and how it ended.

    Args:
        enabled (Union[bool, Callable]): Flag to enable or disable logging, or a
            predicate called with the arguments of each call to decide per call.

    Returns:
        Callable: A decorator that wraps the target function or method.
    """

    def decorator(func: C) -> C:
        if not callable(enabled) and not enabled:
            return func

        def should_log(args: Any, kwargs: Any) -> bool:
            return enabled(*args, **kwargs) if callable(enabled) else bool(enabled)

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                if not should_log(args, kwargs):
                    return await func(*args, **kwargs)
                start_time = time.perf_counter()
                outcome = "failed"
                try:
                    result = await func(*args, **kwargs)
                    outcome = "completed"
                    return result
                finally:
                    _log_execution_details(func, start_time, outcome, kwargs)

            return async_wrapper  # type: ignore

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            if not should_log(args, kwargs):
                return func(*args, **kwargs)
            start_time = time.perf_counter()
            outcome = "failed"
            try:
                result = func(*args, **kwargs)
                outcome = "completed"
                return result
            finally:
                _log_execution_details(func, start_time, outcome, kwargs)

        return sync_wrapper  # type: ignore

    return decorator


def _log_execution_details(
    f: Callable[..., Any],
    start: float,
    outcome: str,
    kwargs: Any,
) -> None:
    execution_time = time.perf_counter() - start
    params = ", ".join(f"{key}={value!r}" for key, value in kwargs.items())
    logging.debug(
        f"Action {f.__name__}({params}) {outcome} in {execution_time:f} seconds",
    )

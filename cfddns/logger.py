import functools
import gzip
import inspect
import logging
import logging.handlers
import os
import shutil
import sys
from gzip import GzipFile
from pathlib import Path
from typing import Callable, ParamSpec, TypeVar

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger("cfddns")
logger.setLevel(logging.DEBUG)
formatter = logging.Formatter(
    "%(asctime)s %(levelname)s [%(module)s:%(funcName)s:%(lineno)d] %(message)s"
)

log_stream_handler = logging.StreamHandler(sys.stdout)
log_stream_handler.setFormatter(formatter)
logger.addHandler(log_stream_handler)


def rotator(source, dest):
    with open(source, "rb") as f_in:
        with gzip.open(dest + ".gz", "wb") as f_out:
            assert isinstance(f_out, GzipFile)
            shutil.copyfileobj(f_in, f_out)
    os.remove(source)


def configure_logging(level: str = "INFO", logs_dir: Path | None = None) -> None:
    """
    Apply the configured log level and optionally add a daily rotating file log.

    Rotated files are gzip-compressed.
    """
    log_stream_handler.setLevel(level.upper())

    if logs_dir is None:
        return

    logs_dir = Path(logs_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = (logs_dir / "cfddns.log").resolve()

    for handler in logger.handlers:
        if (
            isinstance(handler, logging.handlers.TimedRotatingFileHandler)
            and Path(handler.baseFilename) == log_file
        ):
            return

    log_file_handler = logging.handlers.TimedRotatingFileHandler(
        log_file, when="midnight"
    )
    log_file_handler.setFormatter(formatter)
    log_file_handler.setLevel(level.upper())
    log_file_handler.rotator = rotator
    logger.addHandler(log_file_handler)


def log_exception(
    prefix: str = "",
    default_return: R | None = None,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator logging and swallowing any exception raised by the wrapped
    sync or async function, which then returns ``default_return``.

    The prefix is formatted with the call's bound arguments, so it can name
    them or their attributes, e.g. ``"Reconciliation pass #{self.fire_count}"``.
    If formatting fails the raw prefix is logged instead.
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        sig = inspect.signature(func)
        func_name = func.__qualname__

        def bind_arguments(args: tuple, kwargs: dict) -> dict:
            try:
                bound = sig.bind(*args, **kwargs)
            except TypeError as e:
                logger.warning(
                    f"Failed to bind arguments for {func_name}: {e}", stacklevel=4
                )
                return {}
            bound.apply_defaults()
            return dict(bound.arguments)

        def render_prefix(arguments: dict) -> str:
            if not prefix:
                return ""
            try:
                return f"{prefix.format_map(arguments)}: "
            except (KeyError, AttributeError, IndexError, ValueError) as e:
                logger.warning(
                    f"Failed to format prefix '{prefix}' for {func_name}: {e!r}",
                    stacklevel=4,
                )
                return f"{prefix}: "

        def log_failure(args: tuple, kwargs: dict, error: Exception) -> None:
            arguments = bind_arguments(args, kwargs)
            params = ", ".join(f"{k}={v!r}" for k, v in arguments.items())
            context = f"[{params}] " if params else ""
            logger.error(
                f"{context}{render_prefix(arguments)}{type(error).__name__}: {error}",
                exc_info=True,
                stacklevel=3,  # log_failure -> wrapper -> caller
            )

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    log_failure(args, kwargs, e)
                    return default_return  # type: ignore[return-value]

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                log_failure(args, kwargs, e)
                return default_return  # type: ignore[return-value]

        return sync_wrapper  # type: ignore[return-value]

    return decorator

# services/observation.py
import logging
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def observe(
    op: Callable[[], Optional[T]],
    on_success: Callable[[T], None],
    name: Optional[str] = None,
) -> Optional[T]:
    """
    Runs ``op`` and hands a non-None result to ``on_success`` before returning it.

    This is how any resolution-shaped operation gets an "and trigger" variant
    without duplicating its body. If ``op`` returns None or raises,
    ``on_success`` is never called. The result is returned unchanged.
    """
    logger.info("[TRIGGER] Executing wrapped %s", name or getattr(op, "__name__", "operation"))

    result = op()
    if result is not None:
        on_success(result)
    return result

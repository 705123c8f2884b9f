from . import schemas # Use relative import within the package
from .rate_client import RateNotFound
import logging
import math
import re

logger = logging.getLogger(__name__)

# Plain decimal or scientific notation, e.g. "0.07", ".5", "7e-2"
RATE_PATTERN = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")
FLOAT32_MAX = 3.4028234663852886e38


def parse_rate(text: str) -> float:
    """
    Parses the rate service answer as a single precision float.

    Raises RateNotFound for anything that is not a finite number in the
    32-bit float range: empty text, words like "n/a", NaN, infinities.
    """
    candidate = text.strip()
    if not RATE_PATTERN.fullmatch(candidate):
        logger.warning(f"Rate service answer is not a number: {text[:100]!r}")
        raise RateNotFound()

    rate = float(candidate)
    if math.isinf(rate) or abs(rate) > FLOAT32_MAX:
        logger.warning(f"Rate service answer overflows a 32-bit float: {text[:100]!r}")
        raise RateNotFound()
    return rate


def compute_total(order: schemas.Order, rate: float) -> schemas.Order:
    """Returns a copy of the order with total = subtotal * (1 + rate)."""
    total = order.subtotal * (1.0 + rate)
    logger.info(f"Order {order.order_id}: Total calculated - Subtotal: {order.subtotal:.2f}, Rate: {rate}, Total: {total:.2f}")
    return order.model_copy(update={"total": total})

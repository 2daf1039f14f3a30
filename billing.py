"""
Bill numbering and total verification.

Bill numbers look like BILL202405010001: the UTC date followed by a 4-digit
sequence that restarts every day. The next number is derived from the greatest
number already stored for the day. Two writers can derive the same number; the
unique index on bill_number rejects the second insert and the whole numbering
step is retried from a fresh read.

Cart totals are never trusted. Every item total is recomputed from the
submitted line and the recomputed sum is what gets stored.
"""

import logging
import math
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from database import BillStore, ProductStore, utcnow
from errors import ProductNotFound, SequenceExhausted, TotalMismatch, UniquenessViolation
from pricing import item_total
from schemas import Bill, BillItem, CartItem, CreateBillRequest

logger = logging.getLogger(__name__)

BILL_PREFIX = "BILL"
SEQUENCE_WIDTH = 4
MAX_SEQUENCE = 10 ** SEQUENCE_WIDTH - 1
TOTAL_TOLERANCE = 0.01
DEFAULT_MAX_ATTEMPTS = 5


def date_prefix(now: datetime) -> str:
    return now.strftime("%Y%m%d")


def format_bill_number(day: str, sequence: int) -> str:
    return f"{BILL_PREFIX}{day}{sequence:0{SEQUENCE_WIDTH}d}"


def next_bill_number(bill_store: BillStore, now: datetime) -> str:
    """Derive the next free bill number for the UTC day of `now`."""
    day = date_prefix(now)
    last = bill_store.find_latest_bill_number_with_prefix(BILL_PREFIX + day)
    sequence = 1
    if last:
        sequence = int(last[-SEQUENCE_WIDTH:]) + 1
    if sequence > MAX_SEQUENCE:
        raise SequenceExhausted(day)
    return format_bill_number(day, sequence)


def price_items(items: List[CartItem], products: Dict[str, Dict[str, Any]]) -> Tuple[List[BillItem], float]:
    """Recompute every line against the resolved products.

    Returns the bill items (names snapshotted from the stored products) and
    the recomputed bill total.
    """
    missing = [it.product_id for it in items if it.product_id not in products]
    if missing:
        raise ProductNotFound(dict.fromkeys(missing))

    bill_items: List[BillItem] = []
    total = 0.0
    for it in items:
        line_total = item_total(it.price_per_unit, it.weight, it.weight_unit, it.quantity)
        total += line_total
        bill_items.append(BillItem(
            product_id=it.product_id,
            name=products[it.product_id]["name"],
            price_per_unit=it.price_per_unit,
            weight=it.weight,
            weight_unit=it.weight_unit,
            quantity=it.quantity,
            item_total=line_total,
        ))
    return bill_items, round(total, 2)


def verify_total(calculated_total: float, provided_total: float) -> None:
    if not (math.isfinite(calculated_total) and math.isfinite(provided_total)):
        raise TotalMismatch(calculated_total, provided_total)
    if abs(calculated_total - provided_total) > TOTAL_TOLERANCE:
        raise TotalMismatch(calculated_total, provided_total)


class BillingEngine:
    """Creates bills: resolves products, verifies totals, numbers and inserts."""

    def __init__(
        self,
        bill_store: BillStore,
        product_store: ProductStore,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = utcnow,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.bill_store = bill_store
        self.product_store = product_store
        self.max_attempts = max_attempts
        self.clock = clock

    def create_bill(self, user_id: str, request: CreateBillRequest) -> Dict[str, Any]:
        """Verify and persist a bill for `user_id`. Returns the stored document."""
        products = self.product_store.find_active_products_by_ids(
            [it.product_id for it in request.items], user_id
        )
        bill_items, calculated_total = price_items(request.items, products)
        verify_total(calculated_total, request.total_amount)

        last_error: Optional[UniquenessViolation] = None
        for attempt in range(1, self.max_attempts + 1):
            now = self.clock()
            bill_number = next_bill_number(self.bill_store, now)
            bill = Bill(
                bill_number=bill_number,
                user_id=user_id,
                items=bill_items,
                total_amount=calculated_total,
                payment_method=request.payment_method,
                customer_name=request.customer_name,
                notes=request.notes,
                created_at=now,
            )
            doc = bill.model_dump() | {"updated_at": now}
            try:
                saved = self.bill_store.insert_bill(doc)
            except UniquenessViolation as exc:
                last_error = exc
                logger.warning(
                    "Bill number %s already taken (attempt %d/%d), retrying",
                    bill_number, attempt, self.max_attempts,
                )
                continue
            logger.info("Created bill %s for user %s, total %.2f", bill_number, user_id, calculated_total)
            return saved

        logger.error("Giving up on bill numbering after %d attempts", self.max_attempts)
        raise last_error

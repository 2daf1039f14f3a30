"""Errors raised by the billing engine and the stores."""

from typing import Iterable, List


class BillingError(Exception):
    """Base class for bill creation failures."""


class ProductNotFound(BillingError):
    """A cart line references a product that is missing, inactive or owned by another account."""

    def __init__(self, product_ids: Iterable[str]):
        self.product_ids: List[str] = list(product_ids)
        super().__init__("One or more products not found or not accessible: " + ", ".join(self.product_ids))


class TotalMismatch(BillingError):
    """The submitted total disagrees with the recomputed total."""

    def __init__(self, calculated_total: float, provided_total: float):
        self.calculated_total = calculated_total
        self.provided_total = provided_total
        super().__init__(
            f"Total amount mismatch. Calculated: {calculated_total:.2f}, Provided: {provided_total}"
        )


class UniquenessViolation(BillingError):
    """A bill with the same bill number already exists."""

    def __init__(self, bill_number: str):
        self.bill_number = bill_number
        super().__init__(f"Bill number already taken: {bill_number}")


class SequenceExhausted(BillingError):
    """No 4-digit sequence is left for the day."""

    def __init__(self, date_prefix: str):
        self.date_prefix = date_prefix
        super().__init__(f"Bill sequence exhausted for {date_prefix}")

from decimal import Decimal
from typing import List, Optional
from rentpay.core.config import settings
from rentpay.schemas.rent import DuePayment, PaymentOrder

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

NO_DUE_MESSAGE = "No pending payments at this time."


def period_label(month: Optional[int], year: Optional[int]) -> str:
    if not month:
        return str(year or "")
    return f"{MONTH_NAMES[month - 1]} {year}"


def ordinal(day: int) -> str:
    if 11 <= day % 100 <= 13:
        return f"{day}th"
    return f"{day}" + {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")


def _group_indian(digits: str) -> str:
    # Last three digits, then pairs: 1234567 -> 12,34,567
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_inr(amount) -> str:
    value = Decimal(str(amount)).quantize(Decimal("0.01"))
    sign = "-" if value < 0 else ""
    rupees, _, paise = f"{abs(value):.2f}".partition(".")
    text = f"{sign}₹{_group_indian(rupees)}"
    if paise != "00":
        text += f".{paise}"
    return text


def is_test_payment(order: PaymentOrder, due: DuePayment, test_amount_paise: int = None) -> bool:
    """True when the order charges the sandbox amount instead of the real total."""
    if order.is_flagged_test:
        return True
    sandbox = test_amount_paise if test_amount_paise is not None else settings.RAZORPAY_TEST_AMOUNT_PAISE
    return order.amount_in_paise == sandbox and order.amount_in_paise < due.total_in_paise


def sandbox_notice(order: PaymentOrder) -> str:
    charged = format_inr(Decimal(order.amount_in_paise) / 100)
    return f"Test mode: Using {charged} for payment testing (actual amount will be recorded correctly)"


def render_due_card(due: Optional[DuePayment]) -> List[str]:
    if due is None or not due.has_due:
        return ["Rent Payment", NO_DUE_MESSAGE]

    lines = ["Next Rent Due"]
    if due.property_info is not None:
        lines.append(f"Property: {due.property_info.name}")
        if due.property_info.address:
            lines.append(f"  {due.property_info.address}")
    lines.append(f"Period: {period_label(due.period_month, due.period_year)}")
    lines.append(f"Base Rent: {format_inr(due.base_amount)}")

    grace = ordinal(due.billing_grace_last_day)
    due_line = f"Due Date: 1st (Grace till {grace})"
    if due.is_overdue:
        due_line += " OVERDUE"
    lines.append(due_line)

    if due.late_fee_amount > 0:
        lines.append(
            f"Late Fee: {format_inr(due.late_fee_amount)} "
            f"({format_inr(due.late_fee_per_day)}/day after {grace})"
        )
    lines.append(f"Total Amount: {format_inr(due.total_amount)}")
    return lines

"""
Deterministic Tip Selection

Each insight ends with one expense-management tip. The tip is chosen
deterministically from (user_id, date range): the same user looking at
the same period always sees the same tip, while different users or
periods spread across the list.

The seed is hashed with the Java String.hashCode algorithm
(h = 31*h + c over UTF-16 code units, wrapped to a signed 32-bit
integer at every step). It is simple, well known, and gives identical
indices in any runtime that implements it.

Deterministic does not mean non-repeating: two different seeds can
select the same tip.
"""

from src.models.insight import DateRange


EXPENSE_TIPS: tuple[str, ...] = (
    "Track every expense for a month - awareness alone often cuts spending by 10%.",
    "Pay yourself first: move savings out on payday, before you can spend them.",
    "Use the 24-hour rule for non-essential purchases over a set amount.",
    "Review subscriptions quarterly and cancel the ones you have not used.",
    "Plan meals for the week and shop with a list to reduce food waste.",
    "Automate bill payments to avoid late fees and protect your credit.",
    "Set a separate budget for dining out and stick to it.",
    "Compare prices on recurring purchases at least once a year.",
    "Keep a small buffer in your checking account to avoid overdraft charges.",
    "Round up purchases and send the difference straight to savings.",
    "Negotiate recurring bills like internet, phone and insurance annually.",
    "Buy quality for items you use daily; buy cheap for items you rarely use.",
    "Unsubscribe from retailer emails to reduce impulse buying.",
    "Use cash or a prepaid card for categories where you tend to overspend.",
    "Schedule a monthly money check-in to review spending against your budget.",
    "Build your emergency fund before increasing lifestyle spending.",
    "Treat windfalls and raises as savings first, spending second.",
    "Group small errands and purchases to cut transport costs and impulse buys.",
    "Set spending alerts with your bank for large or unusual transactions.",
    "Give every dollar a job: assign income to categories before the month starts.",
)


def _to_int32(value: int) -> int:
    """Wrap to signed 32-bit integer semantics."""
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def rolling_hash(seed: str) -> int:
    """
    Java-style String.hashCode of *seed*.

    Iterates UTF-16 code units (not code points), so characters outside
    the Basic Multilingual Plane hash like they do in JavaScript or Java.
    """
    encoded = seed.encode("utf-16-be", errors="surrogatepass")
    h = 0
    for i in range(0, len(encoded), 2):
        code_unit = (encoded[i] << 8) | encoded[i + 1]
        h = _to_int32(h * 31 + code_unit)
    return h


def tip_seed(user_id: str, date_range: DateRange) -> str:
    return f"{user_id}-{date_range.from_date}-{date_range.to_date}"


def select_tip(user_id: str, date_range: DateRange) -> str:
    """Pick the tip for this user and period."""
    index = abs(rolling_hash(tip_seed(user_id, date_range))) % len(EXPENSE_TIPS)
    return EXPENSE_TIPS[index]

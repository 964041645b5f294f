import logging
import secrets

from constants import ROOM_CODE_ALPHABET, ROOM_CODE_LENGTH

log = logging.getLogger(__name__)

def _group_indian(digits: str) -> str:
    """Groups an integer string the en-IN way: last three digits, then pairs."""
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

def format_amount(amount: float) -> str:
    """
    Renders an amount without a trailing '.0' for whole numbers (1500, 1500.5),
    which is how amounts appear inside UPI links.
    """
    amount = float(amount)
    if amount.is_integer():
        return str(int(amount))
    return f"{round(amount, 2):.2f}".rstrip("0").rstrip(".")

def format_currency(amount: float) -> str:
    """
    Formats an amount as Indian rupees, e.g. 150000 -> '₹1,50,000', 1500.5 -> '₹1,500.5'.
    """
    amount = float(amount or 0)
    sign = "-" if amount < 0 else ""
    whole, _, fraction = format_amount(abs(amount)).partition(".")
    formatted = _group_indian(whole)
    if fraction:
        formatted = f"{formatted}.{fraction}"
    return f"{sign}₹{formatted}"

def generate_room_code(length: int = ROOM_CODE_LENGTH) -> str:
    """Generates a tenant onboarding/login code of uppercase letters and digits."""
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(length))

def first_name(full_name: str) -> str:
    parts = (full_name or "").split()
    if not parts:
        log.warning("Empty tenant name while extracting first name.")
        return ""
    return parts[0]

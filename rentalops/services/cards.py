"""Payment card checks used at checkout before anything reaches the card network"""
import re
from datetime import date
from typing import Dict, Optional

from rentalops.core.enums import CardType
from rentalops.schemas.card import CardIn, CardValidationResult, ExpiryCheck

CARD_LENGTHS = {
    CardType.VISA: (13, 16, 19),
    CardType.MASTERCARD: (16,),
    CardType.AMEX: (15,),
    CardType.DISCOVER: (16, 19),
    CardType.UNKNOWN: (16,),
}

CVV_LENGTHS = {
    CardType.AMEX: 4,
}

# First match wins
CARD_PREFIXES = [
    (re.compile(r"^4"), CardType.VISA),
    (re.compile(r"^5[1-5]"), CardType.MASTERCARD),
    (re.compile(r"^2[2-7]"), CardType.MASTERCARD),
    (re.compile(r"^3[47]"), CardType.AMEX),
    (re.compile(r"^6011"), CardType.DISCOVER),
    (re.compile(r"^65"), CardType.DISCOVER),
    (re.compile(r"^64[4-9]"), CardType.DISCOVER),
]

EXPIRY_FORMAT = re.compile(r"^(\d{2})/(\d{2})$")
ASCII_DIGITS = re.compile(r"[0-9]+")


def _clean(number: str) -> str:
    return re.sub(r"\s+", "", number or "")


def detect_card_type(number: str) -> CardType:
    cleaned = _clean(number)
    if not cleaned:
        return CardType.UNKNOWN
    for pattern, card_type in CARD_PREFIXES:
        if pattern.match(cleaned):
            return card_type
    return CardType.UNKNOWN


def luhn_check(number: str) -> bool:
    cleaned = _clean(number)
    if not ASCII_DIGITS.fullmatch(cleaned) or not 13 <= len(cleaned) <= 19:
        return False

    total = 0
    for i, ch in enumerate(reversed(cleaned)):
        digit = int(ch)
        if i % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def validate_card_length(number: str) -> bool:
    cleaned = _clean(number)
    return len(cleaned) in CARD_LENGTHS[detect_card_type(cleaned)]


def cvv_length(card_type: CardType) -> int:
    return CVV_LENGTHS.get(card_type, 3)


def validate_cvv(cvv: str, card_type: CardType) -> bool:
    return len(re.sub(r"\D", "", cvv or "")) == cvv_length(card_type)


def validate_expiry_date(value: str, today: Optional[date] = None) -> ExpiryCheck:
    match = EXPIRY_FORMAT.match(value or "")
    if not match:
        return ExpiryCheck(valid=False, error="Invalid format (MM/YY)")

    month = int(match.group(1))
    year = 2000 + int(match.group(2))
    if not 1 <= month <= 12:
        return ExpiryCheck(valid=False, error="Invalid month")

    today = today or date.today()
    if (year, month) < (today.year, today.month):
        return ExpiryCheck(valid=False, error="Card expired")
    return ExpiryCheck(valid=True)


def format_card_number(value: str, card_type: CardType) -> str:
    digits = re.sub(r"\D", "", value or "")
    if card_type == CardType.AMEX:
        groups = [digits[:4], digits[4:10], digits[10:15]]
        return " ".join(g for g in groups if g)
    return " ".join(digits[i:i + 4] for i in range(0, len(digits), 4))


def format_expiry_date(value: str) -> str:
    digits = re.sub(r"\D", "", value or "")
    if len(digits) <= 2:
        return digits
    return f"{digits[:2]}/{digits[2:4]}"


def mask_card_number(number: str) -> str:
    cleaned = _clean(number)
    if len(cleaned) < 4:
        return "••••"
    return f"•••• •••• •••• {cleaned[-4:]}"


def validate_card(card: CardIn, today: Optional[date] = None) -> CardValidationResult:
    errors: Dict[str, str] = {}
    card_type = detect_card_type(card.number)

    if not card.number.strip():
        errors["number"] = "Card number is required"
    elif not validate_card_length(card.number):
        errors["number"] = "Invalid card number length"
    elif not luhn_check(card.number):
        errors["number"] = "Invalid card number"

    if not card.expiry.strip():
        errors["expiry"] = "Expiry date is required"
    else:
        expiry = validate_expiry_date(card.expiry.strip(), today)
        if not expiry.valid:
            errors["expiry"] = expiry.error or "Invalid expiry"

    if not card.cvv.strip():
        errors["cvv"] = "CVV is required"
    elif not validate_cvv(card.cvv, card_type):
        errors["cvv"] = f"CVV must be {cvv_length(card_type)} digits"

    if not card.name.strip():
        errors["name"] = "Cardholder name is required"
    elif len(card.name.strip()) < 2:
        errors["name"] = "Name is too short"

    return CardValidationResult(
        valid=not errors,
        card_type=card_type,
        masked_number=mask_card_number(card.number),
        errors=errors,
    )

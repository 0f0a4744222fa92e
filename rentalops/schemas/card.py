from typing import Dict, Optional

from pydantic import BaseModel

from rentalops.core.enums import CardType


class CardIn(BaseModel):
    number: str
    expiry: str
    cvv: str
    name: str


class ExpiryCheck(BaseModel):
    valid: bool
    error: Optional[str] = None


class CardValidationResult(BaseModel):
    valid: bool
    card_type: CardType
    masked_number: str
    errors: Dict[str, str] = {}

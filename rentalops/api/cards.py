from fastapi import APIRouter

from rentalops.schemas.card import CardIn, CardValidationResult
from rentalops.services.cards import validate_card

router = APIRouter(prefix="/cards", tags=["cards"])


@router.post("/validate", response_model=CardValidationResult)
async def validate(card: CardIn):
    """Check a payment card before it is handed to the processor; nothing is stored."""
    return validate_card(card)

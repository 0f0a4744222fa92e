import logging
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.future import select
from rentalops.core.config import settings
from rentalops.api.rates import load_rate_table
from rentalops.models.booking import Booking
from rentalops.services.bookings import reprice_booking
from rentalops.services.webhook import send_webhook

logger = logging.getLogger(__name__)

engine_worker = create_async_engine(settings.DATABASE_URL, future=True, echo=False)
AsyncSessionWorker = sessionmaker(engine_worker, class_=AsyncSession, expire_on_commit=False)


async def reprice_booking_async(booking_id: int):
    """Reprice a booking against the current rate table; notify if the total moved."""
    async with AsyncSessionWorker() as db:
        res = await db.execute(select(Booking).where(Booking.id == booking_id))
        booking = res.scalars().first()
        if not booking:
            logger.warning(f"Reprice skipped: booking {booking_id} not found")
            return

        rates = await load_rate_table(db)

        old_total = booking.total_amount
        breakdown = reprice_booking(booking, rates, settings.PRICING_TIMEZONE)
        await db.commit()
        logger.info(f"Booking {booking.booking_code} repriced: {old_total} -> {breakdown.total} ({rates.version})")

        if old_total != breakdown.total:
            await send_webhook({
                "event": "booking.repriced",
                "booking_id": booking.id,
                "booking_code": booking.booking_code,
                "old_total": str(old_total),
                "total_amount": str(breakdown.total),
                "rate_table_version": rates.version,
            })

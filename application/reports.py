"""Application Services - CSV exports"""
import csv
import io
import logging
from datetime import date
from typing import List, Optional, Dict
from uuid import UUID

from domain.entities import Booking, BedTransfer
from domain.repositories import (
    BookingRepository, InventoryUnitRepository, RoomRepository, PropertyRepository, UserRepository
)

logger = logging.getLogger(__name__)

DEPOSIT_COLUMNS = [
    "Booking ID", "Guest", "Email", "Property", "Deposit", "Refunded",
    "Refund Date", "Refund Amount", "Refund Method", "Transaction ID",
]

TRANSFER_COLUMNS = [
    "Booking ID", "Guest", "Email", "From Room", "From Bed", "To Room", "To Bed",
    "Start", "End", "Amount", "Status", "Transferred At", "Transferred By",
]


def export_filename(report: str, on: Optional[date] = None) -> str:
    return f"{report}-{(on or date.today()).isoformat()}.csv"


class ReportService:
    """Builds CSV exports of deposits, refunds and bed transfers"""

    def __init__(self,
                 bookings: BookingRepository,
                 units: InventoryUnitRepository,
                 rooms: RoomRepository,
                 properties: PropertyRepository,
                 users: UserRepository):
        self.bookings = bookings
        self.units = units
        self.rooms = rooms
        self.properties = properties
        self.users = users

    def _write(self, columns: List[str], rows: List[Dict[str, str]]) -> str:
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=columns, quoting=csv.QUOTE_ALL)
        writer.writeheader()
        writer.writerows(rows)
        return output.getvalue()

    async def _guest(self, user_id: UUID) -> Dict[str, str]:
        user = await self.users.find_by_id(user_id)
        if not user:
            return {"Guest": "", "Email": ""}
        return {"Guest": user.full_name or user.username, "Email": user.email or ""}

    async def _room_number(self, room_id: UUID) -> str:
        room = await self.rooms.find_by_id(room_id)
        return room.room_number if room else ""

    async def _unit_number(self, unit_id: UUID) -> str:
        unit = await self.units.find_by_id(unit_id)
        return str(unit.number) if unit else ""

    async def deposits_csv(self, deposits: List[Booking]) -> str:
        rows = []
        for booking in deposits:
            prop = await self.properties.find_by_id(booking.property_id)
            rows.append({
                "Booking ID": booking.serial_number,
                **await self._guest(booking.user_id),
                "Property": prop.name if prop else "",
                "Deposit": str(booking.locker_price),
                "Refunded": "Yes" if booking.locker_refunded else "No",
                "Refund Date": booking.locker_refund_date.isoformat() if booking.locker_refund_date else "",
                "Refund Amount": str(booking.locker_refund_amount) if booking.locker_refund_amount is not None else "",
                "Refund Method": booking.locker_refund_method.value if booking.locker_refund_method else "",
                "Transaction ID": booking.locker_refund_transaction_id or "",
            })
        logger.info("Exported %d deposit row(s)", len(rows))
        return self._write(DEPOSIT_COLUMNS, rows)

    async def bed_transfers_csv(self, transfers: List[BedTransfer]) -> str:
        rows = []
        for transfer in transfers:
            booking = await self.bookings.find_by_id(transfer.booking_id)
            if not booking:
                continue
            rows.append({
                "Booking ID": booking.serial_number,
                **await self._guest(booking.user_id),
                "From Room": await self._room_number(transfer.from_room_id),
                "From Bed": await self._unit_number(transfer.from_unit_id),
                "To Room": await self._room_number(transfer.to_room_id),
                "To Bed": await self._unit_number(transfer.to_unit_id),
                "Start": booking.date_range.start_date.isoformat(),
                "End": booking.date_range.end_date.isoformat(),
                "Amount": str(booking.total_price),
                "Status": booking.status.value,
                "Transferred At": transfer.transferred_at.isoformat(),
                "Transferred By": transfer.transferred_by,
            })
        logger.info("Exported %d transfer row(s)", len(rows))
        return self._write(TRANSFER_COLUMNS, rows)

from typing import Iterable, Optional

from launchpad.core.config import settings
from launchpad.models.ido import ArchivedPurchaseRecord, ParticipantSaleInfo, PurchaseRecord
from launchpad.services.numeric import page_bounds


class VestingArchive:
    """Append-only log of received purchases per (participant, sale)."""

    async def archive(
        self,
        info: ParticipantSaleInfo,
        records: Iterable[PurchaseRecord],
        received_at: int,
    ) -> list[ArchivedPurchaseRecord]:
        """
        Copy ``records`` to the archive in the given order.

        Must run inside the caller's transaction with ``info`` locked; the
        caller saves ``info`` (its archive counter is advanced here).
        """
        archived = []
        for record in records:
            archived.append(
                await ArchivedPurchaseRecord.create(
                    sale_id=record.sale_id,
                    address=record.address,
                    archive_seq=info.next_archive_seq,
                    purchase_seq=record.seq,
                    tier=record.tier,
                    payment_amount=record.payment_amount,
                    tokens_amount=record.tokens_amount,
                    timestamp=record.timestamp,
                    unlock_time=record.unlock_time,
                    received_at=received_at,
                )
            )
            info.next_archive_seq += 1
        return archived

    async def archived_purchases(
        self,
        address: str,
        sale_id: int,
        start: int = 0,
        limit: Optional[int] = None,
    ) -> tuple[int, list[ArchivedPurchaseRecord]]:
        start, limit = page_bounds(start, limit, settings.default_page_limit)
        query = ArchivedPurchaseRecord.filter(address=address, sale_id=sale_id)
        total = await query.count()
        page = await query.order_by("archive_seq").offset(start).limit(limit)
        return total, page


vesting_archive = VestingArchive()

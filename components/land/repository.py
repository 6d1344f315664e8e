"""Repository for land pieces."""

from typing import List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from components.land.models import LandPiece


class LandPieceRepository:
    """Repository for land pieces."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def get_by_id(self, piece_id: int) -> Optional[LandPiece]:
        result = await self.session.execute(select(LandPiece).where(LandPiece.id == piece_id))
        return result.scalar_one_or_none()

    async def get_many(self, piece_ids: Sequence[int]) -> List[LandPiece]:
        if not piece_ids:
            return []
        result = await self.session.execute(
            select(LandPiece).where(LandPiece.id.in_(list(piece_ids))).order_by(LandPiece.piece_number)
        )
        return list(result.scalars().all())

    async def set_status(self, piece_ids: Sequence[int], status: str) -> None:
        if not piece_ids:
            return
        await self.session.execute(
            update(LandPiece).where(LandPiece.id.in_(list(piece_ids))).values(status=status)
        )
        await self.session.commit()

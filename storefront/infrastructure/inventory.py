"""Variant stock writes.

Stock is only changed through these two statements. Each one checks and
writes in a single UPDATE, so two transactions racing on the same
variant serialize on the row instead of both passing a stale read.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.infrastructure.models import ProductVariantModel


async def decrement_stock(session: AsyncSession, variant_id: str, quantity: int) -> bool:
    """Take ``quantity`` units off a variant if that many are on hand.

    Args:
        session: Session inside the caller's transaction.
        variant_id: Variant to decrement.
        quantity: Units to remove.

    Returns:
        True if the row was decremented, False if stock was short.
    """
    result = await session.execute(
        update(ProductVariantModel)
        .where(
            ProductVariantModel.id == variant_id,
            ProductVariantModel.stock_quantity >= quantity,
        )
        .values(stock_quantity=ProductVariantModel.stock_quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def restore_stock(session: AsyncSession, variant_id: str, quantity: int) -> None:
    """Put ``quantity`` units back onto a variant."""
    await session.execute(
        update(ProductVariantModel)
        .where(ProductVariantModel.id == variant_id)
        .values(stock_quantity=ProductVariantModel.stock_quantity + quantity)
        .execution_options(synchronize_session=False)
    )


async def available_stock(session: AsyncSession, variant_id: str) -> int:
    """Current on-hand quantity, read from the database."""
    result = await session.execute(
        select(ProductVariantModel.stock_quantity).where(ProductVariantModel.id == variant_id)
    )
    return result.scalar_one_or_none() or 0

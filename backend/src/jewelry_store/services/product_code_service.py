"""Server-side product code generation with a sequence per product type."""
import re
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_store.config import settings
from jewelry_store.exceptions import BadRequestError
from jewelry_store.models.base import utcnow
from jewelry_store.models.product import Product, ProductType

logger = structlog.get_logger(__name__)

FALLBACK_PREFIX = "PR"


def type_prefix(product_type_name: str, code_prefix: Optional[str] = None) -> str:
    """Explicit prefix if set, else the first two letters of the type name (chain -> CH)."""
    if code_prefix:
        return code_prefix.strip().upper()
    letters = re.sub(r"[^A-Za-z]", "", product_type_name)
    return letters[:2].upper() or FALLBACK_PREFIX


def format_product_code(
    prefix: str,
    sequence: int,
    strategy: str = "simple",
    business_prefix: str = "JEW",
    year: Optional[int] = None,
) -> str:
    """
    Render a product code.

    simple:   CH001
    prefixed: JEW-CH-001
    yearly:   2025-CH-001
    """
    number = f"{sequence:03d}"
    if strategy == "prefixed":
        return f"{business_prefix}-{prefix}-{number}"
    if strategy == "yearly":
        if year is None:
            raise ValueError("year is required for yearly product codes")
        return f"{year}-{prefix}-{number}"
    return f"{prefix}{number}"


class ProductCodeService:
    """Hands out product codes from the owning product type's counter."""

    def __init__(
        self,
        db: AsyncSession,
        strategy: Optional[str] = None,
        business_prefix: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.strategy = strategy or settings.product_code_strategy
        self.business_prefix = business_prefix or settings.product_code_business_prefix
        self.clock = clock

    async def generate_product_code(self, product_type_id: UUID) -> str:
        """
        Next free code for the product type.

        The counter is incremented in the database, so concurrent callers never
        receive the same number. Numbers whose code is already taken (codes
        entered by hand) are skipped.

        Raises:
            BadRequestError: If the product type does not exist
        """
        while True:
            prefix, sequence = await self._next_sequence(product_type_id)
            code = format_product_code(
                prefix,
                sequence,
                strategy=self.strategy,
                business_prefix=self.business_prefix,
                year=self.clock().year,
            )
            taken = await self.db.scalar(select(Product.id).where(Product.product_code == code))
            if taken is None:
                logger.debug("product_code_generated", product_type_id=str(product_type_id), product_code=code)
                return code
            logger.info("product_code_skipped", product_code=code)

    async def _next_sequence(self, product_type_id: UUID) -> tuple[str, int]:
        result = await self.db.execute(
            update(ProductType)
            .where(ProductType.id == product_type_id)
            .values(code_sequence=ProductType.code_sequence + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise BadRequestError(f"Product type {product_type_id} does not exist")

        name, code_prefix, sequence = (
            await self.db.execute(
                select(ProductType.name, ProductType.code_prefix, ProductType.code_sequence).where(
                    ProductType.id == product_type_id
                )
            )
        ).one()
        return type_prefix(name, code_prefix), sequence

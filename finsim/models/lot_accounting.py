"""
FIFO lot accounting for investment holdings.

Holdings are immutable; every operation returns a new holding. Sales consume
the oldest lots first, and a partially consumed lot keeps its purchase date
and per-unit price with its cost basis reduced in proportion to the units
remaining.
"""

import logging
import math
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .errors import AccountingError
from .holdings import InvestmentHolding, InvestmentPurchase

logger = logging.getLogger(__name__)

# Units below this are treated as fully consumed
UNIT_TOLERANCE = 1e-9


class SaleResult(BaseModel):
    """Outcome of a FIFO sale."""

    model_config = ConfigDict(frozen=True)

    holding: InvestmentHolding = Field(..., description="Holding after the sale")
    realized_gain: float = Field(..., description="Proceeds minus consumed cost basis")
    cost_basis: float = Field(..., ge=0, description="Cost basis of the units sold")
    proceeds: float = Field(..., description="Sale value net of fees")
    lots_consumed: int = Field(..., ge=0, description="Lots touched by the sale")


def add_purchase(
    holding: InvestmentHolding, purchase: InvestmentPurchase
) -> InvestmentHolding:
    """
    Add a purchase lot to a holding.

    Lots stay ordered oldest first; purchases on the same date keep the order
    they were added in.

    Raises:
        AccountingError: If a lot with the same id already exists
    """
    if any(lot.id == purchase.id for lot in holding.purchases):
        raise AccountingError(
            f"Purchase '{purchase.id}' already exists in holding '{holding.id}'"
        )
    purchases = sorted([*holding.purchases, purchase], key=lambda lot: lot.date)
    return holding.model_copy(update={"purchases": purchases})


def _consume_lots(
    lots: List[InvestmentPurchase], units: float
) -> Tuple[List[InvestmentPurchase], float, int]:
    remaining_lots: List[InvestmentPurchase] = []
    to_sell = units
    cost_basis = 0.0
    consumed = 0

    for lot in lots:
        if to_sell <= UNIT_TOLERANCE:
            remaining_lots.append(lot)
            continue

        consumed += 1
        if lot.units <= to_sell + UNIT_TOLERANCE:
            cost_basis += lot.total_cost
            to_sell -= lot.units
            continue

        left = lot.units - to_sell
        sold_cost = lot.total_cost * to_sell / lot.units
        cost_basis += sold_cost
        remaining_lots.append(
            lot.model_copy(
                update={
                    "units": left,
                    "total_cost": lot.total_cost * left / lot.units,
                }
            )
        )
        to_sell = 0.0

    return remaining_lots, cost_basis, consumed


def sell(
    holding: InvestmentHolding,
    units: float,
    price_per_unit: float,
    fees: float = 0.0,
) -> SaleResult:
    """
    Sell units from a holding using FIFO.

    Args:
        holding: Holding to sell from
        units: Units to sell (must be positive)
        price_per_unit: Sale price per unit (must be positive)
        fees: Selling fees deducted from the proceeds

    Returns:
        SaleResult with the updated holding and realised gain

    Raises:
        AccountingError: On non-finite or non-positive units or price,
            invalid fees, or when selling more units than the holding contains
    """
    if not math.isfinite(units) or units <= 0:
        raise AccountingError("Units to sell must be a positive number")
    if not math.isfinite(price_per_unit) or price_per_unit <= 0:
        raise AccountingError("Sale price per unit must be a positive number")
    if not math.isfinite(fees) or fees < 0:
        raise AccountingError("Sale fees must be a non-negative number")

    available = holding.units
    if units > available + UNIT_TOLERANCE:
        raise AccountingError(
            f"Cannot sell {units} units of '{holding.id}': only {available} held"
        )

    remaining_lots, cost_basis, consumed = _consume_lots(list(holding.purchases), units)
    proceeds = units * price_per_unit - fees
    updated = holding.model_copy(update={"purchases": remaining_lots})

    logger.debug(
        f"Sold {units} units of {holding.id} across {consumed} lots, "
        f"gain {proceeds - cost_basis:.2f}"
    )

    return SaleResult(
        holding=updated,
        realized_gain=proceeds - cost_basis,
        cost_basis=cost_basis,
        proceeds=proceeds,
        lots_consumed=consumed,
    )

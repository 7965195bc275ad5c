"""
Investment holdings tracked as purchase lots.

A holding owns an ordered sequence of purchase lots (oldest first). Every
holding-level aggregate (units, cost basis, average cost, purchase price,
value) is derived from the lots and is never stored independently.
"""

import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

InvestmentType = Literal[
    "shares",
    "term-deposit",
    "managed-fund",
    "etf",
    "property",
    "crypto",
    "bonds",
    "cash-savings",
    "other",
]


class InvestmentPurchase(BaseModel):
    """A single purchase lot."""

    model_config = ConfigDict(frozen=True, extra="forbid", allow_inf_nan=False)

    id: str = Field(..., min_length=1, description="Unique lot identifier")
    date: datetime.date = Field(..., description="Purchase date")
    units: float = Field(..., gt=0, description="Units held in this lot")
    price_per_unit: float = Field(..., ge=0, description="Price paid per unit")
    fees: float = Field(default=0.0, ge=0, description="Brokerage and other fees")
    total_cost: float = Field(
        ..., ge=0, description="Cost basis of the lot (units * price + fees)"
    )
    notes: Optional[str] = Field(None, description="Free-form notes")

    @model_validator(mode="before")
    @classmethod
    def fill_total_cost(cls, data: Any) -> Any:
        """Derive the total cost when it is not supplied."""
        if isinstance(data, dict) and data.get("total_cost") is None:
            data = dict(data)
            units = data.get("units") or 0
            price = data.get("price_per_unit") or 0
            fees = data.get("fees") or 0
            data["total_cost"] = units * price + fees
        return data

    @property
    def cost_per_unit(self) -> float:
        """Cost basis per unit, fees included."""
        return self.total_cost / self.units


class InvestmentHolding(BaseModel):
    """An investment holding made of FIFO purchase lots."""

    model_config = ConfigDict(frozen=True, extra="forbid", allow_inf_nan=False)

    id: str = Field(..., min_length=1, description="Unique holding identifier")
    name: str = Field(..., min_length=1, description="Holding name")
    type: InvestmentType = Field(default="other", description="Asset class")
    return_rate: float = Field(
        default=0.0, ge=0, le=100, description="Expected annual return (percentage)"
    )
    current_price: Optional[float] = Field(
        None, ge=0, description="Latest known price per unit"
    )
    enabled: bool = Field(default=True, description="Whether the holding is active")
    purchases: List[InvestmentPurchase] = Field(
        default_factory=list, description="Purchase lots, oldest first"
    )
    ticker_symbol: Optional[str] = Field(None, description="Ticker or code")
    exchange: Optional[str] = Field(None, description="Exchange or market")
    person_id: Optional[str] = Field(None, description="Owning household member")
    notes: Optional[str] = Field(None, description="Free-form notes")

    @property
    def units(self) -> float:
        """Total units across all lots."""
        return sum(lot.units for lot in self.purchases)

    @property
    def total_cost(self) -> float:
        """Total cost basis across all lots."""
        return sum(lot.total_cost for lot in self.purchases)

    @property
    def average_cost(self) -> float:
        """Average cost per unit (0 when nothing is held)."""
        units = self.units
        return self.total_cost / units if units > 0 else 0.0

    @property
    def purchase_price(self) -> float:
        """Unit-weighted purchase price excluding fees (0 when nothing is held)."""
        units = self.units
        if units <= 0:
            return 0.0
        return sum(lot.units * lot.price_per_unit for lot in self.purchases) / units

    @property
    def current_value(self) -> float:
        """Units at the current price when known, else the cost basis."""
        if self.current_price is not None:
            return self.units * self.current_price
        return self.total_cost

    def summary(self) -> Dict[str, Any]:
        """Get the derived aggregates alongside the holding identity."""
        return {
            "id": self.id,
            "name": self.name,
            "units": self.units,
            "total_cost": self.total_cost,
            "average_cost": self.average_cost,
            "purchase_price": self.purchase_price,
            "current_value": self.current_value,
            "lots": len(self.purchases),
        }

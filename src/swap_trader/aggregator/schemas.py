"""Aggregator quote schema and strict parsing helpers."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class Quote(BaseModel):
    """Normalized exchange quote.

    ``raw`` keeps the aggregator payload verbatim; it is what the swap
    builder expects back.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    input_mint: str = Field(min_length=1)
    output_mint: str = Field(min_length=1)
    in_amount: int = Field(gt=0)
    out_amount: int = Field(gt=0)
    price_impact_pct: float = Field(ge=0.0)
    slippage_bps: int = Field(ge=0)
    raw: dict[str, Any] = Field(repr=False)

    @field_validator("price_impact_pct", mode="before")
    @classmethod
    def absolute_impact(cls, v: Any) -> float:
        """Aggregators report impact signed; keep the magnitude."""
        return abs(float(v if v not in (None, "") else 0))

    @property
    def price(self) -> float:
        """Output units received per input unit."""
        return self.out_amount / self.in_amount

    @classmethod
    def from_payload(
        cls,
        payload: dict[str, Any],
        *,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int,
    ) -> "Quote":
        """Parse a raw quote payload. Raises ``ValueError`` on any violation."""
        try:
            return cls(
                input_mint=payload.get("inputMint") or input_mint,
                output_mint=payload.get("outputMint") or output_mint,
                in_amount=int(payload.get("inAmount") or amount),
                out_amount=int(payload["outAmount"]),
                price_impact_pct=payload.get("priceImpactPct", 0),
                slippage_bps=int(payload.get("slippageBps", slippage_bps)),
                raw=payload,
            )
        except KeyError as exc:
            raise ValueError(f"missing_field: {exc.args[0]}") from exc
        except (TypeError, ValidationError) as exc:
            raise ValueError(f"quote_schema_error: {exc}") from exc

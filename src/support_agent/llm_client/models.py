"""Pydantic models for the model pricing configuration file."""

from pydantic import BaseModel, Field


class ModelPricing(BaseModel):
    """USD rates for one model, per million tokens."""

    input_per_million: float = Field(..., ge=0, description="Rate for prompt tokens")
    output_per_million: float = Field(..., ge=0, description="Rate for completion tokens")


class PricingConfig(BaseModel):
    """Pricing table loaded from YAML."""

    currency: str = Field(default="USD", min_length=1, description="Currency of all rates")
    models: dict[str, ModelPricing] = Field(
        default_factory=dict, description="Rates keyed by model name"
    )

"""Token usage cost accounting.

Converts provider-reported token usage into a USD estimate and adds it to the
running total of the current invocation. Pricing is per million tokens and is
resolved by model name; unknown models cost nothing rather than failing.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from support_agent.llm_client.models import PricingConfig
from support_agent.llm_client.types import LLMResponse, TokenUsage
from support_agent.telemetry import MODEL_USAGE_COST, get_logger

log = get_logger(__name__)

TOKENS_PER_UNIT = 1_000_000


@dataclass(frozen=True)
class Pricing:
    """Rates per million tokens."""

    input_per_million: float = 0.0
    output_per_million: float = 0.0


ZERO_PRICING = Pricing()

DEFAULT_PRICING: Mapping[str, Pricing] = {
    "gemini-2.5-flash": Pricing(input_per_million=0.30, output_per_million=2.50),
    "gemini-2.5-flash-lite": Pricing(input_per_million=0.10, output_per_million=0.40),
}


@dataclass(frozen=True)
class CostBreakdown:
    input_cost: float = 0.0
    output_cost: float = 0.0
    total: float = 0.0


class CostTotalHolder(Protocol):
    """Anything carrying a running cost total (the invocation state)."""

    total_cost_usd: float


def build_pricing_table(config: PricingConfig | None = None) -> dict[str, Pricing]:
    """Merge a loaded pricing file over the built-in defaults.

    Args:
        config: Validated pricing file, or None for defaults only.

    Returns:
        Pricing keyed by model name.
    """
    table = dict(DEFAULT_PRICING)
    if config is not None:
        for name, rates in config.models.items():
            table[name] = Pricing(rates.input_per_million, rates.output_per_million)
    return table


def resolve_pricing(model_name: str, table: Mapping[str, Pricing] | None = None) -> Pricing:
    """Look up the rates for a model; unknown models get zero pricing."""
    if table is None:
        table = DEFAULT_PRICING
    return table.get(model_name, ZERO_PRICING)


def compute_cost(usage: TokenUsage | None, pricing: Pricing) -> CostBreakdown:
    """Compute the cost of one model call.

    Args:
        usage: Token usage of the call. None yields a zero cost.
        pricing: Rates to apply.

    Returns:
        Input, output and total cost in the pricing currency.
    """
    if usage is None:
        return CostBreakdown()
    # Negative counts would lower the running total
    prompt_tokens = max(0, usage["prompt_tokens"])
    completion_tokens = max(0, usage["completion_tokens"])
    input_cost = pricing.input_per_million * prompt_tokens / TOKENS_PER_UNIT
    output_cost = pricing.output_per_million * completion_tokens / TOKENS_PER_UNIT
    return CostBreakdown(input_cost, output_cost, input_cost + output_cost)


def accumulate_usage_cost(
    response: LLMResponse,
    state: CostTotalHolder,
    model_name: str,
    pricing_table: Mapping[str, Pricing] | None = None,
    currency: str = "USD",
    **log_context: Any,
) -> CostBreakdown | None:
    """Add the cost of a model response to the running total.

    Annotates ``response["extra"]`` with ``usage_cost`` (per-call breakdown)
    and ``usage_cost_total_usd`` (running total after this call). Does
    nothing when the response carries no usage.

    Args:
        response: Model response to price.
        state: Holder of the running total; ``total_cost_usd`` only grows.
        model_name: Configured model name used for the pricing lookup.
        pricing_table: Pricing by model name. Defaults to the built-in table.
        currency: Currency label for the annotation.
        **log_context: Extra fields for the cost log event (trace_id, step...).

    Returns:
        The breakdown, or None when usage was absent.
    """
    usage = response.get("usage")
    if usage is None:
        return None

    cost = compute_cost(usage, resolve_pricing(model_name, pricing_table))
    state.total_cost_usd += cost.total

    response["extra"]["usage_cost"] = {
        "currency": currency,
        "model": model_name,
        "prompt_tokens": usage["prompt_tokens"],
        "completion_tokens": usage["completion_tokens"],
        "total_tokens": usage["total_tokens"],
        "input_cost": cost.input_cost,
        "output_cost": cost.output_cost,
        "total_cost": cost.total,
    }
    response["extra"]["usage_cost_total_usd"] = state.total_cost_usd

    log.debug(
        MODEL_USAGE_COST,
        model=model_name,
        prompt_tokens=usage["prompt_tokens"],
        completion_tokens=usage["completion_tokens"],
        total_cost_usd=cost.total,
        running_total_usd=state.total_cost_usd,
        **log_context,
    )
    return cost

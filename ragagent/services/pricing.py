# =============================================================================
# Cost Estimation — Heuristic Token and Cost Figures for Traces
# =============================================================================
#
# The hosted agent service does not report usage per run back to us, so
# execution traces carry an ESTIMATE:
#
#   tokens = len(query) // 4 + len(response) // 4
#   cost   = (tokens / 2) at the input rate + (tokens / 2) at the output rate
#
# Rates are USD per 1,000 tokens and come from settings. Both the token
# heuristic and the default rates are placeholders: useful for comparing
# stages against each other, not for billing.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass

from ragagent.config import settings

# Rough average of characters per token for English text
CHARS_PER_TOKEN = 4


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModelPricing:
    """Per-1K-token rates used for trace cost estimates."""

    input_cost_per_1k: float    # USD per 1,000 input tokens
    output_cost_per_1k: float   # USD per 1,000 output tokens


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def default_pricing() -> ModelPricing:
    """Pricing built from the configured rates."""
    return ModelPricing(
        input_cost_per_1k=settings.cost_per_1k_input_tokens,
        output_cost_per_1k=settings.cost_per_1k_output_tokens,
    )


def estimate_tokens(query: str, response: str) -> int:
    """Character-count token estimate for one query/response pair."""
    return len(query) // CHARS_PER_TOKEN + len(response) // CHARS_PER_TOKEN


def estimate_cost(tokens: int, pricing: ModelPricing) -> float:
    """
    Split the estimate evenly between input and output and price each half.

    Args:
        tokens: Estimated token count from estimate_tokens().
        pricing: Rates to apply.

    Returns:
        Estimated cost in USD.
    """
    half = tokens / 2
    return (
        half / 1000 * pricing.input_cost_per_1k
        + half / 1000 * pricing.output_cost_per_1k
    )

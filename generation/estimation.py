"""
Token and cost estimates for display.

Rough character heuristic, not a tokenizer. Nothing in the pipeline gates on
these numbers.
"""

import math
from typing import Dict, Tuple

DEFAULT_PRICING_MODEL = "gpt-4o-mini"

# USD per token: (input, output)
MODEL_PRICING: Dict[str, Tuple[float, float]] = {
    "gpt-4o-mini": (0.00015 / 1000, 0.0006 / 1000),
    "gpt-4o": (0.0025 / 1000, 0.01 / 1000),
}

CHARS_PER_TOKEN = 4
OUTPUT_TO_INPUT_RATIO = 0.5


def estimate_tokens(text: str) -> int:
    """ceil(len(text) / 4)."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_cost(tokens: int, model: str = DEFAULT_PRICING_MODEL) -> float:
    """
    Estimated USD cost of a generation whose prompt is ``tokens`` long.

    Output is assumed to be half the input. Unknown models are priced as
    DEFAULT_PRICING_MODEL.
    """
    input_price, output_price = MODEL_PRICING.get(model, MODEL_PRICING[DEFAULT_PRICING_MODEL])
    estimated_output_tokens = tokens * OUTPUT_TO_INPUT_RATIO
    return tokens * input_price + estimated_output_tokens * output_price


def resolve_pricing_model(model: str | None) -> str:
    """Name of the price table entry actually used for ``model``."""
    if model and model in MODEL_PRICING:
        return model
    return DEFAULT_PRICING_MODEL

"""LLM pricing table and cost calculation.

Prices are USD per 1K tokens.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ModelPrice:
    input: float
    output: float


# Fallback when the model is unknown
AVERAGE_PRICE = ModelPrice(input=0.002, output=0.006)

MODEL_PRICES: dict[str, ModelPrice] = {
    # OpenAI
    "gpt-4o": ModelPrice(0.0025, 0.010),
    "gpt-4o-2024-05-13": ModelPrice(0.005, 0.015),
    "chatgpt-4o-latest": ModelPrice(0.005, 0.015),
    "gpt-4o-mini": ModelPrice(0.00015, 0.0006),
    "o1": ModelPrice(0.015, 0.060),
    "o1-preview": ModelPrice(0.015, 0.060),
    "o1-mini": ModelPrice(0.003, 0.012),
    "gpt-4-turbo": ModelPrice(0.01, 0.03),
    "gpt-4-turbo-preview": ModelPrice(0.01, 0.03),
    "gpt-4": ModelPrice(0.03, 0.06),
    "gpt-4-32k": ModelPrice(0.06, 0.12),
    "gpt-3.5-turbo": ModelPrice(0.0005, 0.0015),
    "gpt-3.5-turbo-1106": ModelPrice(0.001, 0.002),
    "gpt-3.5-turbo-instruct": ModelPrice(0.0015, 0.002),
    # Anthropic
    "claude-opus-4.1": ModelPrice(0.015, 0.075),
    "claude-opus-4": ModelPrice(0.015, 0.075),
    "claude-sonnet-4.5": ModelPrice(0.003, 0.015),
    "claude-sonnet-4": ModelPrice(0.003, 0.015),
    "claude-haiku-4.5": ModelPrice(0.001, 0.005),
    "claude-3-5-sonnet": ModelPrice(0.003, 0.015),
    "claude-3-5-haiku": ModelPrice(0.0008, 0.004),
    "claude-3-opus": ModelPrice(0.015, 0.075),
    "claude-3-sonnet": ModelPrice(0.003, 0.015),
    "claude-3-haiku": ModelPrice(0.00025, 0.00125),
    "claude-2": ModelPrice(0.008, 0.024),
    "claude-instant": ModelPrice(0.0008, 0.0024),
    # Google
    "gemini-2.0-flash-exp": ModelPrice(0.0, 0.0),
    "gemini-1.5-pro": ModelPrice(0.00125, 0.005),
    "gemini-1.5-flash": ModelPrice(0.000075, 0.0003),
    "gemini-1.0-pro": ModelPrice(0.0005, 0.0015),
    "gemini-pro": ModelPrice(0.0005, 0.0015),
    # Azure OpenAI
    "azure-gpt-4o": ModelPrice(0.0025, 0.010),
    "azure-gpt-4": ModelPrice(0.03, 0.06),
    "azure-gpt-35-turbo": ModelPrice(0.0005, 0.0015),
}

# Dated or aliased model names mapped onto table keys
MODEL_ALIASES: dict[str, str] = {
    "gpt-4o-2024-11-20": "gpt-4o",
    "gpt-4o-2024-08-06": "gpt-4o",
    "gpt-4o-mini-2024-07-18": "gpt-4o-mini",
    "o1-2024-12-17": "o1",
    "o1-preview-2024-09-12": "o1-preview",
    "o1-mini-2024-09-12": "o1-mini",
    "gpt-4-turbo-2024-04-09": "gpt-4-turbo",
    "gpt-4-0125-preview": "gpt-4-turbo-preview",
    "gpt-4-1106-preview": "gpt-4-turbo-preview",
    "gpt-4-0613": "gpt-4",
    "gpt-4-32k-0613": "gpt-4-32k",
    "gpt-3.5-turbo-0125": "gpt-3.5-turbo",
    "claude-3-5-sonnet-20241022": "claude-3-5-sonnet",
    "claude-3-5-sonnet-20240620": "claude-3-5-sonnet",
    "claude-3-5-sonnet-latest": "claude-3-5-sonnet",
    "claude-3-5-haiku-20241022": "claude-3-5-haiku",
    "claude-3-5-haiku-latest": "claude-3-5-haiku",
    "claude-3-opus-20240229": "claude-3-opus",
    "claude-3-opus-latest": "claude-3-opus",
    "claude-3-sonnet-20240229": "claude-3-sonnet",
    "claude-3-haiku-20240307": "claude-3-haiku",
    "claude-2.1": "claude-2",
    "claude-2.0": "claude-2",
    "claude-instant-1.2": "claude-instant",
    "gemini-1.5-pro-latest": "gemini-1.5-pro",
    "gemini-1.5-flash-latest": "gemini-1.5-flash",
}


def normalize_model_name(model: str | None) -> str | None:
    if not model:
        return None
    normalized = model.strip().lower()
    # LangChain nodes sometimes prefix the vendor, e.g. "models/gemini-pro"
    normalized = normalized.rsplit("/", 1)[-1]
    return MODEL_ALIASES.get(normalized, normalized)


def get_model_price(model: str | None) -> ModelPrice | None:
    normalized = normalize_model_name(model)
    return MODEL_PRICES.get(normalized) if normalized else None


def calculate_cost(input_tokens: int, output_tokens: int, model: str | None) -> float:
    """Estimated USD cost, falling back to an average price for unknown models."""
    price = get_model_price(model) or AVERAGE_PRICE
    return (input_tokens / 1000) * price.input + (output_tokens / 1000) * price.output

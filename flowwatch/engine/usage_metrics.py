"""Token usage and cost extraction from n8n execution payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..schemas.payloads import NodeUsage
from .pricing import calculate_cost, normalize_model_name

# Nested response wrappers are followed at most this deep
MAX_NESTING = 4


@dataclass
class TokenUsage:
    total: int
    input: int
    output: int
    model: str | None
    provider: str
    node_type: str


@dataclass
class UsageMetrics:
    """Aggregated AI usage for one execution."""

    total_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    ai_cost: float = 0.0
    ai_provider: str | None = None
    ai_model: str | None = None
    node_usage: list[NodeUsage] = field(default_factory=list)


def extract_usage_metrics(execution_data: dict[str, Any] | None) -> UsageMetrics:
    """Sum token usage over every node run of an execution payload.

    ``execution_data`` is the ``data`` object of an n8n execution fetched
    with ``includeData=true``.
    """
    metrics = UsageMetrics()
    run_data = ((execution_data or {}).get("resultData") or {}).get("runData") or {}

    for node_name, node_runs in run_data.items():
        if not isinstance(node_runs, list):
            continue
        for run in node_runs:
            usage = _extract_run_usage(run)
            if usage is None:
                continue

            cost = calculate_cost(usage.input, usage.output, usage.model)
            metrics.total_tokens += usage.total
            metrics.input_tokens += usage.input
            metrics.output_tokens += usage.output
            metrics.ai_cost += cost
            # First AI node seen decides provider and model
            metrics.ai_provider = metrics.ai_provider or usage.provider
            metrics.ai_model = metrics.ai_model or usage.model

            if usage.total > 0:
                metrics.node_usage.append(
                    NodeUsage(
                        node_name=node_name,
                        node_type=usage.node_type,
                        tokens=usage.total,
                        cost=cost,
                        model=usage.model,
                    )
                )

    return metrics


def _extract_run_usage(run: Any) -> TokenUsage | None:
    if not isinstance(run, dict) or not isinstance(run.get("data"), dict):
        return None

    data = run["data"]
    for channel in ("main", "ai_languageModel"):
        outputs = data.get(channel) or []
        first_output = outputs[0] if outputs else None
        for item in first_output or []:
            if isinstance(item, dict) and isinstance(item.get("json"), dict):
                usage = _extract_token_usage(item["json"])
                if usage is not None:
                    return usage
    return None


def _extract_token_usage(payload: dict[str, Any], depth: int = 0) -> TokenUsage | None:
    model = normalize_model_name(payload.get("model"))
    usage = payload.get("usage")

    # Anthropic: usage.input_tokens / usage.output_tokens
    if isinstance(usage, dict) and "input_tokens" in usage:
        input_tokens = int(usage.get("input_tokens") or 0)
        output_tokens = int(usage.get("output_tokens") or 0)
        return TokenUsage(
            total=input_tokens + output_tokens,
            input=input_tokens,
            output=output_tokens,
            model=model,
            provider="anthropic",
            node_type="anthropic",
        )

    # OpenAI: usage.prompt_tokens / usage.completion_tokens
    if isinstance(usage, dict):
        return TokenUsage(
            total=int(usage.get("total_tokens") or 0),
            input=int(usage.get("prompt_tokens") or 0),
            output=int(usage.get("completion_tokens") or 0),
            model=model,
            provider="openai",
            node_type="openai",
        )

    # LangChain agent output: response.tokenUsage
    response = payload.get("response")
    if isinstance(response, dict) and isinstance(response.get("tokenUsage"), dict):
        token_usage = response["tokenUsage"]
        return TokenUsage(
            total=int(token_usage.get("totalTokens") or 0),
            input=int(token_usage.get("promptTokens") or 0),
            output=int(token_usage.get("completionTokens") or 0),
            model=model or normalize_model_name(response.get("model")),
            provider="openai",
            node_type="ai-agent",
        )

    # Language model sub-nodes: tokenUsage at the top level
    if isinstance(payload.get("tokenUsage"), dict):
        token_usage = payload["tokenUsage"]
        return TokenUsage(
            total=int(token_usage.get("totalTokens") or 0),
            input=int(token_usage.get("promptTokens") or 0),
            output=int(token_usage.get("completionTokens") or 0),
            model=model,
            provider="openai",
            node_type="openai",
        )

    # Google AI: usageMetadata
    if isinstance(payload.get("usageMetadata"), dict):
        usage_metadata = payload["usageMetadata"]
        input_tokens = int(usage_metadata.get("promptTokenCount") or 0)
        output_tokens = int(usage_metadata.get("candidatesTokenCount") or 0)
        return TokenUsage(
            total=int(usage_metadata.get("totalTokenCount") or (input_tokens + output_tokens)),
            input=input_tokens,
            output=output_tokens,
            model=model,
            provider="google",
            node_type="google-ai",
        )

    if depth >= MAX_NESTING:
        return None
    for key in ("response", "data"):
        nested = payload.get(key)
        if isinstance(nested, dict):
            found = _extract_token_usage(nested, depth + 1)
            if found is not None:
                return found
    return None

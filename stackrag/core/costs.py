"""Rough cost estimation for LLM calls."""

# gpt-4o-mini pricing, USD per 1M tokens
INPUT_TOKEN_COST_PER_MILLION = 0.15
OUTPUT_TOKEN_COST_PER_MILLION = 0.60


def estimate_llm_cost(input_tokens: int, output_tokens: int) -> float:
    """
    Estimate the USD cost of a single completion.

    Args:
        input_tokens: Number of prompt tokens
        output_tokens: Number of completion tokens

    Returns:
        Estimated cost in USD
    """
    input_cost = (input_tokens / 1_000_000) * INPUT_TOKEN_COST_PER_MILLION
    output_cost = (output_tokens / 1_000_000) * OUTPUT_TOKEN_COST_PER_MILLION
    return input_cost + output_cost

"""LLM chain for summarizing a scenario suite run."""

import json
import time
from dataclasses import dataclass

from anthropic import Anthropic

from scenario_engine.core.config import get_settings
from scenario_engine.core.logging import get_logger
from scenario_engine.core.schemas_orchestration import SuiteRun, SuiteRunItem, SuiteRunItemStatus

logger = get_logger(__name__)


@dataclass
class LLMResponse:
    content: str
    tokens_used: int
    model: str
    duration_ms: int = 0


SYSTEM_PROMPT_TEMPLATE = """You are an expert PR and communications strategist analyzing a multi-scenario simulation suite.
Generate a {format} narrative that explains:
1. What happened across all scenarios
2. Key themes and patterns
3. Critical risk factors identified
4. Opportunities discovered
{recommendations}
Be concise, professional, and actionable."""


def generate(prompt: str, system: str) -> LLMResponse:
    """
    Send a single prompt to the narrative model.

    Args:
        prompt: User prompt
        system: System prompt

    Returns:
        LLMResponse with text content and total tokens used
    """
    settings = get_settings()
    start_time = time.time()

    client = Anthropic(api_key=settings.ANTHROPIC_API_KEY)
    response = client.messages.create(
        model=settings.NARRATIVE_MODEL,
        max_tokens=settings.NARRATIVE_MAX_TOKENS,
        temperature=settings.NARRATIVE_TEMPERATURE,
        system=system,
        messages=[{"role": "user", "content": prompt}],
    )

    content = "".join(block.text for block in response.content if getattr(block, "type", "text") == "text")
    tokens_used = response.usage.input_tokens + response.usage.output_tokens
    duration_ms = int((time.time() - start_time) * 1000)

    logger.info(
        f"Narrative model call finished in {duration_ms}ms",
        extra={"extra_data": {"model": settings.NARRATIVE_MODEL, "tokens_used": tokens_used}},
    )
    return LLMResponse(
        content=content.strip(),
        tokens_used=tokens_used,
        model=settings.NARRATIVE_MODEL,
        duration_ms=duration_ms,
    )


def build_system_prompt(format: str = "summary", include_recommendations: bool = True) -> str:
    recommendations = "5. Specific recommendations for action\n" if include_recommendations else ""
    return SYSTEM_PROMPT_TEMPLATE.format(format=format, recommendations=recommendations)


def build_user_prompt(run: SuiteRun, run_items: list[SuiteRunItem], format: str = "summary") -> str:
    """Render the run and its completed steps for the narrative model."""
    summaries = [
        {
            "order": item.order_index,
            "status": item.status.value,
            "risk_level": item.risk_level.value if item.risk_level else None,
            "outcome_type": item.outcome_type,
            "narrative": item.narrative,
            "key_findings": item.key_findings,
        }
        for item in sorted(run_items, key=lambda i: i.order_index)
        if item.status == SuiteRunItemStatus.COMPLETED
    ]
    aggregate = run.aggregate_risk_level.value if run.aggregate_risk_level else "Not assessed"

    parts = [
        "Analyze this scenario suite run:",
        "",
        f"Suite Run: {run.run_label or f'Run {run.run_number}'}",
        f"Status: {run.status.value}",
        f"Items Completed: {run.completed_items}/{run.total_items}",
        f"Aggregate Risk: {aggregate}",
        "",
        "Item Results:",
        json.dumps(summaries, indent=2, default=str),
        "",
        f"Generate a {format} narrative.",
    ]
    return "\n".join(parts)


def generate_suite_narrative(
    run: SuiteRun,
    run_items: list[SuiteRunItem],
    format: str = "summary",
    include_recommendations: bool = True,
) -> LLMResponse:
    """
    Generate a narrative for a suite run.

    Raises:
        ValueError: If the model returns no text
    """
    response = generate(
        build_user_prompt(run, run_items, format=format),
        system=build_system_prompt(format, include_recommendations),
    )
    if not response.content:
        raise ValueError("Narrative model returned empty content")
    return response

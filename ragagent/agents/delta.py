# =============================================================================
# Delta Analysis — Structured Comparison of Two Expert Answers
# =============================================================================
#
# Given the original question and two expert responses, a dedicated
# comparison agent produces a markdown report with:
#   - Key Similarities
#   - Key Differences (table)
#   - Contradictions or Conflicts (stated explicitly when there are none)
#   - Unique Insights (table, one row per agent)
#   - Relevance Assessment
#
# The comparison persona must never carry tools: it is marked strict_tools,
# so an existing registration with tools is deleted and recreated by the
# runner, and it is run without a tool handler.
# =============================================================================

from __future__ import annotations

import logging

from ragagent.agents.personas import AgentPersona
from ragagent.agents.runner import AgentResolutionError, AgentRunner

logger = logging.getLogger(__name__)

UNABLE_TEXT = "Unable to complete delta analysis. Please try again."


def build_delta_prompt(
    query: str,
    response_a: str,
    response_b: str,
    label_a: str = "SOP Agent",
    label_b: str = "Policy Agent",
) -> str:
    """Compose the single comparison prompt."""
    return f"""Original Question: {query}

{label_a} Response:
{response_a}

{label_b} Response:
{response_b}

Please analyze the differences between the {label_a} and {label_b} responses. \
Provide your analysis in a well-structured format with the following sections:

## Key Similarities
List the main points where both agents agree or provide similar information.

## Key Differences
Present a comparison table showing the main differences:
| Aspect | {label_a} | {label_b} |
|--------|-----------|-----------|
| (Add rows comparing specific aspects)

## Contradictions or Conflicts
Identify any contradictions or conflicts between the responses. If none exist, \
state clearly that there are none.

## Unique Insights
| Agent | Unique Insights |
|-------|----------------|
| {label_a} | (List unique points from {label_a}) |
| {label_b} | (List unique points from {label_b}) |

## Relevance Assessment
Which response is more relevant to the original question and why?

Use clear markdown formatting with tables where appropriate to make the \
comparison easy to understand."""


class DeltaAnalyzer:
    """Runs the tool-less comparison agent."""

    def __init__(self, runner: AgentRunner, persona: AgentPersona) -> None:
        if persona.tools:
            raise ValueError("Delta analysis persona must not define tools")
        self._runner = runner
        self._persona = persona

    async def analyze(
        self,
        query: str,
        response_a: str,
        response_b: str,
        label_a: str = "SOP Agent",
        label_b: str = "Policy Agent",
    ) -> str:
        """
        Compare two responses to the same query.

        Returns the analysis text, UNABLE_TEXT when the run did not produce
        one, or an "Error analyzing delta: ..." message when the comparison
        agent could not be resolved.
        """
        logger.info("Analyzing delta between %s and %s responses", label_a, label_b)
        prompt = build_delta_prompt(query, response_a, response_b, label_a, label_b)

        try:
            result = await self._runner.run(self._persona, prompt)
        except AgentResolutionError as e:
            logger.error("Delta analysis agent unavailable: %s", e)
            return f"Error analyzing delta: {e}"

        if not result.ok:
            logger.warning(
                "Delta analysis run did not complete successfully: %s", result.error,
            )
            return UNABLE_TEXT

        logger.info("Delta analysis completed successfully")
        return result.text or UNABLE_TEXT

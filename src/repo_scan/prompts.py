"""Prompt templates sent to the completion endpoint."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from repo_scan.config import Recommendation

RECOMMENDATION_SHAPE = """{
      "title": "short title",
      "description": "what and why",
      "impact": "high|medium|low",
      "effort": "hours estimate",
      "relevant_files": ["path/to/file"]
    }"""

SCAN_TEMPLATE = """Analyze this codebase and return ONLY valid JSON (no markdown, no code blocks, just raw JSON):

{context}

Return this exact JSON structure:
{{
  "stage": "idea|prototype|mvp|growth|mature",
  "stage_reasoning": "why this stage",
  "optimization_goal": "what the recommendations optimize for",
  "top_recommendation": {shape},
  "secondary_recommendations": [
    {shape}
  ]
}}

Stage definitions:
- idea: Just a concept, minimal/no code
- prototype: Proof of concept, exploring feasibility
- mvp: Minimum viable product, core features work
- growth: Active development, gaining users/features
- mature: Stable, well-maintained, production-ready

Include 2-3 secondary recommendations. Be specific and actionable.
"relevant_files" must only list paths that appear in the file tree above."""

REPO_HEADER = """Repository: {owner}/{repo}
Stage: {stage}
Stage reasoning: {stage_reasoning}"""

CHAT_TEMPLATE = """You are a code advisor. The user is looking at a recommendation for their repository \
and has a follow-up question or feedback.

{header}

Recommendation:
{recommendation}

Relevant source files:
{files}

User message: {message}

Respond helpfully and concisely. If the user says the recommendation is wrong, acknowledge it and suggest an \
alternative. If they ask for more detail, provide specific code-level guidance referencing the files above. \
Keep your response under 300 words."""

EXPLAIN_TEMPLATE = """You are a code advisor explaining a recommendation to a developer who did not understand it.

{header}

Recommendation:
{recommendation}

Relevant source files:
{files}

{follow_up}Return ONLY valid JSON with this structure:
{{
  "simplified": "the recommendation in plain words",
  "codeReferences": ["path/to/file: what to look at"],
  "whyItMatters": "why this matters at the current stage"
}}"""

OVERRIDE_TEMPLATE = """You are a code advisor. The user disagrees with the current recommendations and states \
their own goal.

{header}

User goal: {goal}

Current recommendations:
{existing}

Return ONLY valid JSON with this structure:
{{
  "newRecommendations": [
    {shape}
  ],
  "reorderedExisting": true
}}
Set "reorderedExisting" to true if the new list mainly reorders the current recommendations."""

REOPTIMIZE_TEMPLATE = """You are a code advisor. Re-rank and rewrite the recommendations for this repository so \
they serve a new goal.

{header}

New goal: {goal}

Current recommendations:
{existing}

Return ONLY valid JSON with this structure:
{{
  "optimization_goal": "the goal in a few words",
  "recommendations": [
    {shape}
  ]
}}
Return 3-4 recommendations, most important first."""


def format_recommendation(rec: Recommendation) -> str:
    return (
        f"- Title: {rec.title}\n"
        f"- Description: {rec.description}\n"
        f"- Impact: {rec.impact}\n"
        f"- Effort: {rec.effort}"
    )


def format_recommendations(recs: Sequence[Recommendation]) -> str:
    return json.dumps([rec.model_dump(mode="json") for rec in recs], indent=2)


def scan_prompt(context: str) -> str:
    return SCAN_TEMPLATE.format(context=context, shape=RECOMMENDATION_SHAPE)


def repo_header(owner: str, repo: str, stage: str, stage_reasoning: str) -> str:
    return REPO_HEADER.format(owner=owner, repo=repo, stage=stage, stage_reasoning=stage_reasoning)


def chat_prompt(header: str, rec: Recommendation, files: str, message: str) -> str:
    return CHAT_TEMPLATE.format(
        header=header,
        recommendation=format_recommendation(rec),
        files=files,
        message=message,
    )


def explain_prompt(header: str, rec: Recommendation, files: str, follow_up: str = "") -> str:
    return EXPLAIN_TEMPLATE.format(
        header=header,
        recommendation=format_recommendation(rec),
        files=files,
        follow_up=f"Follow-up question: {follow_up}\n\n" if follow_up else "",
    )


def override_prompt(header: str, goal: str, existing: Sequence[Recommendation]) -> str:
    return OVERRIDE_TEMPLATE.format(
        header=header,
        goal=goal,
        existing=format_recommendations(existing),
        shape=RECOMMENDATION_SHAPE,
    )


def reoptimize_prompt(header: str, goal: str, existing: Sequence[Recommendation]) -> str:
    return REOPTIMIZE_TEMPLATE.format(
        header=header,
        goal=goal,
        existing=format_recommendations(existing),
        shape=RECOMMENDATION_SHAPE,
    )

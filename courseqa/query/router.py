"""Routing of questions to knowledge-base namespaces."""

import logging
import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from courseqa.llm.base import ChatMessage, LLMProvider
from courseqa.models import RoutingDecision

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACES: dict[str, str] = {
    "unit-1": "Getting started (basics, introduction, overview, fundamentals)",
    "unit-2": "Setting up your business (legal, accounting, business structure, registration)",
    "unit-3": "Product research (finding products, market analysis, competition, validation)",
    "unit-4": "Creating your first listing (titles, descriptions, images, keywords, content)",
    "unit-5": "Product sourcing and making your offer (suppliers, negotiations, samples, manufacturing)",
    "unit-6": "Shipping your product to Amazon (logistics, FBA prep, transportation, inventory)",
    "unit-7": "Finalizing your listing (optimization, final touches, compliance, approval)",
    "unit-8": "Launching your product (launch strategies, initial sales, momentum, promotion)",
    "unit-9": "Mastering PPC advertising (sponsored ads, campaigns, optimization, targeting)",
}

FALLBACK_CONFIDENCE = 0.3
MAX_ROUTED_NAMESPACES = 3

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class _RoutingResponse(BaseModel):
    namespaces: list[Any]
    reasoning: str | None = None
    confidence: float | None = Field(default=None, allow_inf_nan=False)


class NamespaceRouter:
    """Classifies questions into 1-3 namespaces of the course catalog.

    Misrouting must never block answering, so every failure degrades to a
    fixed fallback decision instead of raising.
    """

    def __init__(
        self,
        llm_provider: LLMProvider,
        namespaces: Mapping[str, str] | None = None,
        default_namespace: str = "unit-3",
        temperature: float = 0.1,
        max_tokens: int = 300,
    ):
        self.llm_provider = llm_provider
        self.namespaces = dict(namespaces or DEFAULT_NAMESPACES)
        if default_namespace not in self.namespaces:
            raise ValueError(f"Default namespace '{default_namespace}' is not in the catalog")
        self.default_namespace = default_namespace
        self.temperature = temperature
        self.max_tokens = max_tokens

    def namespace_descriptions(self) -> dict[str, str]:
        return dict(self.namespaces)

    def fallback(self, reason: str) -> RoutingDecision:
        return RoutingDecision(
            namespaces=[self.default_namespace],
            reasoning=f"Fallback to {self.default_namespace} due to {reason}",
            confidence=FALLBACK_CONFIDENCE,
        )

    async def route(self, question: str) -> RoutingDecision:
        """Pick the namespaces most relevant to a question.

        Args:
            question: The (improved) user question

        Returns:
            RoutingDecision with catalog-only namespaces and clamped confidence
        """
        logger.debug(f"Routing question: {question}")

        try:
            response = await self.llm_provider.complete(
                [
                    ChatMessage(role="system", content=self.build_routing_prompt()),
                    ChatMessage(role="user", content=question),
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            logger.error(f"Error routing question: {e}")
            return self.fallback("routing error")

        decision = self.parse_routing_response(response.content)
        logger.debug(
            f"Routed to {', '.join(decision.namespaces)} "
            f"({decision.confidence:.2f} confidence): {decision.reasoning}"
        )
        return decision

    def parse_routing_response(self, content: str) -> RoutingDecision:
        match = _JSON_OBJECT.search(content.strip())
        if not match:
            logger.warning("Failed to parse routing response: no JSON found")
            return self.fallback("parsing error")

        try:
            parsed = _RoutingResponse.model_validate_json(match.group(0))
        except ValidationError as e:
            logger.warning(f"Failed to parse routing response: {e}")
            return self.fallback("parsing error")

        valid = []
        for name in parsed.namespaces:
            if isinstance(name, str) and name in self.namespaces and name not in valid:
                valid.append(name)
        if not valid:
            logger.warning(f"No valid namespaces in routing response: {parsed.namespaces}")
            return self.fallback("no valid namespaces")

        confidence = 0.5 if parsed.confidence is None else parsed.confidence
        return RoutingDecision(
            namespaces=valid[:MAX_ROUTED_NAMESPACES],
            reasoning=parsed.reasoning or "No reasoning provided",
            confidence=min(max(confidence, 0.0), 1.0),
        )

    def build_routing_prompt(self) -> str:
        unit_descriptions = "\n".join(
            f"{name}: {description}" for name, description in self.namespaces.items()
        )

        return f"""You are an expert course content router. Your job is to analyze user questions and determine which course units are most relevant.

COURSE UNITS:
{unit_descriptions}

ROUTING RULES:
1. Return 1-{MAX_ROUTED_NAMESPACES} most relevant namespaces (prefer fewer for better precision)
2. Consider the main topic and any subtopics
3. For multi-topic questions, include related units
4. Avoid including irrelevant units
5. Always provide confidence score (0.0-1.0)

RESPONSE FORMAT (JSON only):
{{
  "namespaces": ["unit-X", "unit-Y"],
  "reasoning": "Brief explanation of why these units are relevant",
  "confidence": 0.8
}}

EXAMPLES:
Question: "How do I optimize my manual targeting campaigns?"
Response: {{"namespaces": ["unit-9"], "reasoning": "Question is specifically about PPC campaign optimization", "confidence": 0.95}}

Question: "What makes a good listing title?"
Response: {{"namespaces": ["unit-4", "unit-7"], "reasoning": "Listing creation and optimization both cover titles", "confidence": 0.9}}

Question: "How do I find profitable products?"
Response: {{"namespaces": ["unit-3"], "reasoning": "Product research is the primary focus", "confidence": 0.9}}

Now route this question:"""

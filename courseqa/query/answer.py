"""Answer generation, question rewriting and answer validation."""

import logging
import re

from pydantic import BaseModel, Field, ValidationError

from courseqa.llm.base import ChatMessage, CompletionResult, LLMProvider
from courseqa.models import Validation

logger = logging.getLogger(__name__)

DEFAULT_ROLE = (
    "You are an expert FBA (Fulfillment by Amazon) course assistant. You help students "
    "understand Amazon FBA concepts, strategies, and best practices."
)

IMPROVE_PROMPT = """You are an expert at improving questions to get better answers from a course knowledge base.

Your task is to:
1. Clarify vague questions
2. Add context when helpful
3. Break down complex questions into focused parts
4. Keep the question specific to the course topics

Return only the improved question, nothing else."""

VALIDATION_PROMPT = """You are an expert validator for course answers. Your task is to evaluate if an answer is accurate, helpful, and well-supported by the provided context.

Return your evaluation in this exact JSON format:
{
  "isValid": true/false,
  "confidence": 0.0-1.0,
  "feedback": "Brief explanation of your evaluation"
}"""

NEUTRAL_CONFIDENCE = 0.5

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class _ValidationResponse(BaseModel):
    isValid: bool = False
    confidence: float = Field(default=0.0, allow_inf_nan=False)
    feedback: str = "No feedback provided"


class AnswerGenerator:
    """Talks to the generation service for every text-producing step."""

    def __init__(
        self,
        llm_provider: LLMProvider,
        role_description: str = DEFAULT_ROLE,
        answer_temperature: float = 0.7,
        answer_max_tokens: int = 800,
        validation_temperature: float = 0.3,
        validation_max_tokens: int = 300,
        improve_temperature: float = 0.5,
        improve_max_tokens: int = 200,
    ):
        self.llm_provider = llm_provider
        self.role_description = role_description
        self.answer_temperature = answer_temperature
        self.answer_max_tokens = answer_max_tokens
        self.validation_temperature = validation_temperature
        self.validation_max_tokens = validation_max_tokens
        self.improve_temperature = improve_temperature
        self.improve_max_tokens = improve_max_tokens

    async def improve_question(self, question: str) -> str:
        """Rewrite a question for better retrieval.

        Raises whatever the provider raises; callers decide how to recover.
        """
        response = await self.llm_provider.complete(
            [
                ChatMessage(role="system", content=IMPROVE_PROMPT),
                ChatMessage(
                    role="user",
                    content=f'Improve this question for better course search results: "{question}"',
                ),
            ],
            temperature=self.improve_temperature,
            max_tokens=self.improve_max_tokens,
        )
        return response.content.strip() or question

    def build_system_prompt(
        self,
        document_context: str,
        conversation_context: str = "",
        language: str = "en",
    ) -> str:
        language_name = "English" if language == "en" else language
        sections = [
            f"""{self.role_description}

Instructions:
- Provide accurate, helpful answers based on the provided context
- Focus on practical, actionable advice
- Use clear, concise language appropriate for {language_name} speakers
- If the context doesn't contain enough information, say so honestly
- Always maintain a professional, helpful tone
- Structure your response with clear sections when appropriate
- Reference specific sources when possible"""
        ]
        if conversation_context:
            sections.append(f"Recent conversation context:\n{conversation_context}")
        sections.append(f"Context from course materials:\n{document_context}")
        return "\n\n".join(sections)

    async def generate(
        self,
        question: str,
        document_context: str,
        conversation_context: str = "",
        language: str = "en",
        custom_system_prompt: str | None = None,
    ) -> CompletionResult:
        """Generate the answer to the user's original question.

        Args:
            question: The question exactly as the user asked it
            document_context: Rendered retrieved passages
            conversation_context: Rendered conversation history, may be empty
            language: Language tag for the answer
            custom_system_prompt: Replaces the whole system prompt when set

        Returns:
            CompletionResult with the answer text and token usage
        """
        system_prompt = custom_system_prompt or self.build_system_prompt(
            document_context, conversation_context, language
        )
        return await self.llm_provider.complete(
            [
                ChatMessage(role="system", content=system_prompt),
                ChatMessage(role="user", content=question),
            ],
            temperature=self.answer_temperature,
            max_tokens=self.answer_max_tokens,
        )

    async def validate(self, question: str, answer: str, document_context: str) -> Validation:
        """Score an answer against its context.

        The score is advisory, so any failure yields a neutral validation.
        """
        try:
            response = await self.llm_provider.complete(
                [
                    ChatMessage(role="system", content=VALIDATION_PROMPT),
                    ChatMessage(
                        role="user",
                        content=(
                            f"Question: {question}\n\nAnswer: {answer}\n\n"
                            f"Context: {document_context}\n\nPlease evaluate this answer."
                        ),
                    ),
                ],
                temperature=self.validation_temperature,
                max_tokens=self.validation_max_tokens,
            )
        except Exception as e:
            logger.error(f"Error validating answer: {e}")
            return Validation(is_valid=True, confidence=NEUTRAL_CONFIDENCE, feedback="Validation failed")

        match = _JSON_OBJECT.search(response.content)
        try:
            if not match:
                raise ValueError("No JSON found in validation response")
            evaluation = _ValidationResponse.model_validate_json(match.group(0))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Failed to parse validation response, using default: {e}")
            return Validation(
                is_valid=True,
                confidence=NEUTRAL_CONFIDENCE,
                feedback="Validation parsing failed",
            )

        return Validation(
            is_valid=evaluation.isValid,
            confidence=min(max(evaluation.confidence, 0.0), 1.0),
            feedback=evaluation.feedback,
        )

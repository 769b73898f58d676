"""
Supabase security chat assistant.

Prepends a fixed system prompt to the caller's conversation and asks an
OpenAI chat model for the next answer.
"""

import logging
from typing import Any, List, Optional

import openai
from openai import OpenAI
from pydantic import ValidationError

from supabase_compliance_checker.core.config import AIConfig
from supabase_compliance_checker.core.errors import AssistantError, InvalidRequestError
from supabase_compliance_checker.reporting.models import ChatMessage

logger = logging.getLogger("supabase_compliance.assistant")

SYSTEM_PROMPT = """You are a helpful AI assistant specialized in Supabase Security Compliance. Your role is to help users understand and implement security best practices for Supabase projects.

Your expertise includes:
- Row Level Security (RLS) policies and implementation
- Multi-Factor Authentication (MFA) setup and best practices
- Point in Time Recovery (PITR) configuration and benefits
- Supabase project security configuration
- Database security best practices
- User authentication and authorization
- API security and service role key management
- Compliance requirements and audit trails

You should:
- Provide clear, actionable advice on Supabase security
- Help troubleshoot security compliance issues
- Explain technical concepts in an accessible way
- Reference official Supabase documentation when relevant
- Focus on practical implementation steps
- Be concise but thorough in your responses

Always prioritize security best practices and compliance requirements in your recommendations."""


def parse_messages(raw: Any) -> List[ChatMessage]:
    """
    Validate the conversation sent by a caller.

    Raises:
        InvalidRequestError: messages missing, not a list, or malformed
    """
    if not raw or not isinstance(raw, list):
        raise InvalidRequestError("Messages array is required")
    try:
        return [ChatMessage.model_validate(item) for item in raw]
    except ValidationError as e:
        raise InvalidRequestError("Each message needs a role and content") from e


class SecurityAssistant:
    """Answers Supabase security questions through the OpenAI chat API."""

    def __init__(self, config: AIConfig, client: Optional[Any] = None):
        self.config = config
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self._client is not None or bool(
            self.config.openai_api_key and self.config.openai_api_key.get_secret_value()
        )

    def _get_client(self) -> Any:
        if self._client is None:
            if not self.is_configured:
                raise AssistantError("OpenAI API key not configured", status_code=500)
            self._client = OpenAI(api_key=self.config.openai_api_key.get_secret_value())
        return self._client

    def build_messages(self, messages: List[ChatMessage]) -> List[dict]:
        return [{"role": "system", "content": SYSTEM_PROMPT}] + [
            m.model_dump() for m in messages
        ]

    def reply(self, messages: List[ChatMessage]) -> str:
        """
        Generate the assistant's next message.

        Args:
            messages: Conversation so far, without the system prompt

        Returns:
            The assistant's answer

        Raises:
            AssistantError: with the status the dashboard should answer with
        """
        client = self._get_client()

        try:
            completion = client.chat.completions.create(
                model=self.config.model,
                messages=self.build_messages(messages),
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
            )
        except openai.APIError as e:
            logger.error(f"Chat completion failed: {e}")
            raise self._map_error(e) from e

        content = None
        if completion.choices:
            content = completion.choices[0].message.content
        if not content:
            raise AssistantError("No response generated", status_code=500)
        return content

    @staticmethod
    def _map_error(error: "openai.APIError") -> AssistantError:
        code = getattr(error, "code", None)
        if code == "insufficient_quota":
            return AssistantError(
                "OpenAI quota exceeded. Please check your API usage.", status_code=429
            )
        if code == "invalid_api_key" or isinstance(error, openai.AuthenticationError):
            return AssistantError("Invalid OpenAI API key", status_code=401)
        return AssistantError("Failed to process chat request", status_code=500)

"""AI generator: Postman collections from canonical endpoints via Gemini.

Renders the prompt template with the serialized endpoints, calls the
Gemini ``generateContent`` REST endpoint with retries, and validates that
the answer is a Postman collection.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Sequence
from datetime import UTC, datetime
from types import TracebackType
from typing import TYPE_CHECKING, Any, Self

import httpx
from pydantic import BaseModel, Field

from mockgen.generators.postman import is_postman_collection
from mockgen.models import AiGenerationError, AppError, CanonicalEndpoint
from mockgen.processing.serializer import serialize

if TYPE_CHECKING:
    from pathlib import Path

    from mockgen.config import AppConfig

logger = logging.getLogger(__name__)

# Gemini REST API base URL
GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"

# Low temperature and topK 1 keep the JSON output stable across retries
GENERATION_CONFIG: dict[str, Any] = {
    "temperature": 0.1,
    "topK": 1,
    "topP": 0.8,
    "maxOutputTokens": 8192,
}

_PLACEHOLDER_PATTERN = re.compile(r"\{\{[A-Z_]+\}\}")
_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END = re.compile(r"\s*```$")


class AiGenerationOptions(BaseModel):
    """Options for AI generation.

    Attributes:
        max_retries: Retries after the first failed API call
        retry_delay: Delay between attempts in seconds
        timeout: HTTP request timeout in seconds
        strict_validation: Require the Postman collection shape
    """

    max_retries: int = Field(default=3, ge=0)
    retry_delay: float = Field(default=1.0, ge=0)
    timeout: float = Field(default=30.0, gt=0)
    strict_validation: bool = True


class AiGenerationResult(BaseModel):
    """Result of Postman collection generation.

    Attributes:
        success: Whether a valid collection was generated
        collection_json: Pretty-printed collection JSON
        error: Error message if generation failed
        retry_count: Retries needed for the API call
    """

    success: bool
    collection_json: str | None = None
    error: str | None = None
    retry_count: int = 0


class PromptData(BaseModel):
    """Rendered prompt and its inputs, for inspection."""

    prompt: str
    endpoints: list[CanonicalEndpoint]
    template_vars: dict[str, str] = Field(default_factory=dict)


class ResponseValidation(BaseModel):
    """Outcome of AI response validation."""

    is_valid: bool
    data: Any = None
    error: str | None = None


class GeminiClient:
    """HTTP client for the Gemini generateContent API.

    Use as async context manager for proper resource management.

    Attributes:
        api_key: Gemini API key
        model_name: Model to call
    """

    def __init__(
        self,
        api_key: str,
        model_name: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.model_name = model_name
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> Self:
        """Enter async context manager."""
        self._client = httpx.AsyncClient(
            base_url=GEMINI_API_BASE,
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit async context manager."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _handle_error_response(self, response: httpx.Response) -> None:
        """Map an error response to AiGenerationError.

        Raises:
            AiGenerationError: Always
        """
        status = response.status_code
        if status in (401, 403):
            raise AiGenerationError(
                "GEMINI_AUTH_ERROR",
                "Gemini API rejected the API key.",
                f"status={status} response={response.text}",
            )
        if status == 429:
            raise AiGenerationError(
                "GEMINI_RATE_LIMITED",
                "Gemini API rate limit exceeded.",
                f"status={status}",
            )
        if status >= 500:
            raise AiGenerationError(
                "GEMINI_SERVER_ERROR",
                "Gemini API server error.",
                f"status={status} response={response.text}",
            )
        raise AiGenerationError(
            "GEMINI_API_ERROR",
            f"Gemini API request failed with status {status}.",
            response.text,
        )

    async def generate_content(self, prompt: str) -> str:
        """Send a prompt and return the generated text.

        Raises:
            AiGenerationError: If the request fails or the answer has no text
        """
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": GENERATION_CONFIG,
        }
        response = await self._client.post(
            f"/models/{self.model_name}:generateContent",
            headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
            json=payload,
        )
        if not response.is_success:
            self._handle_error_response(response)

        try:
            data = response.json()
        except ValueError as e:
            raise AiGenerationError(
                "INVALID_AI_RESPONSE", "Gemini API returned invalid JSON", str(e)
            ) from e

        text = _extract_text(data)
        if not text.strip():
            raise AiGenerationError(
                "EMPTY_AI_RESPONSE",
                "Gemini API returned empty response",
                "The AI model did not generate any content",
            )
        return text


def _extract_text(data: Any) -> str:
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return ""
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


class AiGenerator:
    """Generates Postman collections from canonical endpoints.

    Attributes:
        config: Application configuration
        options: Generation options
    """

    def __init__(
        self,
        config: AppConfig,
        options: AiGenerationOptions | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            config: Application configuration (AI section is used)
            options: Generation options (defaults if omitted)
            transport: httpx transport override, for tests
        """
        self.config = config
        self.options = options or AiGenerationOptions()
        self._transport = transport

    @property
    def template_path(self) -> Path:
        return self.config.ai.template_path

    def load_prompt_template(self) -> str:
        """Load the prompt template.

        Raises:
            AiGenerationError: If the template is missing, empty or unreadable
        """
        path = self.template_path
        if not path.exists():
            raise AiGenerationError(
                "PROMPT_TEMPLATE_NOT_FOUND",
                f"Prompt template file not found: {path}",
                f"Please ensure the prompt template file exists at: {path.resolve()}",
            )
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise AiGenerationError(
                "PROMPT_TEMPLATE_READ_ERROR",
                f"Failed to read prompt template file: {path}",
                str(e),
            ) from e
        if not content.strip():
            raise AiGenerationError(
                "EMPTY_PROMPT_TEMPLATE",
                f"Prompt template file is empty: {path}",
                "The prompt template file exists but contains no content.",
            )
        return content

    def render_prompt(
        self, template: str, endpoints: Sequence[CanonicalEndpoint]
    ) -> tuple[str, dict[str, str]]:
        """Replace template placeholders with endpoint data.

        Returns:
            Tuple of (rendered prompt, template variables)

        Raises:
            SerializationError: If the endpoints cannot be serialized
        """
        template_vars = {
            "DATA": serialize(endpoints),
            "TIMESTAMP": datetime.now(UTC).isoformat(),
            "API_COUNT": str(len(endpoints)),
            "MODEL_NAME": self.config.ai.model_name,
        }
        # Single pass over the template: substituted values are never rescanned
        prompt = _PLACEHOLDER_PATTERN.sub(
            lambda m: template_vars.get(m.group(0)[2:-2], m.group(0)), template
        )

        unknown = [
            p for p in _PLACEHOLDER_PATTERN.findall(template) if p[2:-2] not in template_vars
        ]
        if unknown:
            logger.warning("Unresolved placeholders found: %s", ", ".join(unknown))
        return prompt, template_vars

    def validate_response(self, text: str) -> ResponseValidation:
        """Strip Markdown fences, parse JSON and check the collection shape."""
        cleaned = _FENCE_END.sub("", _FENCE_START.sub("", text.strip())).strip()
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            return ResponseValidation(is_valid=False, error=f"Invalid JSON response: {e}")

        if self.options.strict_validation and not is_postman_collection(data):
            return ResponseValidation(
                is_valid=False,
                error="Response is valid JSON but does not match Postman Collection v2.1.0 schema",
            )
        return ResponseValidation(is_valid=True, data=data)

    async def call_gemini(self, prompt: str) -> tuple[str, int]:
        """Call Gemini, retrying failed attempts.

        Returns:
            Tuple of (generated text, retries used)

        Raises:
            AiGenerationError: If every attempt failed
        """
        api_key = self.config.require_api_key()
        attempts = self.options.max_retries + 1
        last_error: Exception | None = None

        async with GeminiClient(
            api_key,
            self.config.ai.model_name,
            timeout=self.options.timeout,
            transport=self._transport,
        ) as client:
            for attempt in range(attempts):
                logger.info("Calling Gemini API (attempt %d/%d)...", attempt + 1, attempts)
                try:
                    text = await client.generate_content(prompt)
                except (AiGenerationError, httpx.HTTPError) as e:
                    last_error = e
                    logger.warning("Gemini API call failed (attempt %d): %s", attempt + 1, e)
                    if attempt + 1 < attempts:
                        await asyncio.sleep(self.options.retry_delay)
                    continue
                logger.info("Gemini API call successful (%d characters)", len(text))
                return text, attempt

        raise AiGenerationError(
            "GEMINI_API_ERROR",
            f"Gemini API call failed after {attempts} attempts",
            str(last_error),
        )

    async def generate_postman_collection(
        self, endpoints: Sequence[CanonicalEndpoint]
    ) -> AiGenerationResult:
        """Generate a Postman collection from canonical endpoints.

        Args:
            endpoints: Normalized endpoints

        Returns:
            AiGenerationResult with pretty-printed collection JSON on success
        """
        if not endpoints:
            return AiGenerationResult(
                success=False, error="No API data provided for collection generation"
            )

        logger.info("Starting Postman Collection generation for %d APIs...", len(endpoints))
        retry_count = 0
        try:
            template = self.load_prompt_template()
            prompt, _ = self.render_prompt(template, endpoints)
            logger.debug("Prompt processed (%d characters)", len(prompt))

            text, retry_count = await self.call_gemini(prompt)
        except AppError as e:
            logger.error("Postman Collection generation failed: %s", e.message)
            return AiGenerationResult(success=False, error=e.message, retry_count=retry_count)

        validation = self.validate_response(text)
        if not validation.is_valid:
            logger.error("AI response validation failed: %s", validation.error)
            return AiGenerationResult(
                success=False,
                error=f"AI response validation failed: {validation.error}",
                retry_count=retry_count,
            )

        return AiGenerationResult(
            success=True,
            collection_json=json.dumps(validation.data, indent=2, ensure_ascii=False),
            retry_count=retry_count,
        )

    def create_prompt_data(self, endpoints: Sequence[CanonicalEndpoint]) -> PromptData:
        """Render the prompt for inspection without calling the API."""
        try:
            template = self.load_prompt_template()
            prompt, template_vars = self.render_prompt(template, endpoints)
        except AppError as e:
            return PromptData(
                prompt=f"Error loading template: {e.message}", endpoints=list(endpoints)
            )
        return PromptData(prompt=prompt, endpoints=list(endpoints), template_vars=template_vars)

    def get_status(self) -> dict[str, Any]:
        """Return the generator status."""
        return {
            "has_api_key": bool(self.config.ai.api_key),
            "model_name": self.config.ai.model_name,
            "prompt_template_path": str(self.template_path),
            "max_retries": self.options.max_retries,
        }

import json
import logging
import pathlib
import re
from collections.abc import AsyncIterator
from typing import Any
from uuid import uuid4

import httpx
import jinja2
from openai import AsyncOpenAI
from openai import OpenAIError
from pydantic import BaseModel
from pydantic import ValidationError
from tenacity import RetryCallState
from tenacity import retry
from tenacity import stop_after_attempt
from tenacity import wait_exponential

from edugen.core.config import settings
from edugen.core.exceptions import ConfigurationError
from edugen.core.exceptions import ProviderError
from edugen.services.partial_json import parse_partial_json

# Configure module logger
logger = logging.getLogger(__name__)

# Characters that must arrive before the streamed JSON prefix is re-parsed
SNAPSHOT_MIN_GROWTH = 64


class JSONParsingError(ProviderError):
    """Raised when the model's structured output cannot be parsed as JSON"""


# --- Reusable Jinja2 Environment ---
PROMPT_DIR = pathlib.Path(__file__).parent / "prompt_templates"
env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(PROMPT_DIR),
    undefined=jinja2.StrictUndefined,
    keep_trailing_newline=False,
)


def render_prompt(template_name: str, **context: Any) -> str:
    """Render a prompt template from ``prompt_templates``."""
    try:
        return env.get_template(template_name).render(**context)
    except jinja2.TemplateNotFound:
        logger.error("Template not found: %s", template_name)
        raise ConfigurationError(f"Prompt template '{template_name}' not found.") from None
    except jinja2.UndefinedError as e:
        logger.error("Missing variable while rendering %s: %s", template_name, str(e))
        raise ConfigurationError(f"Prompt template '{template_name}' could not be rendered: {str(e)}") from e


# ---------------------------------------------------------------
# Helper predicate for tenacity retry
# ---------------------------------------------------------------


def _should_retry_llm_call(retry_state: RetryCallState) -> bool:
    """Determines if a retry should occur based on the exception in RetryCallState."""
    if not retry_state.outcome:
        return False

    exc = retry_state.outcome.exception()
    if not exc:
        return False

    # Unwrap ProviderError to get to the original cause (e.g., OpenAIError)
    actual_exception = exc.__cause__ if isinstance(exc, ProviderError) and exc.__cause__ else exc

    status = getattr(actual_exception, "status", None) or getattr(actual_exception, "status_code", None)
    if status in {429, 500, 502, 503, 504}:
        logger.debug("Retryable API error status %s detected. Retrying...", status)
        return True
    return False


# ---------------------------------------------------------------
# JSON extractor helper
# ---------------------------------------------------------------
def extract_json(text: str) -> Any:
    """Attempts to robustly extract and parse JSON from LLM responses, handling markdown fences and extraneous text."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Initial JSON parse failed, attempting extraction strategies...")

    # Strategy 1: Markdown Code Fence Extraction
    match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text, re.DOTALL)
    if match:
        try:
            result = json.loads(match.group(1))
            logger.info("Successfully parsed JSON from markdown code fence.")
            return result
        except json.JSONDecodeError:
            logger.warning("Failed to parse JSON from fenced block, trying next strategy...")

    # Strategy 2: Use JSONDecoder().raw_decode for first object/array
    decoder = json.JSONDecoder()
    starts = [pos for pos in (text.find("{"), text.find("[")) if pos != -1]
    if not starts:
        logger.error("No JSON object or array marker found in response")
        raise JSONParsingError("No JSON object or array marker found in response")
    try:
        obj, _ = decoder.raw_decode(text, min(starts))
        logger.info("Successfully parsed JSON using raw_decode.")
        return obj
    except json.JSONDecodeError as e:
        logger.error("Failed to parse JSON using raw_decode: %s", str(e))
    raise JSONParsingError("All strategies to parse JSON from LLM response failed.")


class OpenAIGenerationProvider:
    """Streams completions from an OpenAI-compatible chat endpoint (Mistral by default)."""

    def __init__(self, client: AsyncOpenAI | None = None, model_id: str | None = None):
        self._client = client
        self.model_id = model_id or settings.model_id

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not settings.llm_api_key:
                raise ConfigurationError("LLM_API_KEY is not configured.")
            self._client = AsyncOpenAI(
                base_url=settings.llm_base_url,
                api_key=settings.llm_api_key,
                timeout=httpx.Timeout(settings.LLM_CONNECT_TIMEOUT, read=settings.LLM_READ_TIMEOUT),
                max_retries=2,
            )
        return self._client

    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10),
        stop=stop_after_attempt(3),
        retry=_should_retry_llm_call,
        reraise=True,
    )  # type: ignore
    async def _open_stream(self, request_id: str, prompt: str, json_mode: bool = False):
        logger.info("[%s] Opening streaming LLM call with model: %s", request_id, self.model_id)
        kwargs: dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            return await self._get_client().chat.completions.create(
                model=self.model_id,
                messages=[{"role": "user", "content": prompt}],
                temperature=settings.llm_temperature,
                max_tokens=settings.llm_max_tokens,
                stream=True,
                **kwargs,
            )
        except OpenAIError as e:
            logger.error("[%s] OpenAI API error: %s", request_id, str(e))
            raise ProviderError(f"OpenAI API error: {str(e)}") from e

    async def _deltas(self, request_id: str, prompt: str, json_mode: bool = False) -> AsyncIterator[str]:
        stream = await self._open_stream(request_id, prompt, json_mode=json_mode)
        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except OpenAIError as e:
            logger.error("[%s] Stream interrupted: %s", request_id, str(e))
            raise ProviderError(f"Generation stream interrupted: {str(e)}") from e

    async def stream_text(self, prompt: str) -> AsyncIterator[str]:
        request_id = str(uuid4())
        received = 0
        try:
            async for delta in self._deltas(request_id, prompt):
                received += len(delta)
                yield delta
        except (ProviderError, ConfigurationError):
            raise
        except Exception as e:
            logger.exception("[%s] Unexpected error in text stream", request_id)
            raise ProviderError(f"Unexpected error in text stream: {str(e)}") from e
        logger.debug("[%s] Text stream finished, length: %d chars", request_id, received)

    async def stream_structured(self, prompt: str, schema: type[BaseModel]) -> AsyncIterator[dict[str, Any]]:
        request_id = str(uuid4())
        full_prompt = render_prompt(
            "structured_output_suffix.jinja2",
            prompt=prompt,
            schema_json=json.dumps(schema.model_json_schema()),
        )
        buffer = ""
        parsed_length = 0
        last_snapshot: dict[str, Any] | None = None
        try:
            async for delta in self._deltas(request_id, full_prompt, json_mode=True):
                buffer += delta
                if len(buffer) - parsed_length < SNAPSHOT_MIN_GROWTH:
                    continue
                parsed_length = len(buffer)
                snapshot = parse_partial_json(buffer)
                if isinstance(snapshot, dict) and snapshot != last_snapshot:
                    last_snapshot = snapshot
                    yield snapshot
        except (ProviderError, ConfigurationError):
            raise
        except Exception as e:
            logger.exception("[%s] Unexpected error in structured stream", request_id)
            raise ProviderError(f"Unexpected error in structured stream: {str(e)}") from e

        data = extract_json(buffer)
        try:
            final = schema.model_validate(data).model_dump(mode="json")
        except ValidationError as e:
            logger.error("[%s] Structured output does not match %s: %s", request_id, schema.__name__, str(e))
            raise ProviderError(f"Malformed structured output for {schema.__name__}.") from e
        if final != last_snapshot:
            yield final
        logger.debug("[%s] Structured stream finished, length: %d chars", request_id, len(buffer))

"""Reusable LLM client for document extraction with structured output."""

import asyncio
import json
import logging
from typing import Optional, Type, TypeVar

from litellm import acompletion
from pydantic import BaseModel, ValidationError

from chatimport.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class ParsingError(Exception):
    """Raised when LLM-based extraction fails."""

    pass


def _get_model_name() -> str:
    """Get the appropriate model name based on provider."""
    if settings.llm_provider == "openai":
        return settings.openai_model
    else:
        return f"ollama/{settings.ollama_model}"


def _get_api_base() -> Optional[str]:
    """Get the API base URL for Ollama."""
    if settings.llm_provider == "ollama":
        return settings.ollama_host
    return None


def extract_json_block(content: str) -> str:
    """Strip markdown fences and any prose around the first JSON value."""
    content = content.strip()

    if "```" in content:
        parts = content.split("```")
        if len(parts) >= 3:
            json_content = parts[1]
            # Remove language identifier (e.g., "json\n")
            if json_content.lstrip().startswith("json"):
                json_content = json_content.lstrip()[4:]
            content = json_content.strip()
        elif len(parts) == 2:
            # Only one ``` marker (incomplete response)
            content = parts[1].strip()

    # Find first { or [
    json_start = min(
        content.find("{") if "{" in content else len(content),
        content.find("[") if "[" in content else len(content),
    )
    if 0 < json_start < len(content):
        content = content[json_start:]

    return content


async def llm_extract_json(
    prompt: str, response_model: Type[T], timeout: Optional[float] = None, max_retries: int = 3
) -> T:
    """
    Call LLM with a prompt and extract structured JSON output.

    Args:
        prompt: The prompt to send to the LLM
        response_model: Pydantic model class to parse response into
        timeout: Timeout in seconds for LLM call (defaults to settings.llm_timeout)
        max_retries: Maximum number of retry attempts

    Returns:
        Instance of response_model with parsed data

    Raises:
        ParsingError: If LLM call fails or returns invalid JSON after all retries
    """
    timeout = timeout or settings.llm_timeout

    for attempt in range(max_retries):
        try:
            logger.debug(
                f"LLM attempt {attempt + 1}/{max_retries} "
                f"(model {_get_model_name()}, provider {settings.llm_provider})"
            )

            response = await acompletion(
                model=_get_model_name(),
                messages=[{"role": "user", "content": prompt}],
                api_base=_get_api_base(),
                api_key=settings.openai_api_key if settings.llm_provider == "openai" else None,
                temperature=0.1,  # Low temperature for consistency
                max_tokens=4096,  # Allow longer responses for transaction lists
                timeout=timeout,
            )

            content = extract_json_block(response.choices[0].message.content or "")

            # Parse JSON
            try:
                data = json.loads(content)
            except json.JSONDecodeError as e:
                logger.error(f"Invalid JSON from LLM (attempt {attempt + 1}/{max_retries}): {e}")
                logger.error(f"Content preview: {content[:200]}...")

                if attempt < max_retries - 1:
                    await asyncio.sleep(2 ** attempt)  # Exponential backoff
                    continue
                else:
                    raise ParsingError(f"LLM returned invalid JSON: {e}") from e

            # Validate with Pydantic model
            try:
                return response_model.model_validate(data)
            except ValidationError as e:
                logger.error(f"Pydantic validation failed (attempt {attempt + 1}/{max_retries}): {e}")
                if attempt < max_retries - 1:
                    await asyncio.sleep(2 ** attempt)
                    continue
                else:
                    raise ParsingError(f"LLM response validation failed: {e}") from e

        except ParsingError:
            raise

        except TimeoutError as e:
            logger.warning(f"LLM timeout (attempt {attempt + 1}/{max_retries})")
            if attempt < max_retries - 1:
                wait_time = 2 ** attempt
                logger.info(f"Retrying in {wait_time}s...")
                await asyncio.sleep(wait_time)
            else:
                raise ParsingError(f"LLM call timed out after {max_retries} attempts") from e

        except Exception as e:
            logger.error(f"LLM call failed (attempt {attempt + 1}/{max_retries}): {e}")
            if attempt < max_retries - 1:
                await asyncio.sleep(2 ** attempt)
            else:
                raise ParsingError(f"LLM call failed: {e}") from e

    # Should never reach here
    raise ParsingError("Unexpected error in llm_extract_json")

"""
GeminiClient - Listing copy suggestions with model rotation and API key fallback

Strategy: Rotate through models FIRST, then switch API key when all models exhausted.
Models: gemini-2.5-flash-lite → gemini-2.5-flash → gemini-2.0-flash

Only writes the title or the description text.
Everything drawn on the poster is computed by the listing_poster package.
"""

import os
import logging
import traceback
import google.generativeai as genai
import httpx
from google.api_core import exceptions as google_exceptions
from typing import Optional, List, Union

from models import (
    PhotoAttachment, SuggestionContext,
    TitleSuggestionRequest, DescriptionSuggestionRequest, SuggestionResponse
)

logger = logging.getLogger(__name__)

# Available models for rotation (in priority order)
# gemini-2.5-flash-lite: Primary, fast enough for short copy
# gemini-2.5-flash: Better quality fallback
# gemini-2.0-flash: Stable fallback model
AVAILABLE_MODELS = [
    "gemini-2.5-flash-lite",
    "gemini-2.5-flash",
    "gemini-2.0-flash",
]

TEMPERATURE = 0.7
TRIM_WORD_WINDOW = 20
DEFAULT_MIN_DESCRIPTION = 120

Part = Union[str, dict]


class SuggestionError(Exception):
    """The assistant is unavailable or returned nothing usable."""


def trim_to_char_limit(text: str, max_length: int) -> str:
    """
    Trim text to max_length characters.

    Cuts at the last space when it falls within the final TRIM_WORD_WINDOW
    characters, so a word is not split in half.

    Examples:
        >>> trim_to_char_limit("Vintage oak desk", 40)
        'Vintage oak desk'
    """
    if not text:
        return ""
    if len(text) <= max_length:
        return text.strip()

    truncated = text[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length - TRIM_WORD_WINDOW:
        return truncated[:last_space].strip()
    return truncated.strip()


def unique_attachments(attachments: List[PhotoAttachment]) -> List[PhotoAttachment]:
    """Drop attachments that repeat a file identity or URL, and empty ones."""
    unique = []
    seen_files = set()
    seen_urls = set()

    for attachment in attachments:
        if attachment.data is None and not attachment.url:
            continue

        file_key = attachment.file_key
        if file_key:
            if file_key in seen_files:
                continue
            seen_files.add(file_key)

        if attachment.url:
            if attachment.url in seen_urls:
                continue
            seen_urls.add(attachment.url)

        unique.append(attachment)

    return unique


async def attachment_to_part(attachment: PhotoAttachment) -> dict:
    """Inline image part for the Gemini request, fetching remote images."""
    if attachment.data is not None:
        return {"mime_type": attachment.mime_type or "image/jpeg", "data": attachment.data}

    try:
        async with httpx.AsyncClient(timeout=30.0, follow_redirects=True) as client:
            response = await client.get(attachment.url)
            response.raise_for_status()
    except httpx.HTTPError as e:
        raise SuggestionError(f"Failed to fetch image from {attachment.url}: {e}") from e

    mime_type = response.headers.get("content-type", "").split(";")[0].strip() or "image/jpeg"
    return {"mime_type": mime_type, "data": response.content}


def build_shared_context(context: SuggestionContext) -> List[str]:
    summaries = []
    if context.current_title:
        summaries.append(f"Existing title: {context.current_title}")
    if context.current_description:
        summaries.append(f"Existing description: {context.current_description}")
    if context.location:
        summaries.append(f"Location: {context.location}")
    return summaries


class GeminiClient:
    """
    Gemini API client with multi-model rotation and API key fallback.

    Rotation Strategy:
    1. Try all models with current API key
    2. If all models exhausted (rate limited), switch to next API key
    3. Repeat until success or all combinations exhausted

    Environment Variables:
        GEMINI_API_KEYS: Comma-separated list of API keys (preferred)
        GEMINI_API_KEY: Single API key (fallback)
        GEMINI_MODELS: Comma-separated list of models (optional, uses default list)

    A client without keys can be constructed; every suggestion then raises
    SuggestionError so the service can still start.
    """

    def __init__(self, api_keys: Optional[List[str]] = None, models: Optional[List[str]] = None):
        """
        Initialize client with zero or more API keys and models.

        Args:
            api_keys: List of API keys. If None, reads from environment.
            models: List of models to rotate through. If None, uses AVAILABLE_MODELS.
        """
        if api_keys is None:
            keys_str = os.getenv('GEMINI_API_KEYS', '')
            if keys_str:
                api_keys = [k.strip() for k in keys_str.split(',') if k.strip()]
            else:
                single_key = os.getenv('GEMINI_API_KEY', '')
                api_keys = [single_key] if single_key else []

        self.api_keys = api_keys

        if models is None:
            models_str = os.getenv('GEMINI_MODELS', '')
            if models_str:
                self.models = [m.strip() for m in models_str.split(',') if m.strip()]
            else:
                self.models = AVAILABLE_MODELS.copy()
        else:
            self.models = models

        # Track failed model+key combinations for this session
        self._failed_combos: set = set()

        logger.info(f"GeminiClient initialized with {len(self.api_keys)} API keys, {len(self.models)} models")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_keys)

    def with_key(self, api_key: Optional[str]) -> "GeminiClient":
        """Client for a caller-supplied key, or this client when none is given."""
        if not api_key:
            return self
        return GeminiClient(api_keys=[api_key], models=self.models)

    def _get_model_with_key(self, api_key: str, model_name: str) -> genai.GenerativeModel:
        """Get a GenerativeModel configured with a specific API key and model."""
        genai.configure(api_key=api_key)
        return genai.GenerativeModel(model_name)

    async def _inline_parts(self, attachments: List[PhotoAttachment]) -> List[dict]:
        return [await attachment_to_part(a) for a in unique_attachments(attachments)]

    async def build_title_parts(self, request: TitleSuggestionRequest) -> List[Part]:
        """Prompt parts for a title suggestion."""
        locale = request.locale
        max_length = request.max_length
        inline_parts = await self._inline_parts(request.attachments)

        parts: List[Part] = [
            f"You are an expert marketplace copywriter. Craft a compelling listing title in {locale}.",
            f"Keep the title within {max_length} characters. Return only the improved title without quotes or commentary.",
            f"Max title characters allowed: {max_length}. Do not exceed this limit.",
            "Do not mention pricing, discounts, or currency details in the title.",
            f"Reply exclusively in {locale}.",
        ]

        summaries = build_shared_context(request)
        if request.current_description:
            summaries.append(f"Description: {request.current_description}")
        if request.description:
            summaries.append(f"Draft description: {request.description}")
        if summaries:
            parts.append(f"Context: {' | '.join(summaries)}")

        if inline_parts:
            if len(request.attachments) > 1:
                parts.append(
                    "Multiple distinct items appear across the photos. "
                    "Craft a title that reflects the collection rather than a single product."
                )
            parts.append("Product photos are attached below. Incorporate any visual cues into the title when helpful.")
            parts.extend(inline_parts)

        parts.append("Focus on clarity and appeal. Reply with the title only.")
        return parts

    async def build_description_parts(self, request: DescriptionSuggestionRequest) -> List[Part]:
        """Prompt parts for a description suggestion."""
        locale = request.locale
        max_length = request.max_length
        min_length = request.min_length or DEFAULT_MIN_DESCRIPTION
        inline_parts = await self._inline_parts(request.attachments)

        parts: List[Part] = [
            f"You are helping improve a marketplace listing description in {locale}.",
            f"Write a descriptive, easy-to-read paragraph between {min_length} and {max_length} characters. "
            "Sound like an individual selling a gently used item, highlighting honest condition details, "
            "how it has been cared for, and why it is still useful.",
            "Use concise sentences, avoid marketing buzzwords or bullet points, and reply with the description text only.",
            f"Max description characters allowed: {max_length}. Never exceed this limit.",
            "Do not mention pricing, discounts, or currency details in the description.",
            f"Reply exclusively in {locale}.",
        ]

        summaries = build_shared_context(request)
        if request.description:
            summaries.append(f"Draft description: {request.description}")
        if summaries:
            parts.append(f"Context: {' | '.join(summaries)}")

        if not request.description and request.current_title:
            parts.append(
                f'No draft description is available. Use the listing title "{request.current_title}" '
                "to infer product highlights and craft the response."
            )

        if inline_parts:
            if len(request.attachments) > 1:
                parts.append(
                    "Multiple different items are visible in the photos. "
                    "Describe each item briefly and clarify if they are sold together."
                )
            parts.append(
                "Product photos are attached below. "
                "Highlight notable visual attributes if they strengthen the description."
            )
            parts.extend(inline_parts)

        return parts

    async def generate_text(self, parts: List[Part]) -> tuple:
        """
        Run the prompt through the model/key rotation.

        Returns:
            Tuple of (text, model_name)

        Raises:
            SuggestionError: If no key is configured or all combinations fail.
        """
        if not self.api_keys:
            raise SuggestionError("Missing Gemini API key.")

        generation_config = {"temperature": TEMPERATURE}
        last_error = None
        total_combinations = len(self.models) * len(self.api_keys)
        attempt = 0

        for api_key in self.api_keys:
            key_suffix = api_key[-6:] if len(api_key) > 6 else api_key

            for model_name in self.models:
                attempt += 1
                combo_id = f"{model_name}:{key_suffix}"

                if combo_id in self._failed_combos:
                    logger.debug(f"Skipping known failed combo: {combo_id}")
                    continue

                try:
                    logger.info(f"[{attempt}/{total_combinations}] Trying {model_name} with key ...{key_suffix}")
                    model = self._get_model_with_key(api_key, model_name)
                    response = await model.generate_content_async(parts, generation_config=generation_config)

                    text = (response.text or "").strip()
                    if not text:
                        logger.warning(f"Empty response from {model_name}")
                        last_error = SuggestionError("Gemini did not return any text.")
                        continue

                    logger.info(f"✓ Success with {model_name} (key ...{key_suffix}), response: {len(text)} chars")
                    return text, model_name

                except google_exceptions.ResourceExhausted as e:
                    logger.warning(f"⚠ {model_name} rate limited (429), marking combo and trying next...")
                    self._failed_combos.add(combo_id)
                    last_error = e

                except google_exceptions.NotFound as e:
                    logger.warning(f"Model {model_name} not available, marking as failed")
                    self._failed_combos.add(combo_id)
                    last_error = e

                except (google_exceptions.GoogleAPIError, ValueError) as e:
                    # ValueError: blocked responses have no .text
                    logger.error(f"✗ {model_name} error: {e}")
                    logger.debug(f"Full traceback:\n{traceback.format_exc()}")
                    last_error = e

        error_msg = f"All {total_combinations} model+key combinations exhausted. Last error: {last_error}"
        logger.error(error_msg)
        raise SuggestionError(error_msg)

    async def suggest_title(self, request: TitleSuggestionRequest) -> SuggestionResponse:
        """Suggest a listing title trimmed to request.max_length."""
        logger.info(f"Suggesting title (locale={request.locale}, max={request.max_length})")
        parts = await self.build_title_parts(request)
        raw, model_name = await self.generate_text(parts)
        return SuggestionResponse(
            text=trim_to_char_limit(raw, request.max_length),
            max_length=request.max_length,
            model=model_name,
        )

    async def suggest_description(self, request: DescriptionSuggestionRequest) -> SuggestionResponse:
        """Suggest a listing description trimmed to request.max_length."""
        logger.info(f"Suggesting description (locale={request.locale}, max={request.max_length})")
        parts = await self.build_description_parts(request)
        raw, model_name = await self.generate_text(parts)
        return SuggestionResponse(
            text=trim_to_char_limit(raw, request.max_length),
            max_length=request.max_length,
            model=model_name,
        )

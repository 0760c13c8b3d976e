"""
Ollama Translate Function
=========================
Default translate function that sends one field to a local Ollama model.
"""
from typing import Dict, Any

from translation_orchestrator.config import config as default_config, Config
from translation_orchestrator.exceptions import TranslationError
from translation_orchestrator.services.ollama_client import OllamaClient
from translation_orchestrator.utils.logging import get_logger
from translation_orchestrator.utils.text_processing import (
    sanitize_instructions,
    clean_translation_response
)


class OllamaTranslator:
    """
    Callable translate function backed by Ollama.

    Raises TranslationError when the model fails or returns an empty or
    oversized result; the job processor turns that into retry bookkeeping.
    """

    def __init__(self, client: OllamaClient = None, model: str = None, config: Config = None):
        self.config = config or default_config
        self.client = client or OllamaClient(config=self.config)
        self.model = model or self.config.ollama.default_model
        self.logger = get_logger().job_logger

    def build_prompt(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        context: Dict[str, Any] = None
    ) -> str:
        """Build the translation prompt for one field."""
        context = context or {}
        website_section = ""
        if self.config.translation.website_context:
            website_section = f"\nWEBSITE CONTEXT: {self.config.translation.website_context}\n"

        instructions = sanitize_instructions(
            context.get('instructions', ''),
            self.config.translation.max_instructions_length
        )
        instructions_section = ""
        if instructions:
            instructions_section = f"\nADDITIONAL INSTRUCTIONS: {instructions}\n"

        field_section = ""
        if context.get('reference'):
            field_section = f"\nFIELD: {context['reference']}\n"

        return f"""You are a professional translator. Translate the following {source_lang} text to {target_lang}.

REQUIREMENTS:
- Preserve meaning, tone and formatting (including HTML tags and placeholders)
- Keep proper nouns and brand names unchanged
- Ensure natural, fluent {target_lang}
{website_section}{field_section}{instructions_section}
TEXT TO TRANSLATE:
{text}

IMPORTANT: Return ONLY the translation, no explanations or notes."""

    def __call__(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        context: Dict[str, Any] = None
    ) -> str:
        prompt = self.build_prompt(text, source_lang, target_lang, context)
        response = self.client.generate(prompt, model=self.model)

        if not response.success:
            raise TranslationError(f"Generation failed: {response.error}")

        translation = clean_translation_response(response.text or "")
        if not translation:
            raise TranslationError("Model returned an empty translation")

        max_length = self.config.translation.max_translation_length
        if len(translation) > max_length:
            raise TranslationError(
                f"Translation is {len(translation)} characters, limit is {max_length}"
            )

        self.logger.debug(f"Translated {len(text)} chars {source_lang} -> {target_lang}")
        return translation

"""
Ollama API Client
=================
Client for interacting with the Ollama API.
"""
import json
import requests
from typing import Optional, List
from dataclasses import dataclass

from translation_orchestrator.config import config as default_config, Config
from translation_orchestrator.utils.logging import get_logger


@dataclass
class OllamaResponse:
    """Response from Ollama API."""
    success: bool
    text: Optional[str] = None
    error: Optional[str] = None
    model: Optional[str] = None
    eval_count: Optional[int] = None
    eval_duration: Optional[int] = None


class OllamaClient:
    """Client for Ollama API interactions."""

    def __init__(self, base_url: str = None, model: str = None, config: Config = None):
        self.config = config or default_config
        self.base_url = base_url or self.config.ollama.base_url
        self.model = model or self.config.ollama.default_model
        self.logger = get_logger().app_logger

        # Set up session with connection pooling
        self.session = requests.Session()
        adapter = requests.adapters.HTTPAdapter(
            max_retries=self.config.ollama.max_retries,
            pool_connections=10,
            pool_maxsize=10
        )
        self.session.mount('http://', adapter)
        self.session.mount('https://', adapter)

    @property
    def api_url(self) -> str:
        return f"{self.base_url}/api/generate"

    @property
    def models_url(self) -> str:
        return f"{self.base_url}/api/tags"

    def is_healthy(self) -> bool:
        """Check if Ollama is accessible."""
        try:
            response = self.session.get(
                self.models_url,
                timeout=self.config.ollama.health_check_timeout
            )
            return response.status_code == 200
        except requests.RequestException as e:
            self.logger.warning(f"Ollama health check failed: {e}")
            return False

    def list_models(self) -> List[str]:
        """Names of the models available on the server."""
        try:
            response = self.session.get(
                self.models_url,
                timeout=self.config.ollama.connect_timeout
            )
            response.raise_for_status()
            data = response.json()
            return [model_data.get('name', '') for model_data in data.get('models', [])]
        except (requests.RequestException, ValueError) as e:
            self.logger.error(f"Failed to list models: {e}")
            return []

    def generate(
        self,
        prompt: str,
        model: str = None,
        temperature: float = None,
        top_p: float = None
    ) -> OllamaResponse:
        """
        Generate text using Ollama.

        Args:
            prompt: The prompt to send
            model: Model to use (defaults to configured model)
            temperature: Temperature for generation
            top_p: Top-p sampling parameter

        Returns:
            OllamaResponse with the result
        """
        model = model or self.model
        temperature = temperature if temperature is not None else self.config.ollama.temperature
        top_p = top_p if top_p is not None else self.config.ollama.top_p

        payload = {
            'model': model,
            'prompt': prompt,
            'stream': False,
            'options': {
                'temperature': temperature,
                'top_p': top_p
            }
        }

        try:
            response = self.session.post(
                self.api_url,
                json=payload,
                timeout=(self.config.ollama.connect_timeout, self.config.ollama.read_timeout)
            )
            response.raise_for_status()

            result = response.json()
            return OllamaResponse(
                success=True,
                text=result.get('response', ''),
                model=model,
                eval_count=result.get('eval_count'),
                eval_duration=result.get('eval_duration')
            )

        except requests.Timeout:
            return OllamaResponse(success=False, error="Request timed out")
        except requests.RequestException as e:
            return OllamaResponse(success=False, error=str(e))
        except json.JSONDecodeError as e:
            return OllamaResponse(success=False, error=f"Invalid JSON response: {e}")

    def close(self):
        """Close the session."""
        self.session.close()

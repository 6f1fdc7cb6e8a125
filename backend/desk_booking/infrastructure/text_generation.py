import logging

from google import genai
from google.genai import types
from google.genai.errors import ServerError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_random_exponential

from ..domain.repositories import TextGenerator

logger = logging.getLogger(__name__)


class GeminiTextGenerator(TextGenerator):
    """Text-generation oracle backed by the Gemini API."""

    def __init__(self, api_key: str, model_name: str = "gemini-2.5-flash", temperature: float = 0.2) -> None:
        self._client = genai.Client(api_key=api_key)
        self._model_name = model_name
        self._temperature = temperature

    @retry(
        retry=retry_if_exception_type(ServerError),
        wait=wait_random_exponential(min=1, max=20),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    async def generate(
        self,
        prompt: str,
        *,
        system_instruction: str | None = None,
        response_schema: type | None = None,
    ) -> str:
        config = types.GenerateContentConfig(
            temperature=self._temperature,
            system_instruction=system_instruction,
            response_mime_type="application/json" if response_schema is not None else None,
            response_schema=response_schema,
        )
        logger.debug("generating with %s (%d prompt chars)", self._model_name, len(prompt))
        response = await self._client.aio.models.generate_content(
            model=self._model_name,
            contents=prompt,
            config=config,
        )
        return response.text or ""

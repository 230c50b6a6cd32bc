"""aiohttp clients for language detection and ephemeral session credentials."""

import logging
from typing import Optional

import aiohttp

from ..errors import CredentialError, ServiceError

logger = logging.getLogger(__name__)

DETECTION_PROMPT = (
    "You identify languages. Reply with ONLY the English name of the dominant "
    "language of the user's text (the language most of the characters belong to), "
    "for example \"Chinese\", \"English\" or \"French\". If you cannot tell, reply \"Unknown\"."
)


class LanguageDetectionClient:
    """Asks a chat completion model which language a text is in."""

    def __init__(self,
                 api_key: str,
                 model: str = "gpt-4o-mini",
                 base_url: str = "https://api.openai.com/v1",
                 timeout_seconds: float = 5.0):
        """Initialize detection client.

        Args:
            api_key: OpenAI API key
            model: Chat model used for detection
            base_url: API base URL
            timeout_seconds: Total request timeout
        """
        self.api_key = api_key
        self.model = model
        self.url = f"{base_url.rstrip('/')}/chat/completions"
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

        logger.info(f"LanguageDetectionClient initialized with model: {model}")

    async def detect_language(self, text: str) -> str:
        """Return the model's answer, e.g. "Chinese".

        Raises:
            ServiceError: On a non-200 response or a malformed body
            aiohttp.ClientError: On network failure
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        data = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": DETECTION_PROMPT},
                {"role": "user", "content": text},
            ],
            "temperature": 0,
            "max_tokens": 10
        }

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(self.url, headers=headers, json=data) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise ServiceError(f"Language detection API error: {response.status} - {error_text}",
                                       status=response.status)
                result = await response.json()

        try:
            return result["choices"][0]["message"]["content"].strip()
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise ServiceError(f"Malformed language detection response: {e}") from e


class EphemeralKeyClient:
    """Fetches the short-lived key used to open a realtime session."""

    def __init__(self,
                 session_url: str,
                 api_key: Optional[str] = None,
                 timeout_seconds: float = 10.0):
        """Initialize credential client.

        Args:
            session_url: Endpoint that mints session credentials
            api_key: Bearer token for the endpoint, if it needs one
            timeout_seconds: Total request timeout
        """
        self.session_url = session_url
        self.api_key = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def fetch(self) -> str:
        """Return client_secret.value from the session endpoint.

        Raises:
            CredentialError: If the request fails or the value is missing
        """
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.session_url, headers=headers) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise CredentialError(f"Session endpoint returned {response.status}: {error_text}")
                    data = await response.json()
        except aiohttp.ClientError as e:
            raise CredentialError(f"Session endpoint unreachable: {e}") from e
        except ValueError as e:
            raise CredentialError(f"Session endpoint returned malformed JSON: {e}") from e

        secret = data.get("client_secret") if isinstance(data, dict) else None
        value = secret.get("value") if isinstance(secret, dict) else None
        if not value:
            raise CredentialError("Session endpoint response has no client_secret.value")
        logger.debug("Ephemeral key fetched")
        return value

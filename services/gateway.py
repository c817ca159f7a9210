import os
import logging
from typing import Optional

import requests

from utils.errors import GatewayError

logger = logging.getLogger("services.gateway")

DEFAULT_GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash:generateContent"
TEMPERATURE = 0.1
MAX_OUTPUT_TOKENS = 2048
INVALID_RESPONSE_MESSAGE = "Invalid response format from Gemini API"


def build_request_body(prompt: str) -> dict:
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {"temperature": TEMPERATURE, "maxOutputTokens": MAX_OUTPUT_TOKENS},
    }


def unwrap_reply(payload) -> str:
    """Return candidates[0].content.parts[0].text or raise GatewayError."""
    candidates = payload.get("candidates") if isinstance(payload, dict) else None
    if not isinstance(candidates, list) or not candidates:
        raise GatewayError(INVALID_RESPONSE_MESSAGE)
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        raise GatewayError(INVALID_RESPONSE_MESSAGE)
    text = parts[0].get("text")
    if not isinstance(text, str):
        raise GatewayError(INVALID_RESPONSE_MESSAGE)
    return text


class GeminiGateway:
    """
    Single-turn, single-attempt call to the Gemini generateContent endpoint.
    Blocks until the endpoint answers or the timeout elapses; never retries.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url or os.getenv("GEMINI_API_URL", DEFAULT_GEMINI_API_URL)
        self.api_key = api_key if api_key is not None else os.getenv("GEMINI_API_KEY")
        self.timeout = timeout if timeout is not None else float(os.getenv("GEMINI_TIMEOUT_SECONDS", "60"))
        self.http = session or requests

    def invoke(self, prompt: str) -> str:
        if not self.api_key:
            raise GatewayError("Gemini API key is not configured")

        logger.info("gateway_call_started", extra={"prompt_chars": len(prompt)})
        try:
            response = self.http.post(
                self.api_url,
                params={"key": self.api_key},
                json=build_request_body(prompt),
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.Timeout as e:
            logger.error("gateway_call_failed", extra={"error": "timeout"}, exc_info=True)
            raise GatewayError(f"Gemini API request timed out after {self.timeout}s", original_error=e)
        except requests.exceptions.RequestException as e:
            # Covers connection errors, HTTP error statuses and undecodable JSON bodies
            logger.error("gateway_call_failed", extra={"error": str(e)}, exc_info=True)
            raise GatewayError(f"Gemini API request failed: {e}", original_error=e)
        except ValueError as e:
            logger.error("gateway_call_failed", extra={"error": "invalid_json"}, exc_info=True)
            raise GatewayError(f"Gemini API returned invalid JSON: {e}", original_error=e)

        try:
            text = unwrap_reply(payload)
        except GatewayError:
            logger.error("gateway_invalid_response", extra={"keys": sorted(payload) if isinstance(payload, dict) else None})
            raise
        logger.info("gateway_call_completed", extra={"reply_chars": len(text)})
        return text

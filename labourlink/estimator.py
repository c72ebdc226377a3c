"""Client for the external price estimator agent"""
import base64
import json
import mimetypes
import re
from pathlib import Path
from typing import Optional

import httpx

from .config import AppConfig, get_config
from .errors import EstimatorError
from .logger import get_logger

logger = get_logger()

COORDINATOR_AUTHOR = "Coordinator_Agent"


def parse_price_string(price_text: str) -> float:
    """Parse "$1,250.50" style text into a number"""
    cleaned = re.sub(r"[$,\s]", "", price_text)
    try:
        return float(cleaned)
    except ValueError as e:
        raise EstimatorError(f"Invalid price format: {price_text!r}") from e


def extract_final_answer(sse_text: str) -> Optional[str]:
    """Text of the last coordinator message in a run_sse response"""
    lines = [line for line in sse_text.splitlines() if line.startswith("data: ")]
    for line in reversed(lines):
        try:
            event = json.loads(line[len("data: "):])
        except ValueError:
            continue
        if not isinstance(event, dict) or event.get("author") != COORDINATOR_AUTHOR:
            continue
        parts = (event.get("content") or {}).get("parts") or []
        if parts and isinstance(parts[0], dict) and parts[0].get("text"):
            return parts[0]["text"]
    return None


class PriceEstimator:
    """Asks the estimator agent what a job should cost from a description and a photo"""

    def __init__(self, config: Optional[AppConfig] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or get_config()
        self.estimator_config = self.config.estimator
        self.base_url = self.estimator_config.base_url.rstrip("/")
        self._transport = transport

    @property
    def is_available(self) -> bool:
        return self.estimator_config.enabled

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.estimator_config.timeout_seconds,
            transport=self._transport,
        )

    def _require_available(self):
        if not self.is_available:
            raise EstimatorError("Price estimator is disabled")

    async def create_session(self) -> str:
        self._require_available()
        path = f"/apps/{self.estimator_config.app_name}/users/{self.estimator_config.user_id}/sessions"
        try:
            async with self._client() as client:
                response = await client.post(path, json={})
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Estimator session creation failed: {e}")
            raise EstimatorError("Failed to create estimator session") from e

        if not isinstance(data, dict) or not data.get("id"):
            raise EstimatorError("Estimator did not return a session id")
        return str(data["id"])

    async def estimate(self, session_id: str, description: str, image_path: Path) -> str:
        """Returns the estimator's answer text, e.g. "$150" """
        self._require_available()

        image_path = Path(image_path)
        mime_type = mimetypes.guess_type(image_path.name)[0] or "image/png"
        encoded = base64.b64encode(image_path.read_bytes()).decode("ascii")

        body = {
            "appName": self.estimator_config.app_name,
            "userId": self.estimator_config.user_id,
            "sessionId": session_id,
            "newMessage": {
                "role": "user",
                "parts": [
                    {"text": description},
                    {
                        "inlineData": {
                            "displayName": image_path.name,
                            "data": encoded,
                            "mimeType": mime_type,
                        }
                    },
                ],
            },
            "streaming": False,
        }

        logger.info(f"Requesting price estimate for {image_path.name}")
        try:
            async with self._client() as client:
                response = await client.post("/run_sse", json=body)
                response.raise_for_status()
                text = response.text
        except httpx.HTTPError as e:
            logger.error(f"Estimator call failed: {e}")
            raise EstimatorError("Failed to get price estimate") from e

        answer = extract_final_answer(text)
        if not answer:
            raise EstimatorError("No estimate returned from API")
        return answer

    async def estimate_price(self, description: str, image_path: Path) -> float:
        """Create a session, ask for an estimate and parse it to a number"""
        session_id = await self.create_session()
        answer = await self.estimate(session_id, description, image_path)
        return parse_price_string(answer)

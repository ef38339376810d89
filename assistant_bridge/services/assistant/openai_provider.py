from typing import List, Optional

import httpx

from assistant_bridge.logging_config import get_logger
from assistant_bridge.services.assistant.base import AssistantBackend, AssistantRun, ThreadMessage
from assistant_bridge.services.assistant.errors import AssistantAPIError

logger = get_logger("assistant.openai")


class OpenAIAssistantsProvider(AssistantBackend):
    """OpenAI Assistants API provider."""

    def __init__(
        self,
        api_key: str,
        assistant_id: str,
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.assistant_id = assistant_id
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _headers(self, beta: bool = True) -> dict:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if beta:
            headers["OpenAI-Beta"] = "assistants=v2"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> dict:
        url = f"{self.base_url}{path}"
        logger.debug(f"OpenAI request: {method} {path}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.request(method, url, headers=self._headers(), json=json, params=params)
        except httpx.HTTPError as exc:
            logger.error(
                "OpenAI request failed",
                extra={"context": {"path": path, "error_type": type(exc).__name__, "error": str(exc)}},
            )
            raise AssistantAPIError(f"OpenAI request failed: {exc}") from exc

        logger.debug(f"OpenAI response status: {response.status_code}")

        if response.status_code >= 400:
            message = _error_message(response)
            logger.error(
                "OpenAI API error",
                extra={"context": {"path": path, "status_code": response.status_code, "error": message}},
            )
            raise AssistantAPIError(f"OpenAI API error: {response.status_code} - {message}", response.status_code)

        return response.json()

    async def retrieve_assistant(self) -> dict:
        return await self._request("GET", f"/assistants/{self.assistant_id}")

    async def create_thread(self) -> str:
        data = await self._request("POST", "/threads", json={})
        return data["id"]

    async def create_message(self, thread_id: str, content: str, metadata: Optional[dict] = None) -> dict:
        payload = {"role": "user", "content": content}
        if metadata:
            payload["metadata"] = metadata
        return await self._request("POST", f"/threads/{thread_id}/messages", json=payload)

    async def create_run(self, thread_id: str, instructions: Optional[str] = None) -> AssistantRun:
        payload = {"assistant_id": self.assistant_id}
        if instructions:
            payload["instructions"] = instructions
        data = await self._request("POST", f"/threads/{thread_id}/runs", json=payload)
        return AssistantRun.from_payload(data)

    async def get_run(self, thread_id: str, run_id: str) -> AssistantRun:
        data = await self._request("GET", f"/threads/{thread_id}/runs/{run_id}")
        return AssistantRun.from_payload(data)

    async def cancel_run(self, thread_id: str, run_id: str) -> AssistantRun:
        data = await self._request("POST", f"/threads/{thread_id}/runs/{run_id}/cancel")
        return AssistantRun.from_payload(data)

    async def list_messages(self, thread_id: str, run_id: Optional[str] = None, limit: int = 20) -> List[ThreadMessage]:
        params = {"order": "desc", "limit": limit}
        if run_id:
            params["run_id"] = run_id
        data = await self._request("GET", f"/threads/{thread_id}/messages", params=params)
        return [ThreadMessage.from_payload(item) for item in data.get("data") or []]

    async def transcribe_audio(
        self,
        *,
        audio_bytes: bytes,
        filename: str,
        mime_type: Optional[str] = None,
        model: Optional[str] = None,
        language: Optional[str] = None,
    ) -> str:
        """Transcribe audio using OpenAI speech-to-text."""
        model = model or "whisper-1"
        if not audio_bytes:
            raise ValueError("audio_bytes is empty")

        files = {"file": (filename or "audio", audio_bytes, mime_type or "application/octet-stream")}
        data = {"model": model, "response_format": "text"}
        if language:
            data["language"] = language

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/audio/transcriptions",
                    headers=self._headers(beta=False),
                    files=files,
                    data=data,
                )
        except httpx.HTTPError as exc:
            raise AssistantAPIError(f"OpenAI transcription request failed: {exc}") from exc

        logger.debug(f"OpenAI transcription status: {response.status_code}")
        if response.status_code != 200:
            message = _error_message(response)
            logger.error(f"OpenAI transcription error: {message}")
            raise AssistantAPIError(
                f"OpenAI transcription error: {response.status_code} - {message}", response.status_code
            )

        transcript = (response.text or "").strip()
        if not transcript:
            logger.warning("OpenAI transcription returned empty text")
        return transcript


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        return data["error"].get("message") or response.text
    return response.text

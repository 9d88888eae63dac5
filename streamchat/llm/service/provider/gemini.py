import json
from typing import AsyncGenerator, List, Optional

import httpx
from pydantic import SecretStr

from chatkit.util.cancellation import CancellationToken
from streamchat.core.logger import get_logger
from streamchat.llm.entity.provider import ConversationTurn
from streamchat.llm.exceptions import (
    InvalidCredentialError,
    InvalidResponseError,
    NetworkError,
    classify_status,
)
from .base_provider import BaseProvider


class GeminiProvider(BaseProvider):
    """Handles Google Gemini models."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._logger = get_logger("GeminiProvider")

    def _build_payload(self, conversation: List[ConversationTurn]) -> dict:
        contents = []
        system_parts = []
        for turn in conversation:
            if turn.role == "system":
                system_parts.append({"text": turn.content})
                continue
            role = "model" if turn.role == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": turn.content}]})

        payload = {
            "contents": contents,
            "generationConfig": {
                "temperature": float(self.settings.TEMPERATURE),
                "maxOutputTokens": int(self.settings.MAX_OUTPUT_TOKENS),
            },
        }
        if system_parts:
            payload["systemInstruction"] = {"parts": system_parts}
        return payload

    def _classify(self, status: int, body: str):
        # an invalid key comes back as 400 rather than 401
        if status == 400 and "API_KEY_INVALID" in body:
            return InvalidCredentialError(body)
        return classify_status(status, body)

    async def stream(
        self,
        conversation: List[ConversationTurn],
        model: str,
        credential: Optional[SecretStr] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncGenerator[str, None]:
        if credential is None:
            raise InvalidCredentialError("Gemini API key not found")

        url = f"{self.descriptor.base_endpoint}/models/{model}:streamGenerateContent"
        params = {"alt": "sse", "key": credential.get_secret_value()}
        payload = self._build_payload(conversation)
        self._logger.info(f"gemini request: model={model} turns={len(payload['contents'])}")

        try:
            async with self._client(timeout=None) as client:
                async with client.stream("POST", url, params=params, json=payload) as resp:
                    if resp.status_code != 200:
                        body = (await resp.aread()).decode("utf-8", errors="replace")
                        self._logger.error(f"Gemini API error: status={resp.status_code}")
                        raise self._classify(resp.status_code, body)

                    async for raw_line in resp.aiter_lines():
                        if self._cancelled(cancel_token):
                            self._logger.info("gemini stream abandoned on cancel")
                            break
                        line = raw_line.strip()
                        if not line:
                            continue
                        if line.startswith("data:"):
                            line = line[len("data:"):].strip()
                            if line == "[DONE]":
                                break
                        try:
                            chunk = json.loads(line)
                        except json.JSONDecodeError:
                            # Not JSON, skip
                            continue
                        text = _first_part_text(chunk)
                        if text:
                            yield text
        except httpx.HTTPError as e:
            raise NetworkError(str(e)) from e

    async def list_models(self, credential: Optional[SecretStr] = None) -> List[str]:
        if credential is None:
            raise InvalidCredentialError("Gemini API key not found")

        url = f"{self.descriptor.base_endpoint}/models"
        try:
            async with self._client(timeout=self.settings.MODEL_DISCOVERY_TIMEOUT_S) as client:
                res = await client.get(url, params={"key": credential.get_secret_value()})
        except httpx.HTTPError as e:
            raise NetworkError(str(e)) from e

        if res.status_code != 200:
            raise self._classify(res.status_code, res.text)
        try:
            data = res.json()
        except ValueError as e:
            raise InvalidResponseError(str(e)) from e

        models = []
        for entry in data.get("models", []):
            if "generateContent" not in entry.get("supportedGenerationMethods", []):
                continue
            name = entry.get("name", "")
            if name.startswith("models/"):
                name = name[len("models/"):]
            if name:
                models.append(name)
        return models


def _first_part_text(chunk) -> Optional[str]:
    if not isinstance(chunk, dict):
        return None
    candidates = chunk.get("candidates") or []
    if not candidates:
        return None
    parts = (candidates[0].get("content") or {}).get("parts") or []
    if not parts:
        return None
    return parts[0].get("text")

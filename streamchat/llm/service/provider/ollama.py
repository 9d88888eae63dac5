# streamchat/llm/service/provider/ollama.py
import json
from typing import AsyncGenerator, List, Optional

import httpx
from pydantic import SecretStr

from chatkit.util.cancellation import CancellationToken
from streamchat.core.logger import get_logger
from streamchat.llm.entity.provider import ConversationTurn
from streamchat.llm.exceptions import (
    ApiError,
    InvalidResponseError,
    NetworkError,
    classify_status,
)
from .base_provider import BaseProvider

logger = get_logger("OllamaProvider")


class OllamaProvider(BaseProvider):
    """Handles Ollama (local models) interaction over NDJSON."""

    async def stream(
        self,
        conversation: List[ConversationTurn],
        model: str,
        credential: Optional[SecretStr] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncGenerator[str, None]:
        payload = {
            "model": model,
            "messages": [{"role": turn.role, "content": turn.content} for turn in conversation],
            "stream": True,
            "options": {"temperature": self.settings.TEMPERATURE},
        }
        logger.info(f"ollama request: model={model} turns={len(conversation)}")

        try:
            async with self._client(timeout=None) as client:
                async with client.stream("POST", f"{self.descriptor.base_endpoint}/api/chat", json=payload) as r:
                    if r.status_code != 200:
                        body = (await r.aread()).decode("utf-8", errors="replace")
                        logger.error(f"Ollama error: status={r.status_code}")
                        raise classify_status(r.status_code, body)

                    async for line in r.aiter_lines():
                        if self._cancelled(cancel_token):
                            logger.info("ollama stream abandoned on cancel")
                            break
                        if not line.strip():
                            continue
                        try:
                            chunk = json.loads(line)
                        except json.JSONDecodeError:
                            logger.debug(f"skipping undecodable line: {line[:80]}")
                            continue
                        if not isinstance(chunk, dict):
                            continue
                        if chunk.get("error"):
                            raise ApiError(r.status_code, chunk["error"])

                        content = (chunk.get("message") or {}).get("content")
                        if content:
                            yield content
                        if chunk.get("done"):
                            return
        except httpx.HTTPError as e:
            raise NetworkError(str(e)) from e

    async def list_models(self, credential: Optional[SecretStr] = None) -> List[str]:
        """Installed models, most recently modified first."""
        try:
            async with self._client(timeout=self.settings.MODEL_DISCOVERY_TIMEOUT_S) as client:
                res = await client.get(f"{self.descriptor.base_endpoint}/api/tags")
        except httpx.HTTPError as e:
            raise NetworkError(str(e)) from e

        if res.status_code != 200:
            raise classify_status(res.status_code, res.text)
        try:
            entries = res.json().get("models", [])
        except (ValueError, AttributeError) as e:
            raise InvalidResponseError(str(e)) from e

        entries = sorted(entries, key=lambda m: m.get("modified_at", ""), reverse=True)
        return [m["name"] for m in entries if m.get("name")]

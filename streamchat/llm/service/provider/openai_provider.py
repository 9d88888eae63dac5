# streamchat/llm/service/provider/openai_provider.py
from typing import AsyncGenerator, List, Optional

from openai import (
    APIConnectionError,
    APIError,
    APIResponseValidationError,
    APIStatusError,
    AsyncOpenAI,
)
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

logger = get_logger("OpenAICompatibleProvider")


class OpenAICompatibleProvider(BaseProvider):
    """Token-bearer chat completions (OpenAI, Groq)."""

    def _make_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=api_key,
            base_url=self.descriptor.base_endpoint,
            max_retries=0,
            timeout=None,
            http_client=self._http_client,
        )

    async def stream(
        self,
        conversation: List[ConversationTurn],
        model: str,
        credential: Optional[SecretStr] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncGenerator[str, None]:
        if credential is None:
            raise InvalidCredentialError(f"{self.descriptor.display_name} API key not found")

        messages = [{"role": turn.role, "content": turn.content} for turn in conversation]
        logger.info(f"{self.name} request: model={model} turns={len(messages)}")

        client = self._make_client(credential.get_secret_value())
        try:
            response_stream = await client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=self.settings.TEMPERATURE,
                max_tokens=self.settings.MAX_OUTPUT_TOKENS,
                stream=True,
            )
            try:
                async for event in response_stream:
                    if self._cancelled(cancel_token):
                        logger.info(f"{self.name} stream abandoned on cancel")
                        break
                    # keep-alive chunks carry no choices or an empty delta
                    delta = getattr(event.choices[0].delta, "content", None) if getattr(event, "choices", None) else None
                    if delta:
                        yield delta
            finally:
                await response_stream.close()
        except APIConnectionError as e:
            raise NetworkError(str(e)) from e
        except APIResponseValidationError as e:
            raise InvalidResponseError(str(e)) from e
        except APIStatusError as e:
            logger.warning(f"{self.name} returned HTTP {e.status_code}")
            raise classify_status(e.status_code, e.message) from e
        except APIError as e:
            # error payload delivered inside the event stream
            raise InvalidResponseError(e.message) from e
        except ValueError as e:
            raise InvalidResponseError(str(e)) from e
        finally:
            if self._http_client is None:
                await client.close()

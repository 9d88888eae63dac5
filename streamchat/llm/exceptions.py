"""Chat engine exceptions."""


class ChatError(Exception):
    """Base exception for provider and chat-engine errors."""

    # stable tag the shell switches on
    kind = "error"
    default_message = "Something went wrong."

    def __init__(self, detail: str | None = None):
        self.detail = detail
        super().__init__(detail or self.default_message)

    @property
    def user_message(self) -> str:
        """Human-readable text rendered as an assistant-turn error."""
        return self.default_message

    @property
    def needs_attention(self) -> bool:
        """Whether the shell should prompt the user (re-authentication, backoff)."""
        return False


class InvalidCredentialError(ChatError):
    """Raised when a provider rejects (or is missing) its credential."""

    kind = "invalid_credential"
    default_message = "Invalid API key. Please check your credentials."

    @property
    def needs_attention(self) -> bool:
        return True


class RateLimitedError(ChatError):
    """Raised when the provider rate limits are exceeded."""

    kind = "rate_limited"
    default_message = "Rate limit exceeded. Please try again later."

    @property
    def needs_attention(self) -> bool:
        return True


class ApiError(ChatError):
    """Raised for any other non-200 status returned before streaming starts."""

    kind = "api_error"

    def __init__(self, status: int, detail: str | None = None):
        self.status = status
        super().__init__(detail or f"HTTP {status}")

    @property
    def user_message(self) -> str:
        return f"API error: HTTP {self.status}"


class NetworkError(ChatError):
    """Raised when the transport fails (connection refused, reset, DNS...)."""

    kind = "network_error"

    @property
    def user_message(self) -> str:
        return f"Network error: {self.detail}" if self.detail else "Network error."


class InvalidResponseError(ChatError):
    """Raised when a payload is malformed or unparseable."""

    kind = "invalid_response"
    default_message = "Invalid response from server."


class NoModelSelectedError(ChatError):
    """Raised when a dispatch is attempted with no model selected."""

    kind = "no_model_selected"
    default_message = "Please select a model first."


class UnknownProviderError(ChatError):
    kind = "unknown_provider"

    def __init__(self, provider_id: str):
        self.provider_id = provider_id
        super().__init__(f"Unknown provider: {provider_id}")

    @property
    def user_message(self) -> str:
        return f"Unknown provider: {self.provider_id}"


class SessionNotFoundError(ChatError):
    kind = "session_not_found"

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")

    @property
    def user_message(self) -> str:
        return f"Session {self.session_id} not found"


class MessageNotFoundError(ChatError):
    kind = "message_not_found"

    def __init__(self, message_id: str):
        self.message_id = message_id
        super().__init__(f"Message {message_id} not found")

    @property
    def user_message(self) -> str:
        return f"Message {self.message_id} not found"


def classify_status(status: int, body: str | None = None) -> ChatError:
    """Map a non-200 HTTP status to the error taxonomy."""
    if status in (401, 403):
        return InvalidCredentialError(body)
    if status == 429:
        return RateLimitedError(body)
    return ApiError(status, body)


class InvalidMessageError(ChatError):
    """Raised when an operation targets a message of the wrong role or state."""

    kind = "invalid_message"

    def __init__(self, message_id: str, reason: str):
        self.message_id = message_id
        self.reason = reason
        super().__init__(f"Message {message_id}: {reason}")

    @property
    def user_message(self) -> str:
        return f"Message {self.message_id}: {self.reason}"

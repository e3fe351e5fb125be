from typing import Any, Dict, List, NotRequired, TypedDict


class ChatMessageDict(TypedDict):
    """Single chat message payload."""

    role: str
    content: str


class ChatCompletionPayload(TypedDict):
    """Request body sent to a chat-completions endpoint."""

    model: str
    messages: List[ChatMessageDict]
    max_tokens: int
    temperature: float


class ChatCompletionMessage(TypedDict, total=False):
    role: str
    content: str


class ChatCompletionChoice(TypedDict, total=False):
    index: int
    message: ChatCompletionMessage
    finish_reason: str


class TokenUsage(TypedDict, total=False):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class ChatCompletionResponse(TypedDict, total=False):
    """Subset of the chat-completions response used by this project."""

    choices: List[ChatCompletionChoice]
    usage: NotRequired[TokenUsage]


class CacheStats(TypedDict):
    total_entries: int
    valid_entries: int
    expired_entries: int
    max_size: int
    default_ttl: float


class GitHubUser(TypedDict, total=False):
    """GitHub user fields used by this project."""

    id: int
    login: str
    avatar_url: str
    name: str
    email: str


Repository = Dict[str, Any]
PullRequest = Dict[str, Any]

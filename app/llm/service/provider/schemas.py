"""
Response DTOs for the backends spoken to over raw HTTP.

Each adapter validates the decoded body into its DTO and converts that into a
ProviderResponse; an untyped blob never leaves the adapter. Unknown fields are
ignored so additive API changes do not break parsing.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


# Cloudflare Workers AI
class CloudflareToolCall(_Lenient):
    id: Optional[str] = None
    name: Optional[str] = None
    arguments: Union[Dict[str, Any], str, None] = None


class CloudflareResult(_Lenient):
    response: Optional[str] = None
    tool_calls: Optional[List[CloudflareToolCall]] = None


class CloudflareResponse(_Lenient):
    success: bool = True
    result: Optional[CloudflareResult] = None
    errors: List[Any] = Field(default_factory=list)


# Ollama
class OllamaFunction(_Lenient):
    name: str
    arguments: Union[Dict[str, Any], str, None] = None


class OllamaToolCall(_Lenient):
    id: Optional[str] = None
    function: OllamaFunction


class OllamaMessage(_Lenient):
    content: Optional[str] = None
    tool_calls: Optional[List[OllamaToolCall]] = None


class OllamaChatResponse(_Lenient):
    message: Optional[OllamaMessage] = None


class OllamaGenerateResponse(_Lenient):
    response: Optional[str] = None


# Gemini
class GeminiFunctionCall(_Lenient):
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)


class GeminiPart(_Lenient):
    text: Optional[str] = None
    functionCall: Optional[GeminiFunctionCall] = None


class GeminiContent(_Lenient):
    parts: List[GeminiPart] = Field(default_factory=list)


class GeminiCandidate(_Lenient):
    content: Optional[GeminiContent] = None


class GeminiResponse(_Lenient):
    candidates: List[GeminiCandidate] = Field(default_factory=list)

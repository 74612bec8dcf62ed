from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import Annotated, Any
from urllib.parse import urldefrag

from pydantic import BaseModel, BeforeValidator, ConfigDict, field_validator

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def _header_pairs(value: Any) -> Any:
    if isinstance(value, Mapping):
        return list(value.items())
    return value


# Ordered (name, value) pairs. Repeated names such as Set-Cookie stay separate.
# A mapping is accepted on input.
HeaderList = Annotated[list[tuple[str, str]], BeforeValidator(_header_pairs)]


class Category(StrEnum):
    STATIC = "static"
    IMAGE = "image"
    API = "api"
    DYNAMIC = "dynamic"


class InterceptedRequest(BaseModel):
    """An outbound request captured before it reaches the network."""

    model_config = ConfigDict(frozen=True)

    method: str = "GET"
    url: str  # Absolute URL
    headers: HeaderList = []
    body: bytes = b""
    destination: str = ""  # "document" for navigations, "image", or ""

    @field_validator("method")
    @classmethod
    def normalise_method(cls, v: str) -> str:
        return v.upper()

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("url must be absolute and use http or https")
        return v

    @property
    def is_navigation(self) -> bool:
        return self.destination == "document"

    @property
    def is_mutating(self) -> bool:
        return self.method in MUTATING_METHODS

    @property
    def cache_key(self) -> str | None:
        """Canonical cache identity, or ``None`` when the method is not cacheable."""
        if self.method != "GET":
            return None
        return urldefrag(self.url).url


class ResponseSnapshot(BaseModel):
    """A fully-read response. Header names are stored lowercase."""

    model_config = ConfigDict(frozen=True)

    status: int
    headers: HeaderList = []
    body: bytes = b""

    @field_validator("headers")
    @classmethod
    def lowercase_headers(cls, v: list[tuple[str, str]]) -> list[tuple[str, str]]:
        return [(k.lower(), val) for k, val in v]

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str) -> str | None:
        """First value of ``name``, or ``None``."""
        values = self.header_values(name)
        return values[0] if values else None

    def header_values(self, name: str) -> list[str]:
        name = name.lower()
        return [val for k, val in self.headers if k == name]

    def with_header(self, name: str, value: str) -> ResponseSnapshot:
        """Copy with every existing ``name`` header replaced by ``value``."""
        name = name.lower()
        return ResponseSnapshot(
            status=self.status,
            headers=[(k, val) for k, val in self.headers if k != name] + [(name, value)],
            body=self.body,
        )

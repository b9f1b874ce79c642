"""Error payload models parsed from failed responses."""

from dataclasses import dataclass
from typing import Any

import httpx

STANDARD_FIELDS = frozenset({"type", "title", "status", "detail", "instance"})


@dataclass
class ProblemDetail:
    """Structured error payload returned by a service.

    Understands RFC 7807 problem details
    (https://datatracker.ietf.org/doc/html/rfc7807) and the
    ``{"error": {"code": ..., "message": ...}}`` envelope used by cloud
    management APIs. The envelope is mapped onto the same fields: ``code``
    becomes ``type`` and ``message`` becomes ``detail``.
    """

    type: str | None = None  # URI reference or service error code
    title: str | None = None  # Short, human-readable summary
    status: int | None = None  # HTTP status code
    detail: str | None = None  # Human-readable explanation
    instance: str | None = None  # URI reference identifying specific occurrence

    # Extension members (additional fields from API)
    extensions: dict[str, Any] | None = None

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ProblemDetail | None":
        """Parse an error payload from an HTTP response.

        Args:
            response: HTTP response object

        Returns:
            ProblemDetail object or None if the body is not a recognised error payload
        """
        try:
            data = response.json()
        except (ValueError, TypeError, AttributeError, UnicodeDecodeError):
            return None

        if not isinstance(data, dict):
            return None

        envelope = data.get("error")
        if isinstance(envelope, dict) and ("code" in envelope or "message" in envelope):
            return cls._from_error_envelope(envelope, response.status_code)

        content_type = response.headers.get("content-type", "")
        if "application/problem+json" not in content_type:
            # Check if it looks like RFC 7807 (has at least one standard field)
            if not any(field in data for field in STANDARD_FIELDS):
                return None

        extensions = {k: v for k, v in data.items() if k not in STANDARD_FIELDS}

        return cls(
            type=data.get("type"),
            title=data.get("title"),
            status=data.get("status"),
            detail=data.get("detail"),
            instance=data.get("instance"),
            extensions=extensions if extensions else None,
        )

    @classmethod
    def _from_error_envelope(cls, envelope: dict[str, Any], status_code: int) -> "ProblemDetail":
        extensions = {k: v for k, v in envelope.items() if k not in ("code", "message", "target")}
        return cls(
            type=envelope.get("code"),
            status=status_code,
            detail=envelope.get("message"),
            instance=envelope.get("target"),
            extensions=extensions if extensions else None,
        )

    def to_exception_message(self) -> str:
        """Convert problem details to exception message."""
        lines = []

        if self.title:
            lines.append(self.title)
        elif self.detail:
            lines.append(self.detail)

        if self.title and self.detail and self.title != self.detail:
            lines.append(self.detail)

        if self.type:
            lines.append(f"Problem Type: {self.type}")

        if self.instance:
            lines.append(f"Instance: {self.instance}")

        if self.extensions:
            lines.append("Extension fields:")
            for key, value in self.extensions.items():
                lines.append(f"  - {key}: {value}")

        return "\n".join(lines) if lines else "Unknown API error"

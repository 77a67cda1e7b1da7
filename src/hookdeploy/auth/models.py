"""Data models for the Request Authenticator."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qs


@dataclass(frozen=True)
class VersioningInfo:
    """Source revision a notification refers to.

    Attributes:
        head: Head commit id.
        branch: Branch name.
        tree: Source tree id, when the provider sends one.
        compare_url: URL of the diff view for the push.
        remote_url: Clone URL of the repository.
    """

    head: str | None = None
    branch: str | None = None
    tree: str | None = None
    compare_url: str | None = None
    remote_url: str | None = None


@dataclass(frozen=True)
class WebhookRequest:
    """Raw inbound notification as handed over by the transport.

    Header names are stored lower-cased.
    """

    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    client_ip: str = ""

    @classmethod
    def create(
        cls,
        body: bytes | str,
        headers: dict[str, str] | None = None,
        client_ip: str = "",
    ) -> WebhookRequest:
        if isinstance(body, str):
            body = body.encode("utf-8")
        lowered = {k.lower(): v for k, v in (headers or {}).items()}
        return cls(body=body, headers=lowered, client_ip=normalize_ip(client_ip))

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    @property
    def is_form_encoded(self) -> bool:
        content_type = self.header("content-type") or ""
        return content_type.startswith("application/x-www-form-urlencoded")

    def json(self) -> Any:
        """Decode the body as JSON, or the form ``payload`` field for form posts."""
        text = self.body.decode("utf-8")
        if self.is_form_encoded:
            payload = parse_qs(text).get("payload")
            if not payload:
                raise ValueError("form body has no 'payload' field")
            text = payload[0]
        return json.loads(text)


def normalize_ip(ip: str) -> str:
    """Strip the IPv4-mapped IPv6 prefix and take the first forwarded hop."""
    ip = (ip or "").split(",")[0].strip()
    if "::ffff:" in ip:
        ip = ip.replace("::ffff:", "")
    return ip

"""
Connection settings for a target Supabase project.
"""

from dataclasses import dataclass, field
from typing import Dict

from mockly.core.errors import InvalidConnectionError

SUPABASE_HOST_MARKER = ".supabase.co"
JWT_PREFIX = "eyJ"


@dataclass(frozen=True)
class ConnectionConfig:
    """
    Project URL and anonymous key for one scan.

    Validation happens on construction, so an instance is always safe to
    send requests with. The key is kept out of ``repr`` and is never
    persisted.
    """

    url: str
    anon_key: str = field(repr=False)

    def __post_init__(self) -> None:
        url = self.url.strip().rstrip("/") if isinstance(self.url, str) else ""
        anon_key = self.anon_key.strip() if isinstance(self.anon_key, str) else ""

        if not url or SUPABASE_HOST_MARKER not in url:
            raise InvalidConnectionError(
                "Invalid Supabase URL. Please use a valid Supabase project URL."
            )
        if not url.startswith(("https://", "http://")):
            url = f"https://{url}"
        if not anon_key.startswith(JWT_PREFIX):
            raise InvalidConnectionError(
                "Invalid anon key format. Please provide a valid Supabase anon key."
            )

        object.__setattr__(self, "url", url)
        object.__setattr__(self, "anon_key", anon_key)

    @property
    def rest_url(self) -> str:
        """Base URL of the project's REST interface."""
        return f"{self.url}/rest/v1"

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.anon_key}",
            "Content-Type": "application/json",
        }

    def table_url(self, table_name: str) -> str:
        return f"{self.rest_url}/{table_name}"

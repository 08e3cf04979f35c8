import logging
import re
from typing import Mapping, Optional, Protocol

import requests

from ..errors import ExternalEntropyUnavailable

logger = logging.getLogger(__name__)

_BLOCK_HASH_RE = re.compile(r"^[0-9a-f]{64}$")


class ExternalEntropyProvider(Protocol):
    """Anything that can hand out third-party randomness.

    Implementations raise :class:`ExternalEntropyUnavailable` on any failure.
    """

    source_identifier: str

    def fetch(self) -> str: ...


class BlockHashProvider:
    """Fetch the latest public block hash from a plain-text HTTP endpoint.

    The default shape matches ``GET /api/blocks/tip/hash`` of an Esplora-style
    block explorer, which answers with the bare 64-character hex hash.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        if not url:
            raise ValueError("A block hash URL is required")
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.source_identifier = url

    @property
    def headers(self) -> Mapping[str, str]:
        return {"Accept": "text/plain"}

    def fetch(self) -> str:
        try:
            r = self.session.get(self.url, headers=self.headers, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise ExternalEntropyUnavailable(f"Block hash request failed: {e}") from e

        value = r.text.strip().lower()
        if not _BLOCK_HASH_RE.match(value):
            # Do not echo the body; it may be an arbitrary error page.
            raise ExternalEntropyUnavailable("Block hash endpoint returned an unexpected payload")
        logger.debug("Fetched block hash from %s", self.source_identifier)
        return value

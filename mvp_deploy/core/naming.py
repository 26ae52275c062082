"""Identity and naming rules for deployment attempts.

A deployment id is unique per attempt; a service name is a pure function of
the product's display name and owner, so every retry of the same product by
the same owner lands on the same Cloud Run service.
"""

import re
import time

from mvp_deploy.models.deployment import DEFAULT_OWNER_ID

# Cloud Run resource name limit
DEFAULT_MAX_SERVICE_NAME_LENGTH = 63

_WHITESPACE = re.compile(r"\s+")
_INVALID = re.compile(r"[^a-z0-9-]")
_DASHES = re.compile(r"-{2,}")


def slugify(value: str) -> str:
    """Lower-case ``value`` and reduce it to ``[a-z0-9-]``.

    ``@`` becomes ``-at-`` so e-mail style owner ids stay readable
    (``jane@x.com`` -> ``jane-at-x-com``).
    """
    slug = value.strip().lower().replace("@", "-at-")
    slug = _WHITESPACE.sub("-", slug)
    slug = _INVALID.sub("-", slug)
    slug = _DASHES.sub("-", slug)
    return slug.strip("-")


def make_service_name(
    display_name: str,
    owner_id: str | None = None,
    max_length: int = DEFAULT_MAX_SERVICE_NAME_LENGTH,
) -> str:
    """Derive the host service name for a product.

    The untruncated name is ``slug(display_name)-slug(owner_id)``; anything
    beyond ``max_length`` is cut off, so a long name is always a prefix of
    the untruncated one.
    """
    if max_length < 1:
        raise ValueError("max_length must be positive")
    owner = slugify(owner_id or "") or DEFAULT_OWNER_ID
    name = f"{slugify(display_name)}-{owner}"
    return name[:max_length]


def make_deployment_id(
    artifact_id: str,
    now_ms: int | None = None,
    prefix: str = "artifact",
) -> str:
    """Derive the id of one deployment attempt."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"{prefix}-{artifact_id}-{now_ms}" if prefix else f"{artifact_id}-{now_ms}"


class DeploymentIdFactory:
    """Issues deployment ids that never repeat within a process.

    Two attempts for the same artifact started in the same millisecond get
    distinct ids: the timestamp is bumped past the last one issued.
    """

    def __init__(self, prefix: str = "artifact"):
        self.prefix = prefix
        self._last_ms = 0

    def next_id(self, artifact_id: str) -> str:
        now_ms = time.time_ns() // 1_000_000
        if now_ms <= self._last_ms:
            now_ms = self._last_ms + 1
        self._last_ms = now_ms
        return make_deployment_id(artifact_id, now_ms=now_ms, prefix=self.prefix)

"""Repository references: parsing operator input and deriving URLs."""

from __future__ import annotations

import re
from dataclasses import dataclass

from nixboot.errors import InvalidReferenceError

DEFAULT_HOST = "github.com"
DEFAULT_SSH_USER = "git"
DEPLOY_KEYS_PATH = "/settings/keys"

_SLUG_RE = re.compile(r"^(?P<owner>[^/\s@:]+)/(?P<name>[^/\s@:]+)$")
_SSH_URL_RE = re.compile(
    r"^(?P<user>[A-Za-z0-9._-]+)@(?P<host>[A-Za-z0-9.-]+):(?P<owner>[^/\s]+)/(?P<name>[^/\s]+)$"
)


@dataclass(frozen=True, slots=True)
class RepositoryReference:
    owner: str
    name: str
    host: str = DEFAULT_HOST
    ssh_user: str = DEFAULT_SSH_USER

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def transport_prefix(self) -> str:
        return f"{self.ssh_user}@{self.host}:"

    @property
    def transport_url(self) -> str:
        return f"{self.transport_prefix}{self.slug}.git"

    def web_url(self, scheme: str = "https") -> str:
        return f"{scheme}://{self.host}/{self.slug}"


def _strip_git_suffix(name: str) -> str:
    if name.endswith(".git"):
        return name[: -len(".git")]
    return name


def parse_repository_reference(
    raw: str,
    *,
    host: str = DEFAULT_HOST,
    ssh_user: str = DEFAULT_SSH_USER,
) -> RepositoryReference:
    """Parse ``owner/name`` or ``user@host:owner/name.git`` into a reference.

    The slug form is bound to *host* and *ssh_user*; a full transport URL
    carries its own.
    """
    text = raw.strip()
    # A transport URL would also satisfy the loose slug shape, so it goes first.
    match = _SSH_URL_RE.fullmatch(text)
    if match is not None:
        owner, name = match.group("owner"), _strip_git_suffix(match.group("name"))
        ref_host, ref_user = match.group("host"), match.group("user")
    else:
        match = _SLUG_RE.fullmatch(text)
        if match is None:
            raise InvalidReferenceError(f"not a repository reference: {raw!r}")
        owner, name = match.group("owner"), _strip_git_suffix(match.group("name"))
        ref_host, ref_user = host, ssh_user
    if not owner or not name or owner in {".", ".."} or name in {".", ".."}:
        raise InvalidReferenceError(f"not a repository reference: {raw!r}")
    return RepositoryReference(owner=owner, name=name, host=ref_host, ssh_user=ref_user)


def is_valid_reference(raw: str) -> bool:
    try:
        parse_repository_reference(raw)
    except InvalidReferenceError:
        return False
    return True


def deploy_keys_url(reference: RepositoryReference, scheme: str = "https") -> str:
    """Deep link to the repository's deploy key settings page.

    Derived from the transport URL by swapping the SSH prefix for the web
    prefix, dropping ``.git`` and appending the settings path.
    """
    path = reference.transport_url[len(reference.transport_prefix):]
    path = _strip_git_suffix(path)
    return f"{scheme}://{reference.host}/{path}{DEPLOY_KEYS_PATH}"

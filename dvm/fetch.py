"""Download manifests from URLs and GitHub repositories."""

import logging

import httpx

from dvm.exceptions import FetchError, ResourceNotFoundError

logger = logging.getLogger(__name__)

GITHUB_RAW_URL = "https://raw.githubusercontent.com"
GITHUB_PREFIX = "github:"
DEFAULT_GIT_REF = "main"


def is_remote(ref: str) -> bool:
    """Check whether a manifest reference points at a remote location."""
    return ref.startswith(("http://", "https://", GITHUB_PREFIX))


def resolve_url(ref: str) -> str:
    """Turn a manifest reference into a downloadable URL.

    Args:
        ref: An http(s) URL, or ``github:owner/repo/path/to/file.yaml[@ref]``

    Returns:
        The URL to fetch

    Raises:
        FetchError: If the reference is not in a supported format

    Examples:
        >>> resolve_url("github:rmkohlman/dvm-library/plugins/telescope.yaml")
        'https://raw.githubusercontent.com/rmkohlman/dvm-library/main/plugins/telescope.yaml'
    """
    if ref.startswith(("http://", "https://")):
        return ref
    if not ref.startswith(GITHUB_PREFIX):
        raise FetchError(f"Unsupported manifest reference: '{ref}'")

    body, _, git_ref = ref[len(GITHUB_PREFIX):].partition("@")
    parts = body.split("/", 2)
    if len(parts) != 3 or not all(parts):
        raise FetchError(
            f"Invalid format: '{ref}'. Expected: github:<owner>/<repo>/<path>[@<ref>]"
        )
    owner, repo, path = parts
    return f"{GITHUB_RAW_URL}/{owner}/{repo}/{git_ref or DEFAULT_GIT_REF}/{path}"


def fetch_manifest(ref: str, transport: httpx.BaseTransport | None = None) -> str:
    """Download manifest text.

    Args:
        ref: URL or GitHub reference, see resolve_url()
        transport: Optional httpx transport (used by tests)

    Returns:
        The response body

    Raises:
        ResourceNotFoundError: If the server answers 404
        FetchError: On any other HTTP or network failure
    """
    url = resolve_url(ref)
    logger.debug("Fetching %s", url)
    try:
        with httpx.Client(follow_redirects=True, timeout=30.0, transport=transport) as client:
            response = client.get(url)
            if response.status_code == 404:
                raise ResourceNotFoundError(f"Manifest not found: {url}")
            response.raise_for_status()
            return response.text
    except httpx.HTTPStatusError as e:
        raise FetchError(f"Failed to download manifest: {e}")
    except httpx.RequestError as e:
        raise FetchError(f"Network error: {e}")

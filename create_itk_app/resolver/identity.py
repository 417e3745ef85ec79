"""Best-guess author identity for prompt defaults.

Reads git configuration and, for the GitHub user, asks the GitHub user
search API.  Every guess degrades to an empty string instead of raising:
these only seed prompt defaults that the operator can overwrite.
"""

from __future__ import annotations

import os

import httpx

from create_itk_app.utils import run_command

GITHUB_API_URL = "https://api.github.com"


async def _git_config(key: str) -> str:
    """Return ``git config --get <key>`` or ``""`` when unset or git is missing."""
    returncode, stdout, _ = await run_command(["git", "config", "--get", key], timeout=10)
    if returncode != 0:
        return ""
    return stdout.strip()


async def guess_author() -> str:
    """Guess the author's full name from git config or the environment."""
    name = await _git_config("user.name")
    return name or os.environ.get("GIT_AUTHOR_NAME", "")


async def guess_email() -> str:
    """Guess the author's e-mail address from git config or the environment."""
    email = await _git_config("user.email")
    return email or os.environ.get("GIT_AUTHOR_EMAIL", "")


async def lookup_github_username(
    email: str,
    base_url: str = GITHUB_API_URL,
    timeout: float = 5.0,
) -> str:
    """Search GitHub for the account whose public e-mail is *email*.

    Returns ``""`` when the search finds nothing, the API is unreachable
    (offline, rate limited, ...) or the response is not shaped like a
    search result.
    """
    if not email:
        return ""
    async with httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(timeout, connect=3.0),
        headers={"Accept": "application/vnd.github+json"},
    ) as client:
        try:
            response = await client.get("/search/users", params={"q": f"{email} in:email"})
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError):
            return ""
    items = payload.get("items") if isinstance(payload, dict) else None
    if not isinstance(items, list) or not items or not isinstance(items[0], dict):
        return ""
    login = items[0].get("login")
    return login if isinstance(login, str) else ""


async def guess_github_username(email: str = "") -> str:
    """Guess the GitHub user or org that will own the repository.

    Tries ``git config github.user``, then a GitHub search by *email*, then
    the local part of *email*.
    """
    configured = await _git_config("github.user")
    if configured:
        return configured
    found = await lookup_github_username(email)
    if found:
        return found
    if "@" in email:
        return email.split("@", 1)[0]
    return ""

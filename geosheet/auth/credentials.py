"""OAuth credential acquisition and on-disk caching for the Sheets API."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable
from urllib.parse import urlencode

from google.oauth2.credentials import Credentials

from geosheet.common.constants import GOOGLE_AUTH_URI, GOOGLE_TOKEN_URI, OOB_REDIRECT_URI, SHEETS_SCOPE
from geosheet.common.errors import CredentialError
from geosheet.common.fs import ensure_dir, read_json, write_json
from geosheet.common.http import HttpClient, HttpRequestError
from geosheet.common.logging import get_logger, log_event, log_warning


def _load_client_secrets(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise CredentialError(f"Client secret file not found: {path}")
    try:
        payload = read_json(path)
    except (OSError, ValueError) as exc:
        raise CredentialError(f"Client secret file is not valid JSON: {path}") from exc

    section = None
    if isinstance(payload, dict):
        section = payload.get("installed") or payload.get("web")
    if not section or not section.get("client_id") or not section.get("client_secret"):
        raise CredentialError(f"Client secret file has no installed client: {path}")
    redirect_uris = section.get("redirect_uris") or [OOB_REDIRECT_URI]
    return {
        "client_id": section["client_id"],
        "client_secret": section["client_secret"],
        "redirect_uri": redirect_uris[0],
        "auth_uri": section.get("auth_uri", GOOGLE_AUTH_URI),
        "token_uri": section.get("token_uri", GOOGLE_TOKEN_URI),
    }


def _expiry_from(expires_in: Any) -> datetime | None:
    if expires_in is None:
        return None
    # google-auth compares expiry against naive UTC.
    expiry = datetime.now(tz=timezone.utc).replace(tzinfo=None) + timedelta(seconds=int(expires_in))
    return expiry.replace(microsecond=0)


class CredentialProvider:
    """Hands out one authorized Sheets credential per process.

    Lookup order is: the in-memory handle, the token cached on disk by a
    previous run, and finally the interactive out-of-band grant, whose token
    is written back to the cache before returning.
    """

    def __init__(
        self,
        *,
        client_secret_path: Path,
        token_path: Path,
        scopes: list[str] | None = None,
        http_client: HttpClient | None = None,
        input_fn: Callable[[str], str] = input,
        output_fn: Callable[[str], None] = print,
        logger: logging.Logger | None = None,
    ) -> None:
        self.client_secret_path = client_secret_path
        self.token_path = token_path
        self.scopes = list(scopes or [SHEETS_SCOPE])
        self.http_client = http_client
        self.input_fn = input_fn
        self.output_fn = output_fn
        self.logger = logger or get_logger("auth")
        self._credentials: Credentials | None = None

    @classmethod
    def from_config(cls, auth_config: dict, **kwargs: Any) -> "CredentialProvider":
        token_path = Path(auth_config["token_dir"]) / auth_config["token_file"]
        return cls(
            client_secret_path=Path(auth_config["client_secret_path"]),
            token_path=token_path,
            scopes=auth_config["scopes"],
            **kwargs,
        )

    def acquire(self) -> Credentials:
        if self._credentials is not None:
            return self._credentials

        credentials = self._load_cached()
        if credentials is None:
            credentials = self._authorize_interactively()
        self._credentials = credentials
        return credentials

    def _load_cached(self) -> Credentials | None:
        if not self.token_path.exists():
            return None
        try:
            info = read_json(self.token_path)
            credentials = Credentials.from_authorized_user_info(info, scopes=self.scopes)
        except (OSError, ValueError, TypeError, AttributeError) as exc:
            log_warning(
                self.logger,
                f"ignoring unreadable token cache {self.token_path}: {exc}",
                stage="auth",
                event="TOKEN_CACHE_INVALID",
                status="warning",
            )
            return None
        log_event(self.logger, "using cached token", stage="auth", event="TOKEN_CACHE_HIT", status="ok")
        return credentials

    def authorization_url(self, secrets: dict[str, Any]) -> str:
        params = {
            "client_id": secrets["client_id"],
            "redirect_uri": secrets["redirect_uri"],
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "access_type": "offline",
        }
        return f"{secrets['auth_uri']}?{urlencode(params)}"

    def _authorize_interactively(self) -> Credentials:
        secrets = _load_client_secrets(self.client_secret_path)

        self.output_fn(f"Authorize this app by visiting this url: {self.authorization_url(secrets)}")
        code = self.input_fn("Enter the code from that page here: ").strip()
        if not code:
            raise CredentialError("No authorization code entered")

        token = self._exchange_code(secrets, code)
        info = {
            "token": token["access_token"],
            "refresh_token": token.get("refresh_token"),
            "token_uri": secrets["token_uri"],
            "client_id": secrets["client_id"],
            "client_secret": secrets["client_secret"],
            "scopes": self.scopes,
        }
        expiry = _expiry_from(token.get("expires_in"))
        if expiry is not None:
            info["expiry"] = expiry.strftime("%Y-%m-%dT%H:%M:%SZ")

        self._store_token(info)
        return Credentials(
            token=info["token"],
            refresh_token=info["refresh_token"],
            token_uri=info["token_uri"],
            client_id=info["client_id"],
            client_secret=info["client_secret"],
            scopes=self.scopes,
            expiry=expiry,
        )

    def _exchange_code(self, secrets: dict[str, Any], code: str) -> dict[str, Any]:
        data = {
            "code": code,
            "client_id": secrets["client_id"],
            "client_secret": secrets["client_secret"],
            "redirect_uri": secrets["redirect_uri"],
            "grant_type": "authorization_code",
        }
        try:
            if self.http_client is not None:
                token = self.http_client.post_form_json(secrets["token_uri"], data=data)
            else:
                with HttpClient() as client:
                    token = client.post_form_json(secrets["token_uri"], data=data)
        except HttpRequestError as exc:
            raise CredentialError(f"Error while trying to retrieve access token: {exc}") from exc

        if not isinstance(token, dict) or not token.get("access_token"):
            raise CredentialError("Token endpoint returned no access token")
        return token

    def _store_token(self, info: dict[str, Any]) -> None:
        ensure_dir(self.token_path.parent)
        write_json(self.token_path, info)
        log_event(self.logger, f"token stored to {self.token_path}", stage="auth", event="TOKEN_STORED", status="ok")


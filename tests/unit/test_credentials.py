from __future__ import annotations

import json
from pathlib import Path

import pytest

from geosheet.auth import credentials as credentials_module
from geosheet.auth.credentials import CredentialProvider
from geosheet.common.errors import CredentialError
from geosheet.common.http import HttpRequestError


def _write_client_secret(path: Path) -> Path:
    path.write_text(
        json.dumps(
            {
                "installed": {
                    "client_id": "client-1.apps.googleusercontent.com",
                    "client_secret": "shh",
                    "redirect_uris": ["urn:ietf:wg:oauth:2.0:oob", "http://localhost"],
                    "token_uri": "https://oauth2.test/token",
                }
            }
        ),
        encoding="utf-8",
    )
    return path


class FakeTokenClient:
    def __init__(self, payload=None, error: Exception | None = None):
        self.payload = payload
        self.error = error
        self.calls: list[tuple[str, dict]] = []

    def post_form_json(self, url: str, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.payload

    def close(self):
        return None


def _no_prompt(_message: str) -> str:
    raise AssertionError("interactive prompt must not be shown")


def test_cached_token_skips_interactive_prompt(tmp_path: Path):
    token_path = tmp_path / ".credentials" / "token.json"
    token_path.parent.mkdir()
    token_path.write_text(
        json.dumps(
            {
                "token": "access",
                "refresh_token": "refresh",
                "client_id": "client-1",
                "client_secret": "shh",
                "token_uri": "https://oauth2.test/token",
            }
        ),
        encoding="utf-8",
    )
    provider = CredentialProvider(
        client_secret_path=tmp_path / "missing.json",
        token_path=token_path,
        input_fn=_no_prompt,
    )

    credentials = provider.acquire()

    assert credentials.token == "access"
    assert credentials.refresh_token == "refresh"


def test_interactive_flow_persists_token_and_is_idempotent(tmp_path: Path):
    token_path = tmp_path / ".credentials" / "token.json"
    http = FakeTokenClient({"access_token": "new-access", "refresh_token": "new-refresh", "expires_in": 3600})
    prompts: list[str] = []
    shown: list[str] = []

    def answer(message: str) -> str:
        prompts.append(message)
        return " 4/abc \n"

    provider = CredentialProvider(
        client_secret_path=_write_client_secret(tmp_path / "client_secret.json"),
        token_path=token_path,
        http_client=http,
        input_fn=answer,
        output_fn=shown.append,
    )

    first = provider.acquire()
    second = provider.acquire()

    assert first is second
    assert len(prompts) == 1
    assert "access_type=offline" in shown[0]
    assert "client_id=client-1.apps.googleusercontent.com" in shown[0]

    url, kwargs = http.calls[0]
    assert url == "https://oauth2.test/token"
    assert kwargs["data"]["code"] == "4/abc"
    assert kwargs["data"]["grant_type"] == "authorization_code"
    assert kwargs["data"]["redirect_uri"] == "urn:ietf:wg:oauth:2.0:oob"

    stored = json.loads(token_path.read_text(encoding="utf-8"))
    assert stored["token"] == "new-access"
    assert stored["refresh_token"] == "new-refresh"
    assert stored["expiry"].endswith("Z")
    assert first.expiry is not None
    assert first.expiry.tzinfo is None
    assert not first.expired


def test_second_provider_reuses_token_written_by_first(tmp_path: Path):
    token_path = tmp_path / ".credentials" / "token.json"
    secret = _write_client_secret(tmp_path / "client_secret.json")
    CredentialProvider(
        client_secret_path=secret,
        token_path=token_path,
        http_client=FakeTokenClient({"access_token": "a", "refresh_token": "r", "expires_in": 3600}),
        input_fn=lambda _message: "code",
        output_fn=lambda _message: None,
    ).acquire()

    credentials = CredentialProvider(
        client_secret_path=secret,
        token_path=token_path,
        input_fn=_no_prompt,
    ).acquire()

    assert credentials.refresh_token == "r"


def test_failed_exchange_raises_credential_error(tmp_path: Path):
    token_path = tmp_path / ".credentials" / "token.json"
    provider = CredentialProvider(
        client_secret_path=_write_client_secret(tmp_path / "client_secret.json"),
        token_path=token_path,
        http_client=FakeTokenClient(error=HttpRequestError("HTTP status: 400")),
        input_fn=lambda _message: "bad-code",
        output_fn=lambda _message: None,
    )

    with pytest.raises(CredentialError):
        provider.acquire()
    assert not token_path.exists()


def test_malformed_cache_falls_back_to_interactive_flow(tmp_path: Path):
    token_path = tmp_path / "token.json"
    token_path.write_text("{not json", encoding="utf-8")
    provider = CredentialProvider(
        client_secret_path=_write_client_secret(tmp_path / "client_secret.json"),
        token_path=token_path,
        http_client=FakeTokenClient({"access_token": "fresh", "refresh_token": "r"}),
        input_fn=lambda _message: "code",
        output_fn=lambda _message: None,
    )

    assert provider.acquire().token == "fresh"


@pytest.mark.parametrize("content", [None, "{}", '{"installed": {"client_id": "x"}}'])
def test_missing_or_invalid_client_secret_raises(tmp_path: Path, content):
    secret = tmp_path / "client_secret.json"
    if content is not None:
        secret.write_text(content, encoding="utf-8")
    provider = CredentialProvider(
        client_secret_path=secret,
        token_path=tmp_path / "token.json",
        input_fn=_no_prompt,
        output_fn=lambda _message: None,
    )

    with pytest.raises(CredentialError):
        provider.acquire()


def test_empty_code_raises(tmp_path: Path):
    provider = CredentialProvider(
        client_secret_path=_write_client_secret(tmp_path / "client_secret.json"),
        token_path=tmp_path / "token.json",
        http_client=FakeTokenClient({"access_token": "unused"}),
        input_fn=lambda _message: "   ",
        output_fn=lambda _message: None,
    )

    with pytest.raises(CredentialError):
        provider.acquire()


def test_from_config_builds_token_path():
    provider = CredentialProvider.from_config(
        {
            "client_secret_path": "client_secret.json",
            "token_dir": ".credentials",
            "token_file": "sheets.json",
            "scopes": ["https://www.googleapis.com/auth/spreadsheets"],
        }
    )

    assert provider.token_path == Path(".credentials") / "sheets.json"
    assert provider.scopes == ["https://www.googleapis.com/auth/spreadsheets"]


class ClosingTokenClient(FakeTokenClient):
    instances: list["ClosingTokenClient"] = []

    def __init__(self):
        super().__init__({"access_token": "fresh", "expires_in": 60})
        self.closed = False
        ClosingTokenClient.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *_exc_info):
        self.closed = True


def test_exchange_without_injected_client_closes_its_own(tmp_path: Path, monkeypatch):
    ClosingTokenClient.instances = []
    monkeypatch.setattr(credentials_module, "HttpClient", ClosingTokenClient)
    provider = CredentialProvider(
        client_secret_path=_write_client_secret(tmp_path / "client_secret.json"),
        token_path=tmp_path / ".credentials" / "token.json",
        input_fn=lambda _message: "4/own",
        output_fn=lambda _message: None,
    )

    credentials = provider.acquire()

    assert credentials.token == "fresh"
    (client,) = ClosingTokenClient.instances
    assert client.closed
    assert client.calls[0][1]["data"]["code"] == "4/own"

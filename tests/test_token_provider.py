from __future__ import annotations

import threading

import httpx
import pytest

from aci_control.adapters.token_provider import TokenProvider
from aci_control.core.config import AppSettings
from aci_control.core.domain.models import AccessToken, Credential
from aci_control.core.errors import AuthError

from conftest import SECRET, TENANT, FakeAzure


class _Clock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _provider(
    credential: Credential,
    settings: AppSettings,
    handler,
    *,
    clock: _Clock | None = None,
    sleeps: list[float] | None = None,
) -> TokenProvider:
    recorded = sleeps if sleeps is not None else []
    return TokenProvider(
        credential,
        settings,
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        clock=clock or _Clock(),
        sleep=recorded.append,
    )


def test_token_request_uses_client_credentials(credential: Credential, settings: AppSettings) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"access_token": "abc", "expires_in": "3599"})

    provider = _provider(credential, settings, handler)
    provider.get_token()

    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == f"https://login.microsoftonline.com/{TENANT}/oauth2/v2.0/token"
    form = request.content.decode()
    assert "grant_type=client_credentials" in form
    assert "scope=https%3A%2F%2Fmanagement.azure.com%2F.default" in form


def test_valid_credentials_yield_token_with_future_expiry(
    credential: Credential, settings: AppSettings, fake: FakeAzure
) -> None:
    clock = _Clock()
    provider = _provider(credential, settings, fake.handler, clock=clock)

    token = provider.get_token()

    assert isinstance(token, AccessToken)
    assert token.expires_on > clock.now
    assert token.token.get_secret_value() == "token-1"


def test_token_is_cached_until_refresh_margin(credential: Credential, settings: AppSettings, fake: FakeAzure) -> None:
    clock = _Clock()
    provider = _provider(credential, settings, fake.handler, clock=clock)

    first = provider.get_token()
    clock.now += 3600 - settings.token_refresh_margin_seconds - 1
    assert provider.get_token() is first
    assert fake.token_calls == 1

    clock.now += 2
    second = provider.get_token()
    assert second.token.get_secret_value() == "token-2"
    assert fake.token_calls == 2


def test_invalidate_forces_refresh(credential: Credential, settings: AppSettings, fake: FakeAzure) -> None:
    provider = _provider(credential, settings, fake.handler)
    provider.get_token()
    provider.invalidate()
    provider.get_token()
    assert fake.token_calls == 2


def test_concurrent_callers_share_one_refresh(credential: Credential, settings: AppSettings, fake: FakeAzure) -> None:
    fake.token_delay = 0.05
    provider = _provider(credential, settings, fake.handler)
    barrier = threading.Barrier(8)
    results: list[AccessToken] = []
    errors: list[BaseException] = []

    def worker() -> None:
        barrier.wait()
        try:
            results.append(provider.get_token())
        except BaseException as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    assert fake.token_calls == 1
    assert {r.token.get_secret_value() for r in results} == {"token-1"}


def test_concurrent_callers_after_expiry_trigger_one_refresh(
    credential: Credential, settings: AppSettings, fake: FakeAzure
) -> None:
    clock = _Clock()
    provider = _provider(credential, settings, fake.handler, clock=clock)
    provider.get_token()
    clock.now += 3600

    fake.token_delay = 0.05
    barrier = threading.Barrier(6)
    results: list[str] = []

    def worker() -> None:
        barrier.wait()
        results.append(provider.get_token().token.get_secret_value())

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert fake.token_calls == 2
    assert set(results) == {"token-2"}


def test_rejected_secret_fails_fast_without_leaking(settings: AppSettings, fake: FakeAzure) -> None:
    bad = Credential(tenant_id=TENANT, client_id="c", client_secret="wrong-secret", subscription_id="s")
    sleeps: list[float] = []
    provider = _provider(bad, settings, fake.handler, sleeps=sleeps)

    with pytest.raises(AuthError) as info:
        provider.get_token()

    assert fake.token_calls == 1
    assert sleeps == []
    assert info.value.code == "invalid_client"
    assert "AADSTS7000215" in str(info.value)
    assert "wrong-secret" not in str(info.value)
    assert "wrong-secret" not in (info.value.body or "")


def test_transient_identity_failures_are_retried(credential: Credential, settings: AppSettings) -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] < 3:
            return httpx.Response(503, headers={"Retry-After": "2"}, text="busy")
        return httpx.Response(200, json={"access_token": "ok", "expires_in": 3600})

    sleeps: list[float] = []
    provider = _provider(credential, settings, handler, sleeps=sleeps)

    assert provider.get_token().token.get_secret_value() == "ok"
    assert calls["n"] == 3
    assert len(sleeps) == 2
    assert all(2.0 <= s <= 2.35 for s in sleeps)


def test_retries_exhausted_raise_auth_error(credential: Credential, settings: AppSettings) -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        raise httpx.ConnectError("connection refused", request=request)

    sleeps: list[float] = []
    provider = _provider(credential, settings, handler, sleeps=sleeps)

    with pytest.raises(AuthError) as info:
        provider.get_token()

    assert calls["n"] == settings.auth_max_retries + 1
    assert len(sleeps) == settings.auth_max_retries
    assert "unreachable" in str(info.value)
    assert SECRET not in str(info.value)


@pytest.mark.parametrize(
    "payload",
    [
        {"token_type": "Bearer"},
        {"access_token": "abc"},
        {"access_token": "abc", "expires_in": 0},
        {"access_token": "abc", "expires_in": "soon"},
    ],
)
def test_unusable_token_responses_are_auth_errors(
    credential: Credential, settings: AppSettings, payload: dict[str, object]
) -> None:
    provider = _provider(credential, settings, lambda request: httpx.Response(200, json=payload))
    with pytest.raises(AuthError):
        provider.get_token()


def test_expires_on_is_accepted(credential: Credential, settings: AppSettings) -> None:
    clock = _Clock()
    payload = {"access_token": "abc", "expires_on": str(int(clock.now) + 600)}
    provider = _provider(credential, settings, lambda request: httpx.Response(200, json=payload), clock=clock)
    assert provider.get_token().expires_on == clock.now + 600


def test_credential_endpoints_override_settings(settings: AppSettings) -> None:
    sovereign = Credential(
        tenant_id="t",
        client_id="c",
        client_secret="x",
        subscription_id="s",
        authority_host="https://login.chinacloudapi.cn/",
        resource_manager_endpoint="https://management.chinacloudapi.cn/",
    )
    provider = TokenProvider(sovereign, settings)
    try:
        assert provider.token_url == "https://login.chinacloudapi.cn/t/oauth2/v2.0/token"
        assert provider.scope == "https://management.chinacloudapi.cn/.default"
    finally:
        provider.close()


def test_short_lived_token_is_not_refreshed_by_every_caller(
    credential: Credential, settings: AppSettings, fake: FakeAzure
) -> None:
    fake.token_lifetime = 200
    fake.token_delay = 0.05
    clock = _Clock()
    provider = _provider(credential, settings, fake.handler, clock=clock)
    barrier = threading.Barrier(6)
    results: list[str] = []

    def worker() -> None:
        barrier.wait()
        results.append(provider.get_token().token.get_secret_value())

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert fake.token_calls == 1
    assert set(results) == {"token-1"}

    provider.get_token()
    provider.get_token()
    assert fake.token_calls == 1

    # Margen efectivo: mitad de la vida del token.
    clock.now += 100
    assert provider.get_token().token.get_secret_value() == "token-2"


def test_body_decoding_failures_are_retried_as_auth_errors(credential: Credential, settings: AppSettings) -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        raise httpx.DecodingError("corrupt gzip stream", request=request)

    sleeps: list[float] = []
    provider = _provider(credential, settings, handler, sleeps=sleeps)

    with pytest.raises(AuthError, match="DecodingError"):
        provider.get_token()
    assert calls["n"] == settings.auth_max_retries + 1

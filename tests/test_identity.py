import httpx
import pytest

from canteen_gate.schemas import CandidateUser
from canteen_gate.services.identity import (
    IdentityLookupError,
    MockIdentityProvider,
    RemoteIdentityProvider,
)

pytestmark = pytest.mark.anyio


def remote(handler):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://directory")
    return RemoteIdentityProvider(base_url="http://directory", client=http)


# =============================================================================
# MOCK PROVIDER
# =============================================================================

async def test_mock_demo_users():
    provider = MockIdentityProvider()

    admin = await provider.get_user("1")
    student = await provider.get_user("2")
    owner = await provider.get_user("5")

    assert admin.is_admin is True
    assert student.is_admin is False
    assert student.department == "CSE"
    assert owner.is_admin is False
    assert await provider.get_user("999") is None


async def test_mock_register_applies_admin_roles():
    provider = MockIdentityProvider(seed_demo_users=False)
    provider.register(CandidateUser(id="10", role=" Super_Admin "))
    provider.register(CandidateUser(id="11", role="staff"))

    assert (await provider.get_user("10")).is_admin is True
    assert (await provider.get_user("11")).is_admin is False

    provider.remove("10")
    assert await provider.get_user("10") is None


def test_mock_register_requires_id():
    with pytest.raises(ValueError):
        MockIdentityProvider(seed_demo_users=False).register(CandidateUser(role="student"))


# =============================================================================
# REMOTE PROVIDER
# =============================================================================

async def test_remote_reads_profile():
    def handler(request):
        assert request.url.path == "/api/users/42"
        return httpx.Response(200, json={
            "role": "student",
            "registerNumber": "711524IT007",
            "department": "IT",
            "currentStudyYear": "",
            "joiningYear": 2024,
        })

    user = await remote(handler).get_user("42")

    assert user.id == "42"
    assert user.register_number == "711524IT007"
    assert user.current_study_year is None
    assert user.joining_year == 2024
    assert user.is_admin is False


async def test_remote_flags_admins():
    def handler(request):
        return httpx.Response(200, json={"id": 7, "role": "admin"})

    user = await remote(handler).get_user("7")
    assert user.id == "7"
    assert user.is_admin is True


async def test_remote_unknown_user():
    provider = remote(lambda request: httpx.Response(404, json={"detail": "not found"}))
    assert await provider.get_user("404") is None


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, text="<html>"),
        httpx.Response(200, json={"name": "no role"}),
    ],
)
async def test_remote_failures_raise(response):
    provider = remote(lambda request: response)
    with pytest.raises(IdentityLookupError):
        await provider.get_user("1")


async def test_remote_unreachable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    provider = remote(handler)
    with pytest.raises(IdentityLookupError):
        await provider.get_user("1")
    assert await provider.health_check() is False


async def test_remote_health():
    provider = remote(lambda request: httpx.Response(200, json={"status": "ok"}))
    assert await provider.health_check() is True
    await provider.close()


def test_remote_requires_url():
    with pytest.raises(ValueError):
        RemoteIdentityProvider()

"""Unit tests for FirebaseIdentityProvider."""
import json
import httpx
import pytest

from roomsync.providers import ProviderError
from roomsync.providers.firebase import FirebaseIdentityProvider


def make_provider(handler) -> FirebaseIdentityProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FirebaseIdentityProvider(project_id="watchparty", access_token="token", client=client)


def lookup_handler(users_by_email, tokens=None):
    tokens = tokens or {}

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/projects/watchparty/accounts:lookup"
        body = json.loads(request.content)
        if "idToken" in body:
            uid = tokens.get(body["idToken"])
            if uid is None:
                return httpx.Response(400, json={"error": {"message": "INVALID_ID_TOKEN"}})
            return httpx.Response(200, json={"users": [{"localId": uid}]})
        email = body["email"][0]
        if email not in users_by_email:
            return httpx.Response(200, json={})
        return httpx.Response(200, json={"users": [{"localId": users_by_email[email], "email": email}]})

    return handler


@pytest.mark.unit
@pytest.mark.asyncio
class TestFirebaseIdentity:
    """Test identity lookups."""

    async def test_user_by_email(self):
        """✅ Known email resolves to its uid."""
        provider = make_provider(lookup_handler({"a@example.com": "uid-a"}))
        user = await provider.get_user_by_email("a@example.com")
        assert user.uid == "uid-a"
        assert user.email == "a@example.com"

    async def test_unknown_email(self):
        """✅ Unknown email returns None."""
        provider = make_provider(lookup_handler({}))
        assert await provider.get_user_by_email("nobody@example.com") is None

    async def test_validate_token(self):
        """✅ Token accepted only for its own uid."""
        provider = make_provider(lookup_handler({}, tokens={"tok": "uid-a"}))
        assert (await provider.validate_token("uid-a", "tok")).uid == "uid-a"
        assert await provider.validate_token("uid-b", "tok") is None
        assert await provider.validate_token("uid-a", "bad") is None
        assert await provider.validate_token("uid-a", "") is None

    async def test_server_error(self):
        """✅ 5xx surfaces as ProviderError."""
        provider = make_provider(lambda request: httpx.Response(503))
        with pytest.raises(ProviderError):
            await provider.get_user_by_email("a@example.com")

    async def test_delete_user(self):
        """✅ Delete posts the uid."""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={})

        await make_provider(handler).delete_user("uid-a")
        assert requests[0].url.path.endswith("accounts:delete")
        assert json.loads(requests[0].content) == {"localId": "uid-a"}

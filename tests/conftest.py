"""Shared fixtures: an app per test on a throwaway SQLite file, with fake mail and a scripted eSewa."""
from urllib.parse import parse_qs

import httpx
import pytest
from sqlalchemy import update

from elearn.core.config import Settings
from elearn.main import create_app
from elearn.models.user import ROLE_ADMIN, User
from elearn.services.esewa import SUCCESS_MARKER, EsewaClient
from elearn.services.mailer import MailDeliveryError

PASSWORD = "s3cret-Passw0rd"


class FakeMailer:
    """Records verification mails instead of talking to SMTP."""

    def __init__(self):
        self.sent = []
        self.fail = False

    async def send_verification_email(self, to_email, code, name):
        if self.fail:
            raise MailDeliveryError("smtp relay refused the message")
        self.sent.append({"to": to_email, "code": code, "name": name})

    def last_code(self, email):
        for message in reversed(self.sent):
            if message["to"] == email:
                return message["code"]
        raise AssertionError(f"no verification mail sent to {email}")


class EsewaScript:
    """Programmable stand-in for eSewa's transaction-record endpoint.

    ``mode`` is one of ``success``, ``failure`` (eSewa answers but does not
    confirm) or ``down`` (connection errors).
    """

    def __init__(self):
        self.mode = "success"
        self.primary_down = False
        self.calls = []

    def _answer(self, request: httpx.Request, down: bool) -> httpx.Response:
        if down or self.mode == "down":
            raise httpx.ConnectError("connection refused", request=request)
        self.calls.append({k: v[0] for k, v in parse_qs(request.content.decode()).items()})
        if self.mode == "success":
            return httpx.Response(200, text=f"<response>{SUCCESS_MARKER}</response>")
        return httpx.Response(200, text="<response><response_code>failure</response_code></response>")

    def primary(self, request):
        return self._answer(request, self.primary_down)

    def fallback(self, request):
        return self._answer(request, False)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        environment="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        secret_key="test-secret-key",
        log_level="WARNING",
        esewa_merchant_id="EPAYTEST",
        esewa_secret_key="test-esewa-secret",
        esewa_verify_url="https://esewa.test/epay/transrec",
    )


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def esewa():
    return EsewaScript()


def build_gateway(settings, esewa, allow_mock=False):
    return EsewaClient(
        merchant_id=settings.esewa_merchant_id,
        verify_url=settings.esewa_verify_url,
        timeout=5,
        allow_mock=allow_mock,
        transport=httpx.MockTransport(esewa.primary),
        fallback_transport=httpx.MockTransport(esewa.fallback),
    )


@pytest.fixture
def app(settings, mailer, esewa):
    return create_app(settings=settings, mailer=mailer, gateway=build_gateway(settings, esewa))


@pytest.fixture
async def client(app):
    # ASGITransport does not drive lifespan events itself
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


async def register(client, email, name="Test User", password=PASSWORD):
    return await client.post(
        "/api/auth/v1/register",
        json={"fullName": name, "email": email, "password": password, "role": "user"},
    )


async def signup(client, mailer, email, password=PASSWORD):
    """Register and verify; returns the verify-email response body."""
    resp = await register(client, email, password=password)
    assert resp.status_code == 201, resp.text
    resp = await client.post(
        "/api/auth/v1/verify-email",
        json={"email": email, "verificationCode": mailer.last_code(email)},
    )
    assert resp.status_code == 200, resp.text
    client.cookies.clear()
    return resp.json()


async def login(client, email, password=PASSWORD):
    resp = await client.post("/api/auth/v1/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    client.cookies.clear()
    return resp


async def promote(app, email):
    async with app.state.sessionmaker() as db:
        await db.execute(update(User).where(User.email == email).values(role=ROLE_ADMIN))
        await db.commit()


@pytest.fixture
async def user_token(client, mailer):
    body = await signup(client, mailer, "learner@example.com")
    return body["token"]


@pytest.fixture
async def admin_token(app, client, mailer):
    await signup(client, mailer, "admin@example.com")
    await promote(app, "admin@example.com")
    resp = await login(client, "admin@example.com")
    return resp.json()["accessToken"]


COURSE_PAYLOAD = {
    "title": "Python from Scratch",
    "description": "Variables, functions and modules for complete beginners.",
    "category": "Programming",
    "level": "Beginner",
    "price": 0,
    "premiumPrice": 1000,
    "tier": "free",
    "topics": [
        {
            "title": "Getting started",
            "description": "Install and run Python",
            "subTopics": [
                {"title": "Installing Python", "videoContent": "Download the installer and run it.", "duration": 10},
                {"title": "The REPL", "videoContent": "Typing expressions at the prompt.", "tier": "premium"},
            ],
        }
    ],
}


@pytest.fixture
async def course(client, admin_token):
    resp = await client.post("/api/courses", json=COURSE_PAYLOAD, headers=bearer(admin_token))
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]

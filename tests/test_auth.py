from datetime import timedelta

from sqlalchemy import func, select, update

from elearn.core.clock import utcnow
from elearn.models.token import RefreshToken
from elearn.models.user import User
from tests.conftest import PASSWORD, bearer, login, promote, register, signup


async def count_users(app, email):
    async with app.state.sessionmaker() as db:
        return await db.scalar(select(func.count(User.id)).where(User.email == email))


async def test_register_sends_code_and_creates_unverified_user(app, client, mailer):
    resp = await register(client, "New@Example.com", name="Sita Sharma")
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["email"] == "new@example.com"
    assert isinstance(body["userId"], int)

    assert mailer.sent[-1]["to"] == "new@example.com"
    assert mailer.sent[-1]["name"] == "Sita Sharma"
    async with app.state.sessionmaker() as db:
        user = (await db.execute(select(User).where(User.email == "new@example.com"))).scalar_one()
        assert user.is_verified is False
        assert user.hashed_password != PASSWORD
        assert user.verification_code == mailer.last_code("new@example.com")


async def test_duplicate_email_is_rejected_without_second_record(app, client):
    assert (await register(client, "dup@example.com")).status_code == 201
    resp = await register(client, "DUP@example.com")
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "User already exists with this email!"}
    assert await count_users(app, "dup@example.com") == 1


async def test_register_missing_fields(client):
    resp = await client.post("/api/auth/v1/register", json={"email": "a@example.com"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert {e["field"] for e in body["errors"]} >= {"fullName", "password"}


async def test_register_admin_role_is_refused_by_default(client):
    resp = await client.post(
        "/api/auth/v1/register",
        json={"fullName": "Mallory", "email": "m@example.com", "password": PASSWORD, "role": "admin"},
    )
    assert resp.status_code == 403


async def test_mail_failure_rolls_back_registration(app, client, mailer):
    mailer.fail = True
    resp = await register(client, "nomail@example.com")
    assert resp.status_code == 500
    assert resp.json()["message"] == "Failed to send verification email. Please try again!"
    assert await count_users(app, "nomail@example.com") == 0

    mailer.fail = False
    assert (await register(client, "nomail@example.com")).status_code == 201


async def test_verify_email_issues_session(client, mailer):
    await register(client, "v@example.com")
    resp = await client.post(
        "/api/auth/v1/verify-email",
        json={"email": "v@example.com", "verificationCode": mailer.last_code("v@example.com")},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["token"]
    assert body["user"]["isVerified"] is True
    assert "hashedPassword" not in body["user"] and "verificationCode" not in body["user"]
    assert "token" in resp.cookies and "refreshToken" in resp.cookies


async def test_verify_email_failures(client, mailer):
    await register(client, "v2@example.com")
    code = mailer.last_code("v2@example.com")
    wrong = "111111" if code != "111111" else "222222"

    resp = await client.post("/api/auth/v1/verify-email", json={"email": "v2@example.com", "verificationCode": wrong})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid or expired verification code!"

    resp = await client.post("/api/auth/v1/verify-email", json={"email": "ghost@example.com", "verificationCode": code})
    assert resp.status_code == 404

    resp = await client.post("/api/auth/v1/verify-email", json={"email": "v2@example.com", "verificationCode": code})
    assert resp.status_code == 200
    resp = await client.post("/api/auth/v1/verify-email", json={"email": "v2@example.com", "verificationCode": code})
    assert resp.status_code == 400
    assert resp.json()["message"] == "User is already verified!"


async def test_expired_code_is_rejected(app, client, mailer):
    await register(client, "late@example.com")
    async with app.state.sessionmaker() as db:
        await db.execute(
            update(User)
            .where(User.email == "late@example.com")
            .values(verification_code_expiry=utcnow() - timedelta(seconds=1))
        )
        await db.commit()
    resp = await client.post(
        "/api/auth/v1/verify-email",
        json={"email": "late@example.com", "verificationCode": mailer.last_code("late@example.com")},
    )
    assert resp.status_code == 400


async def test_resend_replaces_previous_code(client, mailer):
    await register(client, "again@example.com")
    first = mailer.last_code("again@example.com")
    resp = await client.post("/api/auth/v1/resend-verification-code", json={"email": "again@example.com"})
    assert resp.status_code == 200
    second = mailer.last_code("again@example.com")
    assert len(mailer.sent) == 2

    if first != second:
        resp = await client.post(
            "/api/auth/v1/verify-email", json={"email": "again@example.com", "verificationCode": first}
        )
        assert resp.status_code == 400
    resp = await client.post("/api/auth/v1/verify-email", json={"email": "again@example.com", "verificationCode": second})
    assert resp.status_code == 200

    resp = await client.post("/api/auth/v1/resend-verification-code", json={"email": "again@example.com"})
    assert resp.status_code == 400


async def test_resend_mail_failure_keeps_user(app, client, mailer):
    await register(client, "keep@example.com")
    mailer.fail = True
    resp = await client.post("/api/auth/v1/resend-verification-code", json={"email": "keep@example.com"})
    assert resp.status_code == 500
    assert await count_users(app, "keep@example.com") == 1


async def test_login_returns_tokens_and_cookies(client, mailer):
    await signup(client, mailer, "l@example.com")
    resp = await client.post("/api/auth/v1/login", json={"email": "L@example.com", "password": PASSWORD})
    assert resp.status_code == 200
    body = resp.json()
    assert body["accessToken"]
    assert body["user"]["email"] == "l@example.com"
    assert "refreshToken" in resp.cookies
    assert resp.cookies["token"] == body["accessToken"]


async def test_login_precondition_order(client, mailer):
    resp = await client.post("/api/auth/v1/login", json={"email": "nobody@example.com", "password": PASSWORD})
    assert resp.status_code == 404

    await register(client, "unverified@example.com")
    resp = await client.post("/api/auth/v1/login", json={"email": "unverified@example.com", "password": "wrong"})
    assert resp.status_code == 401
    assert resp.json()["needsVerification"] is True


async def test_lockout_after_six_failures(app, client, mailer):
    await signup(client, mailer, "lock@example.com")
    for attempt in range(6):
        resp = await client.post("/api/auth/v1/login", json={"email": "lock@example.com", "password": "nope"})
        assert resp.status_code == 400, attempt
        assert resp.json()["message"] == "Invalid email or password!"

    # locked: even the right password is refused
    resp = await client.post("/api/auth/v1/login", json={"email": "lock@example.com", "password": PASSWORD})
    assert resp.status_code == 423

    async with app.state.sessionmaker() as db:
        user = (await db.execute(select(User).where(User.email == "lock@example.com"))).scalar_one()
        assert user.login_attempt == 6
        remaining = user.lock_until - utcnow()
        assert timedelta(minutes=29) < remaining <= timedelta(minutes=30)


async def test_lock_expires_and_success_resets_counter(app, client, mailer):
    await signup(client, mailer, "relock@example.com")
    for _ in range(6):
        await client.post("/api/auth/v1/login", json={"email": "relock@example.com", "password": "nope"})
    async with app.state.sessionmaker() as db:
        await db.execute(
            update(User).where(User.email == "relock@example.com").values(lock_until=utcnow() - timedelta(seconds=1))
        )
        await db.commit()

    await login(client, "relock@example.com")
    async with app.state.sessionmaker() as db:
        user = (await db.execute(select(User).where(User.email == "relock@example.com"))).scalar_one()
        assert user.login_attempt == 0
        assert user.lock_until is None


async def test_five_failures_do_not_lock(client, mailer):
    await signup(client, mailer, "five@example.com")
    for _ in range(5):
        await client.post("/api/auth/v1/login", json={"email": "five@example.com", "password": "nope"})
    await login(client, "five@example.com")


async def test_sessions_accumulate(app, client, mailer):
    await signup(client, mailer, "multi@example.com")
    await login(client, "multi@example.com")
    await login(client, "multi@example.com")
    async with app.state.sessionmaker() as db:
        assert await db.scalar(select(func.count(RefreshToken.id))) == 3


async def test_refresh_from_cookie_and_body(client, mailer):
    await signup(client, mailer, "r@example.com")
    resp = await client.post("/api/auth/v1/login", json={"email": "r@example.com", "password": PASSWORD})
    refresh_token = resp.cookies["refreshToken"]

    # cookie jar still holds the refresh cookie
    resp = await client.post("/api/auth/v1/refresh-token")
    assert resp.status_code == 200
    assert resp.json()["user"]["email"] == "r@example.com"

    client.cookies.clear()
    resp = await client.post("/api/auth/v1/refresh-token", json={"refreshToken": refresh_token})
    assert resp.status_code == 200
    new_access = resp.json()["token"]
    me = await client.get("/api/auth/v1/me", headers=bearer(new_access))
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "r@example.com"


async def test_refresh_failures(client):
    resp = await client.post("/api/auth/v1/refresh-token")
    assert resp.status_code == 401
    resp = await client.post("/api/auth/v1/refresh-token", json={"refreshToken": "unknown"})
    assert resp.status_code == 404


async def test_logout_revokes_refresh_token(client, mailer):
    await signup(client, mailer, "out@example.com")
    resp = await client.post("/api/auth/v1/login", json={"email": "out@example.com", "password": PASSWORD})
    refresh_token = resp.cookies["refreshToken"]

    resp = await client.post("/api/auth/v1/logout")
    assert resp.status_code == 204
    assert "token" not in client.cookies

    resp = await client.post("/api/auth/v1/refresh-token", json={"refreshToken": refresh_token})
    assert resp.status_code == 404


async def test_logout_without_session_is_not_an_error(client):
    resp = await client.post("/api/auth/v1/logout")
    assert resp.status_code == 204


async def test_auth_middleware(client, user_token):
    resp = await client.get("/api/auth/v1/me")
    assert resp.status_code == 401
    assert resp.json()["message"] == "Authentication required"

    resp = await client.get("/api/auth/v1/me", headers=bearer("garbage"))
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid token"

    resp = await client.get("/api/auth/v1/me", headers=bearer(user_token))
    assert resp.status_code == 200


async def test_cookie_takes_precedence_over_header(app, client, mailer, user_token):
    await signup(client, mailer, "other@example.com")
    resp = await client.post("/api/auth/v1/login", json={"email": "other@example.com", "password": PASSWORD})
    assert resp.status_code == 200

    resp = await client.get("/api/auth/v1/me", headers=bearer(user_token))
    assert resp.json()["user"]["email"] == "other@example.com"


async def test_role_gate(app, client, mailer, user_token):
    resp = await client.get("/api/users", headers=bearer(user_token))
    assert resp.status_code == 403
    assert resp.json()["message"] == "Role 'user' is not allowed to access this resource"

    await signup(client, mailer, "boss@example.com")
    await promote(app, "boss@example.com")
    admin = (await login(client, "boss@example.com")).json()["accessToken"]
    resp = await client.get("/api/users", headers=bearer(admin))
    assert resp.status_code == 200
    body = resp.json()
    assert body["pagination"]["total"] == 2
    assert all("hashedPassword" not in u for u in body["data"])


async def test_expired_refresh_token_is_deleted(app, client, mailer):
    await signup(client, mailer, "stale@example.com")
    resp = await client.post("/api/auth/v1/login", json={"email": "stale@example.com", "password": PASSWORD})
    refresh_token = resp.cookies["refreshToken"]
    client.cookies.clear()
    async with app.state.sessionmaker() as db:
        await db.execute(
            update(RefreshToken)
            .where(RefreshToken.token == refresh_token)
            .values(created_at=utcnow() - timedelta(days=31))
        )
        await db.commit()

    resp = await client.post("/api/auth/v1/refresh-token", json={"refreshToken": refresh_token})
    assert resp.status_code == 401
    resp = await client.post("/api/auth/v1/refresh-token", json={"refreshToken": refresh_token})
    assert resp.status_code == 404

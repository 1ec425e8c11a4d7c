COOKIE_NAME = "grownet_refresh_token"


def test_login_success(client, mentor_user):
    response = client.post("/auth/login", json={
        "email": "mentor@test.com",
        "password": "mentor123",
    })
    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert "refresh_token" not in data
    assert data["token_type"] == "bearer"
    assert COOKIE_NAME in response.cookies


def test_login_wrong_password(client, mentor_user):
    response = client.post("/auth/login", json={
        "email": "mentor@test.com",
        "password": "wrong",
    })
    assert response.status_code == 401


def test_login_nonexistent_user(client):
    response = client.post("/auth/login", json={
        "email": "nobody@test.com",
        "password": "whatever",
    })
    assert response.status_code == 401


def test_login_inactive_user(client, mentor_user, db):
    mentor_user.is_active = False
    db.flush()
    response = client.post("/auth/login", json={
        "email": "mentor@test.com",
        "password": "mentor123",
    })
    assert response.status_code == 401


def test_register_mentee_by_default(client):
    response = client.post("/auth/register", json={
        "email": "New@Test.com",
        "name": "New User",
        "password": "newpass123",
    })
    assert response.status_code == 201
    assert "access_token" in response.json()
    assert COOKIE_NAME in response.cookies

    me = client.get(
        "/users/me",
        headers={"Authorization": f"Bearer {response.json()['access_token']}"},
    )
    assert me.json()["email"] == "new@test.com"
    assert me.json()["role"] == "mentee"


def test_register_as_mentor(client):
    response = client.post("/auth/register", json={
        "email": "guide@test.com",
        "name": "Guide",
        "password": "guide123",
        "role": "mentor",
    })
    assert response.status_code == 201

    me = client.get(
        "/users/me",
        headers={"Authorization": f"Bearer {response.json()['access_token']}"},
    )
    assert me.json()["role"] == "mentor"


def test_register_cannot_claim_admin(client):
    response = client.post("/auth/register", json={
        "email": "sneaky@test.com",
        "name": "Sneaky",
        "password": "sneaky123",
        "role": "admin",
    })
    assert response.status_code == 422


def test_register_duplicate_email(client, mentee_user):
    response = client.post("/auth/register", json={
        "email": "mentee@test.com",
        "name": "Again",
        "password": "again123",
    })
    assert response.status_code == 409


def test_refresh_token(client, mentor_user):
    login = client.post("/auth/login", json={
        "email": "mentor@test.com",
        "password": "mentor123",
    })
    refresh_cookie = login.cookies[COOKIE_NAME]

    response = client.post("/auth/refresh", cookies={COOKIE_NAME: refresh_cookie})
    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert COOKIE_NAME in response.cookies


def test_refresh_with_access_token_fails(client, mentor_token):
    response = client.post("/auth/refresh", cookies={COOKIE_NAME: mentor_token})
    assert response.status_code == 401


def test_refresh_with_invalid_token(client):
    response = client.post("/auth/refresh", cookies={COOKIE_NAME: "garbage"})
    assert response.status_code == 401


def test_refresh_without_cookie(client):
    response = client.post("/auth/refresh")
    assert response.status_code == 401


def test_access_with_refresh_token_fails(client, mentor_user):
    login = client.post("/auth/login", json={
        "email": "mentor@test.com",
        "password": "mentor123",
    })
    refresh_cookie = login.cookies[COOKIE_NAME]

    response = client.get(
        "/users/me", headers={"Authorization": f"Bearer {refresh_cookie}"}
    )
    assert response.status_code == 401


def test_logout_clears_cookie(client):
    response = client.post("/auth/logout")
    assert response.status_code == 204
    set_cookie = response.headers.get("set-cookie", "")
    assert COOKIE_NAME in set_cookie
    assert "Max-Age=0" in set_cookie


def test_login_email_is_case_insensitive(client, mentor_user):
    response = client.post("/auth/login", json={
        "email": " Mentor@Test.com ",
        "password": "mentor123",
    })
    assert response.status_code == 200


def test_refresh_for_deactivated_user_fails(client, mentor_user, db):
    login = client.post("/auth/login", json={
        "email": "mentor@test.com",
        "password": "mentor123",
    })
    refresh_cookie = login.cookies[COOKIE_NAME]
    mentor_user.is_active = False
    db.flush()

    response = client.post("/auth/refresh", cookies={COOKIE_NAME: refresh_cookie})
    assert response.status_code == 401

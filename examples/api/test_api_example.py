"""Tests for the API example: tokens, scopes, groups, and problem responses."""

from leanapi.testing import TestClient, assert_problem


async def _token(client: TestClient, email: str = "admin@example.com", password: str = "secret123") -> str:
    response = await client.post("/auth/token", json={"email": email, "password": password})
    assert response.status == 200, response.text
    return response.json()["token"]


class TestHealth:
    async def test_health(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/health")
            assert response.status == 200
            assert response.json()["status"] == "ok"
            assert response.header("x-request-id")

    async def test_unknown_route_is_problem(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/nope")
            body = assert_problem(response, 404, detail="Route /nope not found")
            assert body["instance"] == "/nope"


class TestLogin:
    async def test_issues_bearer_token(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.post(
                "/auth/token", json={"email": "admin@example.com", "password": "secret123"}
            )
            assert response.status == 200
            data = response.json()
            assert data["token_type"] == "Bearer"
            assert data["user"]["scopes"] == ["users.read", "users.write"]

    async def test_wrong_password(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.post(
                "/auth/token", json={"email": "admin@example.com", "password": "wrong-one"}
            )
            assert_problem(response, 401, detail="Invalid email or password")

    async def test_validation_errors(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.post("/auth/token", json={"email": "nope"})
            body = assert_problem(response, 422, type="/problems/validation")
            assert body["errors"] == {
                "email": ["The email must be a valid email address."],
                "password": ["The password field is required."],
            }

    async def test_non_json_body_rejected(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.post(
                "/auth/token", body=b"email=x", headers={"content-type": "text/plain"}
            )
            assert_problem(response, 415)


class TestUsers:
    async def test_requires_token(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/v1/users")
            assert_problem(response, 401, detail="Missing or invalid Authorization header")

    async def test_list_users(self, example_app) -> None:
        async with TestClient(example_app) as client:
            token = await _token(client)
            response = await client.get("/v1/users", headers={"Authorization": f"Bearer {token}"})
            assert response.status == 200
            assert response.json()["pagination"]["total"] == 1
            assert response.header("x-total-count") == "1"
            assert response.header("etag") is not None
            assert response.header("x-ratelimit-limit") is not None

    async def test_show_user_converts_id(self, example_app) -> None:
        async with TestClient(example_app) as client:
            token = await _token(client)
            auth = {"Authorization": f"Bearer {token}"}
            assert (await client.get("/v1/users/1", headers=auth)).json()["user"]["id"] == 1
            missing = await client.get("/v1/users/99", headers=auth)
            assert_problem(missing, 404, detail="User 99 not found")

    async def test_non_numeric_id_is_404(self, example_app) -> None:
        async with TestClient(example_app) as client:
            token = await _token(client)
            response = await client.get(
                "/v1/users/abc", headers={"Authorization": f"Bearer {token}"}
            )
            assert_problem(response, 404)

    async def test_create_then_read_only_user_is_forbidden_to_write(self, example_app) -> None:
        async with TestClient(example_app) as client:
            admin = {"Authorization": f"Bearer {await _token(client)}"}
            created = await client.post(
                "/v1/users",
                json={"name": "Reader", "email": "reader@example.com", "password": "password1"},
                headers=admin,
            )
            assert created.status == 201
            assert created.header("location") == "/v1/users/2"

            reader = {"Authorization": f"Bearer {await _token(client, 'reader@example.com', 'password1')}"}
            response = await client.post(
                "/v1/users",
                json={"name": "Other", "email": "other@example.com", "password": "password1"},
                headers=reader,
            )
            assert_problem(response, 403, detail="Required scope 'users.write' is missing")

    async def test_wrong_method_lists_allowed(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.delete("/v1/users")
            body = assert_problem(response, 405)
            assert body["allowed"] == ["GET", "HEAD", "POST"]
            assert response.header("allow") == "GET, HEAD, POST"


    async def test_create_validates_fields(self, example_app) -> None:
        async with TestClient(example_app) as client:
            admin = {"Authorization": f"Bearer {await _token(client)}"}
            response = await client.post(
                "/v1/users",
                json={"name": "X", "email": "admin@example.com", "password": "short", "scopes": 5},
                headers=admin,
            )
            body = assert_problem(response, 422, detail="The given data was invalid.")
            assert body["errors"] == {
                "name": ["The name must be at least 2."],
                "password": ["The password must be at least 8."],
                "scopes": ["The scopes must be a string."],
            }

    async def test_create_rejects_taken_email(self, example_app) -> None:
        async with TestClient(example_app) as client:
            admin = {"Authorization": f"Bearer {await _token(client)}"}
            response = await client.post(
                "/v1/users",
                json={"name": "Admin Two", "email": "admin@example.com", "password": "password1"},
                headers=admin,
            )
            body = assert_problem(response, 422)
            assert body["errors"] == {"email": ["The email has already been taken."]}

import base64
from unittest.mock import patch

import pytest


pytestmark = pytest.mark.unit

REGISTRATION = {
    "user_id": "alice",
    "public_key": "-----BEGIN PGP PUBLIC KEY BLOCK-----\nalice\n-----END PGP PUBLIC KEY BLOCK-----",
    "signature": "-----BEGIN PGP SIGNATURE-----\nsig\n-----END PGP SIGNATURE-----",
    "timestamp": "2024-01-01T00:00:00+00:00",
}


def test_register_with_valid_signature(client):
    with patch("chatline.core.security.verify_pgp_signature", return_value=True) as verify:
        response = client.post("/api/users/register", json=REGISTRATION)

    assert response.status_code == 200
    assert response.json() == {"status": "registered", "user_id": "alice"}
    verify.assert_called_once_with(
        REGISTRATION["public_key"],
        REGISTRATION["signature"],
        "alice|2024-01-01T00:00:00+00:00",
    )


def test_register_with_bad_signature(client):
    with patch("chatline.core.security.verify_pgp_signature", return_value=False):
        response = client.post("/api/users/register", json=REGISTRATION)

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid identity signature"}
    assert client.get("/api/users/alice/public-key").status_code == 404


def test_reregistering_rotates_public_key(client):
    with patch("chatline.core.security.verify_pgp_signature", return_value=True):
        client.post("/api/users/register", json=REGISTRATION)
        client.post("/api/users/register", json={**REGISTRATION, "public_key": "NEW-KEY"})

    response = client.get("/api/users/alice/public-key")
    assert base64.b64decode(response.json()["public_key"]).decode() == "NEW-KEY"


def test_public_key_is_base64(client, seed_users):
    seed_users("u2")

    response = client.get("/api/users/u2/public-key")

    assert response.status_code == 200
    assert response.json() == {"public_key": base64.b64encode(b"KEY-u2").decode()}


def test_public_key_of_unknown_user(client):
    response = client.get("/api/users/nobody/public-key")

    assert response.status_code == 404
    assert response.json() == {"error": "User not found"}


def test_user_list_excludes_caller(client, seed_users):
    seed_users("u1", "u2", "u3")

    response = client.get("/api/users", headers={"X-User-Id": "u2"})

    assert response.status_code == 200
    assert [user["id"] for user in response.json()] == ["u1", "u3"]
    assert all(user["createdAt"] for user in response.json())


def test_user_list_requires_caller(client):
    assert client.get("/api/users").status_code == 401

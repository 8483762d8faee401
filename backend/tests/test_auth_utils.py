import pytest
from backend.auth_service.utils import create_token, verify_token_from_request, hash_password, verify_password
import jwt


@pytest.fixture(autouse=True)
def mock_jwt_secret(mocker):
    mocker.patch("backend.auth_service.utils.JWT_SECRET", "test_secret")


def test_create_token():
    user_id = "1718000000000"
    role = "organizer"
    token = create_token(user_id, role)

    assert isinstance(token, str)

    # Decode to verify contents using the same secret
    payload = jwt.decode(token, "test_secret", algorithms=["HS256"])
    assert payload["sub"] == user_id
    assert payload["role"] == role
    assert "exp" in payload
    assert "iat" in payload


def test_verify_token_from_request_valid(app):
    token = create_token("789", "organizer")

    with app.test_request_context(headers={"Authorization": f"Bearer {token}"}):
        uid, r, err, code = verify_token_from_request()
        assert uid == "789"
        assert r == "organizer"
        assert err is None
        assert code is None


def test_verify_token_from_request_missing_header(app):
    with app.test_request_context():
        uid, r, err, code = verify_token_from_request()
        assert uid is None
        assert code == 401
        assert err.json["error"] == "Authentication required"


def test_verify_token_from_request_invalid_format(app):
    with app.test_request_context(headers={"Authorization": "InvalidFormat"}):
        uid, r, err, code = verify_token_from_request()
        assert uid is None
        assert code == 401


def test_verify_token_from_request_garbage_token(app):
    with app.test_request_context(headers={"Authorization": "Bearer not-a-jwt"}):
        uid, r, err, code = verify_token_from_request()
        assert uid is None
        assert code == 401
        assert err.json["error"] == "invalid token"


def test_verify_token_from_request_wrong_role(app):
    token = create_token("111", "attendee")

    with app.test_request_context(headers={"Authorization": f"Bearer {token}"}):
        uid, r, err, code = verify_token_from_request(required_roles=["organizer"])
        assert uid is None
        assert code == 403
        assert err.json["error"] == "permission denied"


def test_password_hash_roundtrip():
    pw_hash = hash_password("correct horse")
    assert pw_hash != "correct horse"
    assert verify_password(pw_hash, "correct horse") is True
    assert verify_password(pw_hash, "wrong horse") is False


def test_verify_password_rejects_malformed_hash():
    assert verify_password("not-an-argon2-hash", "whatever") is False


def test_verify_token_from_request_wrong_secret(app):
    token = jwt.encode({"sub": "1", "role": "attendee"}, "another_secret", algorithm="HS256")

    with app.test_request_context(headers={"Authorization": f"Bearer {token}"}):
        uid, r, err, code = verify_token_from_request()
        assert uid is None
        assert code == 401

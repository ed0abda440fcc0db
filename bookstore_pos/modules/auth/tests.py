"""
Tests para el módulo de Autenticación
"""

import pytest
from datetime import timedelta

from bookstore_pos.common.exceptions import ConflictError
from bookstore_pos.modules.auth.schemas import OperatorCreate
from bookstore_pos.modules.auth.service import AuthService
from bookstore_pos.modules.auth.utils import create_access_token, hash_password, verify_password


class TestPasswords:

    def test_hash_and_verify(self):
        hashed = hash_password("secret123")

        assert hashed != "secret123"
        assert verify_password("secret123", hashed) is True
        assert verify_password("wrong", hashed) is False
        assert verify_password("secret123", "") is False


class TestAuthService:

    def test_duplicate_operator(self, db_session, operator):
        with pytest.raises(ConflictError):
            AuthService(db_session).create_operator(
                OperatorCreate(username="CAIXA01", name="Outro", password="secret123")
            )

    def test_login_returns_token(self, db_session, operator):
        token = AuthService(db_session).login(" Caixa01 ", "secret123")

        assert token.token_type == "bearer"
        assert token.operator.id == operator.id


class TestAuthAPI:

    def test_login_and_me(self, client, operator):
        response = client.post("/auth/login", data={"username": "caixa01", "password": "secret123"})
        assert response.status_code == 200
        token = response.json()["access_token"]

        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["username"] == "caixa01"

    def test_wrong_password(self, client, operator):
        response = client.post("/auth/login", data={"username": "caixa01", "password": "errada"})
        assert response.status_code == 401

    def test_missing_token(self, client):
        assert client.get("/auth/me").status_code == 401

    def test_invalid_token(self, client):
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_expired_token(self, client, operator):
        token = create_access_token({"sub": str(operator.id)}, expires_delta=timedelta(minutes=-1))
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

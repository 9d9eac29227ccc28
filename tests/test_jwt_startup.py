"""
tests/test_jwt_startup — JWT Secret Validation & Principal Resolution
======================================================================
The API must refuse to start when JWT_SECRET is missing, blank, too short,
or a known weak default; bearer tokens resolve to their ``sub`` claim.
"""

from __future__ import annotations

import os
from unittest.mock import patch

import jwt
import pytest

from hlt.api import deps


class TestJWTSecretValidation:
    """Prove that _load_jwt_secret() rejects bad secrets and accepts good ones."""

    def test_rejects_missing_secret(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("JWT_SECRET", None)
            with pytest.raises(RuntimeError, match="JWT_SECRET environment variable is not set"):
                deps._load_jwt_secret()

    def test_rejects_empty_secret(self):
        with patch.dict(os.environ, {"JWT_SECRET": ""}):
            with pytest.raises(RuntimeError, match="JWT_SECRET environment variable is not set"):
                deps._load_jwt_secret()

    @pytest.mark.parametrize("weak", ["hlt-dev-secret-change-me", "change-me"])
    def test_rejects_known_weak_default(self, weak):
        with patch.dict(os.environ, {"JWT_SECRET": weak}):
            with pytest.raises(RuntimeError, match="known weak default"):
                deps._load_jwt_secret()

    def test_rejects_short_secret(self):
        with patch.dict(os.environ, {"JWT_SECRET": "tooshort"}):
            with pytest.raises(RuntimeError, match="too short"):
                deps._load_jwt_secret()

    def test_accepts_strong_secret(self):
        good_secret = "a" * 64
        with patch.dict(os.environ, {"JWT_SECRET": good_secret}):
            assert deps._load_jwt_secret() == good_secret


class TestResolvePrincipal:
    def _token(self, payload: dict, secret: str | None = None) -> str:
        return jwt.encode(payload, secret or deps.JWT_SECRET, algorithm=deps.JWT_ALGORITHM)

    def test_sub_is_principal(self):
        assert deps.resolve_principal(self._token({"sub": "user-1"})) == "user-1"

    def test_wrong_signature(self):
        token = self._token({"sub": "user-1"}, secret="another-secret-" + "y" * 40)
        assert deps.resolve_principal(token) is None

    @pytest.mark.parametrize("payload", [{}, {"sub": ""}, {"sub": "a:b"}])
    def test_unusable_subject(self, payload):
        assert deps.resolve_principal(self._token(payload)) is None

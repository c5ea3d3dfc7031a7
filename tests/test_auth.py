"""Unit tests for caller identity resolution."""

from unittest.mock import patch

import pytest

from governor.core.auth import ANONYMOUS_USER_ID, resolve_user_id
from governor.core.errors import AuthenticationAppError


class TestResolveUserId:

    def test_returns_trimmed_id(self) -> None:
        assert resolve_user_id("  user-1 ") == "user-1"

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_missing_id_rejected_when_required(self, raw) -> None:
        with pytest.raises(AuthenticationAppError) as exc_info:
            resolve_user_id(raw)

        assert exc_info.value.code == "missing_user_id"
        assert "X-User-Id" in exc_info.value.message

    @patch("governor.core.auth.settings")
    def test_missing_id_is_anonymous_when_not_required(self, mock_settings) -> None:
        mock_settings.app.auth_required = False

        assert resolve_user_id(None) == ANONYMOUS_USER_ID

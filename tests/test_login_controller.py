"""
Tests for the login screen controller.

Covers:
- Local validation (nothing sent on invalid input)
- Successful login and redirect target
- Backend failure alerts
- Single in-flight submission
"""
import asyncio

import pytest

from authflow.controllers import LoginController, LoginStatus
from authflow.gateway import AuthError


@pytest.fixture
def controller(mock_gateway, alerts):
    return LoginController(mock_gateway, on_alert=alerts.append)


class TestLoginValidation:
    """Test field validation before submission."""

    @pytest.mark.asyncio
    async def test_short_username_sends_nothing(self, controller, mock_gateway):
        result = await controller.submit("ab", "secret")

        assert result.status is LoginStatus.INVALID
        assert "username" in result.field_errors
        mock_gateway.login.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_both_fields_reported(self, controller):
        result = await controller.submit("", "")
        assert set(result.field_errors) == {"username", "password"}

    @pytest.mark.asyncio
    async def test_clear_field_error(self, controller):
        await controller.submit("ab", "p")
        controller.clear_field_error("username")

        assert "username" not in controller.field_errors
        assert "password" in controller.field_errors


class TestLoginSubmit:
    """Test backend submission."""

    @pytest.mark.asyncio
    async def test_success_returns_redirect(self, controller, mock_gateway):
        result = await controller.submit("alice", "secret")

        assert result.status is LoginStatus.SUCCESS
        assert result.redirect_uri == "/v1/redirect"
        assert controller.redirect_uri == "/v1/redirect"
        mock_gateway.login.assert_awaited_once_with("alice", "secret")

    @pytest.mark.asyncio
    async def test_failure_raises_error_alert(self, controller, mock_gateway, alerts):
        mock_gateway.login.side_effect = AuthError("invalid credentials", status_code=401)

        result = await controller.submit("alice", "wrong")

        assert result.status is LoginStatus.FAILED
        assert alerts[-1].severity == "error"
        assert alerts[-1].description == "invalid credentials"
        assert controller.redirect_uri is None

    @pytest.mark.asyncio
    async def test_second_submit_while_in_flight_is_ignored(self, controller, mock_gateway):
        release = asyncio.Event()

        async def slow_login(username, password):
            await release.wait()
            return mock_gateway.login.return_value

        mock_gateway.login.side_effect = slow_login
        first = asyncio.create_task(controller.submit("alice", "secret"))
        await asyncio.sleep(0)

        second = await controller.submit("alice", "secret")
        release.set()

        assert second.status is LoginStatus.BUSY
        assert (await first).status is LoginStatus.SUCCESS
        assert mock_gateway.login.await_count == 1

    @pytest.mark.asyncio
    async def test_result_after_close_is_dropped(self, controller, mock_gateway, alerts):
        release = asyncio.Event()

        async def slow_failure(username, password):
            await release.wait()
            raise AuthError("too late")

        mock_gateway.login.side_effect = slow_failure
        pending = asyncio.create_task(controller.submit("alice", "secret"))
        await asyncio.sleep(0)

        controller.close()
        release.set()
        await pending

        assert alerts == []

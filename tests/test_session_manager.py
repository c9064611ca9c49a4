"""Tests for the session lifecycle: login, startup revalidation and logout."""

import asyncio

import pytest

from attendance_client.auth import SessionManager, SessionState
from attendance_client.client import AttendanceApiClient
from attendance_client.exceptions import (
	AttendanceAuthError,
	AttendanceBusyError,
	AttendanceValidationError,
)
from attendance_client.session import SessionContext

from fakes import TEACHER_EMAIL, TEACHER_ID, TEACHER_PASSWORD, serve

STORED_IDENTITY = {
	"user_id": f"uid-{TEACHER_EMAIL}",
	"email": TEACHER_EMAIL,
	"refresh_token": f"refresh-{TEACHER_EMAIL}",
}


def _run(backend, identity, store, scenario):
	async def runner():
		async with serve(backend.build_app()) as (session, base_url):
			context = SessionContext()
			client = AttendanceApiClient(context, session, base_url=base_url)
			manager = SessionManager(client, identity, store, context)
			return await scenario(manager, client, context)
	return asyncio.run(runner())


def test_startup_without_stored_token_stays_logged_out(backend, identity, store):
	async def scenario(manager, client, context):
		assert await manager.revalidate_on_startup() is None
		return manager.state

	assert _run(backend, identity, store, scenario) is SessionState.UNAUTHENTICATED
	assert backend.requests == []
	assert identity.refresh_calls == []


def test_startup_without_identity_session_clears_stale_token(backend, identity, store):
	async def scenario(manager, client, context):
		await store.set_token("fresh-token-old")
		assert await manager.revalidate_on_startup() is None
		return await store.get_token()

	assert _run(backend, identity, store, scenario) is None
	assert backend.requests == []


def test_startup_revalidates_with_a_forced_refresh(backend, identity, store):
	async def scenario(manager, client, context):
		await store.set_token("fresh-token-old")
		await store.set_identity(STORED_IDENTITY)
		teacher_id = await manager.revalidate_on_startup()
		return teacher_id, manager.state, context.token, await store.get_token()

	teacher_id, state, token, stored = _run(backend, identity, store, scenario)

	assert teacher_id == TEACHER_ID
	assert state is SessionState.AUTHENTICATED
	assert identity.refresh_calls == [True]
	assert token == stored == "fresh-token-1"
	login_call = backend.calls("POST", "/api/auth/login")[0]
	assert login_call["token"] == "fresh-token-1"
	assert login_call["json"] == {"email": TEACHER_EMAIL}


def test_startup_rejection_falls_back_silently(backend, identity, store):
	backend.rejected_emails.add(TEACHER_EMAIL)

	async def scenario(manager, client, context):
		await store.set_token("fresh-token-old")
		await store.set_identity(STORED_IDENTITY)
		result = await manager.revalidate_on_startup()
		return result, manager, await store.get_token()

	result, manager, stored = _run(backend, identity, store, scenario)

	assert result is None
	assert manager.state is SessionState.UNAUTHENTICATED
	assert manager.last_error == "Teacher not found"
	assert stored is None
	assert manager.session is None


def test_startup_with_revoked_identity_falls_back(backend, identity, store):
	identity.revoked_refresh_tokens.add(STORED_IDENTITY["refresh_token"])

	async def scenario(manager, client, context):
		await store.set_token("fresh-token-old")
		await store.set_identity(STORED_IDENTITY)
		return await manager.revalidate_on_startup(), await store.get_token()

	assert _run(backend, identity, store, scenario) == (None, None)
	assert backend.requests == []


def test_login_persists_token_and_identity(backend, identity, store):
	async def scenario(manager, client, context):
		teacher_id = await manager.login(TEACHER_EMAIL, TEACHER_PASSWORD)
		return teacher_id, manager, await store.get_token(), await store.get_identity()

	teacher_id, manager, stored_token, stored_identity = _run(backend, identity, store, scenario)

	assert teacher_id == TEACHER_ID
	assert manager.is_authenticated
	assert manager.teacher_id == TEACHER_ID
	assert manager.session.email == TEACHER_EMAIL
	assert stored_token == "fresh-token-1"
	assert stored_identity == STORED_IDENTITY
	# The token from sign-in is never sent; a forced refresh always happens first
	assert identity.refresh_calls == [True]
	assert backend.calls("POST", "/api/auth/login")[0]["token"] == "fresh-token-1"


def test_login_rejected_by_backend_clears_token(backend, identity, store):
	backend.rejected_emails.add(TEACHER_EMAIL)

	async def scenario(manager, client, context):
		await store.set_token("fresh-token-stale")
		with pytest.raises(AttendanceAuthError, match="Login failed: Teacher not found"):
			await manager.login(TEACHER_EMAIL, TEACHER_PASSWORD)
		return manager.state, await store.get_token(), await store.get_identity()

	state, stored_token, stored_identity = _run(backend, identity, store, scenario)

	assert identity.sign_in_calls == [TEACHER_EMAIL]
	assert state is SessionState.UNAUTHENTICATED
	assert stored_token is None
	assert stored_identity is None


def test_login_with_wrong_password_reports_identity_message(backend, identity, store):
	async def scenario(manager, client, context):
		with pytest.raises(AttendanceAuthError, match="Login failed: Invalid email or password"):
			await manager.login(TEACHER_EMAIL, "wrong")
		return manager.state

	assert _run(backend, identity, store, scenario) is SessionState.UNAUTHENTICATED
	assert backend.requests == []


@pytest.mark.parametrize("email,password", [("", "secret"), (TEACHER_EMAIL, ""), ("   ", "secret")])
def test_login_requires_both_fields(backend, identity, store, email, password):
	async def scenario(manager, client, context):
		with pytest.raises(AttendanceValidationError):
			await manager.login(email, password)

	_run(backend, identity, store, scenario)
	assert identity.sign_in_calls == []


def test_second_login_while_first_is_pending_is_rejected(backend, identity, store):
	release = asyncio.Event()
	original_sign_in = identity.sign_in

	async def slow_sign_in(email, password):
		await release.wait()
		return await original_sign_in(email, password)

	identity.sign_in = slow_sign_in

	async def scenario(manager, client, context):
		first = asyncio.create_task(manager.login(TEACHER_EMAIL, TEACHER_PASSWORD))
		await asyncio.sleep(0)
		assert manager.state is SessionState.LOGIN_IN_PROGRESS

		with pytest.raises(AttendanceBusyError):
			await manager.login(TEACHER_EMAIL, TEACHER_PASSWORD)
		with pytest.raises(AttendanceBusyError):
			await manager.revalidate_on_startup()

		release.set()
		return await first

	assert _run(backend, identity, store, scenario) == TEACHER_ID
	assert len(backend.calls("POST", "/api/auth/login")) == 1


def test_logout_clears_everything(backend, identity, store):
	async def scenario(manager, client, context):
		await manager.login(TEACHER_EMAIL, TEACHER_PASSWORD)
		await manager.logout()
		return manager.state, context.token, await store.get_token(), await store.get_identity()

	assert _run(backend, identity, store, scenario) == (SessionState.UNAUTHENTICATED, None, None, None)


def test_rejected_token_on_a_call_ends_the_session(backend, identity, store):
	async def scenario(manager, client, context):
		await manager.login(TEACHER_EMAIL, TEACHER_PASSWORD)
		backend.revoked_tokens.add(context.token)
		with pytest.raises(AttendanceAuthError):
			await client.get_classes()
		return manager.state, context.token, await store.get_token()

	state, token, stored = _run(backend, identity, store, scenario)

	assert state is SessionState.UNAUTHENTICATED
	assert token is None
	assert stored is None
	assert len(backend.calls("GET", "/api/classes")) == 1


def test_session_survives_a_restart(backend, identity, store, token_path):
	from attendance_client.storage import TokenStore

	async def first_run(manager, client, context):
		return await manager.login(TEACHER_EMAIL, TEACHER_PASSWORD)

	async def second_run(manager, client, context):
		return await manager.revalidate_on_startup(), context.token

	assert _run(backend, identity, store, first_run) == TEACHER_ID
	teacher_id, token = _run(backend, identity, TokenStore(token_path), second_run)

	assert teacher_id == TEACHER_ID
	assert token == "fresh-token-2"


def test_startup_survives_an_unwritable_store(backend, identity, store):
	def failing_write(data):
		raise PermissionError("read-only file system")

	async def scenario(manager, client, context):
		await store.set_token("fresh-token-old")
		await store.set_identity(STORED_IDENTITY)
		store._write = failing_write
		return await manager.revalidate_on_startup(), manager

	result, manager = _run(backend, identity, store, scenario)

	assert result is None
	assert manager.state is SessionState.UNAUTHENTICATED
	assert manager.session is None
	assert "Could not save session" in manager.last_error


def test_login_reports_an_unwritable_store(backend, identity, store):
	def failing_write(data):
		raise PermissionError("read-only file system")

	async def scenario(manager, client, context):
		store._write = failing_write
		with pytest.raises(AttendanceAuthError, match="Login failed: Could not save session"):
			await manager.login(TEACHER_EMAIL, TEACHER_PASSWORD)
		return manager.state, context.token

	assert _run(backend, identity, store, scenario) == (SessionState.UNAUTHENTICATED, None)

"""Custom exceptions for the attendance client."""

from typing import Optional


class AttendanceError(Exception):
	"""Base exception for attendance client errors."""

	def __init__(self, message: str, status: Optional[int] = None) -> None:
		super().__init__(message)
		self.message = message
		self.status = status


class AttendanceAuthError(AttendanceError):
	"""Authentication failed or the token was rejected."""
	pass


class AttendanceUnauthenticatedError(AttendanceAuthError):
	"""An authenticated call was attempted without a valid session."""
	pass


class AttendanceValidationError(AttendanceError):
	"""Input was rejected, locally or by the server."""
	pass


class AttendanceConnectionError(AttendanceError):
	"""The request never reached the server."""
	pass


class AttendanceServerError(AttendanceError):
	"""The server failed or answered with something unusable."""
	pass


class AttendanceDataError(AttendanceServerError):
	"""Response data did not match the expected shape."""
	pass


class AttendanceBusyError(AttendanceError):
	"""A conflicting operation is still in flight."""
	pass


class AttendanceStorageError(AttendanceError):
	"""The local session file could not be written."""
	pass

"""Error taxonomy shared by the scheduling core and the HTTP layer.

Every error carries the human-readable reason that callers show to the
end user, and the HTTP status the API layer answers with.
"""

from __future__ import annotations


class ClinicError(Exception):
	status_code = 400

	def __init__(self, message: str) -> None:
		super().__init__(message)
		self.message = message


class NotFoundError(ClinicError):
	status_code = 404


class ForbiddenError(ClinicError):
	status_code = 403


class ConflictError(ClinicError):
	status_code = 409


class InvalidStateError(ClinicError):
	status_code = 409


class PreconditionError(ClinicError):
	status_code = 400


class InvalidInputError(ClinicError):
	status_code = 422

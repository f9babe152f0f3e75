from __future__ import annotations


class PortalError(RuntimeError):
    pass


class NotFoundError(PortalError):
    pass


class ConflictError(PortalError):
    pass


class PermissionDeniedError(PortalError):
    pass


class AuthError(PortalError):
    pass

"""
Identity providers.

The trading engine only needs to know who is acting right now, as an
``Identity`` or ``None``. Sessions, login and user management belong to
Django's auth framework and are not touched here.
"""

from typing import Optional, Protocol

from gridshare.domain.entities import Identity


class IdentityProvider(Protocol):
    def current(self) -> Optional[Identity]:
        ...


class StaticIdentityProvider:
    """Always reports the same identity (or nobody). Used by tests and scripts."""

    def __init__(self, identity: Optional[Identity] = None):
        self.identity = identity

    def current(self) -> Optional[Identity]:
        return self.identity


class RequestIdentityProvider:
    """Reads the authenticated user attached to a Django/DRF request."""

    def __init__(self, request):
        self.request = request

    def current(self) -> Optional[Identity]:
        user = getattr(self.request, "user", None)
        if user is None or not user.is_authenticated:
            return None
        name = user.get_full_name() or user.get_username()
        return Identity(id=str(user.pk), name=name)

from django.contrib.auth.models import AnonymousUser
from rest_framework import permissions
from rest_framework.authentication import BaseAuthentication

from exam_scheduling.services.backend import credential_from_request


class ForwardedCredentialAuthentication(BaseAuthentication):
    """
    Accept any bearer credential (header or ``accessToken`` cookie) without checking it.

    The examboard API validates the token when it is forwarded; this class only
    makes it available as ``request.auth``.
    """

    def authenticate(self, request):
        credential = credential_from_request(request._request)
        if not credential:
            return None
        return (AnonymousUser(), credential)

    def authenticate_header(self, request):
        return 'Bearer realm="examboard"'


class HasForwardedCredential(permissions.BasePermission):
    message = "Authentication credentials were not provided."

    def has_permission(self, request, view):
        return bool(request.auth)

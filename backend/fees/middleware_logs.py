import json
import logging
import traceback

from django.db import DatabaseError
from django.http.request import RawPostDataException
from django.utils.deprecation import MiddlewareMixin

from .domain_logs import UserActivityLog, ErrorLog

logger = logging.getLogger(__name__)

_MUTATING = ('POST', 'PUT', 'PATCH', 'DELETE')


def _request_user(request):
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        return user
    return None


def _json_payload(request):
    try:
        body = request.body
    except RawPostDataException:  # body already consumed as a stream
        return None
    if not body:
        return None
    try:
        return json.loads(body.decode('utf-8'))
    except (UnicodeDecodeError, ValueError):
        return None


class RequestActivityMiddleware(MiddlewareMixin):
    """Records mutating /api/ calls in UserActivityLog."""

    def process_response(self, request, response):
        if request.method not in _MUTATING or not request.path.startswith('/api/'):
            return response
        match = getattr(request, 'resolver_match', None)
        try:
            UserActivityLog.objects.create(
                user=_request_user(request),
                view_name=getattr(match, 'url_name', None),
                path=request.path,
                method=request.method,
                payload=_json_payload(request),
                status_code=getattr(response, 'status_code', None),
            )
        except DatabaseError:
            # activity logging must never turn a good response into a 500
            logger.warning("Could not record activity for %s %s", request.method, request.path, exc_info=True)
        return response


class ExceptionLoggingMiddleware(MiddlewareMixin):
    def process_exception(self, request, exception):
        logger.error("Unhandled error on %s %s: %s", request.method, request.path, exception)
        try:
            ErrorLog.objects.create(
                user=_request_user(request),
                path=request.path,
                method=request.method,
                message=str(exception),
                stack=traceback.format_exc(),
            )
        except DatabaseError:
            logger.warning("Could not persist ErrorLog row", exc_info=True)
        # returning None allows normal exception handling to continue
        return None

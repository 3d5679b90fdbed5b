# hc_core/common/middleware.py
from __future__ import annotations

from django.utils.deprecation import MiddlewareMixin

from hc_core.common.api.exceptions import ensure_request_id


class RequestIdMiddleware(MiddlewareMixin):
    """
    Attaches a request_id to every request (honouring an inbound X-Request-Id)
    and echoes it back on the response, so error envelopes and log lines can be
    correlated.
    """

    HEADER_META_KEY = "HTTP_X_REQUEST_ID"
    RESPONSE_HEADER = "X-Request-Id"

    def process_request(self, request):
        inbound = request.META.get(self.HEADER_META_KEY)
        if inbound:
            request.request_id = inbound[:64]
        ensure_request_id(request)
        return None

    def process_response(self, request, response):
        rid = getattr(request, "request_id", None)
        if rid and self.RESPONSE_HEADER not in response:
            response[self.RESPONSE_HEADER] = rid
        return response

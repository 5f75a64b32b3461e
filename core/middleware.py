# core/middleware.py
import hashlib

from django.conf import settings


def client_ip(request):
    if getattr(settings, "GATEWAY_TRUST_FORWARDED_FOR", False):
        xff = request.META.get("HTTP_X_FORWARDED_FOR")
        if xff:
            return xff.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


def device_fingerprint(request):
    explicit = (request.META.get("HTTP_X_DEVICE_ID") or "").strip()
    if explicit:
        return explicit[:128]
    ua = request.META.get("HTTP_USER_AGENT", "")
    lang = request.META.get("HTTP_ACCEPT_LANGUAGE", "")
    if not ua:
        return ""
    return hashlib.sha256(f"{ua}|{lang}".encode()).hexdigest()[:64]


class ClientContextMiddleware:
    """Attach request.client_context = {ip_address, user_agent, device_fingerprint}."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.client_context = {
            "ip_address": client_ip(request),
            "user_agent": request.META.get("HTTP_USER_AGENT", "")[:1000],
            "device_fingerprint": device_fingerprint(request),
        }
        return self.get_response(request)

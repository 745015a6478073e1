# src/seerr_gateway/exceptions.py

from typing import Optional

from .models import UpstreamResult


class GatewayException(Exception):
    """Base exception for gateway errors"""
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code:
            self.status_code = status_code


class RouteNotFound(GatewayException):
    """No route matches the method and path"""
    status_code = 404

    def __init__(self, message: str = "Not Found"):
        super().__init__(message)


class InvalidRequestBody(GatewayException):
    """Inbound body is not valid JSON"""
    status_code = 400

    def __init__(self, message: str = "Invalid JSON body"):
        super().__init__(message)


class UpstreamError(GatewayException):
    """An upstream call returned a failure result"""
    status_code = 502

    def __init__(self, result: UpstreamResult, fallback: str = "Upstream request failed"):
        super().__init__(result.message or fallback, result.status_code)
        self.result = result

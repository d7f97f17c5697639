"""
OTP Gateway Adapters
====================
Delivery adapters for the supported SMS gateways.
"""

from .base import BaseGateway, DispatchRequest
from .json_api import JsonGateway
from .signed_gov import (
    SignedGovGateway,
    build_form,
    compose_message,
    compute_signing_hash,
    encrypt_password,
)

__all__ = [
    "BaseGateway",
    "DispatchRequest",
    "JsonGateway",
    "SignedGovGateway",
    "build_form",
    "compose_message",
    "compute_signing_hash",
    "encrypt_password",
]

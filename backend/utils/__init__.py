"""
Utility modules package.
"""

from utils.signature import generate_signature, verify_signature, check_password

__all__ = [
    "generate_signature",
    "verify_signature",
    "check_password",
]

"""Multi-factor authentication with one-time codes."""

from adaptive_auth.mfa.codes import CodeHasher, OtpCodeGenerator
from adaptive_auth.mfa.manager import MfaCodeManager
from adaptive_auth.mfa.schemas import (
    ResendCodeRequest,
    SendCodeRequest,
    SendCodeResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
)

__all__ = [
    "CodeHasher",
    "OtpCodeGenerator",
    "MfaCodeManager",
    "ResendCodeRequest",
    "SendCodeRequest",
    "SendCodeResponse",
    "VerifyCodeRequest",
    "VerifyCodeResponse",
]

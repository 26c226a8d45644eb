"""MFA Code Manager - issues, resends and verifies one-time codes.

Each user has at most one live code session. Sending a code replaces
any previous session atomically. Only an HMAC of the code is stored.
Codes are delivered only after the session write has been stored; a
failed delivery undoes that write.

Expected rejections (rate limits, unknown users, expired or blocked
sessions, wrong codes) come back as failed responses carrying an
`AuthFailure`. Storage and delivery failures are logged and re-raised.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from adaptive_auth.common.config.rules import AuthRules
from adaptive_auth.common.constants import MfaConstants
from adaptive_auth.common.exceptions import AdaptiveAuthException, DeliveryError
from adaptive_auth.core.clock import Clock, utcnow
from adaptive_auth.core.results import AuthFailure, FailureReason
from adaptive_auth.core.types import MfaMethod, OtpState
from adaptive_auth.data.schemas import OtpSession
from adaptive_auth.integrations.delivery import CodeDeliveryChannel
from adaptive_auth.integrations.rate_limiter import RateLimiter
from adaptive_auth.mfa.codes import CodeHasher, OtpCodeGenerator
from adaptive_auth.mfa.schemas import (
    SendCodeRequest,
    SendCodeResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
)
from adaptive_auth.persistence.base import UnitOfWork
from adaptive_auth.sessions.manager import SessionManager

logger = logging.getLogger(__name__)

SENT_MESSAGES = {
    MfaMethod.SMS: "Verification code sent to your phone",
    MfaMethod.EMAIL: "Verification code sent to your email",
}

_STATE_FAILURES = {
    OtpState.USED: (FailureReason.ALREADY_USED, "Verification code has already been used"),
    OtpState.EXPIRED: (FailureReason.EXPIRED, "Verification code has expired"),
    OtpState.BLOCKED: (FailureReason.BLOCKED, "Too many failed attempts, request a new code"),
}


def _parse_session_id(session_id: str) -> Optional[str]:
    try:
        return str(uuid.UUID(session_id))
    except (ValueError, AttributeError, TypeError):
        return None


class MfaCodeManager:
    """One-time code lifecycle."""

    def __init__(
        self,
        uow: UnitOfWork,
        rate_limiter: RateLimiter,
        delivery: CodeDeliveryChannel,
        session_manager: SessionManager,
        hasher: CodeHasher,
        generator: Optional[OtpCodeGenerator] = None,
        rules: Optional[AuthRules] = None,
        clock: Clock = utcnow,
    ):
        """Initialize the manager.

        Args:
            uow: Unit of work for users and OTP sessions
            rate_limiter: Per-(ip, action) limiter
            delivery: Channel that sends the plaintext code
            session_manager: Mints the session token after verification
            hasher: Keyed code hasher
            generator: Code generator, random codes of the configured length by default
            rules: MFA rules, defaults when omitted
            clock: Current UTC time provider
        """
        self.rules = (rules or AuthRules()).mfa
        self.uow = uow
        self.rate_limiter = rate_limiter
        self.delivery = delivery
        self.session_manager = session_manager
        self.hasher = hasher
        self.generator = generator or OtpCodeGenerator(self.rules.code_length)
        self._clock = clock

    # ========== SEND ==========

    def send_code(
        self, request: SendCodeRequest, client_ip: str, user_agent: str = ""
    ) -> SendCodeResponse:
        """Issue a fresh code, replacing any live session for the user."""
        if not self.rate_limiter.can_attempt(
            client_ip, MfaConstants.REQUEST_ACTION, self.rules.max_requests
        ):
            return self._send_failure(
                FailureReason.RATE_LIMITED, "Too many code requests, try again later"
            )

        try:
            method = MfaMethod(request.method.strip().lower())
        except ValueError:
            return self._send_failure(
                FailureReason.UNSUPPORTED_METHOD, f"Unsupported MFA method: {request.method}"
            )

        try:
            user = self.uow.users.get_by_email(request.email)
            if user is None:
                self.rate_limiter.record_attempt(client_ip, MfaConstants.REQUEST_ACTION, False)
                return self._send_failure(FailureReason.USER_NOT_FOUND, "User not found")

            if method != user.mfa_option:
                self.rate_limiter.record_attempt(client_ip, MfaConstants.REQUEST_ACTION, False)
                return self._send_failure(
                    FailureReason.METHOD_MISMATCH,
                    "Requested method does not match the user's MFA preference",
                    configured_method=user.mfa_option.value,
                )

            now = self._clock()
            code = self.generator.generate()
            session_id = str(uuid.uuid4())
            session = OtpSession(
                session_id=session_id,
                user_id=user.user_id,
                email=user.email,
                code_hash=self.hasher.hash(session_id, code),
                method=method,
                created_at=now,
                expires_at=now + timedelta(minutes=self.rules.code_validity_minutes),
                max_attempts=self.rules.max_attempts,
                ip_address=client_ip,
                user_agent=user_agent,
            )
            replaced = self.uow.otp_sessions.replace_active_for_user(session)
            try:
                self.delivery.send(user, code, method)
            except DeliveryError:
                self.uow.otp_sessions.delete(session)
                raise
        except AdaptiveAuthException as e:
            logger.error(f"send_code failed for {request.email}: {e.message}", exc_info=True)
            raise

        self.rate_limiter.record_attempt(client_ip, MfaConstants.REQUEST_ACTION, True)
        logger.info(
            f"Verification code issued for user {user.user_id} via {method.value} "
            f"(replaced {replaced} previous session(s))"
        )
        return SendCodeResponse(
            success=True,
            message=SENT_MESSAGES[method],
            session_id=session.session_id,
            expires_at=session.expires_at,
            remaining_attempts=session.max_attempts,
            can_resend=False,
            next_resend_at=now + timedelta(minutes=self.rules.resend_cooldown_minutes),
        )

    # ========== VERIFY ==========

    def verify_code(self, request: VerifyCodeRequest, client_ip: str, user_agent: str = "") -> VerifyCodeResponse:
        """Check a code. State checks run before the code comparison and never count as attempts."""
        if not self.rate_limiter.can_attempt(
            client_ip, MfaConstants.VERIFY_ACTION, self.rules.max_verifications
        ):
            return self._verify_failure(
                FailureReason.RATE_LIMITED, "Too many verification attempts, try again later"
            )

        session_id = _parse_session_id(request.session_id)
        if session_id is None:
            return self._verify_failure(FailureReason.INVALID_SESSION, "Invalid session")

        now = self._clock()
        try:
            with self.uow.transaction():
                session = self.uow.otp_sessions.get(session_id)
                if session is None:
                    return self._verify_failure(FailureReason.SESSION_NOT_FOUND, "Invalid session")

                if session.email.strip().lower() != request.email.strip().lower():
                    logger.warning(f"Email mismatch on OTP session {session_id}")
                    return self._verify_failure(FailureReason.EMAIL_MISMATCH, "Invalid session")

                state = session.state(now)
                if state != OtpState.ACTIVE:
                    return self._state_failure(session, state)

                matched = self.hasher.verify(session.session_id, request.code, session.code_hash)
                session.attempt_count += 1

                if not matched:
                    if session.attempt_count >= session.max_attempts:
                        session.is_blocked = True
                        logger.warning(f"OTP session {session_id} blocked after {session.attempt_count} attempts")
                    self.uow.otp_sessions.update(session)
                else:
                    session.is_used = True
                    session.used_at = now
                    self.uow.otp_sessions.update(session)
                    token = self.session_manager.create_session(
                        user_id=session.user_id,
                        ip_address=client_ip,
                        user_agent=user_agent,
                    )
        except AdaptiveAuthException as e:
            logger.error(f"verify_code failed for session {session_id}: {e.message}", exc_info=True)
            raise

        self.rate_limiter.record_attempt(client_ip, MfaConstants.VERIFY_ACTION, matched)

        if not matched:
            return VerifyCodeResponse(
                success=False,
                message="Invalid verification code",
                remaining_attempts=session.remaining_attempts,
                is_locked=session.is_blocked,
                locked_until=session.expires_at if session.is_blocked else None,
                error=AuthFailure.of(
                    FailureReason.INVALID_CODE, "Invalid verification code",
                    remaining_attempts=session.remaining_attempts,
                ),
            )

        logger.info(f"Verification succeeded for user {session.user_id}")
        return VerifyCodeResponse(
            success=True,
            message="Verification successful",
            access_token=token,
            remaining_attempts=session.remaining_attempts,
        )

    # ========== RESEND ==========

    def resend_code(self, session_id: str, client_ip: str) -> SendCodeResponse:
        """Regenerate the code for a live session once the cooldown has passed.

        Resets the attempt count and the blocked flag; the previous code
        stops verifying.
        """
        if not self.rate_limiter.can_attempt(
            client_ip, MfaConstants.RESEND_ACTION, self.rules.max_resends
        ):
            return self._send_failure(
                FailureReason.RATE_LIMITED, "Too many resend requests, try again later"
            )

        parsed = _parse_session_id(session_id)
        if parsed is None:
            return self._send_failure(FailureReason.INVALID_SESSION, "Invalid session")

        now = self._clock()
        try:
            with self.uow.transaction():
                session = self.uow.otp_sessions.get(parsed)
                if session is None:
                    return self._send_failure(FailureReason.SESSION_NOT_FOUND, "Invalid session")
                if session.is_used:
                    return self._send_failure(*_STATE_FAILURES[OtpState.USED])
                if session.is_expired(now):
                    return self._send_failure(*_STATE_FAILURES[OtpState.EXPIRED])

                next_allowed = session.created_at + timedelta(minutes=self.rules.resend_cooldown_minutes)
                if now < next_allowed:
                    return self._send_failure(
                        FailureReason.COOLDOWN_ACTIVE,
                        f"Please wait before requesting a new code. Next resend allowed at {next_allowed.isoformat()}",
                        next_resend_at=next_allowed.isoformat(),
                    )

                user = self.uow.users.get(session.user_id)
                if user is None:
                    return self._send_failure(FailureReason.USER_NOT_FOUND, "User not found")

                previous = session.model_copy(deep=True)
                code = self.generator.generate()
                session.code_hash = self.hasher.hash(session.session_id, code)
                session.created_at = now
                session.expires_at = now + timedelta(minutes=self.rules.code_validity_minutes)
                session.attempt_count = 0
                session.is_blocked = False
                self.uow.otp_sessions.update(session)

            try:
                self.delivery.send(user, code, session.method)
            except DeliveryError:
                self.uow.otp_sessions.update(previous)
                raise
        except AdaptiveAuthException as e:
            logger.error(f"resend_code failed for session {parsed}: {e.message}", exc_info=True)
            raise

        self.rate_limiter.record_attempt(client_ip, MfaConstants.RESEND_ACTION, True)
        logger.info(f"Verification code resent for user {session.user_id} via {session.method.value}")
        return SendCodeResponse(
            success=True,
            message=SENT_MESSAGES[session.method],
            session_id=session.session_id,
            expires_at=session.expires_at,
            remaining_attempts=session.max_attempts,
            can_resend=False,
            next_resend_at=now + timedelta(minutes=self.rules.resend_cooldown_minutes),
        )

    # ========== MAINTENANCE ==========

    def is_session_valid(self, session_id: str) -> bool:
        parsed = _parse_session_id(session_id)
        if parsed is None:
            return False
        session = self.uow.otp_sessions.get(parsed)
        return session is not None and session.state(self._clock()) == OtpState.ACTIVE

    def cleanup_expired(self) -> int:
        """Delete code sessions past their expiry. Returns the count deleted."""
        deleted = self.uow.otp_sessions.delete_expired(self._clock())
        if deleted:
            logger.info(f"Deleted {deleted} expired OTP sessions")
        return deleted

    # ========== HELPERS ==========

    @staticmethod
    def _send_failure(reason: FailureReason, message: str, **details) -> SendCodeResponse:
        return SendCodeResponse(
            success=False, message=message, error=AuthFailure.of(reason, message, **details)
        )

    @staticmethod
    def _verify_failure(reason: FailureReason, message: str, **details) -> VerifyCodeResponse:
        return VerifyCodeResponse(
            success=False, message=message, error=AuthFailure.of(reason, message, **details)
        )

    def _state_failure(self, session: OtpSession, state: OtpState) -> VerifyCodeResponse:
        reason, message = _STATE_FAILURES[state]
        blocked = state == OtpState.BLOCKED
        return VerifyCodeResponse(
            success=False,
            message=message,
            remaining_attempts=session.remaining_attempts,
            is_locked=blocked,
            locked_until=session.expires_at if blocked else None,
            error=AuthFailure.of(reason, message),
        )

import inspect
import re
from functools import wraps


def redact_pii(text: str) -> str:
    """
    Redacts Personally Identifiable Information (PII) like emails and phone numbers.
    Demo profiles are keyed by phone number, so anything headed for a log goes through here.
    """
    if not text:
        return text

    # Redact Emails
    email_pattern = r'[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+'
    redacted = re.sub(email_pattern, '[REDACTED_EMAIL]', text)

    # Redact Phone numbers (10 digits, optionally separated)
    phone_pattern = r'\b\d{3}[-.]?\d{3}[-.]?\d{4}\b'
    redacted = re.sub(phone_pattern, '[REDACTED_PHONE]', redacted)

    return redacted


def mask_phone(phone_number: str) -> str:
    """Keep the last two digits so operators can still tell demo profiles apart."""
    if not phone_number or len(phone_number) <= 2:
        return "**"
    return "*" * (len(phone_number) - 2) + phone_number[-2:]


def _audit(session_id, action, details):
    from .logging import log_audit_action
    log_audit_action(session_id, action, details)


def audited(action: str):
    """Decorator for controller methods: writes STARTED/COMPLETED/FAILED audit records."""
    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(self, *args, **kwargs):
                _audit(self.session_id, f"STARTED_{action}", f"{func.__name__} started.")
                try:
                    result = await func(self, *args, **kwargs)
                except Exception as e:
                    _audit(self.session_id, f"FAILED_{action}", f"{func.__name__} failed: {str(e)}")
                    raise
                _audit(self.session_id, f"COMPLETED_{action}", f"{func.__name__} completed.")
                return result

            return async_wrapper

        @wraps(func)
        def wrapper(self, *args, **kwargs):
            _audit(self.session_id, f"STARTED_{action}", f"{func.__name__} started.")
            try:
                result = func(self, *args, **kwargs)
            except Exception as e:
                _audit(self.session_id, f"FAILED_{action}", f"{func.__name__} failed: {str(e)}")
                raise
            _audit(self.session_id, f"COMPLETED_{action}", f"{func.__name__} completed.")
            return result

        return wrapper
    return decorator

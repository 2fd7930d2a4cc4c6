"""
Request-scoped values passed explicitly into the service functions.

`Actor` is built once where a request or socket connection is
authenticated. `SideEffectOutcome` reports what happened to a secondary
write (invoice, notification, realtime push) without failing the primary one.
"""
from dataclasses import dataclass, field
from typing import Any
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of an operation."""
    user_id: int
    name: str
    role: str

    @classmethod
    def from_user(cls, user):
        return cls(user_id=user.pk, name=user.get_full_name(), role=user.role)

    @property
    def is_admin(self):
        return self.role == 'admin'

    @property
    def is_seller(self):
        return self.role == 'seller'

    @property
    def is_buyer(self):
        return self.role == 'buyer'


@dataclass(frozen=True)
class SideEffectOutcome:
    """Result of a secondary write: ok, or failed with a reason."""
    name: str
    ok: bool
    reason: str = ''
    value: Any = field(default=None, compare=False, repr=False)

    @classmethod
    def succeeded(cls, name, value=None):
        return cls(name=name, ok=True, value=value)

    @classmethod
    def failed(cls, name, reason):
        return cls(name=name, ok=False, reason=reason)

    def as_dict(self):
        data = {'name': self.name, 'ok': self.ok}
        if not self.ok:
            data['reason'] = self.reason
        return data


def run_side_effect(name, func, *args, **kwargs):
    """
    Call `func` and wrap the result in a SideEffectOutcome.

    Any exception is logged with its traceback and turned into a failed
    outcome; the caller decides whether to surface it.
    """
    try:
        value = func(*args, **kwargs)
    except Exception as exc:
        logger.exception(f"Side effect '{name}' failed: {exc}")
        return SideEffectOutcome.failed(name, str(exc) or exc.__class__.__name__)
    return SideEffectOutcome.succeeded(name, value)

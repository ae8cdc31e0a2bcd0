from dataclasses import dataclass
from typing import Optional

from ..models import UserRole
from .errors import AccessDeniedError


@dataclass(frozen=True)
class CallerIdentity:
    """Who is performing a ledger operation. Built by the HTTP layer."""
    user_id: int
    role: str
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @classmethod
    def from_user(cls, user) -> "CallerIdentity":
        return cls(user_id=user.id, role=user.role, name=user.full_name)


def ensure_job_access(job, caller: CallerIdentity) -> None:
    """Workers may only touch their own jobs; admins may touch any."""
    if caller.is_admin:
        return
    if job.worker_id != caller.user_id:
        raise AccessDeniedError(f"Access denied to job {job.ticket_id}")

from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class Role(str, Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"


@dataclass(frozen=True)
class Identity:
    subject_id: str
    role: Role

    @property
    def is_doctor(self) -> bool:
        return self.role == Role.DOCTOR


class IdentityProvider(Protocol):
    def verify(self, token: str) -> Identity:
        """Raises AuthenticationError for a bad, expired or incomplete token."""
        ...

    def issue(self, subject_id: str, role: Role) -> str:
        ...

"""Sign-up validation and registration with offline queueing."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date

from .connectivity import ConnectivityObserver
from .const import USERS_COLLECTION
from .exceptions import NetworkError, SeneParkingError, ValidationError
from .models import ResultStatus, ServiceResult
from .offline import OfflineMutationQueue
from .store.base import DocumentStore

_LOGGER = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
ALLOWED_EMAIL_DOMAINS = frozenset(
    {"gmail.com", "yahoo.com", "outlook.com", "hotmail.com", "icloud.com"}
)
MINIMUM_AGE = 16
MAX_PASSWORD_LENGTH = 30


@dataclass(frozen=True, slots=True)
class SignUpForm:
    first_name: str
    last_name: str
    email: str
    mobile_number: str
    date_of_birth: date
    university_code: str
    password: str


def _age_on(birth: date, today: date) -> int:
    years = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        years -= 1
    return years


def validate_sign_up(form: SignUpForm, *, today: date | None = None) -> dict[str, str]:
    """Return a map of field name to error message; empty when the form is valid."""
    errors: dict[str, str] = {}
    if not form.first_name.strip():
        errors["first_name"] = "First name cannot be empty."
    if not form.last_name.strip():
        errors["last_name"] = "Last name cannot be empty."

    if not form.email:
        errors["email"] = "Email cannot be empty."
    elif not _EMAIL_RE.match(form.email):
        errors["email"] = "Invalid email format."
    elif form.email.rsplit("@", 1)[-1].lower() not in ALLOWED_EMAIL_DOMAINS:
        errors["email"] = "Email domain not allowed."

    if not form.mobile_number:
        errors["mobile_number"] = "Mobile number cannot be empty."
    elif len(form.mobile_number) != 10 or not form.mobile_number.isdigit():
        errors["mobile_number"] = "Mobile number must be numeric and 10 digits."

    if _age_on(form.date_of_birth, today or date.today()) < MINIMUM_AGE:
        errors["date_of_birth"] = f"You must be at least {MINIMUM_AGE} years old."

    if not form.university_code:
        errors["university_code"] = "University code cannot be empty."
    elif not 6 <= len(form.university_code) <= 10 or not form.university_code.isdigit():
        errors["university_code"] = "University code should be between 6 - 10 numbers."

    if not form.password:
        errors["password"] = "Password cannot be empty."
    elif len(form.password) > MAX_PASSWORD_LENGTH:
        errors["password"] = f"Password cannot exceed {MAX_PASSWORD_LENGTH} characters."
    return errors


def registration_payload(form: SignUpForm) -> dict[str, str]:
    return {
        "firstName": form.first_name.strip(),
        "lastName": form.last_name.strip(),
        "email": form.email,
        "mobileNumber": form.mobile_number,
        "dateOfBirth": form.date_of_birth.isoformat(),
        "uniandesCode": form.university_code,
        "password": form.password,
    }


class UserService:
    """Register accounts, queueing them while the device is offline."""

    def __init__(
        self,
        store: DocumentStore,
        queue: OfflineMutationQueue,
        connectivity: ConnectivityObserver,
    ) -> None:
        self._store = store
        self._queue = queue
        self._connectivity = connectivity

    async def register_user(
        self,
        form: SignUpForm,
        *,
        today: date | None = None,
    ) -> ServiceResult:
        errors = validate_sign_up(form, today=today)
        if errors:
            raise ValidationError(next(iter(errors.values())), detail="; ".join(errors.values()))
        payload = registration_payload(form)
        if not self._connectivity.is_connected:
            self._queue.enqueue_registration(payload)
            return ServiceResult(
                ResultStatus.QUEUED,
                "You are offline. Your registration will be sent when you reconnect.",
            )
        try:
            document = await self._store.create_document(USERS_COLLECTION, payload)
        except NetworkError:
            _LOGGER.warning("Registration queued after network failure")
            self._queue.enqueue_registration(payload)
            return ServiceResult(
                ResultStatus.QUEUED,
                "Connection problem. Your registration will be sent when you reconnect.",
            )
        except SeneParkingError as exc:
            _LOGGER.warning("Registration failed: %s", exc)
            return ServiceResult(
                ResultStatus.FAILED,
                exc.user_message or "Server error or invalid response.",
            )
        return ServiceResult(
            ResultStatus.SAVED,
            "Registration successful.",
            document_id=document.id,
        )

"""
Submission checks for vacancy content.

Self-service vacancies must be complete when submitted; for
"we do it for you" the portal team writes the text, so only the
description (the employer's brief) is required.  Both modes need a way to
apply: an external URL, or an e-mail address when the portal's own apply
form is used.
"""

from collections.abc import Sequence

from credit_kernel.domain.values import InputType
from credit_kernel.exceptions import MissingFieldsError
from credit_kernel.models.vacancy import Vacancy

SELF_SERVICE_REQUIRED: tuple[str, ...] = (
    "title",
    "intro_txt",
    "description",
    "location",
    "region_id",
    "sector_id",
    "function_type_id",
)

WE_DO_IT_FOR_YOU_REQUIRED: tuple[str, ...] = ("description",)


def required_fields(input_type: InputType) -> Sequence[str]:
    if InputType(input_type) is InputType.WE_DO_IT_FOR_YOU:
        return WE_DO_IT_FOR_YOU_REQUIRED
    return SELF_SERVICE_REQUIRED


def _blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def missing_fields(vacancy: Vacancy) -> list[str]:
    missing = [f for f in required_fields(vacancy.input_type) if _blank(getattr(vacancy, f))]
    if vacancy.show_apply_form:
        if _blank(vacancy.application_email):
            missing.append("application_email")
    elif _blank(vacancy.apply_url):
        missing.append("apply_url")
    if vacancy.package_id is None:
        missing.append("package_id")
    return missing


def validate_for_submission(vacancy: Vacancy) -> None:
    """Raise MissingFieldsError listing every empty required field."""
    missing = missing_fields(vacancy)
    if missing:
        raise MissingFieldsError(missing)

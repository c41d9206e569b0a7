"""
Машина состояний объяснительной.

Чистые функции над записью посещаемости: не выполняют I/O и не
фиксируют транзакцию, только проверяют переход и меняют поля записи.

    none -> pending -> approved
                    -> rejected -> pending (повторная подача)
"""

from typing import Optional

from uwuweb.core.exceptions import ValidationError
from uwuweb.attendance.models.attendance import (
    AttendanceRecord,
    AttendanceStatus,
    JustificationStatus,
    JUSTIFIABLE_STATUSES,
)

STATUS_LABELS = {
    AttendanceStatus.present: "Present",
    AttendanceStatus.absent: "Absent",
    AttendanceStatus.late: "Late",
}

APPROVAL_LABELS = {
    JustificationStatus.none: "Not submitted",
    JustificationStatus.pending: "Pending",
    JustificationStatus.approved: "Approved",
    JustificationStatus.rejected: "Rejected",
}

# Состояния, из которых разрешена (повторная) подача
SUBMITTABLE_STATES = frozenset(
    {JustificationStatus.none, JustificationStatus.pending, JustificationStatus.rejected}
)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def current_state(record: AttendanceRecord) -> JustificationStatus:
    return record.justification_status or JustificationStatus.none


def has_justification(record: AttendanceRecord) -> bool:
    """Есть ли у записи непустой текст или файл"""
    return bool(_clean(record.justification_text) or _clean(record.justification_file))


def status_label(status: AttendanceStatus) -> str:
    return STATUS_LABELS.get(AttendanceStatus(status), "Unknown")


def approval_label(state: JustificationStatus) -> str:
    return APPROVAL_LABELS.get(JustificationStatus(state), "Unknown")


def submit(
    record: AttendanceRecord,
    text: Optional[str] = None,
    file_name: Optional[str] = None,
) -> AttendanceRecord:
    """
    Подать объяснительную.

    Новое значение текста или файла заменяет старое, пропущенное
    сохраняется. Результат переводит запись в pending.

    Raises:
        ValidationError: запись Present, объяснительная уже принята
            или после подачи нет ни текста, ни файла
    """
    if AttendanceStatus(record.status) not in JUSTIFIABLE_STATUSES:
        raise ValidationError(
            "Justification can only be submitted for absences or late arrivals",
            details={"status": AttendanceStatus(record.status).value},
        )

    state = current_state(record)
    if state not in SUBMITTABLE_STATES:
        raise ValidationError(
            "Justification has already been approved",
            details={"justification_status": state.value},
        )

    new_text = _clean(text)
    new_file = _clean(file_name)

    resulting_text = new_text if new_text is not None else _clean(record.justification_text)
    resulting_file = new_file if new_file is not None else _clean(record.justification_file)

    if not resulting_text and not resulting_file:
        raise ValidationError("Justification text or file is required")

    record.justification_text = resulting_text
    record.justification_file = resulting_file
    record.justification_status = JustificationStatus.pending
    record.reject_reason = None
    return record


def approve(record: AttendanceRecord) -> AttendanceRecord:
    if not has_justification(record):
        raise ValidationError("No justification has been submitted for this record")

    record.justification_status = JustificationStatus.approved
    record.reject_reason = None
    return record


def reject(record: AttendanceRecord, reason: Optional[str]) -> AttendanceRecord:
    reason = _clean(reason)
    if not reason:
        raise ValidationError("Reject reason is required when rejecting a justification")

    if not has_justification(record):
        raise ValidationError("No justification has been submitted for this record")

    record.justification_status = JustificationStatus.rejected
    record.reject_reason = reason
    return record


def decide(
    record: AttendanceRecord, approved: bool, reason: Optional[str] = None
) -> AttendanceRecord:
    """Решение учителя: approve или reject"""
    if approved:
        return approve(record)
    return reject(record, reason)


def clear_justification(record: AttendanceRecord) -> AttendanceRecord:
    """Сброс объяснительной (при смене статуса на Present)"""
    record.justification_text = None
    record.justification_file = None
    record.justification_status = JustificationStatus.none
    record.reject_reason = None
    return record

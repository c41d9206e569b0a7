"""
Предикаты доступа к записям посещаемости и объяснительным.

AccessPolicy создается на запрос поверх сессии запроса и передается во
все операции workflow. Правила:
- администратор имеет доступ всегда;
- актор другой роли или без scoped id доступа не имеет;
- сбой хранилища означает отказ в доступе (логируется, не пробрасывается).
"""

import logging
from functools import wraps

from sqlalchemy import and_, exists, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from uwuweb.core.exceptions import StorageError
from uwuweb.attendance.models.attendance import AttendanceRecord
from uwuweb.attendance.models.periods import Period
from uwuweb.roster.models.classes import ClassSubject, Enrollment, SchoolClass
from uwuweb.roster.models.roles import RoleType
from uwuweb.roster.models.users import StudentParent
from uwuweb.roster.schemas.auth import Actor

logger = logging.getLogger(__name__)


def access_predicate(func):
    """
    Декоратор предиката: администратор проходит сразу, ошибка
    хранилища превращается в отказ
    """

    @wraps(func)
    async def wrapper(self, actor: Actor, *args, **kwargs) -> bool:
        if actor.is_admin:
            return True

        try:
            return bool(await func(self, actor, *args, **kwargs))
        except (SQLAlchemyError, StorageError) as e:
            logger.error(
                f"Access check '{func.__name__}' failed, denying: {str(e)}",
                extra={
                    "predicate": func.__name__,
                    "role": actor.role.value,
                    "user_id": actor.user_id,
                    "exception_type": type(e).__name__,
                },
            )
            return False

    return wrapper


class AccessPolicy:
    """Проверки владения ресурсами для актора"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _exists(self, condition) -> bool:
        result = await self.session.execute(select(exists().where(condition)))
        return bool(result.scalar())

    def _teaches_class_condition(self, teacher_id: int, class_id_column):
        """Учитель ведет предмет в классе или является классным руководителем"""
        return or_(
            exists().where(
                and_(
                    ClassSubject.class_id == class_id_column,
                    ClassSubject.teacher_id == teacher_id,
                )
            ),
            exists().where(
                and_(
                    SchoolClass.id == class_id_column,
                    SchoolClass.homeroom_teacher_id == teacher_id,
                )
            ),
        )

    # === Базовые предикаты ===
    @access_predicate
    async def teacher_owns_class(self, actor: Actor, class_id: int) -> bool:
        if actor.teacher_id is None:
            return False
        result = await self.session.execute(
            select(self._teaches_class_condition(actor.teacher_id, class_id))
        )
        return result.scalar()

    @access_predicate
    async def teacher_owns_class_subject(
        self, actor: Actor, class_subject_id: int
    ) -> bool:
        if actor.teacher_id is None:
            return False
        return await self._exists(
            and_(
                ClassSubject.id == class_subject_id,
                ClassSubject.teacher_id == actor.teacher_id,
            )
        )

    @access_predicate
    async def teacher_owns_period(self, actor: Actor, period_id: int) -> bool:
        if actor.teacher_id is None:
            return False
        return await self._exists(
            and_(
                Period.id == period_id,
                Period.class_subject_id == ClassSubject.id,
                ClassSubject.teacher_id == actor.teacher_id,
            )
        )

    @access_predicate
    async def teacher_owns_enrollment(self, actor: Actor, enrollment_id: int) -> bool:
        if actor.teacher_id is None:
            return False
        return await self._exists(
            and_(
                Enrollment.id == enrollment_id,
                self._teaches_class_condition(actor.teacher_id, Enrollment.class_id),
            )
        )

    @access_predicate
    async def student_owns_enrollment(self, actor: Actor, enrollment_id: int) -> bool:
        if actor.student_id is None:
            return False
        return await self._exists(
            and_(
                Enrollment.id == enrollment_id,
                Enrollment.student_id == actor.student_id,
            )
        )

    @access_predicate
    async def parent_owns_student(self, actor: Actor, student_id: int) -> bool:
        if actor.parent_id is None:
            return False
        return await self._exists(
            and_(
                StudentParent.parent_id == actor.parent_id,
                StudentParent.student_id == student_id,
            )
        )

    @access_predicate
    async def teacher_teaches_student(self, actor: Actor, student_id: int) -> bool:
        if actor.teacher_id is None:
            return False
        return await self._exists(
            and_(
                Enrollment.student_id == student_id,
                self._teaches_class_condition(actor.teacher_id, Enrollment.class_id),
            )
        )

    @access_predicate
    async def parent_owns_enrollment(self, actor: Actor, enrollment_id: int) -> bool:
        """Родитель связан с учеником, которому принадлежит зачисление"""
        if actor.parent_id is None:
            return False
        return await self._exists(
            and_(
                Enrollment.id == enrollment_id,
                StudentParent.student_id == Enrollment.student_id,
                StudentParent.parent_id == actor.parent_id,
            )
        )

    # === Составные правила ===
    async def can_decide(self, actor: Actor, record: AttendanceRecord) -> bool:
        """Решение по объяснительной: учитель предмета или администратор"""
        if actor.role not in (RoleType.admin, RoleType.teacher):
            return False
        return await self.teacher_owns_period(actor, record.period_id)

    async def can_submit(self, actor: Actor, record: AttendanceRecord) -> bool:
        """Подача: ученик-владелец или администратор от его имени"""
        return await self.student_owns_enrollment(actor, record.enrollment_id)

    async def can_view(self, actor: Actor, record: AttendanceRecord) -> bool:
        if await self.can_decide(actor, record):
            return True
        if await self.can_submit(actor, record):
            return True
        if actor.role == RoleType.parent:
            return await self.parent_owns_enrollment(actor, record.enrollment_id)
        return False

    async def can_view_student(self, actor: Actor, student_id: int) -> bool:
        if actor.is_admin:
            return True
        if actor.role == RoleType.student:
            return actor.student_id == student_id
        if actor.role == RoleType.parent:
            return await self.parent_owns_student(actor, student_id)
        if actor.role == RoleType.teacher:
            return await self.teacher_teaches_student(actor, student_id)
        return False


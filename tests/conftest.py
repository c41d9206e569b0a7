import os
import tempfile
from datetime import date
from types import SimpleNamespace

# Окружение должно быть задано до импорта uwuweb
os.environ.setdefault("JWT_SECRET_KEY", "uwuweb-test-secret-key-0123456789abcdef")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("VALIDATE_CONFIG_ON_IMPORT", "false")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="uwuweb-uploads-"))

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from uwuweb.core.database import Base
from uwuweb.roster.crud.users import hash_password
from uwuweb.roster.models import (
    Role,
    RoleType,
    User,
    Teacher,
    Student,
    Parent,
    StudentParent,
    Subject,
    SchoolClass,
    ClassSubject,
    Enrollment,
)
from uwuweb.roster.schemas.auth import Actor
from uwuweb.attendance.models import AttendanceRecord, AttendanceStatus, Period
from uwuweb.attendance.services.file_storage import JustificationFileStorage

TEST_PASSWORD = "correct horse battery"


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage(tmp_path):
    return JustificationFileStorage(base_dir=str(tmp_path / "justifications"))


@pytest.fixture(scope="session")
def password_hash():
    # bcrypt медленный, один хеш на все тесты
    return hash_password(TEST_PASSWORD)


async def seed_school(session: AsyncSession, password_hash: str) -> SimpleNamespace:
    """
    Class 1A: homeroom and math teacher Mojca, students Ana and Bor,
    Ana's parent Petra. Class 2B: homeroom and art teacher Jure, student Cene.
    """
    roles = {code: Role(code=code, name=code.value.capitalize()) for code in RoleType}
    session.add_all(roles.values())
    await session.flush()

    def user(username, role):
        return User(username=username, pass_hash=password_hash, role_id=roles[role].id)

    users = {
        "admin": user("admin", RoleType.admin),
        "mojca": user("mojca", RoleType.teacher),
        "jure": user("jure", RoleType.teacher),
        "ana": user("ana", RoleType.student),
        "bor": user("bor", RoleType.student),
        "cene": user("cene", RoleType.student),
        "petra": user("petra", RoleType.parent),
    }
    session.add_all(users.values())
    await session.flush()

    mojca = Teacher(user_id=users["mojca"].id)
    jure = Teacher(user_id=users["jure"].id)
    ana = Student(
        user_id=users["ana"].id, first_name="Ana", last_name="Novak",
        dob=date(2010, 5, 1), class_code="1A",
    )
    bor = Student(
        user_id=users["bor"].id, first_name="Bor", last_name="Kranjc",
        dob=date(2010, 7, 9), class_code="1A",
    )
    cene = Student(
        user_id=users["cene"].id, first_name="Cene", last_name="Zupan",
        dob=date(2009, 2, 3), class_code="2B",
    )
    petra = Parent(user_id=users["petra"].id)
    session.add_all([mojca, jure, ana, bor, cene, petra])
    await session.flush()

    session.add(StudentParent(student_id=ana.id, parent_id=petra.id))

    math = Subject(name="Mathematics")
    art = Subject(name="Art")
    class_1a = SchoolClass(class_code="1A", title="1.A", homeroom_teacher_id=mojca.id)
    class_2b = SchoolClass(class_code="2B", title="2.B", homeroom_teacher_id=jure.id)
    session.add_all([math, art, class_1a, class_2b])
    await session.flush()

    math_1a = ClassSubject(class_id=class_1a.id, subject_id=math.id, teacher_id=mojca.id)
    art_2b = ClassSubject(class_id=class_2b.id, subject_id=art.id, teacher_id=jure.id)
    session.add_all([math_1a, art_2b])
    await session.flush()

    enroll_ana = Enrollment(student_id=ana.id, class_id=class_1a.id)
    enroll_bor = Enrollment(student_id=bor.id, class_id=class_1a.id)
    enroll_cene = Enrollment(student_id=cene.id, class_id=class_2b.id)
    session.add_all([enroll_ana, enroll_bor, enroll_cene])
    await session.flush()

    period_1 = Period(class_subject_id=math_1a.id, period_date=date(2024, 3, 4), period_label="1")
    period_2 = Period(class_subject_id=math_1a.id, period_date=date(2024, 3, 5), period_label="2")
    period_art = Period(class_subject_id=art_2b.id, period_date=date(2024, 3, 4), period_label="3")
    session.add_all([period_1, period_2, period_art])
    await session.flush()

    ana_absent = AttendanceRecord(
        enrollment_id=enroll_ana.id, period_id=period_1.id, status=AttendanceStatus.absent
    )
    bor_absent = AttendanceRecord(
        enrollment_id=enroll_bor.id, period_id=period_1.id, status=AttendanceStatus.absent
    )
    ana_present = AttendanceRecord(
        enrollment_id=enroll_ana.id, period_id=period_2.id, status=AttendanceStatus.present
    )
    cene_late = AttendanceRecord(
        enrollment_id=enroll_cene.id, period_id=period_art.id, status=AttendanceStatus.late
    )
    session.add_all([ana_absent, bor_absent, ana_present, cene_late])
    await session.commit()

    return SimpleNamespace(
        users=users,
        teachers=SimpleNamespace(mojca=mojca, jure=jure),
        students=SimpleNamespace(ana=ana, bor=bor, cene=cene),
        parent=petra,
        classes=SimpleNamespace(class_1a=class_1a, class_2b=class_2b),
        class_subjects=SimpleNamespace(math_1a=math_1a, art_2b=art_2b),
        enrollments=SimpleNamespace(ana=enroll_ana, bor=enroll_bor, cene=enroll_cene),
        periods=SimpleNamespace(period_1=period_1, period_2=period_2, art=period_art),
        records=SimpleNamespace(
            ana_absent=ana_absent,
            bor_absent=bor_absent,
            ana_present=ana_present,
            cene_late=cene_late,
        ),
        actors=SimpleNamespace(
            admin=Actor(role=RoleType.admin, user_id=users["admin"].id),
            mojca=Actor(role=RoleType.teacher, user_id=users["mojca"].id, scoped_id=mojca.id),
            jure=Actor(role=RoleType.teacher, user_id=users["jure"].id, scoped_id=jure.id),
            ana=Actor(role=RoleType.student, user_id=users["ana"].id, scoped_id=ana.id),
            bor=Actor(role=RoleType.student, user_id=users["bor"].id, scoped_id=bor.id),
            cene=Actor(role=RoleType.student, user_id=users["cene"].id, scoped_id=cene.id),
            petra=Actor(role=RoleType.parent, user_id=users["petra"].id, scoped_id=petra.id),
        ),
    )


@pytest_asyncio.fixture
async def school(session, password_hash):
    return await seed_school(session, password_hash)

import asyncio
import logging
from functools import wraps
from typing import Callable, TypeVar, Any, AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import text
from sqlalchemy.exc import (
    SQLAlchemyError,
    OperationalError,
    DisconnectionError,
    TimeoutError,
)
from asyncpg.exceptions import (
    ConnectionFailureError,
    ConnectionDoesNotExistError,
)

from .config import DATABASE_URL, DB_RETRY_ATTEMPTS, DB_RETRY_DELAY
from .exceptions import DatabaseConnectionError, DatabaseTimeoutError, StorageError

logger = logging.getLogger(__name__)

# Настройки engine
engine = create_async_engine(
    DATABASE_URL,
    echo=False,  # Отключаем echo в production
    pool_size=20,
    max_overflow=10,
    pool_timeout=30,
    pool_recycle=3600,  # Переподключение каждый час
    pool_pre_ping=True,  # Проверка соединения перед использованием
)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,  # Отключаем автофлаш для лучшего контроля
)

Base = declarative_base()

# Типы для retry decorator
F = TypeVar("F", bound=Callable[..., Any])


def db_retry(
    max_attempts: int = None,
    delay: float = None,
    backoff_factor: float = 2.0,
    exceptions: tuple = None,
) -> Callable[[F], F]:
    """
    Decorator для повторных попыток служебных операций с базой данных
    (проверка соединения, создание таблиц). Операции бизнес-логики
    через него не проходят: их сбой сразу превращается в StorageError.

    Args:
        max_attempts: Максимальное количество попыток (по умолчанию из config)
        delay: Начальная задержка между попытками (по умолчанию из config)
        backoff_factor: Множитель для увеличения задержки
        exceptions: Кортеж исключений для повтора
    """
    if max_attempts is None:
        max_attempts = DB_RETRY_ATTEMPTS

    if delay is None:
        delay = DB_RETRY_DELAY

    if exceptions is None:
        exceptions = (
            OperationalError,
            DisconnectionError,
            TimeoutError,
            ConnectionFailureError,
            ConnectionDoesNotExistError,
        )

    def decorator(func: F) -> F:
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            current_delay = delay
            last_exception = None

            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)

                except exceptions as e:
                    last_exception = e

                    if attempt == max_attempts - 1:
                        # Последняя попытка - выбрасываем исключение
                        break

                    logger.warning(
                        f"Database operation failed (attempt {attempt + 1}/{max_attempts}): {str(e)}",
                        extra={
                            "function": func.__name__,
                            "attempt": attempt + 1,
                            "max_attempts": max_attempts,
                            "exception_type": type(e).__name__,
                        },
                    )

                    await asyncio.sleep(current_delay)
                    current_delay *= backoff_factor

            logger.error(
                f"Database operation failed after {max_attempts} attempts: {str(last_exception)}",
                extra={
                    "function": func.__name__,
                    "max_attempts": max_attempts,
                    "final_exception": str(last_exception),
                },
            )

            # Преобразуем в наше исключение
            if isinstance(last_exception, TimeoutError):
                raise DatabaseTimeoutError(func.__name__, 30)
            raise DatabaseConnectionError(
                f"Database connection failed after {max_attempts} attempts"
            )

        return async_wrapper

    return decorator


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency для получения сессии базы данных на время одного запроса
    """
    session = async_session()

    try:
        yield session
    except Exception as e:
        await session.rollback()
        logger.error(f"Session error: {str(e)}")
        raise
    finally:
        await session.close()


class DatabaseManager:
    """Менеджер для управления служебными операциями с базой данных"""

    @staticmethod
    @db_retry()
    async def create_tables():
        """Создание всех таблиц в базе данных"""
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")

    @staticmethod
    @db_retry()
    async def check_connection():
        """Проверка соединения с базой данных"""
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection check successful")
        return True

    @staticmethod
    async def close_connections():
        """Закрытие всех соединений с базой данных"""
        try:
            await engine.dispose()
            logger.info("Database connections closed successfully")
        except Exception as e:
            logger.error(f"Error closing database connections: {str(e)}")


db_manager = DatabaseManager()


class TransactionManager:
    """
    Менеджер транзакций: операция целиком фиксируется или целиком
    откатывается. Повторных попыток нет.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def execute(self, operation: Callable, *args, **kwargs):
        """
        Выполнить операцию в транзакции
        """
        try:
            result = await operation(self.session, *args, **kwargs)
            await self.session.commit()
            return result
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Transaction failed: {str(e)}")
            raise


# Хелпер функции для использования в CRUD
async def with_db_transaction(
    session: AsyncSession, operation: Callable, *args, **kwargs
):
    """
    Хелпер для выполнения операции в одной транзакции
    """
    transaction_manager = TransactionManager(session)
    return await transaction_manager.execute(operation, *args, **kwargs)


# Декораторы для CRUD операций
def db_operation(func: F) -> F:
    """
    Декоратор для CRUD операций: логирование и преобразование ошибок
    SQLAlchemy в StorageError
    """

    @wraps(func)
    async def wrapper(*args, **kwargs):
        operation_name = func.__name__

        try:
            logger.debug(f"Starting database operation: {operation_name}")
            result = await func(*args, **kwargs)
            logger.debug(f"Database operation completed: {operation_name}")
            return result

        except SQLAlchemyError as e:
            logger.error(
                f"SQLAlchemy error in {operation_name}: {str(e)}",
                extra={"operation": operation_name, "exception_type": type(e).__name__},
            )
            raise StorageError(
                f"Storage operation '{operation_name}' failed",
                details={"operation": operation_name},
            ) from e

    return wrapper

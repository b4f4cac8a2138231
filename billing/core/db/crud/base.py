from typing import (
    Any,
    TypeVar,
    Generic,
    Type,
    Sequence,
)

from sqlalchemy import (
    SQLColumnExpression,
    and_,
    update as sa_update,
    delete as sa_delete,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.sql import Select, Delete, Update

from billing.core.exceptions.types import DatabaseException

T = TypeVar("T")


class BaseDB(Generic[T]):
    def __init__(self, model: Type[T]):
        self.model = model

    async def get_by_id(
        self, session: AsyncSession, id: Any, options: list[Any] = []
    ) -> T | None:
        """
        Asynchronously retrieves an instance of the model by its primary key.

        Args:
            session (AsyncSession): The asynchronous database session to use for the query.
            id (Any): The primary key value of the model instance to retrieve.
            options (list[Any], optional): A list of SQLAlchemy loader options (e.g., selectinload). Defaults to an empty list.

        Returns:
            T | None: The model instance if found, otherwise None.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt: Select = (
                select(self.model)
                .options(*options)
                .where(getattr(self.model, "id") == id)
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error retrieving {self.model.__name__} with ID {id}: {str(e)}"
            ) from e

    async def get_by_filters(
        self,
        session: AsyncSession,
        filters: dict,
        order_by: list[SQLColumnExpression] | None = None,
        options: list[Any] = [],
    ) -> Sequence[T]:
        """
        Asynchronously retrieves records of the model that match the given filters.

        Args:
            session (AsyncSession): The asynchronous database session to use for the query.
            filters (dict): A dictionary of filter conditions to apply to the query.
            order_by (list[SQLColumnExpression] | None, optional): A list of SQLAlchemy expressions to order the results. Defaults to None.
            options (list[Any], optional): A list of SQLAlchemy loader options (e.g., selectinload). Defaults to empty list.

        Returns:
            Sequence[T]: A sequence containing instances of the model that match the filters.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt = select(self.model).options(*options).filter_by(**filters)
            if order_by:
                stmt = stmt.order_by(*order_by)
            result = await session.execute(stmt)
            return result.scalars().all()
        except (SQLAlchemyError, ValueError) as e:
            raise DatabaseException(
                f"Error retrieving {self.model.__name__} with filters {filters}: {str(e)}"
            ) from e

    async def get_one_by_filters(
        self,
        session: AsyncSession,
        filters: dict,
        order_by: list[SQLColumnExpression] | None = None,
        options: list[Any] = [],
    ) -> T | None:
        """
        Asynchronously retrieves a single record of the model that matches the given filters.

        Args:
            session (AsyncSession): The asynchronous database session to use for the query.
            filters (dict): A dictionary of filter conditions to apply to the query.
            order_by (list[SQLColumnExpression] | None, optional): Ordering applied before taking the first row. Defaults to None.
            options (list[Any], optional): A list of SQLAlchemy loader options (e.g., selectinload). Defaults to empty list.

        Returns:
            T | None: An instance of the model if found, otherwise None.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt = select(self.model).options(*options).filter_by(**filters)
            if order_by:
                stmt = stmt.order_by(*order_by)
            result = await session.execute(stmt)
            return result.scalars().first()
        except (SQLAlchemyError, ValueError) as e:
            raise DatabaseException(
                f"Error retrieving one {self.model.__name__} with filters {filters}: {str(e)}"
            ) from e

    async def create(
        self,
        session: AsyncSession,
        data: dict,
        commit_self: bool = True,
    ) -> T:
        """
        Asynchronously creates and persists a new instance of the model using the provided data.
        Args:
            session (AsyncSession): The SQLAlchemy asynchronous session to use for database operations.
            data (dict): A dictionary of fields and values to initialize the model instance.
            commit_self (bool, optional): If True, commits the transaction and refreshes the object from the database. If False, only flushes the session. Defaults to True.
        Returns:
            T: The newly created and persisted model instance.
        Raises:
            DatabaseException: If an error occurs while creating the model instance or committing the transaction.
        """
        try:
            obj = self.model(**data)
            session.add(obj)

            if commit_self:
                await session.commit()
            else:
                await session.flush()

            await session.refresh(obj)
            return obj
        except (SQLAlchemyError, ValueError) as e:
            raise DatabaseException(
                f"Error creating {self.model.__name__}: {str(e)}"
            ) from e

    async def update(
        self, session: AsyncSession, id: Any, updates: dict, commit_self: bool = True
    ) -> T | None:
        """
        Asynchronously updates a record in the database with the given ID using the provided updates.
        Args:
            session (AsyncSession): The SQLAlchemy asynchronous session to use for the update operation.
            id (Any): The primary key of the record to update.
            updates (dict): A dictionary containing the fields and their new values to update in the record.
            commit_self (bool, optional): If True, commits the transaction after the update; otherwise, flushes the session. Defaults to True.
        Returns:
            T | None: The updated record as an instance of the model, or None if no record was found with the given ID.
        Raises:
            DatabaseException: If an error occurs while updating the record or committing the transaction.
        """
        try:
            stmt: Update = (
                sa_update(self.model)
                .where(self.model.id == id)  # type: ignore[attr-defined]
                .values(**updates)
                .returning(self.model)
                .execution_options(populate_existing=True)
            )
            result = await session.execute(stmt)
            obj = result.scalar_one_or_none()

            if commit_self:
                await session.commit()
            else:
                await session.flush()

            return obj
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error updating {self.model.__name__} with ID {id}: {str(e)}"
            ) from e

    async def delete_by_filters(
        self, session: AsyncSession, filters: dict, commit_self: bool = True
    ) -> int:
        """
        Asynchronously deletes records from the database that match the given filters.
        Args:
            session (AsyncSession): The SQLAlchemy asynchronous session to use for the delete operation.
            filters (dict): A dictionary of filter conditions to identify the records to delete.
            commit_self (bool, optional): If True, commits the transaction after the delete; otherwise, flushes the session. Defaults to True.
        Returns:
            int: The number of records deleted.
        Raises:
            DatabaseException: If an error occurs while deleting the records or committing the transaction.
        """
        try:
            stmt: Delete = sa_delete(self.model).where(
                and_(*[getattr(self.model, k) == v for k, v in filters.items()])
            )
            result = await session.execute(stmt)

            if commit_self:
                await session.commit()
            else:
                await session.flush()

            return result.rowcount  # type: ignore[attr-defined]
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error deleting {self.model.__name__} with filters {filters}: {str(e)}"
            ) from e

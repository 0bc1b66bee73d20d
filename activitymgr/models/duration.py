from sqlmodel import SQLModel, Field


class Duration(SQLModel, table=True):
    """
    A reusable contribution magnitude.

    The id *is* the value, in hundredths of a day (100 = one day), so a
    duration is never renamed: changing it means removing the old row and
    inserting a new one.
    """

    __tablename__ = "durations"

    id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    is_active: bool = Field(default=True)

    def __repr__(self) -> str:
        return f"Duration(id={self.id}, is_active={self.is_active})"

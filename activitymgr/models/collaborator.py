from sqlmodel import SQLModel, Field


class Collaborator(SQLModel, table=True):
    """A person who logs contributions. Logins are unique."""

    __tablename__ = "collaborators"

    id: int | None = Field(default=None, primary_key=True)
    login: str = Field(max_length=50, unique=True, index=True)
    first_name: str = Field(default="", max_length=50)
    last_name: str = Field(default="", max_length=50)
    is_active: bool = Field(default=True)

    def __repr__(self) -> str:
        return f"Collaborator(id={self.id}, login={self.login!r})"

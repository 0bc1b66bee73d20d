import datetime

from sqlmodel import SQLModel, Field


class Contribution(SQLModel, table=True):
    """
    Time logged by a collaborator on a leaf task for one calendar day.

    Identity is (contributor_id, task_id, year, month, day); duration_id
    references the Duration row whose id is the logged amount.
    """

    __tablename__ = "contributions"

    contributor_id: int = Field(foreign_key="collaborators.id", primary_key=True)
    task_id: int = Field(foreign_key="tasks.id", primary_key=True, index=True)
    year: int = Field(primary_key=True)
    month: int = Field(primary_key=True)
    day: int = Field(primary_key=True)
    duration_id: int = Field(foreign_key="durations.id", index=True)

    @property
    def date(self) -> datetime.date:
        return datetime.date(self.year, self.month, self.day)

    @classmethod
    def on(cls, day: datetime.date, contributor_id: int, task_id: int, duration_id: int) -> "Contribution":
        return cls(
            contributor_id=contributor_id,
            task_id=task_id,
            year=day.year,
            month=day.month,
            day=day.day,
            duration_id=duration_id,
        )

    def __repr__(self) -> str:
        return (
            f"Contribution(contributor={self.contributor_id}, task={self.task_id}, "
            f"date={self.year:04d}-{self.month:02d}-{self.day:02d}, "
            f"duration={self.duration_id})"
        )

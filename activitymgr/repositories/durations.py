from sqlmodel import select

from activitymgr.models import Duration
from activitymgr.repositories.base import BaseRepository


class DurationRepository(BaseRepository):

    def get(self, duration_id: int) -> Duration | None:
        return self.session.get(Duration, duration_id)

    def exists(self, duration_id: int) -> bool:
        return self.get(duration_id) is not None

    def find_all(self, active_only: bool = False) -> list[Duration]:
        query = select(Duration)
        if active_only:
            query = query.where(Duration.is_active == True)  # noqa: E712
        return list(self.session.exec(query.order_by(Duration.id)).all())

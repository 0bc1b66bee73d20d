from sqlmodel import select

from activitymgr.models import Collaborator
from activitymgr.repositories.base import BaseRepository
from activitymgr.schemas import CollaboratorOrder


class CollaboratorRepository(BaseRepository):

    def get(self, collaborator_id: int) -> Collaborator | None:
        return self.session.get(Collaborator, collaborator_id)

    def get_by_login(self, login: str) -> Collaborator | None:
        query = select(Collaborator).where(Collaborator.login == login)
        return self.session.exec(query).first()

    def login_exists(self, login: str, exclude_id: int | None = None) -> bool:
        query = select(Collaborator.id).where(Collaborator.login == login)
        if exclude_id is not None:
            query = query.where(Collaborator.id != exclude_id)
        return self.session.exec(query).first() is not None

    def find_all(
        self,
        order_by: CollaboratorOrder = CollaboratorOrder.LOGIN,
        ascending: bool = True,
        active_only: bool = False,
    ) -> list[Collaborator]:
        """List collaborators sorted on one column (ties broken by id)."""
        column = getattr(Collaborator, CollaboratorOrder(order_by).value)
        query = select(Collaborator)
        if active_only:
            query = query.where(Collaborator.is_active == True)  # noqa: E712
        if ascending:
            query = query.order_by(column.asc(), Collaborator.id.asc())
        else:
            query = query.order_by(column.desc(), Collaborator.id.desc())
        return list(self.session.exec(query).all())

from flask_sqlalchemy import SQLAlchemy

from membercard.domain.links import Link
from membercard.models.link import LinkModel


class SqlAlchemyLinkRepository:
    def __init__(self, db: SQLAlchemy) -> None:
        self._session = db.session

    def _to_domain(self, model: LinkModel) -> Link:
        return Link(
            id=model.id,
            line_user_id=model.line_user_id,
            account_username=model.account_username,
            link_method=model.link_method,
            is_active=bool(model.is_active),
            linked_at=model.linked_at,
        )

    def _active(self, for_update: bool, **criteria) -> Link | None:
        query = self._session.query(LinkModel).filter_by(is_active=True, **criteria)
        if for_update:
            query = query.with_for_update()
        model = query.one_or_none()
        return self._to_domain(model) if model is not None else None

    def get_active_for_identity(self, line_user_id: str, for_update: bool = False) -> Link | None:
        return self._active(for_update, line_user_id=line_user_id)

    def get_active_for_account(self, account_username: str, for_update: bool = False) -> Link | None:
        return self._active(for_update, account_username=account_username)

    def history(self, line_user_id: str) -> list[Link]:
        results: list[LinkModel] = (
            self._session.query(LinkModel)
            .filter_by(line_user_id=line_user_id)
            .order_by(LinkModel.linked_at.desc())
            .all()
        )
        return list(map(self._to_domain, results))

    def activate(self, line_user_id: str, account_username: str, link_method: str, now: int) -> Link:
        """Reactivate the existing row for this pair, or insert a new one."""
        model = (
            self._session.query(LinkModel)
            .filter_by(line_user_id=line_user_id, account_username=account_username)
            .with_for_update()
            .one_or_none()
        )
        if model is None:
            model = LinkModel(line_user_id=line_user_id, account_username=account_username)
            self._session.add(model)
        model.link_method = link_method
        model.is_active = True
        model.linked_at = now
        self._session.flush()
        return self._to_domain(model)

    def deactivate_for_identity(self, line_user_id: str) -> Link | None:
        model = (
            self._session.query(LinkModel)
            .filter_by(line_user_id=line_user_id, is_active=True)
            .with_for_update()
            .one_or_none()
        )
        if model is None:
            return None
        model.is_active = False
        self._session.flush()
        return self._to_domain(model)

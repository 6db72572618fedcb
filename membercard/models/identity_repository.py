from flask_sqlalchemy import SQLAlchemy

from membercard.domain.identity import Identity
from membercard.models.identity import IdentityModel


class SqlAlchemyIdentityRepository:
    def __init__(self, db: SQLAlchemy) -> None:
        self._session = db.session

    def _to_domain(self, model: IdentityModel) -> Identity:
        return Identity(
            line_user_id=model.line_user_id,
            display_name=model.display_name,
            picture_url=model.picture_url,
            status_message=model.status_message,
            language=model.language,
            is_linked=bool(model.is_linked),
            account_username=model.account_username,
            is_active=bool(model.is_active),
            last_sync_at=model.last_sync_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _get_model(self, line_user_id: str, for_update: bool = False) -> IdentityModel | None:
        query = self._session.query(IdentityModel).filter_by(line_user_id=line_user_id)
        if for_update:
            query = query.with_for_update()
        return query.one_or_none()

    def get(self, line_user_id: str, for_update: bool = False) -> Identity | None:
        model = self._get_model(line_user_id, for_update)
        return self._to_domain(model) if model is not None else None

    def upsert(self, line_user_id: str, fields: dict, now: int) -> Identity:
        """Create the identity on first contact, otherwise apply the observed profile fields."""
        model = self._get_model(line_user_id, for_update=True)
        if model is None:
            model = IdentityModel(
                line_user_id=line_user_id,
                language="th",
                is_linked=False,
                is_active=True,
                created_at=now,
            )
            self._session.add(model)
        for key, value in fields.items():
            setattr(model, key, value)
        # A returning user re-enables a soft-disabled identity
        model.is_active = True
        model.updated_at = now
        self._session.flush()
        return self._to_domain(model)

    def set_link_state(self, line_user_id: str, account_username: str | None, now: int) -> None:
        model = self._get_model(line_user_id)
        model.is_linked = account_username is not None
        model.account_username = account_username
        model.updated_at = now
        self._session.flush()

    def touch_last_sync(self, line_user_id: str, now: int) -> None:
        model = self._get_model(line_user_id)
        model.last_sync_at = now
        self._session.flush()

    def disable(self, line_user_id: str, now: int) -> None:
        model = self._get_model(line_user_id)
        if model is not None:
            model.is_active = False
            model.updated_at = now
            self._session.flush()

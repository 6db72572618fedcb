from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import func, or_

from membercard.domain.accounts import Account
from membercard.models.account import AccountModel


class SqlAlchemyAccountRepository:
    def __init__(self, db: SQLAlchemy) -> None:
        self._session = db.session

    def _to_domain(self, model: AccountModel) -> Account:
        return Account(
            username=model.username,
            mm_user=model.mm_user,
            acc_no=model.acc_no,
            bank_id=model.bank_id,
            bank_name=model.bank_name,
            first_name=model.first_name,
            last_name=model.last_name,
            tel=model.tel,
            email=model.email,
            available=model.available,
            credit_limit=model.credit_limit,
            bet_credit=model.bet_credit,
            tier=model.tier,
            points=model.points,
            total_transactions=model.total_transactions,
            total_deposits=model.total_deposits,
            total_withdrawals=model.total_withdrawals,
            member_ref=model.member_ref,
            register_time=model.register_time,
            last_login=model.last_login,
            is_active=bool(model.is_active),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _get_model(self, username: str, for_update: bool = False) -> AccountModel | None:
        query = self._session.query(AccountModel).filter_by(username=username)
        if for_update:
            query = query.with_for_update()
        return query.one_or_none()

    @staticmethod
    def _most_recently_active():
        return (
            func.coalesce(AccountModel.last_login, 0).desc(),
            func.coalesce(AccountModel.updated_at, 0).desc(),
        )

    def get(self, username: str, for_update: bool = False) -> Account | None:
        model = self._get_model(username, for_update)
        return self._to_domain(model) if model is not None else None

    def find_by_username(self, username: str) -> Account | None:
        """Exact (case-insensitive) username or mm_user match first, then containment."""
        active = self._session.query(AccountModel).filter(AccountModel.is_active.is_(True))
        lowered = username.strip().lower()
        result = (
            active.filter(
                or_(
                    func.lower(AccountModel.username) == lowered,
                    func.lower(AccountModel.mm_user) == lowered,
                )
            )
            .order_by(*self._most_recently_active())
            .first()
        )
        if result is None:
            result = (
                active.filter(AccountModel.username.icontains(username.strip(), autoescape=True))
                .order_by(*self._most_recently_active())
                .first()
            )
        return self._to_domain(result) if result is not None else None

    def search_by_display_name(self, display_name: str, limit: int = 20) -> list[Account]:
        """
        Candidate accounts for a messaging display name.

        Exact name matches (full name, first name or last name) come first,
        followed by token-wise containment matches; each group is ordered
        most recently active first.
        """
        name = display_name.strip()
        if not name:
            return []
        lowered = name.lower()
        full_name = func.coalesce(AccountModel.first_name, "") + " " + func.coalesce(AccountModel.last_name, "")
        active = self._session.query(AccountModel).filter(AccountModel.is_active.is_(True))

        exact: list[AccountModel] = (
            active.filter(
                or_(
                    func.lower(full_name) == lowered,
                    func.lower(AccountModel.first_name) == lowered,
                    func.lower(AccountModel.last_name) == lowered,
                )
            )
            .order_by(*self._most_recently_active())
            .limit(limit)
            .all()
        )

        tokens = [part for part in name.split() if len(part) > 1]
        conditions = [full_name.icontains(name, autoescape=True)]
        for token in tokens:
            conditions.append(AccountModel.first_name.icontains(token, autoescape=True))
            conditions.append(AccountModel.last_name.icontains(token, autoescape=True))
        seen = {m.username for m in exact}
        partial: list[AccountModel] = (
            active.filter(or_(*conditions))
            .order_by(*self._most_recently_active())
            .limit(limit)
            .all()
        )
        ranked = exact + [m for m in partial if m.username not in seen]
        return [self._to_domain(m) for m in ranked[:limit]]

    def upsert(self, username: str, fields: dict, now: int) -> Account:
        """Insert a new account or overwrite only the supplied columns of an existing one."""
        model = self._get_model(username, for_update=True)
        if model is None:
            model = AccountModel(
                username=username,
                mm_user=username,
                available=0.0,
                credit_limit=0.0,
                bet_credit=0.0,
                tier="Bronze",
                points=0,
                total_transactions=0,
                total_deposits=0.0,
                total_withdrawals=0.0,
                is_active=True,
                created_at=now,
            )
            self._session.add(model)
        for key, value in fields.items():
            setattr(model, key, value)
        model.updated_at = now
        self._session.flush()
        return self._to_domain(model)

    def update_fields(self, username: str, fields: dict, now: int) -> list[str]:
        """Apply the supplied columns and return the names of the ones whose value changed."""
        model = self._get_model(username, for_update=True)
        changed = []
        for key, value in fields.items():
            if getattr(model, key) != value:
                setattr(model, key, value)
                changed.append(key)
        model.updated_at = now
        self._session.flush()
        return changed

from flask_sqlalchemy import SQLAlchemy

from membercard.domain.transactions import Transaction
from membercard.models.transaction import TransactionModel


class SqlAlchemyTransactionRepository:
    def __init__(self, db: SQLAlchemy) -> None:
        self._session = db.session

    def _to_model(self, transaction: Transaction) -> TransactionModel:
        return TransactionModel(
            transaction_id=transaction.transaction_id,
            line_user_id=transaction.line_user_id,
            account_username=transaction.account_username,
            transaction_type=transaction.transaction_type,
            amount=transaction.amount,
            balance_before=transaction.balance_before,
            balance_after=transaction.balance_after,
            description=transaction.description,
            source=transaction.source,
            details=transaction.details,
            created_at=transaction.created_at,
        )

    def _to_domain(self, model: TransactionModel) -> Transaction:
        return Transaction(
            transaction_id=model.transaction_id,
            transaction_type=model.transaction_type,
            account_username=model.account_username,
            line_user_id=model.line_user_id,
            amount=model.amount,
            balance_before=model.balance_before,
            balance_after=model.balance_after,
            description=model.description,
            source=model.source,
            details=model.details,
            created_at=model.created_at,
        )

    def insert(self, transaction: Transaction, now: int) -> Transaction:
        if transaction.created_at is None:
            transaction.created_at = now
        self._session.add(self._to_model(transaction))
        self._session.flush()
        return transaction

    def exists(self, transaction_id: str) -> bool:
        return (
            self._session.query(TransactionModel.id).filter_by(transaction_id=transaction_id).first()
            is not None
        )

    def _filtered(self, line_user_id=None, account_username=None, transaction_type=None,
                  date_from=None, date_to=None):
        query = self._session.query(TransactionModel)
        if line_user_id:
            query = query.filter(TransactionModel.line_user_id == line_user_id)
        if account_username:
            query = query.filter(TransactionModel.account_username == account_username)
        if transaction_type:
            query = query.filter(TransactionModel.transaction_type == transaction_type)
        if date_from is not None:
            query = query.filter(TransactionModel.created_at >= date_from)
        if date_to is not None:
            query = query.filter(TransactionModel.created_at <= date_to)
        return query

    def find(self, limit: int = 10, offset: int = 0, **filters) -> list[Transaction]:
        results: list[TransactionModel] = (
            self._filtered(**filters)
            .order_by(TransactionModel.created_at.desc(), TransactionModel.id.desc())
            .limit(limit)
            .offset(offset)
            .all()
        )
        return list(map(self._to_domain, results))

    def count(self, **filters) -> int:
        return self._filtered(**filters).count()

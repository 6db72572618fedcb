from flask import Blueprint, jsonify, request

from membercard.extensions import db
from membercard.presentation import DEFAULT_PAGE_SIZE, list_transactions, present
from membercard.web import required

balance_bp = Blueprint("balance", __name__)


@balance_bp.route("/", methods=["GET"])
def index():
    line_user_id = required(request.args, "lineUserId")
    limit = request.args.get("limit", DEFAULT_PAGE_SIZE, type=int)
    view = present(db, line_user_id, limit=limit)
    return jsonify({"success": True, "isLinked": True, "data": view.to_dict()})


@balance_bp.route("/transactions", methods=["GET"])
def transactions():
    line_user_id = required(request.args, "lineUserId")
    page = list_transactions(
        db,
        line_user_id,
        limit=request.args.get("limit", DEFAULT_PAGE_SIZE),
        offset=request.args.get("offset", 0),
        transaction_type=request.args.get("type"),
        date_from=request.args.get("dateFrom"),
        date_to=request.args.get("dateTo"),
    )
    return jsonify({"success": True, **page})

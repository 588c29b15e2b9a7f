# Overview: Flask API routes for reports; read-only dashboards over sales facts and invoices.

from flask import Blueprint, jsonify, request

from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
def dashboard():
    """?start=YYYY-MM-DD&end=YYYY-MM-DD&store_id=1&top=5 (end date inclusive)"""
    report = reporting_service.dashboard_metrics(
        start=request.args.get("start"),
        end=request.args.get("end"),
        store_id=request.args.get("store_id", type=int),
        top_n=request.args.get("top", default=5, type=int),
    )
    return jsonify(report), 200


@reports_bp.get("/store-accounts")
def store_accounts():
    report = reporting_service.store_accounts(
        start=request.args.get("start"),
        end=request.args.get("end"),
        store_id=request.args.get("store_id", type=int),
    )
    return jsonify(report), 200


@reports_bp.get("/stores/<int:store_id>/summary")
def store_summary(store_id: int):
    report = reporting_service.store_summary(
        store_id,
        threshold=request.args.get("threshold", type=int),
    )
    return jsonify(report), 200

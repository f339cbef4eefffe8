# blueprints/clashes/sweep.py
from __future__ import annotations
import logging

import click
from flask import Flask, current_app
from flask.cli import AppGroup
from sqlalchemy import inspect, select
from sqlalchemy.orm import Session

from extensions import db
from models import Tender
from blueprints.activity.services import ActivitySink
from .errors import ClashError
from .priority import PriorityTable
from .services import check_and_store
from .uow import RECONCILE_LOCK, unit_of_work

log = logging.getLogger(__name__)


def sweep_all(session: Session, priorities: PriorityTable, sink: ActivitySink | None = None,
              id_prefix: str = "Clash") -> dict:
    """Полный проход по всем пинкодам; одна транзакция на пинкод."""
    pincodes = [p for (p,) in session.execute(select(Tender.pincode).distinct().order_by(Tender.pincode)).all()]
    summary = {"pincodes": len(pincodes), "created": 0, "updated": 0, "failed": []}
    for pin in pincodes:
        sink = sink or ActivitySink()
        try:
            with unit_of_work(session, sink, lock=RECONCILE_LOCK):
                result = check_and_store(session, pin, priorities, sink=sink, id_prefix=id_prefix)
        except ClashError as e:
            log.error("sweep failed for pincode %s: %s", pin, e.message,
                      extra={"event": "clash_sweep_failed", "pincode": pin})
            summary["failed"].append(pin)
            continue
        for o in result.outcomes:
            if o.action in ("created", "updated"):
                summary[o.action] += 1
    log.info("clash sweep done", extra={"event": "clash_sweep", **{k: v for k, v in summary.items() if k != "failed"}})
    return summary


def run_startup_sweep(app: Flask) -> dict | None:
    if not app.config.get("CLASH_STARTUP_SWEEP"):
        return None
    with app.app_context():
        # таблицы может ещё не быть (до alembic upgrade)
        if not inspect(db.engine).has_table("tenders"):
            return None
        return sweep_all(db.session, PriorityTable.from_config(app.config),
                         id_prefix=app.config.get("CLASH_ID_PREFIX", "Clash"))


clashes_cli = AppGroup("clashes", help="Clash engine maintenance commands.")


@clashes_cli.command("sweep")
def sweep_command():
    """Re-run clash detection over every pincode."""
    summary = sweep_all(db.session, PriorityTable.from_config(current_app.config),
                        id_prefix=current_app.config.get("CLASH_ID_PREFIX", "Clash"))
    click.echo(f"pincodes={summary['pincodes']} created={summary['created']} "
               f"updated={summary['updated']} failed={len(summary['failed'])}")

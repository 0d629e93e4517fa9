"""Repository pattern for database operations."""

from __future__ import annotations

import json
from typing import Any

from sqlalchemy import delete, desc, select

from .models import (
    AssumptionChangeDB,
    AssumptionOverrideSetDB,
    AssumptionPresetDB,
    DealEvaluationDB,
)
from .session import session_scope


def flatten_payload(payload: Any, prefix: str = "") -> dict[str, str]:
    """Flatten a nested override payload into dotted field paths."""
    flat: dict[str, str] = {}
    if isinstance(payload, dict):
        for key, value in payload.items():
            flat.update(flatten_payload(value, f"{prefix}.{key}" if prefix else str(key)))
    elif isinstance(payload, list):
        for index, value in enumerate(payload):
            flat.update(flatten_payload(value, f"{prefix}.{index}" if prefix else str(index)))
    elif payload is not None:
        flat[prefix] = str(payload)
    return flat


class Repository:
    """Data access repository for evaluations, override sets and presets."""

    # ==================== Evaluations ====================

    def save_evaluation(self, payload: dict[str, Any], deal_id: str = "") -> int:
        """Store a serialized evaluation and return its id."""
        with session_scope() as session:
            db_eval = DealEvaluationDB(
                deal_id=deal_id,
                ean=payload.get("ean", ""),
                quantity=payload.get("quantity", 0),
                decision=payload.get("decision", ""),
                score=payload.get("dealQualityScore", 0),
                assumptions_version=payload.get("assumptions", {}).get("version", ""),
                payload_json=json.dumps(payload),
            )
            session.add(db_eval)
            session.flush()
            return db_eval.id

    def get_evaluation(self, evaluation_id: int) -> dict[str, Any] | None:
        """Get a stored evaluation by id."""
        with session_scope() as session:
            db_eval = session.get(DealEvaluationDB, evaluation_id)
            if db_eval is None:
                return None
            return self._db_to_evaluation(db_eval)

    def list_evaluations(self, ean: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
        """List stored evaluations, newest first."""
        with session_scope() as session:
            query = select(DealEvaluationDB)
            if ean:
                query = query.where(DealEvaluationDB.ean == ean)
            query = query.order_by(desc(DealEvaluationDB.created_at), desc(DealEvaluationDB.id)).limit(limit)
            result = session.execute(query).scalars().all()
            return [self._db_to_evaluation(db) for db in result]

    # ==================== Override Sets ====================

    def save_override_set(
        self, deal_id: str, overrides: dict[str, Any], source: str = "override"
    ) -> None:
        """Create or replace the override set for a deal, recording each changed field."""
        with session_scope() as session:
            db_set = session.execute(
                select(AssumptionOverrideSetDB).where(AssumptionOverrideSetDB.deal_id == deal_id)
            ).scalar_one_or_none()

            old = json.loads(db_set.payload_json) if db_set else {}
            if db_set:
                db_set.payload_json = json.dumps(overrides)
            else:
                session.add(AssumptionOverrideSetDB(deal_id=deal_id, payload_json=json.dumps(overrides)))

            old_flat = flatten_payload(old)
            new_flat = flatten_payload(overrides)
            for field in sorted(set(old_flat) | set(new_flat)):
                if old_flat.get(field) != new_flat.get(field):
                    session.add(
                        AssumptionChangeDB(
                            deal_id=deal_id,
                            field=field,
                            old_value=old_flat.get(field),
                            new_value=new_flat.get(field),
                            source=source,
                        )
                    )

    def get_override_set(self, deal_id: str) -> dict[str, Any] | None:
        """Get the override payload stored for a deal."""
        with session_scope() as session:
            db_set = session.execute(
                select(AssumptionOverrideSetDB).where(AssumptionOverrideSetDB.deal_id == deal_id)
            ).scalar_one_or_none()
            return json.loads(db_set.payload_json) if db_set else None

    def delete_override_set(self, deal_id: str) -> bool:
        """Delete the override set for a deal. Returns True if one existed."""
        with session_scope() as session:
            result = session.execute(
                delete(AssumptionOverrideSetDB).where(AssumptionOverrideSetDB.deal_id == deal_id)
            )
            return result.rowcount > 0

    # ==================== Presets ====================

    def save_preset(self, name: str, overrides: dict[str, Any], description: str = "") -> None:
        """Create or update a named preset."""
        with session_scope() as session:
            db_preset = session.execute(
                select(AssumptionPresetDB).where(AssumptionPresetDB.name == name)
            ).scalar_one_or_none()
            if db_preset:
                db_preset.payload_json = json.dumps(overrides)
                db_preset.description = description
            else:
                session.add(
                    AssumptionPresetDB(
                        name=name, description=description, payload_json=json.dumps(overrides)
                    )
                )

    def get_preset(self, name: str) -> dict[str, Any] | None:
        """Get a preset by name."""
        with session_scope() as session:
            db_preset = session.execute(
                select(AssumptionPresetDB).where(AssumptionPresetDB.name == name)
            ).scalar_one_or_none()
            return self._db_to_preset(db_preset) if db_preset else None

    def list_presets(self) -> list[dict[str, Any]]:
        """List all presets by name."""
        with session_scope() as session:
            result = session.execute(
                select(AssumptionPresetDB).order_by(AssumptionPresetDB.name)
            ).scalars().all()
            return [self._db_to_preset(db) for db in result]

    def delete_preset(self, name: str) -> bool:
        """Delete a preset. Returns True if it existed."""
        with session_scope() as session:
            result = session.execute(
                delete(AssumptionPresetDB).where(AssumptionPresetDB.name == name)
            )
            return result.rowcount > 0

    # ==================== Audit Trail ====================

    def record_assumption_change(
        self,
        deal_id: str,
        field: str,
        old_value: str | None,
        new_value: str | None,
        source: str = "override",
    ) -> None:
        """Record one assumption field change."""
        with session_scope() as session:
            session.add(
                AssumptionChangeDB(
                    deal_id=deal_id,
                    field=field,
                    old_value=old_value,
                    new_value=new_value,
                    source=source,
                )
            )

    def get_assumption_history(self, deal_id: str, limit: int = 100) -> list[dict[str, Any]]:
        """Get the change history for a deal, newest first."""
        with session_scope() as session:
            query = (
                select(AssumptionChangeDB)
                .where(AssumptionChangeDB.deal_id == deal_id)
                .order_by(desc(AssumptionChangeDB.created_at), desc(AssumptionChangeDB.id))
                .limit(limit)
            )
            result = session.execute(query).scalars().all()
            return [
                {
                    "field": db.field,
                    "oldValue": db.old_value,
                    "newValue": db.new_value,
                    "source": db.source,
                    "timestamp": db.created_at.isoformat(),
                }
                for db in result
            ]

    # ==================== Converters ====================

    def _db_to_evaluation(self, db: DealEvaluationDB) -> dict[str, Any]:
        return {
            "id": db.id,
            "dealId": db.deal_id,
            "ean": db.ean,
            "quantity": db.quantity,
            "decision": db.decision,
            "score": db.score,
            "assumptionsVersion": db.assumptions_version,
            "createdAt": db.created_at.isoformat(),
            "payload": json.loads(db.payload_json),
        }

    def _db_to_preset(self, db: AssumptionPresetDB) -> dict[str, Any]:
        return {
            "name": db.name,
            "description": db.description,
            "overrides": json.loads(db.payload_json),
        }

from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from cartrack.time_utils import to_utc_z


OPERATION_SOURCE_EXPLICIT = "EXPLICIT"
OPERATION_SOURCE_INFERRED = "INFERRED"


class ImmutableOperationError(RuntimeError):
    """Raised when code tries to rewrite or remove an audit entry."""


class Operation(db.Model):
    """
    One lifecycle event of one cartridge. Append-only audit entry.

    ORPHAN-SAFE HISTORY:
    cartridge_id deliberately has no foreign key: disposing a cartridge
    deletes its row, but its operations stay. Everything a history screen
    needs (cartridge model/serial, location name, performer username) is
    copied onto the row at write time, so reads never join live tables.

    IMMUTABLE: the mapper events below refuse UPDATE and DELETE.
    """
    __tablename__ = "operations"
    __table_args__ = (
        db.CheckConstraint("count > 0", name="ck_operations_count_positive"),
        db.Index("ix_operations_cartridge_date", "cartridge_id", "operation_date"),
        db.Index("ix_operations_location_date", "location_id", "operation_date"),
        db.Index("ix_operations_type_date", "type", "operation_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    type = db.Column(db.String(16), nullable=False)
    count = db.Column(db.Integer, nullable=False, default=1)

    cartridge_id = db.Column(db.Integer, nullable=False)
    cartridge_model = db.Column(db.String(120), nullable=False)
    cartridge_serial_number = db.Column(db.String(120), nullable=True)

    location_id = db.Column(
        db.Integer,
        db.ForeignKey("locations.id", ondelete="SET NULL"),
        nullable=True,
    )
    location_name = db.Column(db.String(100), nullable=True)

    performed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    performed_by_username = db.Column(db.String(64), nullable=False)

    operation_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    notes = db.Column(db.String(500), nullable=True)

    # EXPLICIT = requested through perform_operation; INFERRED = synthesized from a direct edit
    source = db.Column(db.String(16), nullable=False, default=OPERATION_SOURCE_EXPLICIT)

    location = db.relationship("Location")
    performed_by = db.relationship("User", backref=db.backref("operations", lazy="dynamic"))

    def __repr__(self) -> str:
        return f"<Operation id={self.id} type={self.type} cartridge_id={self.cartridge_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "count": self.count,
            "cartridge_id": self.cartridge_id,
            "cartridge_model": self.cartridge_model,
            "cartridge_serial_number": self.cartridge_serial_number,
            "location_id": self.location_id,
            "location_name": self.location_name,
            "performed_by_id": self.performed_by_user_id,
            "performed_by_username": self.performed_by_username,
            "operation_date": to_utc_z(self.operation_date),
            "notes": self.notes,
            "source": self.source,
        }


@event.listens_for(Operation, "before_update")
def _refuse_operation_update(mapper, connection, target):
    raise ImmutableOperationError(f"Operation {target.id} is an audit entry and cannot be modified")


@event.listens_for(Operation, "before_delete")
def _refuse_operation_delete(mapper, connection, target):
    raise ImmutableOperationError(f"Operation {target.id} is an audit entry and cannot be deleted")

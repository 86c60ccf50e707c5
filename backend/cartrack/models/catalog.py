from __future__ import annotations

from ..extensions import db
from cartrack.time_utils import to_utc_z


class Location(db.Model):
    """
    A physical place a cartridge can sit: a storage room, an office, a printer corner.

    Referenced (never owned) by Cartridge.current_location_id and
    Operation.location_id. Deleting a location that still has cartridges is
    refused by lifecycle_service.delete_location.
    """
    __tablename__ = "locations"
    __table_args__ = (
        db.Index("ix_locations_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(100), nullable=False, unique=True)
    address = db.Column(db.String(200), nullable=False)
    cabinet = db.Column(db.String(50), nullable=True)
    contact_person = db.Column(db.String(100), nullable=True)
    contact_phone = db.Column(db.String(20), nullable=True)
    description = db.Column(db.String(500), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Location id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "cabinet": self.cabinet,
            "contact_person": self.contact_person,
            "contact_phone": self.contact_phone,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Cartridge(db.Model):
    """
    A tracked consumable unit.

    LIFECYCLE: status/current_location_id change only through
    services/lifecycle_service.py (explicit operations or audited edits).

    INVARIANT: REFILLING and DISPOSED cartridges have no location. The service
    layer enforces it and the CHECK constraint below backs it up.

    CONCURRENCY: version_id is an optimistic-lock counter; two writers that
    loaded the same version cannot both commit.
    """
    __tablename__ = "cartridges"
    __table_args__ = (
        db.CheckConstraint(
            "status NOT IN ('REFILLING', 'DISPOSED') OR current_location_id IS NULL",
            name="ck_cartridges_locationless_status",
        ),
        db.Index("ix_cartridges_location_status", "current_location_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    model = db.Column(db.String(120), nullable=False, index=True)
    serial_number = db.Column(db.String(120), nullable=True, unique=True)
    resource_pages = db.Column(db.Integer, nullable=True)
    description = db.Column(db.String(500), nullable=True)
    brand = db.Column(db.String(80), nullable=True)
    part_number = db.Column(db.String(80), nullable=True)
    color = db.Column(db.String(40), nullable=True)
    compatible_printers = db.Column(db.String(500), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="IN_STOCK", index=True)
    current_location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    current_location = db.relationship("Location", backref=db.backref("cartridges", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Cartridge id={self.id} model={self.model!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "model": self.model,
            "serial_number": self.serial_number,
            "resource_pages": self.resource_pages,
            "description": self.description,
            "brand": self.brand,
            "part_number": self.part_number,
            "color": self.color,
            "compatible_printers": self.compatible_printers,
            "status": self.status,
            "current_location_id": self.current_location_id,
            "current_location_name": self.current_location.name if self.current_location else None,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

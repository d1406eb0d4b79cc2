from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class ProductionOrder(db.Model):
    """
    Manufacturing order: consumes materials on start, yields finished goods
    on completion.

    LIFECYCLE:
        pending -> in_progress -> completed
        pending -> cancelled
    """
    __tablename__ = "production_orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_production_orders_number"),
        db.CheckConstraint("quantity > 0", name="ck_production_orders_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=True)

    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(64), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")
    materials = db.relationship(
        "ProductionMaterial",
        back_populates="production_order",
        cascade="all, delete-orphan",
        order_by="ProductionMaterial.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "status": self.status,
            "sales_order_id": self.sales_order_id,
            "materials": [m.to_dict() for m in self.materials],
            "started_at": to_utc_z(self.started_at),
            "completed_at": to_utc_z(self.completed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "notes": self.notes,
            "created_by": self.created_by,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class ProductionMaterial(db.Model):
    __tablename__ = "production_materials"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_production_materials_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    production_order_id = db.Column(
        db.Integer, db.ForeignKey("production_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    production_order = db.relationship("ProductionOrder", back_populates="materials")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_cost_cents": self.unit_cost_cents,
        }

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from .database import Base


class Plan(Base):
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    # None means unlimited
    asset_limit = Column(Integer, nullable=True)
    rack_limit = Column(Integer, nullable=True)
    user_limit = Column(Integer, nullable=True)
    price = Column(Float, nullable=True)
    enabled_features = Column(JSON, nullable=True)

    tenants = relationship("Tenant", back_populates="plan")


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=True)

    plan = relationship("Plan", back_populates="tenants")
    users = relationship("User", back_populates="tenant")


class User(Base):
    """Login identity plus profile (tenant, display name, role)."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    full_name = Column(String, nullable=True)
    role = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    tenant = relationship("Tenant", back_populates="users")
    todos = relationship("Todo", back_populates="user", cascade="all, delete-orphan")

    @property
    def display_name(self):
        return self.full_name or self.email.split("@")[0]


class Location(Base):
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    parent_location_id = Column(Integer, ForeignKey("locations.id"), nullable=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    floor_plan_image_url = Column(String, nullable=True)
    grid_columns = Column(Integer, nullable=True)
    grid_rows = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    parent = relationship("Location", remote_side=[id], backref="children")
    racks = relationship("Rack", back_populates="location")

    @property
    def has_grid(self):
        return bool(self.grid_columns and self.grid_rows)


class Rack(Base):
    __tablename__ = "racks"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    name = Column(String, nullable=False, index=True)
    total_u = Column(Integer, nullable=False, default=42)  # Standard 42U
    # Grid cell on the location floor plan, 1-based
    pos_x = Column(Integer, nullable=True)
    pos_y = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    location = relationship("Location", back_populates="racks")
    assets = relationship("Asset", back_populates="rack", cascade="all, delete-orphan")

    __table_args__ = (CheckConstraint("total_u > 0", name="ck_racks_total_u_positive"),)

    @property
    def is_placed(self):
        return self.pos_x is not None and self.pos_y is not None


class Asset(Base):
    __tablename__ = "assets"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    rack_id = Column(Integer, ForeignKey("racks.id"), nullable=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    name = Column(String, nullable=False, index=True)
    asset_type = Column(String, nullable=True)  # SERVER, SWITCH, PATCH_PANEL, ENDPOINT_USER...
    status = Column(String, nullable=True)
    start_u = Column(Integer, nullable=True)  # Top-most U occupied, 1 = top of rack
    size_u = Column(Integer, nullable=True)
    details = Column(JSON, nullable=True)
    # Floor-plan cell for endpoints
    pos_x = Column(Integer, nullable=True)
    pos_y = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    rack = relationship("Rack", back_populates="assets")
    location = relationship("Location")
    ports = relationship(
        "Port", back_populates="asset", cascade="all, delete-orphan", order_by="Port.id"
    )

    @property
    def end_u(self):
        if self.start_u is None or self.size_u is None:
            return None
        return self.start_u + self.size_u - 1

    @property
    def is_placed(self):
        return self.pos_x is not None and self.pos_y is not None


class Port(Base):
    __tablename__ = "ports"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    asset_id = Column(Integer, ForeignKey("assets.id"), nullable=False)
    name = Column(String, nullable=False)  # e.g. "P1-F", "Gi1/0/1", "Jack"
    port_type = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    asset = relationship("Asset", back_populates="ports")
    connections_as_a = relationship(
        "Connection",
        foreign_keys="Connection.port_a_id",
        back_populates="port_a",
        cascade="all, delete-orphan",
    )
    connections_as_b = relationship(
        "Connection",
        foreign_keys="Connection.port_b_id",
        back_populates="port_b",
        cascade="all, delete-orphan",
    )

    __table_args__ = (UniqueConstraint("asset_id", "name", name="uq_ports_asset_name"),)

    @property
    def connection(self):
        links = self.connections_as_a + self.connections_as_b
        return links[0] if links else None

    @property
    def peer(self):
        link = self.connection
        if link is None:
            return None
        return link.port_b if link.port_a_id == self.id else link.port_a


class Connection(Base):
    __tablename__ = "connections"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    port_a_id = Column(Integer, ForeignKey("ports.id"), nullable=False, unique=True)
    port_b_id = Column(Integer, ForeignKey("ports.id"), nullable=False, unique=True)
    details = Column(JSON, nullable=True)  # cable brand/color/category/length_m
    created_at = Column(DateTime, server_default=func.now())

    port_a = relationship("Port", foreign_keys=[port_a_id], back_populates="connections_as_a")
    port_b = relationship("Port", foreign_keys=[port_b_id], back_populates="connections_as_b")

    __table_args__ = (CheckConstraint("port_a_id <> port_b_id", name="ck_connections_distinct_ports"),)


class Todo(Base):
    __tablename__ = "todos"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    text = Column(String, nullable=False)
    is_completed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="todos")

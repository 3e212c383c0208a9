"""Database models and session management."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    create_engine,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    relationship,
    sessionmaker,
)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class PropertyDB(Base):
    """Property database model."""

    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identifiers
    property_reference: Mapped[str] = mapped_column(String(200), unique=True, index=True)
    external_id: Mapped[str] = mapped_column(String(150), index=True)
    listing_url: Mapped[str] = mapped_column(Text)
    property_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Basic info
    title: Mapped[str] = mapped_column(Text, default="Untitled Property")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Price
    price: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True, index=True)
    currency: Mapped[str] = mapped_column(String(10), default="EUR")

    # Location
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    neighborhood: Mapped[str | None] = mapped_column(String(100), nullable=True)
    province: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country: Mapped[str] = mapped_column(String(100), default="Spain")
    zip_code: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Numeric features
    rooms: Mapped[int] = mapped_column(Integer, default=0, index=True)
    bathrooms: Mapped[int] = mapped_column(Integer, default=0)
    area: Mapped[float] = mapped_column(Float, default=0)
    lot_area: Mapped[int | None] = mapped_column(Integer, nullable=True)
    floor: Mapped[int | None] = mapped_column(Integer, nullable=True)
    floor_total: Mapped[int | None] = mapped_column(Integer, nullable=True)
    year_built: Mapped[int | None] = mapped_column(Integer, nullable=True)
    balcony_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    kitchen_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    exterior_size: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Descriptors
    property_type: Mapped[str] = mapped_column(String(100), default="Other")
    transaction: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="available")
    energy_rating: Mapped[str | None] = mapped_column(String(50), nullable=True)
    cooling_system: Mapped[str | None] = mapped_column(String(200), nullable=True)
    heating_source: Mapped[str | None] = mapped_column(String(200), nullable=True)
    exterior_type: Mapped[str | None] = mapped_column(String(200), nullable=True)
    floor_type: Mapped[str | None] = mapped_column(String(200), nullable=True)
    garden_type: Mapped[str | None] = mapped_column(String(200), nullable=True)
    roof_type: Mapped[str | None] = mapped_column(String(200), nullable=True)
    architectural_style: Mapped[str | None] = mapped_column(String(200), nullable=True)
    parking_type: Mapped[str | None] = mapped_column(String(200), nullable=True)
    gas_emission_class: Mapped[str | None] = mapped_column(String(50), nullable=True)
    general_view: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Agency
    agency_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    agency_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    agency_logo: Mapped[str | None] = mapped_column(Text, nullable=True)
    agency_location: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Amenities
    has_pool: Mapped[bool] = mapped_column(Boolean, default=False)
    has_garden: Mapped[bool] = mapped_column(Boolean, default=False)
    has_garage: Mapped[bool] = mapped_column(Boolean, default=False)
    has_barbeque_area: Mapped[bool] = mapped_column(Boolean, default=False)
    has_basement: Mapped[bool] = mapped_column(Boolean, default=False)
    has_courtyard: Mapped[bool] = mapped_column(Boolean, default=False)
    has_disabled_access: Mapped[bool] = mapped_column(Boolean, default=False)
    has_gated_entry: Mapped[bool] = mapped_column(Boolean, default=False)
    has_greenhouse: Mapped[bool] = mapped_column(Boolean, default=False)
    has_hottub: Mapped[bool] = mapped_column(Boolean, default=False)
    has_lawn: Mapped[bool] = mapped_column(Boolean, default=False)
    has_mother_in_law_unit: Mapped[bool] = mapped_column(Boolean, default=False)
    has_patio: Mapped[bool] = mapped_column(Boolean, default=False)
    has_pond: Mapped[bool] = mapped_column(Boolean, default=False)
    has_porch: Mapped[bool] = mapped_column(Boolean, default=False)
    has_private_patio: Mapped[bool] = mapped_column(Boolean, default=False)
    has_sports_court: Mapped[bool] = mapped_column(Boolean, default=False)
    has_sprinkler_system: Mapped[bool] = mapped_column(Boolean, default=False)
    is_waterfront: Mapped[bool] = mapped_column(Boolean, default=False)
    has_tennis_court: Mapped[bool] = mapped_column(Boolean, default=False)
    has_helipad: Mapped[bool] = mapped_column(Boolean, default=False)
    has_attic: Mapped[bool] = mapped_column(Boolean, default=False)
    has_cable_satellite: Mapped[bool] = mapped_column(Boolean, default=False)
    has_doublepane_windows: Mapped[bool] = mapped_column(Boolean, default=False)
    has_elevator: Mapped[bool] = mapped_column(Boolean, default=False)
    has_fireplace: Mapped[bool] = mapped_column(Boolean, default=False)
    furnished: Mapped[bool] = mapped_column(Boolean, default=False)
    has_hand_rails: Mapped[bool] = mapped_column(Boolean, default=False)
    has_cinema: Mapped[bool] = mapped_column(Boolean, default=False)
    has_intercom: Mapped[bool] = mapped_column(Boolean, default=False)
    has_jacuzzi: Mapped[bool] = mapped_column(Boolean, default=False)
    has_sauna: Mapped[bool] = mapped_column(Boolean, default=False)
    has_security_system: Mapped[bool] = mapped_column(Boolean, default=False)
    has_skylight: Mapped[bool] = mapped_column(Boolean, default=False)
    has_vaulted_ceiling: Mapped[bool] = mapped_column(Boolean, default=False)
    has_wet_bar: Mapped[bool] = mapped_column(Boolean, default=False)
    has_window_coverings: Mapped[bool] = mapped_column(Boolean, default=False)
    has_gym: Mapped[bool] = mapped_column(Boolean, default=False)
    has_terrace: Mapped[bool] = mapped_column(Boolean, default=False)
    has_sea_view: Mapped[bool] = mapped_column(Boolean, default=False)
    near_beach: Mapped[bool] = mapped_column(Boolean, default=False)

    # JSON fields
    floor_plans: Mapped[list] = mapped_column(JSON, default=list)
    features: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Media
    video_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    virtual_tour_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Metadata
    source_created_at: Mapped[str | None] = mapped_column(String(50), nullable=True)
    source_modified_at: Mapped[str | None] = mapped_column(String(50), nullable=True)
    scraped_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)

    images: Mapped[list["PropertyImageDB"]] = relationship(
        back_populates="property",
        cascade="all, delete-orphan",
        order_by="PropertyImageDB.position",
    )


class PropertyImageDB(Base):
    """Image rows belonging to a property, in page order."""

    __tablename__ = "property_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"), index=True
    )
    image_url: Mapped[str] = mapped_column(Text)
    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False)

    property: Mapped[PropertyDB] = relationship(back_populates="images")


class Database:
    """Engine and session factory owned by the process context."""

    def __init__(self, url: str):
        self.url = url
        self.engine = create_engine(url, echo=False)
        self._sessionmaker = sessionmaker(bind=self.engine, expire_on_commit=False)

    def session(self) -> Session:
        """Create database session."""
        return self._sessionmaker()

    def init(self) -> None:
        """Initialize database tables."""
        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        """Close pooled connections."""
        self.engine.dispose()

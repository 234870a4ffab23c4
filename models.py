"""Area, place and geometry models."""

from typing import Optional

from sqlalchemy import Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class Geometry(Base):
    """Simplified GeoJSON Feature for one area, kept apart because of its size."""

    __tablename__ = "geometries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    geojson: Mapped[str] = mapped_column(Text, nullable=False)


class Area(Base):
    """Administrative region: country (level 0), state/province (1), county/district (2)."""

    __tablename__ = "areas"
    __table_args__ = (
        Index("ix_areas_slug", "slug"),
        Index("ix_areas_parent", "parent_id"),
        Index("ix_areas_continent_level", "continent_name", "admin_level"),
        Index("ix_areas_country_level", "country_code", "admin_level"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    admin_type_name: Mapped[str] = mapped_column(String(100), nullable=False)
    admin_level: Mapped[int] = mapped_column(Integer, nullable=False)
    country_code: Mapped[str] = mapped_column(String(3), nullable=False)
    continent_name: Mapped[str] = mapped_column(String(50), nullable=False)
    parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("areas.id", ondelete="SET NULL"), nullable=True
    )
    centroid_lat: Mapped[float] = mapped_column(Float, nullable=False)
    centroid_lng: Mapped[float] = mapped_column(Float, nullable=False)
    geometry_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("geometries.id", ondelete="SET NULL"), nullable=True
    )
    # Stable upstream key (ISO code for countries, ISO-ADMn-<shape> below)
    geoboundaries_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)

    geometry: Mapped[Optional[Geometry]] = relationship(Geometry)

    def to_dict(self, include_geojson: bool = False):
        data = {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "admin_type_name": self.admin_type_name,
            "admin_level": self.admin_level,
            "country_code": self.country_code,
            "continent_name": self.continent_name,
            "parent_id": self.parent_id,
            "centroid_lat": self.centroid_lat,
            "centroid_lng": self.centroid_lng,
            "geometry_id": self.geometry_id,
            "geoboundaries_id": self.geoboundaries_id,
        }
        if include_geojson:
            data["geojson"] = self.geometry.geojson if self.geometry else None
        return data


class Place(Base):
    """Point feature (city, capital or town).

    Continent and country are copied onto the row so scope queries need no joins.
    """

    __tablename__ = "places"
    __table_args__ = (
        Index("ix_places_continent", "continent_name"),
        Index("ix_places_country", "country_code"),
        Index("ix_places_adm1", "adm1_id"),
        Index("ix_places_adm2", "adm2_id"),
        Index("ix_places_continent_type", "continent_name", "feature_type"),
        Index("ix_places_country_type", "country_code", "feature_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    continent_name: Mapped[str] = mapped_column(String(50), nullable=False)
    country_code: Mapped[str] = mapped_column(String(3), nullable=False)
    adm1_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("areas.id", ondelete="SET NULL"), nullable=True
    )
    adm2_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("areas.id", ondelete="SET NULL"), nullable=True
    )
    feature_type: Mapped[str] = mapped_column(String(20), nullable=False)
    population: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    wikipedia_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    wikidata_id: Mapped[Optional[str]] = mapped_column(String(32), unique=True, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "continent_name": self.continent_name,
            "country_code": self.country_code,
            "adm1_id": self.adm1_id,
            "adm2_id": self.adm2_id,
            "feature_type": self.feature_type,
            "population": self.population,
            "image_url": self.image_url,
            "wikipedia_url": self.wikipedia_url,
            "wikidata_id": self.wikidata_id,
        }

"""
ORM models for papers, references, citation spans and citation links.

Spans and links are owned by their paper and are replaced as one
generation per extraction. References are read-only input to linking.

Dependencies: sqlalchemy
System role: Persistence schema
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from ..types import (
    BBox, CitationLink, CitationSpan, CitationStyle, Paper, Provenance, Reference, new_id,
)


class Base(DeclarativeBase):
    """Declarative base; every table registers on its metadata."""

    pass


class IDMixin:
    """String UUID primary key, portable across SQLite and PostgreSQL."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)


class TimestampMixin:
    """Creation timestamp in UTC, set once on insert."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


class PaperModel(IDMixin, TimestampMixin, Base):
    __tablename__ = "papers"

    title: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    pdf_path: Mapped[str] = mapped_column(Text, nullable=False)
    page_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    references: Mapped[List["ReferenceModel"]] = relationship(
        back_populates="paper", cascade="all, delete-orphan",
    )
    spans: Mapped[List["CitationSpanModel"]] = relationship(
        back_populates="paper", cascade="all, delete-orphan",
    )

    def to_domain(self) -> Paper:
        return Paper(
            id=self.id,
            title=self.title,
            pdf_path=self.pdf_path,
            page_count=self.page_count,
            created_at=self.created_at,
        )


class ReferenceModel(IDMixin, TimestampMixin, Base):
    __tablename__ = "references"
    __table_args__ = (Index("ix_references_paper_number", "paper_id", "number"),)

    paper_id: Mapped[str] = mapped_column(
        ForeignKey("papers.id", ondelete="CASCADE"), nullable=False,
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    raw_text: Mapped[str] = mapped_column(Text, nullable=False)
    authors: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    venue: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    doi: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    page_num: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    y_top: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    y_bottom: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    paper: Mapped[PaperModel] = relationship(back_populates="references")

    @classmethod
    def from_domain(cls, ref: Reference) -> "ReferenceModel":
        return cls(
            id=ref.id,
            paper_id=ref.paper_id,
            number=ref.number,
            raw_text=ref.raw_text,
            authors=ref.authors,
            title=ref.title,
            venue=ref.venue,
            year=ref.year,
            doi=ref.doi,
            page_num=ref.page_num,
            y_top=ref.y_top,
            y_bottom=ref.y_bottom,
            created_at=ref.created_at,
        )

    def to_domain(self) -> Reference:
        return Reference(
            id=self.id,
            paper_id=self.paper_id,
            number=self.number,
            raw_text=self.raw_text,
            authors=self.authors,
            title=self.title,
            venue=self.venue,
            year=self.year,
            doi=self.doi,
            page_num=self.page_num,
            y_top=self.y_top,
            y_bottom=self.y_bottom,
            created_at=self.created_at,
        )


class CitationSpanModel(IDMixin, TimestampMixin, Base):
    __tablename__ = "citation_spans"
    __table_args__ = (Index("ix_citation_spans_paper_page", "paper_id", "page_num"),)

    paper_id: Mapped[str] = mapped_column(
        ForeignKey("papers.id", ondelete="CASCADE"), nullable=False,
    )
    page_num: Mapped[int] = mapped_column(Integer, nullable=False)
    x1: Mapped[float] = mapped_column(Float, nullable=False)
    y1: Mapped[float] = mapped_column(Float, nullable=False)
    x2: Mapped[float] = mapped_column(Float, nullable=False)
    y2: Mapped[float] = mapped_column(Float, nullable=False)
    raw_text: Mapped[str] = mapped_column(Text, nullable=False)
    style: Mapped[str] = mapped_column(String(20), nullable=False)
    provenance: Mapped[str] = mapped_column(String(20), nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    dest_page: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    dest_y: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    marker_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    paper: Mapped[PaperModel] = relationship(back_populates="spans")
    links: Mapped[List["CitationLinkModel"]] = relationship(
        back_populates="span", cascade="all, delete-orphan",
    )

    @classmethod
    def from_domain(cls, span: CitationSpan) -> "CitationSpanModel":
        return cls(
            id=span.id,
            paper_id=span.paper_id,
            page_num=span.page_num,
            x1=span.bbox.x1,
            y1=span.bbox.y1,
            x2=span.bbox.x2,
            y2=span.bbox.y2,
            raw_text=span.raw_text,
            style=span.style.value,
            provenance=span.provenance.value,
            confidence=span.confidence,
            dest_page=span.dest_page,
            dest_y=span.dest_y,
            marker_number=span.marker_number,
            created_at=span.created_at,
        )

    def to_domain(self) -> CitationSpan:
        return CitationSpan(
            id=self.id,
            paper_id=self.paper_id,
            page_num=self.page_num,
            bbox=BBox(self.x1, self.y1, self.x2, self.y2),
            raw_text=self.raw_text,
            style=CitationStyle(self.style),
            provenance=Provenance(self.provenance),
            confidence=self.confidence,
            dest_page=self.dest_page,
            dest_y=self.dest_y,
            marker_number=self.marker_number,
            created_at=self.created_at,
        )


class CitationLinkModel(IDMixin, TimestampMixin, Base):
    __tablename__ = "citation_links"

    citation_span_id: Mapped[str] = mapped_column(
        ForeignKey("citation_spans.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    reference_id: Mapped[str] = mapped_column(
        ForeignKey("references.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    link_method: Mapped[str] = mapped_column(String(40), nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)

    span: Mapped[CitationSpanModel] = relationship(back_populates="links")

    @classmethod
    def from_domain(cls, link: CitationLink) -> "CitationLinkModel":
        return cls(
            id=link.id,
            citation_span_id=link.citation_span_id,
            reference_id=link.reference_id,
            link_method=link.link_method,
            confidence=link.confidence,
            created_at=link.created_at,
        )

    def to_domain(self) -> CitationLink:
        return CitationLink(
            id=self.id,
            citation_span_id=self.citation_span_id,
            reference_id=self.reference_id,
            link_method=self.link_method,
            confidence=self.confidence,
            created_at=self.created_at,
        )

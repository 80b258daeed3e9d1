"""
Citation repository.

Reads and writes papers, references, citation spans and citation links.
Every public method runs in its own transaction; database errors surface
as PersistenceError.

Dependencies: sqlalchemy
System role: Persistence boundary for the extraction engine
"""

import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..errors import PersistenceError
from ..types import CitationLink, CitationSpan, ExtractionStats, Paper, Reference
from .connection import session_scope
from .models import CitationLinkModel, CitationSpanModel, PaperModel, ReferenceModel

logger = logging.getLogger(__name__)


class CitationRepository:
    """
    Persistence operations for one database.

    Usage:
        repo = CitationRepository(get_session_factory(engine))
        paper = repo.add_paper(Paper(pdf_path="paper.pdf"))
        repo.replace_generation(paper.id, spans, links)
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    @contextmanager
    def _session(self, action: str, paper_id: Optional[str] = None) -> Iterator[Session]:
        try:
            with session_scope(self.session_factory) as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("Database error during %s: %s", action, exc)
            raise PersistenceError(f"Database error during {action}: {exc}", paper_id) from exc

    # ============================================================
    # Papers and references
    # ============================================================

    def add_paper(self, paper: Paper) -> Paper:
        with self._session("add_paper", paper.id) as session:
            session.add(PaperModel(
                id=paper.id,
                title=paper.title,
                pdf_path=paper.pdf_path,
                page_count=paper.page_count,
                created_at=paper.created_at,
            ))
        return paper

    def get_paper(self, paper_id: str) -> Optional[Paper]:
        with self._session("get_paper", paper_id) as session:
            row = session.get(PaperModel, paper_id)
            return row.to_domain() if row else None

    def add_references(self, paper_id: str, references: List[Reference]) -> List[Reference]:
        """Store references under paper_id (paper_id is set on each reference)"""
        with self._session("add_references", paper_id) as session:
            for ref in references:
                ref.paper_id = paper_id
                session.add(ReferenceModel.from_domain(ref))
        return references

    def get_references(self, paper_id: str) -> List[Reference]:
        """References of a paper, ordered by number"""
        with self._session("get_references", paper_id) as session:
            stmt = (
                select(ReferenceModel)
                .where(ReferenceModel.paper_id == paper_id)
                .order_by(ReferenceModel.number)
            )
            return [row.to_domain() for row in session.scalars(stmt)]

    # ============================================================
    # Generation replace
    # ============================================================

    def replace_generation(
        self,
        paper_id: str,
        spans: List[CitationSpan],
        links: List[CitationLink],
        page_count: Optional[int] = None,
    ) -> None:
        """
        Delete all spans/links of paper_id and insert the new generation.

        All-or-nothing: an invariant violation or database error rolls the
        transaction back and the previous generation stays readable.

        Raises:
            PersistenceError: ownership, page bounds or link target violated,
                or the database rejected the write
        """
        with self._session("replace_generation", paper_id) as session:
            paper = session.get(PaperModel, paper_id)
            if paper is None:
                raise PersistenceError(f"Paper does not exist: {paper_id}", paper_id)
            if page_count is not None:
                paper.page_count = page_count
            self._validate(session, paper_id, paper.page_count, spans, links)

            span_ids = select(CitationSpanModel.id).where(CitationSpanModel.paper_id == paper_id)
            deleted_links = session.execute(
                delete(CitationLinkModel).where(CitationLinkModel.citation_span_id.in_(span_ids))
                .execution_options(synchronize_session=False)
            ).rowcount
            deleted_spans = session.execute(
                delete(CitationSpanModel).where(CitationSpanModel.paper_id == paper_id)
                .execution_options(synchronize_session=False)
            ).rowcount

            session.add_all(CitationSpanModel.from_domain(s) for s in spans)
            session.flush()
            session.add_all(CitationLinkModel.from_domain(link) for link in links)
            session.flush()

        logger.info(
            "Replaced generation for paper %s: -%d/-%d, +%d spans/+%d links",
            paper_id, deleted_spans, deleted_links, len(spans), len(links),
        )

    def _validate(
        self,
        session: Session,
        paper_id: str,
        page_count: Optional[int],
        spans: List[CitationSpan],
        links: List[CitationLink],
    ) -> None:
        span_ids = set()
        for span in spans:
            if span.paper_id != paper_id:
                raise PersistenceError(
                    f"Span {span.id} belongs to paper {span.paper_id!r}, not {paper_id!r}", paper_id,
                )
            if span.page_num < 1 or (page_count is not None and span.page_num > page_count):
                raise PersistenceError(
                    f"Span {span.id} page {span.page_num} outside 1..{page_count}", paper_id,
                )
            span_ids.add(span.id)

        ref_ids = set(session.scalars(
            select(ReferenceModel.id).where(ReferenceModel.paper_id == paper_id)
        ))
        for link in links:
            if link.citation_span_id not in span_ids:
                raise PersistenceError(f"Link {link.id} points at a span outside this generation", paper_id)
            if link.reference_id not in ref_ids:
                raise PersistenceError(f"Link {link.id} points at a reference of another paper", paper_id)

    def delete_citations(self, paper_id: str) -> int:
        """Delete every span and link of a paper; returns the number of spans removed"""
        with self._session("delete_citations", paper_id) as session:
            span_ids = select(CitationSpanModel.id).where(CitationSpanModel.paper_id == paper_id)
            session.execute(
                delete(CitationLinkModel).where(CitationLinkModel.citation_span_id.in_(span_ids))
                .execution_options(synchronize_session=False)
            )
            return session.execute(
                delete(CitationSpanModel).where(CitationSpanModel.paper_id == paper_id)
                .execution_options(synchronize_session=False)
            ).rowcount

    # ============================================================
    # Span queries
    # ============================================================

    def _span_order(self):
        return (CitationSpanModel.page_num, CitationSpanModel.y1, CitationSpanModel.x1, CitationSpanModel.id)

    def get_spans(self, paper_id: str, limit: Optional[int] = None, offset: int = 0) -> List[CitationSpan]:
        """Spans of a paper in reading order, optionally paged"""
        with self._session("get_spans", paper_id) as session:
            stmt = (
                select(CitationSpanModel)
                .where(CitationSpanModel.paper_id == paper_id)
                .order_by(*self._span_order())
                .offset(offset)
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            return [row.to_domain() for row in session.scalars(stmt)]

    def get_spans_by_page(self, paper_id: str, page_num: int) -> List[CitationSpan]:
        with self._session("get_spans_by_page", paper_id) as session:
            stmt = (
                select(CitationSpanModel)
                .where(CitationSpanModel.paper_id == paper_id, CitationSpanModel.page_num == page_num)
                .order_by(*self._span_order())
            )
            return [row.to_domain() for row in session.scalars(stmt)]

    def get_span(self, span_id: str) -> Optional[CitationSpan]:
        with self._session("get_span") as session:
            row = session.get(CitationSpanModel, span_id)
            return row.to_domain() if row else None

    def count_spans(self, paper_id: str) -> int:
        with self._session("count_spans", paper_id) as session:
            stmt = select(func.count()).select_from(CitationSpanModel).where(CitationSpanModel.paper_id == paper_id)
            return session.scalar(stmt) or 0

    def count_spans_by_provenance(self, paper_id: str) -> Dict[str, int]:
        with self._session("count_spans_by_provenance", paper_id) as session:
            stmt = (
                select(CitationSpanModel.provenance, func.count())
                .where(CitationSpanModel.paper_id == paper_id)
                .group_by(CitationSpanModel.provenance)
            )
            return {provenance: count for provenance, count in session.execute(stmt)}

    def get_spans_with_link_counts(self, paper_id: str) -> List[Tuple[CitationSpan, int]]:
        with self._session("get_spans_with_link_counts", paper_id) as session:
            stmt = (
                select(CitationSpanModel, func.count(CitationLinkModel.id))
                .outerjoin(CitationLinkModel, CitationLinkModel.citation_span_id == CitationSpanModel.id)
                .where(CitationSpanModel.paper_id == paper_id)
                .group_by(CitationSpanModel.id)
                .order_by(*self._span_order())
            )
            return [(row.to_domain(), count) for row, count in session.execute(stmt)]

    # ============================================================
    # Link queries
    # ============================================================

    def get_links_for_span(self, span_id: str) -> List[CitationLink]:
        with self._session("get_links_for_span") as session:
            stmt = (
                select(CitationLinkModel)
                .where(CitationLinkModel.citation_span_id == span_id)
                .order_by(CitationLinkModel.confidence.desc(), CitationLinkModel.id)
            )
            return [row.to_domain() for row in session.scalars(stmt)]

    def get_links_for_reference(self, reference_id: str) -> List[CitationLink]:
        with self._session("get_links_for_reference") as session:
            stmt = (
                select(CitationLinkModel)
                .where(CitationLinkModel.reference_id == reference_id)
                .order_by(CitationLinkModel.id)
            )
            return [row.to_domain() for row in session.scalars(stmt)]

    def get_references_for_span(self, span_id: str) -> List[Reference]:
        with self._session("get_references_for_span") as session:
            stmt = (
                select(ReferenceModel)
                .join(CitationLinkModel, CitationLinkModel.reference_id == ReferenceModel.id)
                .where(CitationLinkModel.citation_span_id == span_id)
                .order_by(ReferenceModel.number)
            )
            return [row.to_domain() for row in session.scalars(stmt)]

    def get_spans_for_reference(self, reference_id: str) -> List[CitationSpan]:
        with self._session("get_spans_for_reference") as session:
            stmt = (
                select(CitationSpanModel)
                .join(CitationLinkModel, CitationLinkModel.citation_span_id == CitationSpanModel.id)
                .where(CitationLinkModel.reference_id == reference_id)
                .order_by(*self._span_order())
            )
            return [row.to_domain() for row in session.scalars(stmt)]

    # ============================================================
    # Statistics
    # ============================================================

    def compute_stats(self, paper_id: str) -> ExtractionStats:
        """Aggregates over the persisted generation of a paper"""
        with self._session("compute_stats", paper_id) as session:
            total, avg = session.execute(
                select(func.count(CitationSpanModel.id), func.avg(CitationSpanModel.confidence))
                .where(CitationSpanModel.paper_id == paper_id)
            ).one()

            by_provenance = {
                provenance: count for provenance, count in session.execute(
                    select(CitationSpanModel.provenance, func.count())
                    .where(CitationSpanModel.paper_id == paper_id)
                    .group_by(CitationSpanModel.provenance)
                )
            }

            linked, link_count = session.execute(
                select(
                    func.count(func.distinct(CitationLinkModel.citation_span_id)),
                    func.count(CitationLinkModel.id),
                )
                .join(CitationSpanModel, CitationLinkModel.citation_span_id == CitationSpanModel.id)
                .where(CitationSpanModel.paper_id == paper_id)
            ).one()

        return ExtractionStats(
            total_spans=total or 0,
            spans_by_provenance=by_provenance,
            linked_count=linked or 0,
            link_count=link_count or 0,
            avg_confidence=float(avg) if total else 0.0,
        )

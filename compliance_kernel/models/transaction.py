"""
Module: compliance_kernel.models.transaction
Responsibility: ORM persistence for transactions, their lines and their
    recorded compliance outcome.

Architecture position: Kernel > Models.  May import from db/base.py and the
    domain value types it converts to and from.

Invariants enforced:
    - One row per business transaction id (unique ``transaction_id``).
    - ``version`` is the SQLAlchemy version counter: every UPDATE is issued
      as ``... WHERE version = <loaded version>``, so a concurrent writer
      makes the later flush fail with StaleDataError.
    - Status columns only hold known enum values (check constraints).
    - Line numbers are unique within a transaction.

Failure modes:
    - IntegrityError on a duplicate transaction id.
    - StaleDataError on flush when another writer moved the version.

Audit relevance:
    The override approver, justification and decision time are persisted
    with the transaction and never dropped by later saves.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from compliance_kernel.db.base import Base, TrackedBase
from compliance_kernel.domain.transaction import (
    OverrideStatus,
    Transaction,
    TransactionDirection,
    TransactionLine,
    TransactionType,
    ValidationStatus,
)


def _in_clause(column: str, enum_cls) -> str:
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"


class TransactionModel(TrackedBase):
    """Persistent transaction with its compliance record.

    Contract:
        ``to_dto`` / ``from_dto`` convert to and from the frozen
        ``Transaction``.  ``update_from_dto`` copies the mutable compliance
        fields onto a loaded row; identity fields are never rewritten.

    Guarantees:
        - ``version`` starts at 1 on INSERT and increases by one per UPDATE.
    """

    __tablename__ = "compliance_transactions"

    __table_args__ = (
        CheckConstraint(
            _in_clause("validation_status", ValidationStatus),
            name="ck_compliance_transactions_validation_status",
        ),
        CheckConstraint(
            _in_clause("override_status", OverrideStatus),
            name="ck_compliance_transactions_override_status",
        ),
        Index(
            "ix_compliance_transactions_customer_date",
            "customer_id", "transaction_date",
        ),
        Index(
            "ix_compliance_transactions_override_queue",
            "requires_override", "override_status",
        ),
    )

    transaction_id: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True,
    )
    external_id: Mapped[str] = mapped_column(String(100), nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    direction: Mapped[str] = mapped_column(String(20), nullable=False)
    customer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    transaction_date: Mapped[date] = mapped_column(nullable=False)
    origin_country: Mapped[str | None] = mapped_column(String(3), nullable=True)
    destination_country: Mapped[str | None] = mapped_column(
        String(3), nullable=True,
    )
    total_quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    validation_status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=ValidationStatus.PENDING.value,
    )
    requires_override: Mapped[bool] = mapped_column(nullable=False, default=False)
    override_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OverrideStatus.NONE.value,
    )
    override_approver: Mapped[str | None] = mapped_column(
        String(100), nullable=True,
    )
    override_justification: Mapped[str | None] = mapped_column(Text, nullable=True)
    override_decided_at: Mapped[datetime | None] = mapped_column(nullable=True)

    compliance_warnings: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list,
    )
    compliance_errors: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list,
    )
    violation_codes: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list,
    )
    licences_used: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list,
    )
    validated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    revalidation_count: Mapped[int] = mapped_column(nullable=False, default=0)

    version: Mapped[int] = mapped_column(nullable=False)

    lines: Mapped[list[TransactionLineModel]] = relationship(
        "TransactionLineModel",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionLineModel.line_number",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.transaction_id} "
            f"status={self.validation_status} v{self.version}>"
        )

    def to_dto(self) -> Transaction:
        """Convert ORM model to the frozen domain transaction."""
        return Transaction(
            transaction_id=self.transaction_id,
            external_id=self.external_id,
            transaction_type=TransactionType(self.transaction_type),
            direction=TransactionDirection(self.direction),
            customer_id=self.customer_id,
            transaction_date=self.transaction_date,
            lines=tuple(line.to_dto() for line in self.lines),
            origin_country=self.origin_country,
            destination_country=self.destination_country,
            total_quantity=self.total_quantity,
            total_value=self.total_value,
            validation_status=ValidationStatus(self.validation_status),
            requires_override=self.requires_override,
            override_status=OverrideStatus(self.override_status),
            override_approver=self.override_approver,
            override_justification=self.override_justification,
            override_decided_at=self.override_decided_at,
            compliance_warnings=tuple(self.compliance_warnings or ()),
            compliance_errors=tuple(self.compliance_errors or ()),
            violation_codes=tuple(self.violation_codes or ()),
            licences_used=tuple(self.licences_used or ()),
            validated_at=self.validated_at,
            revalidation_count=self.revalidation_count,
            version=self.version,
            created_by=self.created_by,
        )

    @classmethod
    def from_dto(cls, dto: Transaction) -> TransactionModel:
        """Create ORM model from a domain transaction (version is assigned on INSERT)."""
        model = cls(
            transaction_id=dto.transaction_id,
            external_id=dto.external_id,
            transaction_type=dto.transaction_type.value,
            direction=dto.direction.value,
            customer_id=dto.customer_id,
            transaction_date=dto.transaction_date,
            origin_country=dto.origin_country,
            destination_country=dto.destination_country,
            total_quantity=dto.total_quantity,
            total_value=dto.total_value,
            created_by=dto.created_by,
            lines=[TransactionLineModel.from_dto(line) for line in dto.lines],
        )
        model._copy_compliance_fields(dto)
        return model

    def update_from_dto(self, dto: Transaction, actor: str | None = None) -> None:
        """Copy the compliance record of ``dto`` onto this row."""
        self._copy_compliance_fields(dto)
        self.updated_by = actor or dto.override_approver or self.updated_by
        by_number = {line.line_number: line for line in self.lines}
        for line in dto.lines:
            model = by_number.get(line.line_number)
            if model is None:
                self.lines.append(TransactionLineModel.from_dto(line))
            else:
                model.apply_outcome(line)

    def _copy_compliance_fields(self, dto: Transaction) -> None:
        self.validation_status = dto.validation_status.value
        self.requires_override = dto.requires_override
        self.override_status = dto.override_status.value
        self.override_approver = dto.override_approver
        self.override_justification = dto.override_justification
        self.override_decided_at = dto.override_decided_at
        self.compliance_warnings = list(dto.compliance_warnings)
        self.compliance_errors = list(dto.compliance_errors)
        self.violation_codes = list(dto.violation_codes)
        self.licences_used = list(dto.licences_used)
        self.validated_at = dto.validated_at
        self.revalidation_count = dto.revalidation_count


class TransactionLineModel(Base):
    """Persistent transaction line with its per-line validation outcome."""

    __tablename__ = "compliance_transaction_lines"

    __table_args__ = (
        UniqueConstraint(
            "transaction_pk", "line_number",
            name="uq_compliance_transaction_lines_number",
        ),
    )

    transaction_pk: Mapped[UUID] = mapped_column(
        ForeignKey("compliance_transactions.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(nullable=False)
    substance_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_of_measure: Mapped[str] = mapped_column(String(10), nullable=False)
    base_unit_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    base_unit: Mapped[str] = mapped_column(String(10), nullable=False)
    line_value: Mapped[Decimal] = mapped_column(nullable=False)
    is_valid: Mapped[bool] = mapped_column(nullable=False, default=False)
    error_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    covering_licence_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True,
    )
    covering_licence_number: Mapped[str | None] = mapped_column(
        String(100), nullable=True,
    )

    transaction: Mapped[TransactionModel] = relationship(
        "TransactionModel", back_populates="lines",
    )

    def to_dto(self) -> TransactionLine:
        return TransactionLine(
            line_number=self.line_number,
            substance_code=self.substance_code,
            quantity=self.quantity,
            unit_of_measure=self.unit_of_measure,
            base_unit_quantity=self.base_unit_quantity,
            base_unit=self.base_unit,
            line_value=self.line_value,
            is_valid=self.is_valid,
            error_code=self.error_code,
            covering_licence_id=self.covering_licence_id,
            covering_licence_number=self.covering_licence_number,
        )

    @classmethod
    def from_dto(cls, dto: TransactionLine) -> TransactionLineModel:
        model = cls(
            line_number=dto.line_number,
            substance_code=dto.substance_code,
            quantity=dto.quantity,
            unit_of_measure=dto.unit_of_measure,
            base_unit_quantity=dto.base_unit_quantity,
            base_unit=dto.base_unit,
            line_value=dto.line_value,
        )
        model.apply_outcome(dto)
        return model

    def apply_outcome(self, dto: TransactionLine) -> None:
        self.is_valid = dto.is_valid
        self.error_code = dto.error_code
        self.covering_licence_id = dto.covering_licence_id
        self.covering_licence_number = dto.covering_licence_number

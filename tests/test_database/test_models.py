"""Test database models."""

from app.database.models import IngestionRecordModel
from app.models.ingestion import IngestionRecord, RecordStatus


class TestIngestionRecordModel:
    """Test IngestionRecordModel."""

    def test_should_declare_partial_unique_indexes(self):
        """Uniqueness is only enforced for stored records."""
        indexes = {
            index.name: index for index in IngestionRecordModel.__table__.indexes
        }

        transfer = indexes["uq_ingestion_record_stored_transfer_ref"]
        owner_content = indexes["uq_ingestion_record_stored_owner_content"]

        assert transfer.unique is True
        assert [c.name for c in transfer.columns] == ["transfer_ref"]
        assert owner_content.unique is True
        assert [c.name for c in owner_content.columns] == ["owner_id", "content_hash"]
        assert "stored" in str(transfer.dialect_options["sqlite"]["where"])

    def test_should_store_payment_amount_as_text(self):
        column = IngestionRecordModel.__table__.c.payment_amount

        assert column.type.python_type is str

    def test_should_render_repr(self):
        model = IngestionRecordModel(
            id="rec-1", owner_id="0xabc", status="pending", content_address=None
        )

        assert repr(model) == (
            "<IngestionRecordModel id=rec-1 owner=0xabc status=pending address=None>"
        )


class TestIngestionRecord:
    """Test the IngestionRecord domain model."""

    def test_should_only_count_stored_with_address_as_stored(self):
        record = IngestionRecord(
            id="rec-1",
            owner_id="0xabc",
            content_hash="a" * 64,
            payment_amount=1,
            size_bytes=1,
            status=RecordStatus.STORED,
        )

        assert record.is_stored is False
        assert record.model_copy(update={"content_address": "addr"}).is_stored

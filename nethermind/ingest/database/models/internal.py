from sqlalchemy import BigInteger, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, Timestamp


class IndexerCursor(Base):
    """
    Table storing the progress checkpoints of the indexer.  Holds one row per traversal direction:

        * ``main`` -- last block indexed moving forward towards the chain tip
        * ``backfill`` -- lowest block indexed moving backwards towards genesis
    """

    __tablename__ = "indexer_cursors"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    height: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[Timestamp]

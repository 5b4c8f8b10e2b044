from sqlalchemy import Engine


def migrate_up(db_engine: Engine):
    """Create Sqlalchemy DB Tables"""
    # pylint: disable=import-outside-toplevel,unused-import
    import nethermind.ingest.database.models.internal
    import nethermind.ingest.database.models.ledger

    from .models.base import Base

    # pylint: enable=import-outside-toplevel,unused-import

    Base.metadata.create_all(bind=db_engine)

from .ledger_writer import LedgerWriter

"""Import/export package."""

from billtracker.codec.exchange import CSV_HEADER, BillCodec

__all__ = ["CSV_HEADER", "BillCodec"]

"""invoice-dashboard — Turn invoice spreadsheets into sales summaries and trends."""

__version__ = "0.2.0"

DATE_COLUMN = "FECHA DE LA FACTURA"
AMOUNT_COLUMN = "IMPORTE TOTAL DE LA VENTA"
INVOICE_NUMBER_COLUMN = "Nº DE LA FACTURA"

REQUIRED_COLUMNS: list[str] = [DATE_COLUMN, AMOUNT_COLUMN, INVOICE_NUMBER_COLUMN]

from .base import BillingDocument, DocumentLine
from .invoice import Invoice, InvoiceLine
from .quote import Quote, QuoteLine

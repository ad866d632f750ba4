from .entity import Company, UserProfile
from .number_series import NumberSeries

# Reference data (kept in core so other apps can use them in choices)
from .vat import VatRate, Unit, VAT_PERCENTAGES

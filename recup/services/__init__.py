from recup.services.cache import TimedCache
from recup.services.catalog_service import CompetitionCatalog, normalize_competitions
from recup.services.registration_service import RegistrationClient, encode_registration
from recup.services.fee_service import (
    compute_fee, roster_cap, requires_school, fee_breakdown, format_rupiah,
)
from recup.services.payment_service import (
    SnapBridge, PaymentOutcome, PaymentHandlers, PaymentLink, generate_qr_png,
)

__all__ = [
    # cache
    "TimedCache",
    # remote reads / writes
    "CompetitionCatalog", "normalize_competitions",
    "RegistrationClient", "encode_registration",
    # fee rules
    "compute_fee", "roster_cap", "requires_school", "fee_breakdown", "format_rupiah",
    # payment
    "SnapBridge", "PaymentOutcome", "PaymentHandlers", "PaymentLink", "generate_qr_png",
]

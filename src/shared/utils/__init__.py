from src.shared.utils.datetime import ensure_utc, expires_after, utc_now
from src.shared.utils.generators import generate_cuid, generate_share_token
from src.shared.utils.sanitization import normalize_emails, parse_id_list

__all__ = [
    "generate_cuid",
    "generate_share_token",
    "utc_now",
    "ensure_utc",
    "expires_after",
    "normalize_emails",
    "parse_id_list",
]

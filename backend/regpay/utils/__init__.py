from .errors import error_response
from .phone import normalize_phone, mask_phone
from .email import send_email

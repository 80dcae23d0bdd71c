# Authentication module

from app.modules.auth.dependencies import (
    get_current_owner_id,
    get_current_user,
    get_account_service,
    get_otp_sender,
)
from app.modules.auth.accounts import AccountService, normalize_email

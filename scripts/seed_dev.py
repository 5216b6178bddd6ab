#!/usr/bin/env python
"""Seed a development user and print a session token for it.

- Ensures the dev user's coin account exists (INITIAL_COIN_BALANCE)
- Optionally stores a BYOK credential from DEV_BYOK_PROVIDER / DEV_BYOK_API_KEY /
  DEV_BYOK_MODEL_ID
- Prints a bearer token for the dev user

Constraints:
- Refuses to run in staging or prod (MENTORMIND_ENV check)
- Idempotent: re-running keeps the balance and overwrites the credential
- Never runs automatically (manual invocation only)

Usage:
    cd python && DATABASE_URL=... python ../scripts/seed_dev.py
"""

import os
import sys
from uuid import UUID

DEV_USER_ID = UUID("00000000-0000-4000-8000-000000000001")


def main():
    # 1. Environment check (hard fail in staging/prod)
    env = os.getenv("MENTORMIND_ENV", "local")
    if env not in ("local", "test"):
        print(f"ERROR: seed_dev.py refuses to run in MENTORMIND_ENV={env}")
        sys.exit(1)

    if not os.getenv("DATABASE_URL"):
        print("ERROR: DATABASE_URL environment variable must be set")
        sys.exit(1)

    from mentormind.auth.session_token import mint_session_token
    from mentormind.db.session import get_session_factory
    from mentormind.services import ledger, user_keys

    db = get_session_factory()()
    try:
        balance = ledger.get_balance(db, DEV_USER_ID)
        print(f"Coin balance: {balance}")

        provider = os.getenv("DEV_BYOK_PROVIDER")
        api_key = os.getenv("DEV_BYOK_API_KEY")
        model_id = os.getenv("DEV_BYOK_MODEL_ID")
        if provider and api_key and model_id:
            key, created = user_keys.store_user_key(
                db, DEV_USER_ID, provider, api_key, model_id, os.getenv("DEV_BYOK_BASE_URL")
            )
            print(f"BYOK credential {'created' if created else 'updated'}: ...{key.key_fingerprint}")
        else:
            print("No DEV_BYOK_* variables set; dev user will use platform models")
    finally:
        db.close()

    print(f"Dev user: {DEV_USER_ID}")
    print(f"Authorization: Bearer {mint_session_token(DEV_USER_ID)}")


if __name__ == "__main__":
    main()

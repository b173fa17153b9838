from __future__ import annotations

import argparse
from datetime import datetime, timedelta

import jwt

ROLES = ("admin", "candidate")


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate a JWT for the Roundtrack API.")
    parser.add_argument("--secret", required=True)
    parser.add_argument("--subject", required=True, help="Admin or candidate id.")
    parser.add_argument("--role", choices=ROLES, required=True)
    parser.add_argument("--hours", type=int, default=12)
    parser.add_argument("--algorithm", default="HS256")
    args = parser.parse_args()

    payload = {
        "sub": args.subject,
        "roles": [args.role],
        "exp": datetime.utcnow() + timedelta(hours=args.hours),
    }
    token = jwt.encode(payload, args.secret, algorithm=args.algorithm)
    print(token)


if __name__ == "__main__":
    main()

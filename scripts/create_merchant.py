#!/usr/bin/env python3
"""Create a merchant and print its API keys."""

import argparse
import asyncio

from sqlalchemy import select

from app.core.security import generate_api_keys
from app.database import create_database
from app.models.merchant import Merchant


async def create_merchant(name: str, email: str, live: bool = False) -> None:
    """Create a merchant if it doesn't exist, otherwise print its keys."""
    database = create_database()
    try:
        async with database.session() as session:
            result = await session.execute(select(Merchant).where(Merchant.email == email))
            merchant = result.scalar_one_or_none()

            if merchant:
                print(f"Merchant already exists: {email}")
            else:
                keys = generate_api_keys()
                merchant = Merchant(
                    name=name,
                    email=email,
                    public_key=keys["public_key"],
                    secret_key=keys["secret_key"],
                    sandbox_mode=not live,
                )
                session.add(merchant)
                await session.commit()
                print(f"Created merchant: {email}")

            print(f"Merchant ID: {merchant.id}")
            print(f"Public key:  {merchant.public_key}")
            print(f"Secret key:  {merchant.secret_key}")
            print(f"Sandbox:     {merchant.sandbox_mode}")
    finally:
        await database.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a merchant")
    parser.add_argument("--name", default="Demo Store", help="Merchant name")
    parser.add_argument("--email", default="merchant@zeropay.dev", help="Merchant email")
    parser.add_argument("--live", action="store_true", help="Disable sandbox mode")

    args = parser.parse_args()

    asyncio.run(create_merchant(name=args.name, email=args.email, live=args.live))

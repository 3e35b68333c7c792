"""Live validation script - load real profiles, render cards, save fixtures."""

import asyncio
from pathlib import Path

from xcard import CardConfig, CardMaker
from xcard.config import CacheBackend
from xcard.core.exporter import save_card_images, save_profile_json
from xcard.exceptions import XcardError
from xcard.logging import configure_logging

# Test accounts
USERNAMES = [
    "okx",
    "nodepay",
    "jason",
    "cz_binance",
    "nikitabier",
]

ROOT = Path(__file__).parent.parent
FIXTURES_DIR = ROOT / "tests" / "fixtures"
OUTPUT_DIR = ROOT / "validation_output"


async def validate_account(maker: CardMaker, username: str) -> dict:
    """Load, assemble and render a single account."""
    print(f"\n{'=' * 60}")
    print(f"Loading @{username}...")
    print(f"{'=' * 60}")

    url = f"https://x.com/{username}"
    try:
        profile = await maker.get_profile(url, force_refresh=True)
        card = await maker.make_card(url)
    except XcardError as e:
        print(f"❌ {e.code.value}: {e.message}")
        return {"username": username, "success": False, "error": e.code.value}

    print(f"  Username: @{profile.username}")
    print(f"  Display Name: {profile.display_name}")
    print(f"  Verified: {profile.verified}")
    print(f"  Followers: {profile.follower_count:,}")
    print(f"  Following: {profile.following_count:,}")
    print(f"  Avatar: {profile.avatar_url or '-'}")
    if card.placeholders:
        print(f"  ⚠️  Placeholders: {', '.join(card.placeholders)}")

    save_profile_json(profile, FIXTURES_DIR / f"{username}.json")
    for path in save_card_images(card, OUTPUT_DIR):
        print(f"✓ Saved {path}")

    return {
        "username": username,
        "success": True,
        "avatar": "avatar" not in card.placeholders,
        "followers": profile.follower_count,
    }


async def main():
    """Run validation on all test accounts."""
    config = CardConfig(cache_backend=CacheBackend.NONE, request_delay_ms=2000)
    configure_logging(config)

    print(f"Testing {len(USERNAMES)} accounts: {', '.join('@' + u for u in USERNAMES)}")

    results = []
    async with CardMaker(config) as maker:
        for username in USERNAMES:
            results.append(await validate_account(maker, username))

    print("\n" + "=" * 60)
    print("VALIDATION SUMMARY")
    print("=" * 60)

    success_count = sum(1 for r in results if r.get("success"))
    print(f"\nSuccess: {success_count}/{len(results)}")

    print("\n| Username     | Card | Avatar | Followers    |")
    print("|--------------|------|--------|--------------|")
    for r in results:
        card = "✓" if r.get("success") else "❌"
        avatar = "✓" if r.get("avatar") else "-"
        followers = f"{r['followers']:,}" if "followers" in r else r.get("error", "")
        print(f"| @{r['username']:<11} | {card:<4} | {avatar:<6} | {followers:<12} |")

    print(f"\nCard images saved to: {OUTPUT_DIR}")


if __name__ == "__main__":
    asyncio.run(main())

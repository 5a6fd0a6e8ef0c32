import argparse
import asyncio
import logging

from colorama import init, Fore, Style

from bonding.base_source import SourceError
from bonding.filters import ALL_TAGS, RESERVE_FILTERS, SORT_KEYS, ScanQuery, TokenFilter
from bonding.formatting import format_age, format_percent, format_price, format_reserve, format_supply, to_units
from bonding.mintclub_source import MintClubSource
from bonding.orchestrator import ScanOrchestrator
from bonding.reputation import NeynarReputationSource
from bonding.signals import get_badges
from predictions import ActivePredictionExists, PredictionLedger
from prediction_config import get_prediction_config
from scanner_config import get_scanner_config
from tiers import TIER_ORDER, TIERS, get_tier, get_upgrade_prompt, has_feature

init(autoreset=True)


def score_color(score: int) -> str:
    if score >= 75:
        return Fore.GREEN
    if score >= 60:
        return Fore.YELLOW
    return Fore.RED


def build_orchestrator(config=None) -> ScanOrchestrator:
    config = config or get_scanner_config()
    source = MintClubSource(config)
    return ScanOrchestrator(
        listing_source=source,
        enrichment_source=source,
        reputation_source=NeynarReputationSource(config['neynar']),
        config=config,
    )


def print_token_row(token):
    d, s = token.detail, token.signals
    color = score_color(s.opportunity_score)
    badges = ' '.join(get_badges(token))
    print(f"{color}{s.opportunity_score:>3}{Style.RESET_ALL} "
          f"{Fore.WHITE}{d.symbol[:12]:<12} "
          f"{Fore.CYAN}{s.curve_position * 100:5.1f}% "
          f"{Fore.YELLOW}{format_reserve(s.reserve_depth):>8} {d.reserve_symbol:<6} "
          f"{Fore.WHITE}{format_age(s.age_hours):>8} "
          f"{Fore.MAGENTA}{badges}")


def print_inspect(result):
    token, extra = result.token, result.enrichment
    d, s = token.detail, token.signals

    print(f"\n{Fore.CYAN}{'='*50}")
    print(f"{Fore.MAGENTA}[BASE] {d.name} ({d.symbol}){Style.RESET_ALL}")
    print(f"{Fore.YELLOW}Address: {Fore.WHITE}{d.address}")
    print(f"{Fore.YELLOW}Price: {Fore.WHITE}{format_price(d.current_price)} {d.reserve_symbol}")
    print(f"{Fore.YELLOW}Supply: {Fore.WHITE}{format_supply(d.current_supply)} / {format_supply(d.max_supply)}")
    print(f"{Fore.YELLOW}Curve: {Fore.WHITE}{s.curve_position * 100:.2f}%")
    print(f"{Fore.YELLOW}Reserve: {Fore.WHITE}{format_reserve(s.reserve_depth)} {d.reserve_symbol}")
    print(f"{Fore.YELLOW}Age: {Fore.WHITE}{format_age(s.age_hours)}")
    print(f"{Fore.YELLOW}24h: {Fore.WHITE}{format_percent(s.momentum)}")
    print(f"{Fore.YELLOW}Next step: {Fore.WHITE}{format_percent(s.step_jump)}")
    spread_pct = s.spread * 100 if s.spread is not None else None
    print(f"{Fore.YELLOW}Spread: {Fore.WHITE}{format_percent(spread_pct, 2)}")

    color = score_color(s.opportunity_score)
    print(f"{Fore.YELLOW}Score: {color}{s.opportunity_score}/100")
    print(f"{Fore.YELLOW}Badges: {Fore.MAGENTA}{', '.join(get_badges(token, extra.royalties)) or 'none'}")

    if extra.royalties:
        print(f"{Fore.YELLOW}Royalties: {Fore.WHITE}mint {extra.royalties.mint_royalty / 100:.2f}% / "
              f"burn {extra.royalties.burn_royalty / 100:.2f}%")
    print(f"{Fore.YELLOW}Creator tokens: {Fore.WHITE}{extra.creator_token_count}")
    print(f"{Fore.YELLOW}ETH zap: {Fore.WHITE}{'yes' if extra.zap_available else 'no'}")

    if extra.metadata:
        if extra.metadata.creator_comment:
            print(f"{Fore.YELLOW}Creator says: {Fore.WHITE}{extra.metadata.creator_comment}")
        if extra.metadata.website:
            print(f"{Fore.YELLOW}Website: {Fore.WHITE}{extra.metadata.website}")

    if extra.creator_profile:
        p = extra.creator_profile
        print(f"{Fore.YELLOW}Creator: {Fore.WHITE}@{p.username} ({p.follower_count} followers) "
              f"{Fore.GREEN}{p.rating}/100 {p.rating_label}")

    if extra.failed:
        print(f"{Fore.RED}Unavailable: {', '.join(extra.failed)}")
    print(f"{Fore.CYAN}{'='*50}\n")


def print_prediction(p):
    arrow = f"{Fore.GREEN}▲ UP" if p.direction.value == 'up' else f"{Fore.RED}▼ DOWN"
    if p.resolved:
        outcome = f"{Fore.GREEN}WIN +{p.payout}" if p.result.value == 'win' else f"{Fore.RED}LOSS"
    else:
        outcome = f"{Fore.YELLOW}OPEN"
    print(f"{Fore.WHITE}{p.id:<32} {p.token_symbol:<10} {arrow}{Style.RESET_ALL} "
          f"stake {p.stake:<5} entry {p.entry_price} {outcome}")


async def cmd_scan(args):
    orchestrator = build_orchestrator()
    try:
        tokens = await orchestrator.fast_load(force=args.force)
        query = ScanQuery(search=args.search, reserve=args.reserve, tags=frozenset(args.tag), sort=args.sort)
        visible = TokenFilter(orchestrator.config).apply(tokens, query)

        print(f"{Fore.GREEN}🔍 {len(visible)} / {len(tokens)} tokens")
        for token in visible[:args.limit]:
            print_token_row(token)
    finally:
        await orchestrator.close()


async def cmd_inspect(args):
    orchestrator = build_orchestrator()
    tier = get_tier(args.balance)
    try:
        await orchestrator.fast_load()
        result = await orchestrator.enrich_and_select(args.address, with_profile=has_feature(tier, 'predictions'))
        if result.token is None:
            print(f"{Fore.RED}❌ Token {args.address} not in the latest listing")
            return
        print_inspect(result)
    finally:
        await orchestrator.close()


async def cmd_watch(args):
    orchestrator = build_orchestrator()

    async def refresh():
        tokens = await orchestrator.fast_load()
        top = TokenFilter(orchestrator.config).apply(tokens, ScanQuery(sort='score'))
        print(f"\n{Fore.CYAN}{'='*50}")
        for token in top[:args.limit]:
            print_token_row(token)
        return tokens

    try:
        await orchestrator.scheduler.run(refresh, max_runs=args.runs)
    finally:
        await orchestrator.close()


def cmd_predict(args, ledger):
    try:
        p = ledger.create_checked(args.symbol, args.direction, args.stake, args.price)
    except ActivePredictionExists as e:
        print(f"{Fore.RED}⚠️  {e}")
        return
    print(f"{Fore.GREEN}✅ Call placed (expires in 24h)")
    print_prediction(p)


def cmd_resolve(args, ledger):
    p = ledger.resolve(args.id, args.price)
    if p is None:
        print(f"{Fore.RED}❌ Unknown prediction {args.id}")
        return
    print_prediction(p)


async def cmd_calls(args, ledger):
    if args.settle:
        orchestrator = build_orchestrator()
        try:
            await orchestrator.fast_load()
            settled = await ledger.settle_expired(orchestrator.get_current_price)
            print(f"{Fore.CYAN}Settled {len(settled)} expired call(s)")
        finally:
            await orchestrator.close()

    for p in ledger.get_active():
        print_prediction(p)
    for p in ledger.get_history():
        print_prediction(p)

    s = ledger.get_summary()
    print(f"\n{Fore.YELLOW}W/L: {Fore.WHITE}{s['wins']}/{s['losses']}  "
          f"{Fore.YELLOW}Open: {Fore.WHITE}{s['open']}  "
          f"{Fore.YELLOW}Awaiting: {Fore.WHITE}{s['awaiting_resolution']}  "
          f"{Fore.YELLOW}Net: {Fore.WHITE}{s['net']:+}")


async def wallet_balance(wallet: str) -> float:
    """Whole-token $SCRY balance read on-chain (0 when the token is not configured)."""
    config = get_scanner_config()
    if not config['scry_token_address']:
        print(f"{Fore.YELLOW}⚠️  SCRY_TOKEN_ADDRESS not set, assuming 0 $SCRY")
        return 0.0
    source = MintClubSource(config)
    try:
        return to_units(await source.get_token_balance(config['scry_token_address'], wallet))
    except SourceError as e:
        print(f"{Fore.RED}❌ Balance lookup failed: {e}")
        return 0.0
    finally:
        await source.close()


async def cmd_tier(args):
    balance = await wallet_balance(args.wallet) if args.wallet else args.balance
    tier = get_tier(balance)
    print(f"{Fore.GREEN}Tier: {tier.label} {Fore.WHITE}({balance:,.0f} $SCRY)")
    print(f"{Fore.YELLOW}Features: {Fore.WHITE}{', '.join(tier.features)}")

    next_idx = TIER_ORDER.index(tier.key) + 1
    if next_idx < len(TIER_ORDER):
        next_key = TIER_ORDER[next_idx]
        locked = [f for f in TIERS[next_key]['features'] if f not in tier.features]
        if locked:
            prompt = get_upgrade_prompt(locked[0])
            print(f"{Fore.CYAN}Unlock {locked[0]}: hold {prompt['tokens_needed']:,} $SCRY ({prompt['tier']})")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Mint Club Bonding Curve Scanner")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="List scored tokens")
    scan.add_argument("--search", default="")
    scan.add_argument("--reserve", default="all", choices=RESERVE_FILTERS)
    scan.add_argument("--tag", action="append", default=[], choices=sorted(ALL_TAGS))
    scan.add_argument("--sort", default="newest", choices=SORT_KEYS)
    scan.add_argument("--limit", type=int, default=25)
    scan.add_argument("--force", action="store_true", help="Bypass the cache")

    inspect = sub.add_parser("inspect", help="Enrich one token")
    inspect.add_argument("address")
    inspect.add_argument("--balance", type=float, default=0, help="$SCRY balance (tier features)")

    watch = sub.add_parser("watch", help="Refresh every 60s")
    watch.add_argument("--limit", type=int, default=10)
    watch.add_argument("--runs", type=int, default=None)

    predict = sub.add_parser("predict", help="Place an up/down call")
    predict.add_argument("symbol")
    predict.add_argument("direction", choices=["up", "down"])
    predict.add_argument("stake", type=float)
    predict.add_argument("price", type=float, help="Entry USD price")

    resolve = sub.add_parser("resolve", help="Settle a call")
    resolve.add_argument("id")
    resolve.add_argument("price", type=float, help="Exit USD price")

    calls = sub.add_parser("calls", help="Call history and totals")
    calls.add_argument("--settle", action="store_true", help="Settle expired calls at current prices")

    tier = sub.add_parser("tier", help="Show tier for a $SCRY balance")
    tier.add_argument("balance", type=float, nargs="?", default=0)
    tier.add_argument("--wallet", help="Read the balance of this wallet on-chain")

    return parser


async def main():
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    if args.command == "scan":
        await cmd_scan(args)
    elif args.command == "inspect":
        await cmd_inspect(args)
    elif args.command == "watch":
        await cmd_watch(args)
    elif args.command == "tier":
        await cmd_tier(args)
    else:
        ledger = PredictionLedger(config=get_prediction_config())
        if args.command == "predict":
            cmd_predict(args, ledger)
        elif args.command == "resolve":
            cmd_resolve(args, ledger)
        else:
            await cmd_calls(args, ledger)


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print(f"\n{Fore.YELLOW}Stopped.")


if __name__ == "__main__":
    run()

"""BrandIntel - brand research orchestration

Simple CLI for running one research request.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from brandintel.agents.dispatcher import build_dispatcher, summary_line
from brandintel.config import settings
from brandintel.errors import RequestInvalid
from brandintel.models.research import ProviderKind, ResearchRequest, WorkflowResult


async def run_research(request: ResearchRequest) -> int:
    """Run research for the request and print the result as JSON."""
    print(f"Research: {request.subject} ({request.category}) via {request.provider.value}", file=sys.stderr)
    print("-" * 50, file=sys.stderr)

    dispatcher = build_dispatcher(settings)
    try:
        result = await dispatcher.run(request)
    except RequestInvalid as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return 2

    if isinstance(result, WorkflowResult):
        print("\n[*] Manual workflow ready:", file=sys.stderr)
        for i, step in enumerate(result.instructions, 1):
            print(f"  {i}. {step}", file=sys.stderr)
        print("\nRe-run with --raw-file <response.json> once the research is done.", file=sys.stderr)
        print(json.dumps(result.model_dump(by_alias=True), indent=2, ensure_ascii=False))
        return 0

    print(f"\n[*] {summary_line(result)}", file=sys.stderr)
    print(f"   Generated by: {result.meta.generated_by}", file=sys.stderr)
    print(json.dumps(result.to_payload(), indent=2, ensure_ascii=False))
    return 0


def build_request(args: argparse.Namespace) -> ResearchRequest:
    raw_result = Path(args.raw_file).read_text(encoding="utf-8") if args.raw_file else None
    return ResearchRequest(
        subject=args.subject,
        category=args.category,
        purpose=args.purpose,
        timeframe=args.timeframe,
        markets=[m.strip() for m in args.markets.split(",") if m.strip()],
        provider=ProviderKind(args.provider),
        website=args.website,
        word_count=args.word_count,
        focus=args.focus,
        raw_result=raw_result,
    )


def main():
    parser = argparse.ArgumentParser(description="BrandIntel brand research")
    parser.add_argument("--subject", "-s", required=True, help="Brand to research")
    parser.add_argument("--category", "-c", required=True, help="Category the brand competes in")
    parser.add_argument("--purpose", "-p", required=True, help="Commercial objective or pitch context")
    parser.add_argument("--timeframe", "-t", default="3 months", help="3 months, 6 months or 12 months")
    parser.add_argument("--markets", "-m", default="", help="Comma-separated target markets")
    parser.add_argument(
        "--provider",
        choices=[kind.value for kind in ProviderKind],
        default=ProviderKind.ASYNC.value,
        help="Research provider (default: async)",
    )
    parser.add_argument("--website", default="", help="Brand website")
    parser.add_argument("--word-count", type=int, default=2000, help="Target length of the analysis")
    parser.add_argument("--focus", default="", help="Secondary subject to blend into the research")
    parser.add_argument("--raw-file", help="File holding a provider response to extract instead of calling a provider")

    args = parser.parse_args()

    sys.exit(asyncio.run(run_research(build_request(args))))


if __name__ == "__main__":
    main()

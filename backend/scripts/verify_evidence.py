import argparse
import json
import sys
from pathlib import Path

from loguru import logger

from settlement.verify import verify_evidence_pack


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Re-verify a published flight market evidence pack")
    parser.add_argument("path", type=Path, help="Evidence pack JSON file")
    parser.add_argument(
        "--expected-hash",
        type=str,
        default=None,
        help="Evidence hash published onchain (0x-prefixed bytes32)",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    document = json.loads(args.path.read_text(encoding="utf-8"))
    report = verify_evidence_pack(document, expected_hash=args.expected_hash)

    for mismatch in report.mismatches:
        logger.error("Evidence mismatch: {}", mismatch)
    if report.ok:
        logger.info("Evidence pack {} verified ({})", args.path, report.evidence_hash)

    print(json.dumps(report.to_dict(), indent=2))
    return 0 if report.ok else 1


if __name__ == "__main__":
    sys.exit(main())

"""Command-line entrypoint for ingestkit-mailview.

Usage:
    ingestkit-mailview --input-file message.eml
    ingestkit-mailview --input-file page.html --format plain --urls strip-all
    ingestkit-mailview --input-file message.eml --json true --output-dir out/

Exit status is 0 on success, 1 when the input cannot be converted or the
output cannot be written, and 2 on usage errors.
"""

from __future__ import annotations

import argparse
import codecs
import logging
import sys
from pathlib import Path

from ingestkit_mailview.config import MailviewConfig
from ingestkit_mailview.document import normalize_base_name
from ingestkit_mailview.errors import MailviewException
from ingestkit_mailview.models import ConversionOptions, OutputFormat, UrlPolicy
from ingestkit_mailview.pipeline import EmailPipeline

logger = logging.getLogger("ingestkit_mailview")

_FORMATS = {
    "plain": OutputFormat.PLAIN,
    "markdown": OutputFormat.MARKDOWN,
    "md": OutputFormat.MARKDOWN,
}


def _bool_arg(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "yes", "1"):
        return True
    if lowered in ("false", "no", "0"):
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got '{value}'")


def _charset_arg(value: str) -> str:
    try:
        return codecs.lookup(value).name
    except LookupError:
        raise argparse.ArgumentTypeError(f"unknown charset '{value}'") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ingestkit-mailview",
        description="Convert EML or HTML email into clean plain text, Markdown or JSON.",
    )
    parser.add_argument("--input-file", required=True, help="Path to the .eml or .html input")
    parser.add_argument(
        "--input-type",
        choices=["eml", "html", "htm"],
        type=str.lower,
        help="Input type (default: inferred from the file extension)",
    )
    parser.add_argument(
        "--format",
        choices=sorted(_FORMATS),
        type=str.lower,
        default="markdown",
        help="Output format (default: markdown)",
    )
    parser.add_argument(
        "--urls",
        choices=[policy.value for policy in UrlPolicy],
        type=str.lower,
        default=UrlPolicy.KEEP.value,
        help="Link and image policy (default: keep)",
    )
    parser.add_argument(
        "--metadata",
        type=_bool_arg,
        default=True,
        help="Prepend the sender/recipient/date/subject block (default: true)",
    )
    parser.add_argument(
        "--json",
        type=_bool_arg,
        default=False,
        help="Emit a JSON document with both renderings (default: false)",
    )
    parser.add_argument(
        "--suppress-utility",
        type=_bool_arg,
        default=True,
        help="Drop unsubscribe/view-in-browser style content (default: true)",
    )
    parser.add_argument(
        "--charset",
        type=_charset_arg,
        default=None,
        help="Charset for HTML input (default: utf-8)",
    )
    destination = parser.add_mutually_exclusive_group()
    destination.add_argument("--output-file", help="Write output to this file")
    destination.add_argument(
        "--output-dir",
        help="Write output into this directory, named after the input file",
    )
    parser.add_argument("--config", help="YAML or JSON configuration file")
    return parser


def resolve_output_path(args: argparse.Namespace) -> Path | None:
    """Destination file for *args*, or *None* for stdout."""
    if args.output_file:
        return Path(args.output_file)
    if args.output_dir:
        if args.json:
            ext = ".json"
        elif _FORMATS[args.format] == OutputFormat.MARKDOWN:
            ext = ".md"
        else:
            ext = ".txt"
        return Path(args.output_dir) / f"{normalize_base_name(args.input_file)}{ext}"
    return None


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    try:
        config = MailviewConfig.from_file(args.config) if args.config else MailviewConfig()
    except (OSError, ValueError, ImportError) as exc:
        print(f"ERROR: cannot load config: {exc}", file=sys.stderr)
        return 1

    options = ConversionOptions(
        source=Path(args.input_file),
        input_type=args.input_type,
        output_format=_FORMATS[args.format],
        urls_policy=UrlPolicy(args.urls),
        include_metadata=args.metadata,
        json_output=args.json,
        suppress_utility=args.suppress_utility,
        charset=args.charset,
    )

    try:
        output = EmailPipeline(config).process(options)
    except MailviewException as exc:
        print(f"ERROR: {exc.code.value}: {exc.message}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    output_path = resolve_output_path(args)
    if output_path is None:
        sys.stdout.write(output)
        if not output.endswith("\n"):
            sys.stdout.write("\n")
        return 0

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(output, encoding="utf-8")
    except OSError as exc:
        print(f"ERROR: cannot write {output_path}: {exc}", file=sys.stderr)
        return 1
    logger.info("ingestkit_mailview | output=%s | chars=%d", output_path, len(output))
    return 0


if __name__ == "__main__":
    sys.exit(main())

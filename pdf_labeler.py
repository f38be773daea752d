import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
import reportlab

from labeling import (
    FontResource,
    LabelerError,
    TemplateDocument,
    label_documents,
    label_overflows,
    parse_name_list,
)

load_dotenv()

APP_NAME = "PDF Labeler"
APP_VERSION = "1.0.1"

BUNDLED_FONT_PATH = Path(reportlab.__file__).resolve().parent / "fonts" / "Vera.ttf"


class InputFileUnavailableError(OSError):
    pass


class NameListFileUnavailableError(OSError):
    pass


class FontFileUnavailableError(OSError):
    pass


class OutputFileWriteError(OSError):
    pass


def is_development() -> bool:
    return os.environ.get("LABELER_ENV", "").strip().lower() == "development"


def get_base_dir() -> Path:
    """Directory that holds input.pdf / name_list.txt / output.pdf by default.

    Outside development, a frozen build looks next to its own executable.
    """
    if not is_development() and getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path.cwd()


def get_default_font_path() -> Path:
    configured = os.environ.get("LABELER_FONT_PATH", "").strip()
    if configured:
        return Path(configured)
    return BUNDLED_FONT_PATH


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    base_dir = get_base_dir()
    parser = argparse.ArgumentParser(
        description="Stamp every page of a template PDF with each name from a list and merge the copies."
    )
    parser.add_argument(
        "--template",
        default=str(base_dir / "input.pdf"),
        help="Path to the template PDF.",
    )
    parser.add_argument(
        "--names",
        default=str(base_dir / "name_list.txt"),
        help="Path to the newline-separated name list.",
    )
    parser.add_argument(
        "--font",
        default=str(get_default_font_path()),
        help="TTF font used for the labels.",
    )
    parser.add_argument(
        "--output",
        default=str(base_dir / "output.pdf"),
        help="Path of the merged output PDF.",
    )
    parser.add_argument(
        "--skip-blank-lines",
        action="store_true",
        help="Ignore empty lines in the name list instead of producing blank-labeled copies.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Only print errors.",
    )
    return parser.parse_args(argv)


def read_input_file(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise InputFileUnavailableError(
            f"{path.name} does not exist. Prepare the template PDF and run the program again."
        ) from exc


def read_name_list_file(path: Path) -> str:
    try:
        # Undecodable bytes become U+FFFD so a non-UTF-8 list still labels every line.
        return path.read_bytes().decode("utf-8-sig", errors="replace")
    except OSError as exc:
        raise NameListFileUnavailableError(
            f"{path.name} does not exist. Prepare the name list and run the program again."
        ) from exc


def read_font_file(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise FontFileUnavailableError(f"Could not read font file {path}.") from exc


def write_output_file(path: Path, data: bytes) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as exc:
        raise OutputFileWriteError(f"Could not create {path.name}.") from exc


def print_app_info() -> None:
    print("=" * 41)
    title = f" {APP_NAME} "
    print(f"{title:=^41}")
    print("=" * 41)
    print(f"Version: {APP_VERSION}")
    print("-" * 41)
    print()


def warn_overflowing_names(template_bytes: bytes, font_bytes: bytes, names: list[str]) -> None:
    template = TemplateDocument.parse(template_bytes)
    font = FontResource.load(font_bytes)
    narrowest = min(template.page_size(i)[0] for i in range(template.page_count()))
    for idx, name in enumerate(names, start=1):
        if label_overflows(name, narrowest, font):
            print(f"[WARN] Name {idx} ({name!r}) is wider than the page and will run off the left edge.")


def run(args: argparse.Namespace) -> int:
    verbose = not args.quiet
    if verbose:
        print_app_info()

    template_bytes = read_input_file(Path(args.template))
    names = parse_name_list(read_name_list_file(Path(args.names)), skip_blank=args.skip_blank_lines)
    font_bytes = read_font_file(Path(args.font))

    if verbose:
        warn_overflowing_names(template_bytes, font_bytes, names)
        print(f"Labeling {len(names)} copies...")

    def report(current: int, total: int) -> None:
        if verbose:
            print(f"  [{current}/{total}] {names[current - 1]}")

    pdf_bytes = label_documents(template_bytes, font_bytes, names, on_progress=report)

    if verbose:
        print()
        print(">> Writing labeled file")
    write_output_file(Path(args.output), pdf_bytes)
    if verbose:
        print(f">> Done: {args.output}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        return run(args)
    except LabelerError as exc:
        print(f"{type(exc).__name__} ({exc.context})", file=sys.stderr)
        print(str(exc), file=sys.stderr)
    except (
        InputFileUnavailableError,
        NameListFileUnavailableError,
        FontFileUnavailableError,
        OutputFileWriteError,
    ) as exc:
        print(type(exc).__name__, file=sys.stderr)
        print(str(exc), file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())

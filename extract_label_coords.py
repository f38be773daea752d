import argparse
import json
from pathlib import Path

import fitz

# Labels sit 24pt below the top edge; spans whose origin falls in this band are reported.
DEFAULT_BAND = 40.0


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="List the name labels found on each page of a labeled PDF using PyMuPDF."
    )
    parser.add_argument("--pdf", required=True, help="Path to a labeled PDF.")
    parser.add_argument(
        "--band",
        type=float,
        default=DEFAULT_BAND,
        help="Height of the top strip (points) searched for labels.",
    )
    parser.add_argument(
        "--output-json",
        help="Optional JSON output path for the labels found.",
    )
    return parser.parse_args()


def iter_spans(page: fitz.Page):
    data = page.get_text("dict")
    for block in data.get("blocks", []):
        if block.get("type") != 0:
            continue
        for line in block.get("lines", []):
            for span in line.get("spans", []):
                yield span


def find_labels(pdf_bytes: bytes, band: float = DEFAULT_BAND) -> list[dict]:
    """Return one entry per page with the spans whose baseline lies in the top band.

    Coordinates are converted to a bottom-left origin to match the drawing code.
    """
    pages: list[dict] = []
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        for page_index, page in enumerate(doc):
            page_w = float(page.rect.width)
            page_h = float(page.rect.height)
            spans: list[dict] = []
            for span in iter_spans(page):
                origin = span.get("origin")
                if not origin or origin[1] > band:
                    continue
                spans.append(
                    {
                        "text": span.get("text") or "",
                        "font": span.get("font"),
                        "size": span.get("size"),
                        "origin_bottom_left": [origin[0], page_h - origin[1]],
                    }
                )
            pages.append(
                {
                    "page": page_index,
                    "page_size_points": [page_w, page_h],
                    "labels": spans,
                }
            )
    return pages


def main() -> None:
    args = parse_args()
    pdf_path = Path(args.pdf)
    pages = find_labels(pdf_path.read_bytes(), band=args.band)

    print(f"PDF: {pdf_path}")
    print(f"Pages: {len(pages)}")
    for entry in pages:
        texts = ", ".join(f"'{span['text']}'" for span in entry["labels"]) or "-"
        print(f"{entry['page']:04d} | {texts}")
        for span in entry["labels"]:
            x, y = span["origin_bottom_left"]
            print(f"       font={span['font']} size={span['size']:.1f} origin_bl=({x:.2f},{y:.2f})")

    if args.output_json:
        output_path = Path(args.output_json)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"pdf": str(pdf_path), "pages": pages}
        output_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        print(f"Wrote JSON: {output_path}")


if __name__ == "__main__":
    main()

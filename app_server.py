from pathlib import Path

# load_dotenv() runs before pdf_labeler is imported so LABELER_* settings are visible.
from dotenv import load_dotenv
load_dotenv()

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from labeling import LabelerError, label_documents, parse_name_list
from pdf_labeler import get_default_font_path

app = FastAPI(title="PDF Labeler API")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "message": "Request validation failed.",
            "detail": exc.errors(),
        },
    )


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


def read_default_font() -> bytes:
    font_path = get_default_font_path()
    if not font_path.exists():
        raise HTTPException(status_code=500, detail=f"Default font not found: {font_path}")
    return font_path.read_bytes()


async def raw_names_field(request: Request) -> str | None:
    # Read the raw form value: an empty "names" field is still one blank recipient.
    form = await request.form()
    value = form.get("names")
    return value if isinstance(value, str) else None


@app.post("/api/label")
def label_upload(
    template: UploadFile = File(...),
    names: str | None = Depends(raw_names_field),
    names_file: UploadFile | None = File(None),
    font: UploadFile | None = File(None),
    skip_blank: bool = Form(False),
) -> Response:
    if names is None and names_file is None:
        raise HTTPException(status_code=400, detail="Provide either 'names' or 'names_file'.")
    if names is not None and names_file is not None:
        raise HTTPException(status_code=400, detail="Use either 'names' or 'names_file', not both.")

    if names_file is not None:
        try:
            names_text = names_file.file.read().decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise HTTPException(status_code=400, detail=f"Name list is not valid UTF-8: {exc}") from exc
    else:
        names_text = names

    template_bytes = template.file.read()
    font_bytes = font.file.read() if font is not None else read_default_font()
    name_list = parse_name_list(names_text, skip_blank=skip_blank)

    try:
        pdf_bytes = label_documents(template_bytes, font_bytes, name_list)
    except LabelerError as exc:
        raise HTTPException(
            status_code=400,
            detail={
                "message": str(exc),
                "error": type(exc).__name__,
                "stage": exc.stage,
                "index": exc.index,
            },
        ) from exc

    stem = Path(template.filename or "output.pdf").stem
    stem = "".join(c for c in stem if c.isascii() and (c.isalnum() or c in "-_")) or "output"
    filename = f"{stem}_labeled.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

import re
import fitz  # PyMuPDF
from ..errors import GenerationError
from ..settings import settings

def extract_pages_text(pdf_bytes: bytes, max_pages: int | None = None) -> list[str]:
    limit = max_pages or settings.MAX_PAGES
    out = []
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        for idx, p in enumerate(doc):
            if idx >= limit:
                break
            t = p.get_text() or ""
            t = re.sub(r"[ \t]+", " ", t).strip()
            out.append(t)
    return out

def extract_pdf_text(pdf_bytes: bytes, max_pages: int | None = None) -> str:
    try:
        pages = extract_pages_text(pdf_bytes, max_pages)
    except (RuntimeError, ValueError) as e:
        raise GenerationError(f"Could not read PDF: {e}", 400) from e
    if not any(p.strip() for p in pages):
        raise GenerationError("No extractable text found (image-only PDF).", 422)
    return "\n\n".join(f"Page {i}:\n{t}" for i, t in enumerate(pages, start=1) if t)

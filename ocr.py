"""
OCR adapter around Tesseract.

Images go straight through pytesseract. PDFs are read with pdfplumber when
they carry a text layer, and rasterized with pdf2image for OCR when they don't.
"""
import logging
import os

# Optional OCR imports: the API still serves manual entry and record
# management without them, and OCR routes answer 501 explaining what's missing.
try:
    from PIL import Image as PIL_Image
except ImportError:
    PIL_Image = None

try:
    import pytesseract
except ImportError:
    pytesseract = None

try:
    import pdf2image
except ImportError:
    pdf2image = None

try:
    import pdfplumber
except ImportError:
    pdfplumber = None


logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.tiff', '.tif', '.bmp', '.gif', '.webp'}
ALLOWED_EXT = set(ALLOWED_IMAGE_EXTENSIONS) | {'.pdf'}

# pages with less selectable text than this are treated as scans
MIN_PDF_TEXT_CHARS = 20


class OCRError(Exception):
    """OCR ran but failed on the given file."""


class OCRUnavailableError(OCRError):
    """A library or binary needed for OCR is not installed."""


def allowed_file(filename: str) -> bool:
    """Return True if the filename has an allowed extension."""
    if not filename or '.' not in filename:
        return False
    ext = os.path.splitext(filename)[1].lower()
    return ext in ALLOWED_EXT


def is_pdf(path: str) -> bool:
    return path.lower().endswith('.pdf')


def tesseract_version():
    """Return the installed tesseract version string, or None."""
    if pytesseract is None:
        return None
    try:
        return str(pytesseract.get_tesseract_version())
    except pytesseract.TesseractNotFoundError:
        return None


def ocr_status() -> dict:
    """Report which OCR engines are importable."""
    return {
        'pillow': PIL_Image is not None,
        'pytesseract': pytesseract is not None,
        'pdf2image': pdf2image is not None,
        'pdfplumber': pdfplumber is not None,
        'tesseract_version': tesseract_version(),
    }


def _require_tesseract():
    if PIL_Image is None:
        raise OCRUnavailableError('Pillow library not available')
    if pytesseract is None:
        raise OCRUnavailableError('pytesseract not available for OCR')


def _tesseract(image, lang: str) -> str:
    try:
        return pytesseract.image_to_string(image, lang=lang)
    except pytesseract.TesseractNotFoundError as exc:
        raise OCRUnavailableError('tesseract binary not found; is Tesseract installed?') from exc
    except pytesseract.TesseractError as exc:
        raise OCRError(f'OCR failed: {exc}') from exc


def image_to_text(path: str, lang: str = 'eng') -> str:
    """OCR a single image file."""
    _require_tesseract()
    try:
        with PIL_Image.open(path) as img:
            img.load()
            # tesseract handles RGB/greyscale; palette and alpha images trip it up
            if img.mode not in ('RGB', 'L'):
                img = img.convert('RGB')
            return _tesseract(img, lang)
    except OSError as exc:
        raise OCRError(f'could not read image: {exc}') from exc


def _pdf_text_layer(path: str) -> list:
    """Return the selectable text of each page, or [] without pdfplumber."""
    if pdfplumber is None:
        return []
    pages = []
    with pdfplumber.open(path) as pdf:
        for page in pdf.pages:
            pages.append(page.extract_text() or '')
    return pages


def pdf_to_text(path: str, lang: str = 'eng') -> str:
    """Extract text from a PDF, falling back to OCR for scanned pages.

    The text layer is used only when every page carries enough of it; a
    single scanned page sends the whole document through OCR so page order
    and content stay consistent.
    """
    try:
        text_pages = _pdf_text_layer(path)
    except Exception as exc:  # pdfplumber raises a range of parser errors
        logger.warning('pdfplumber could not read %s: %s', os.path.basename(path), exc)
        text_pages = []

    if text_pages and all(len(''.join(p.split())) > MIN_PDF_TEXT_CHARS for p in text_pages):
        logger.info('using PDF text layer for %s (%d pages)', os.path.basename(path), len(text_pages))
        return '\n'.join(text_pages)

    _require_tesseract()
    if pdf2image is None:
        raise OCRUnavailableError('pdf handling requires pdf2image/poppler, which is not available')

    try:
        pages = pdf2image.convert_from_path(path)
    except pdf2image.exceptions.PDFInfoNotInstalledError as exc:
        raise OCRUnavailableError(f'PDF conversion failed: {exc}. Is Poppler installed?') from exc
    except (pdf2image.exceptions.PDFPageCountError,
            pdf2image.exceptions.PDFSyntaxError) as exc:
        raise OCRError(f'PDF conversion failed: {exc}') from exc

    return '\n'.join(_tesseract(page, lang) for page in pages)


def perform_ocr(path: str, lang: str = 'eng') -> str:
    """Perform OCR on an image or PDF file and return the raw text."""
    name = os.path.basename(path)
    logger.info('OCR started for %s', name)
    text = pdf_to_text(path, lang) if is_pdf(path) else image_to_text(path, lang)
    logger.info('OCR finished for %s: %d characters', name, len(text))
    return text

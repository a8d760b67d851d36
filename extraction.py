"""
Field extraction for OCR'd medical records.

Turns the raw text Tesseract returns for a handwritten or printed record into
the fields a doctor reviews before saving: patient name, patient ID, age,
gender, diagnosis, prescription and record date.

The passes are line-oriented and deliberately forgiving. OCR output is noisy,
so every field falls back to a default instead of failing, and the doctor
corrects whatever was missed on the review screen.
"""
from datetime import date
import re


NOT_FOUND = 'Not found'

NAME_RE = re.compile(r'name[:\s]+([a-zA-Z\s]+)', re.IGNORECASE)
ID_RE = re.compile(r'id[:\s]+([0-9a-zA-Z]+)', re.IGNORECASE)
AGE_RE = re.compile(r'age[:\s]+([0-9]+)', re.IGNORECASE)

DIAGNOSIS_KEYWORDS = ('diagnosis', 'condition')
PRESCRIPTION_KEYWORDS = ('prescription', 'medication', 'treatment')


def split_lines(text: str) -> list:
    """Return the non-empty, stripped lines of text."""
    if not text:
        return []
    lines = (line.strip() for line in text.split('\n'))
    return [line for line in lines if line]


def extract_fields(text: str, today: date = None) -> dict:
    """Extract structured record fields from raw OCR text.

    Each line is checked against every field, so a line such as
    ``Age: 40 / Female`` can fill several of them. For the
    single-valued fields (name, id, age, gender) the last matching line wins;
    diagnosis and prescription collect every matching line.

    Returns a dict with keys patient_name, patient_id, age, gender, diagnosis,
    prescription and record_date. Missing name/id/diagnosis/prescription are
    reported as ``'Not found'``; missing age and gender are empty strings.
    """
    patient_name = ''
    patient_id = ''
    age = ''
    gender = ''
    diagnosis_parts = []
    prescription_parts = []

    for line in split_lines(text):
        lower = line.lower()

        if 'name' in lower or 'patient' in lower:
            match = NAME_RE.search(line)
            if match:
                patient_name = match.group(1).strip()

        if 'id' in lower or 'number' in lower:
            match = ID_RE.search(line)
            if match:
                patient_id = match.group(1).strip()

        if 'age' in lower:
            match = AGE_RE.search(line)
            if match:
                age = match.group(1)

        # 'female' contains 'male', so it has to be checked first
        if 'female' in lower:
            gender = 'Female'
        elif 'male' in lower:
            gender = 'Male'

        if any(keyword in lower for keyword in DIAGNOSIS_KEYWORDS):
            diagnosis_parts.append(line)

        if any(keyword in lower for keyword in PRESCRIPTION_KEYWORDS):
            prescription_parts.append(line)

    diagnosis = ' '.join(diagnosis_parts).strip()
    prescription = ' '.join(prescription_parts).strip()

    return {
        'patient_name': patient_name or NOT_FOUND,
        'patient_id': patient_id or NOT_FOUND,
        'age': age,
        'gender': gender,
        'diagnosis': diagnosis or NOT_FOUND,
        'prescription': prescription or NOT_FOUND,
        'record_date': (today or date.today()).isoformat(),
    }


def process_ocr_text(text: str, today: date = None) -> dict:
    """Build the review payload for a freshly OCR'd image."""
    fields = extract_fields(text, today=today)
    fields['extracted_text'] = text or ''
    return fields


def found_fields(fields: dict) -> list:
    """Names of extracted fields that hold a real value."""
    return [
        key for key, value in fields.items()
        if key not in ('record_date', 'extracted_text') and value and value != NOT_FOUND
    ]

"""
Validation and export helpers for medical records.

Record payloads come from two places: the manual entry form, and the review
form filled in from OCR extraction. Both go through normalize_record_payload
before they touch the database.
"""
from datetime import date

from werkzeug.utils import secure_filename

from extraction import NOT_FOUND


GENDERS = ('Male', 'Female', 'Other')
SOURCES = ('manual', 'upload', 'camera')
MAX_AGE = 150

REQUIRED_FIELDS = ('patient_name', 'patient_id')
TEXT_FIELDS = ('diagnosis', 'prescription', 'extracted_text')
FIELD_LIMITS = {'patient_name': 255, 'patient_id': 100}


class RecordValidationError(ValueError):
    """Raised with a {field: message} dict when a record payload is invalid."""

    def __init__(self, errors: dict):
        super().__init__('invalid record')
        self.errors = errors


def _clean_str(value):
    if value is None:
        return ''
    return str(value).strip()


def parse_age(value):
    """Return an int age, None for blank, or raise ValueError."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValueError('age must be a whole number')
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError('age must be a whole number')
        value = int(value)
    if isinstance(value, str):
        value = value.strip()
        if not (value.isascii() and value.isdigit()):
            raise ValueError('age must be a whole number')
        value = int(value)
    if not isinstance(value, int):
        raise ValueError('age must be a whole number')
    if value < 0 or value > MAX_AGE:
        raise ValueError(f'age must be between 0 and {MAX_AGE}')
    return value


def parse_gender(value):
    value = _clean_str(value)
    if not value:
        return None
    for gender in GENDERS:
        if value.lower() == gender.lower():
            return gender
    raise ValueError(f'gender must be one of {", ".join(GENDERS)}')


def parse_record_date(value):
    if isinstance(value, date):
        return value
    value = _clean_str(value)
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValueError('record_date must be an ISO date (YYYY-MM-DD)')


def normalize_record_payload(data: dict, partial: bool = False, today: date = None) -> dict:
    """Validate and coerce a record payload.

    With partial=True (updates) only the keys present in data are checked and
    returned, but required fields still can't be blanked out. Raises
    RecordValidationError listing every bad field.
    """
    if not isinstance(data, dict):
        raise RecordValidationError({'_': 'expected a JSON object'})

    errors = {}
    out = {}

    for field in REQUIRED_FIELDS:
        if partial and field not in data:
            continue
        value = _clean_str(data.get(field))
        if not value:
            errors[field] = f'{field} is required'
        elif len(value) > FIELD_LIMITS[field]:
            errors[field] = f'{field} must be at most {FIELD_LIMITS[field]} characters'
        else:
            out[field] = value

    if not partial or 'age' in data:
        try:
            out['age'] = parse_age(data.get('age'))
        except ValueError as e:
            errors['age'] = str(e)

    if not partial or 'gender' in data:
        try:
            out['gender'] = parse_gender(data.get('gender'))
        except ValueError as e:
            errors['gender'] = str(e)

    for field in TEXT_FIELDS:
        if partial and field not in data:
            continue
        value = data.get(field)
        if value is not None and not isinstance(value, str):
            errors[field] = f'{field} must be a string'
            continue
        if field == 'extracted_text':
            # raw OCR output is stored verbatim
            out[field] = value if value and value.strip() else None
        else:
            out[field] = _clean_str(value) or None

    if not partial or 'record_date' in data:
        try:
            record_date = parse_record_date(data.get('record_date'))
        except ValueError as e:
            errors['record_date'] = str(e)
        else:
            if record_date is None and not partial:
                record_date = today or date.today()
            out['record_date'] = record_date

    if not partial or 'source' in data:
        source = _clean_str(data.get('source')).lower() or 'manual'
        if source not in SOURCES:
            errors['source'] = f'source must be one of {", ".join(SOURCES)}'
        else:
            out['source'] = source

    if errors:
        raise RecordValidationError(errors)
    return out


def merge_reviewed_fields(extracted: dict, overrides: dict) -> dict:
    """Overlay doctor-supplied values on OCR output.

    Blank overrides don't clobber extracted values.
    """
    merged = dict(extracted)
    for key, value in (overrides or {}).items():
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        merged[key] = value
    return merged


def unresolved_fields(fields: dict) -> list:
    """Required fields still carrying the extraction placeholder."""
    return [f for f in REQUIRED_FIELDS if _clean_str(fields.get(f)) in ('', NOT_FOUND)]


def export_record(record) -> dict:
    """The downloadable JSON document for one record."""
    return {
        'patientName': record.patient_name,
        'patientId': record.patient_id,
        'age': record.age,
        'gender': record.gender,
        'diagnosis': record.diagnosis,
        'prescription': record.prescription,
        'recordDate': record.record_date.isoformat() if record.record_date else None,
        'createdAt': record.created_at.isoformat() if record.created_at else None,
    }


def export_filename(record, today: date = None) -> str:
    stamp = (today or date.today()).isoformat()
    return secure_filename(f"medical_record_{record.patient_id}_{stamp}.json")

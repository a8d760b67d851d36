from datetime import date, datetime
from types import SimpleNamespace

import pytest

from extraction import NOT_FOUND
from records import (RecordValidationError, export_filename, export_record,
                     merge_reviewed_fields, normalize_record_payload, parse_age,
                     unresolved_fields)


TODAY = date(2026, 10, 18)


def test_normalize_full_payload():
    out = normalize_record_payload({
        'patient_name': '  John Smith ',
        'patient_id': 'P1',
        'age': '45',
        'gender': 'male',
        'diagnosis': 'Flu',
        'prescription': '',
        'record_date': '2026-10-01',
        'source': 'Camera',
    }, today=TODAY)
    assert out == {
        'patient_name': 'John Smith',
        'patient_id': 'P1',
        'age': 45,
        'gender': 'Male',
        'diagnosis': 'Flu',
        'prescription': None,
        'extracted_text': None,
        'record_date': date(2026, 10, 1),
        'source': 'camera',
    }


def test_normalize_defaults():
    out = normalize_record_payload({'patient_name': 'A', 'patient_id': 'B'}, today=TODAY)
    assert out['age'] is None
    assert out['gender'] is None
    assert out['record_date'] == TODAY
    assert out['source'] == 'manual'


def test_extracted_text_is_stored_verbatim():
    raw = '  Name: Ana Lima\n\nAge: 52\n'
    out = normalize_record_payload({'patient_name': 'A', 'patient_id': 'B', 'extracted_text': raw})
    assert out['extracted_text'] == raw
    out = normalize_record_payload({'patient_name': 'A', 'patient_id': 'B', 'extracted_text': ' \n '})
    assert out['extracted_text'] is None



def test_missing_required_fields_are_all_reported():
    with pytest.raises(RecordValidationError) as exc:
        normalize_record_payload({'patient_name': ' ', 'age': 'forty', 'gender': 'x'})
    assert set(exc.value.errors) == {'patient_name', 'patient_id', 'age', 'gender'}


def test_invalid_date_and_source():
    with pytest.raises(RecordValidationError) as exc:
        normalize_record_payload({
            'patient_name': 'A', 'patient_id': 'B',
            'record_date': '18/10/2026', 'source': 'fax',
        })
    assert set(exc.value.errors) == {'record_date', 'source'}


def test_text_fields_must_be_strings():
    with pytest.raises(RecordValidationError) as exc:
        normalize_record_payload({'patient_name': 'A', 'patient_id': 'B', 'diagnosis': ['flu']})
    assert 'diagnosis' in exc.value.errors


def test_non_dict_payload():
    with pytest.raises(RecordValidationError):
        normalize_record_payload(['not', 'a', 'dict'])


def test_partial_only_returns_supplied_fields():
    assert normalize_record_payload({'age': ''}, partial=True) == {'age': None}
    assert normalize_record_payload({'diagnosis': 'Asthma'}, partial=True) == {'diagnosis': 'Asthma'}


def test_partial_cannot_blank_required_field():
    with pytest.raises(RecordValidationError) as exc:
        normalize_record_payload({'patient_id': ''}, partial=True)
    assert list(exc.value.errors) == ['patient_id']


def test_field_length_limit():
    with pytest.raises(RecordValidationError) as exc:
        normalize_record_payload({'patient_name': 'A', 'patient_id': 'x' * 101})
    assert 'patient_id' in exc.value.errors


@pytest.mark.parametrize('value,expected', [
    (None, None), ('', None), ('  ', None), (0, 0), ('7', 7), (150, 150), (30.0, 30),
])
def test_parse_age_accepts(value, expected):
    assert parse_age(value) == expected


@pytest.mark.parametrize('value', ['-1', 151, 'abc', 12.5, True, '４２'])
def test_parse_age_rejects(value):
    with pytest.raises(ValueError):
        parse_age(value)


def test_merge_reviewed_fields_ignores_blank_overrides():
    extracted = {'patient_name': 'John', 'patient_id': NOT_FOUND, 'age': '40'}
    merged = merge_reviewed_fields(extracted, {'patient_id': 'P9', 'age': '  ', 'gender': None})
    assert merged == {'patient_name': 'John', 'patient_id': 'P9', 'age': '40'}


def test_unresolved_fields():
    assert unresolved_fields({'patient_name': NOT_FOUND, 'patient_id': 'P1'}) == ['patient_name']
    assert unresolved_fields({'patient_name': 'A', 'patient_id': 'B'}) == []


def test_export_record_document_and_filename():
    record = SimpleNamespace(
        patient_name='John Smith', patient_id='P12345', age=45, gender='Male',
        diagnosis='Flu', prescription=None, record_date=date(2026, 10, 1),
        created_at=datetime(2026, 10, 2, 9, 30),
    )
    assert export_record(record) == {
        'patientName': 'John Smith',
        'patientId': 'P12345',
        'age': 45,
        'gender': 'Male',
        'diagnosis': 'Flu',
        'prescription': None,
        'recordDate': '2026-10-01',
        'createdAt': '2026-10-02T09:30:00',
    }
    assert export_filename(record, today=TODAY) == 'medical_record_P12345_2026-10-18.json'


def test_export_filename_is_safe():
    record = SimpleNamespace(patient_id='../../etc/passwd')
    assert '/' not in export_filename(record, today=TODAY)

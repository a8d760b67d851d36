from datetime import date

from extraction import NOT_FOUND, extract_fields, found_fields, process_ocr_text, split_lines


TODAY = date(2026, 10, 18)

CLINIC_NOTE = """
CITY GENERAL HOSPITAL
Patient Name: John Smith
Patient ID: P12345
Age: 45
Gender: Male

Diagnosis: Hypertension
Prescription: Amlodipine 5mg once daily
"""


def test_extracts_all_fields_from_clinic_note():
    fields = extract_fields(CLINIC_NOTE, today=TODAY)
    assert fields == {
        'patient_name': 'John Smith',
        'patient_id': 'P12345',
        'age': '45',
        'gender': 'Male',
        'diagnosis': 'Diagnosis: Hypertension',
        'prescription': 'Prescription: Amlodipine 5mg once daily',
        'record_date': '2026-10-18',
    }


def test_empty_text_yields_defaults():
    for text in ('', '   \n\n  \t', None):
        fields = extract_fields(text, today=TODAY)
        assert fields['patient_name'] == NOT_FOUND
        assert fields['patient_id'] == NOT_FOUND
        assert fields['diagnosis'] == NOT_FOUND
        assert fields['prescription'] == NOT_FOUND
        assert fields['age'] == ''
        assert fields['gender'] == ''
        assert fields['record_date'] == '2026-10-18'


def test_record_date_defaults_to_today():
    assert extract_fields('')['record_date'] == date.today().isoformat()


def test_female_wins_over_male_substring():
    assert extract_fields('Sex: Female', today=TODAY)['gender'] == 'Female'
    assert extract_fields('Sex: MALE', today=TODAY)['gender'] == 'Male'


def test_last_match_wins_for_single_valued_fields():
    text = 'Name: Alice Brown\nAge: 30\nName: Bob Green\nAge: 31\nFemale\nMale'
    fields = extract_fields(text, today=TODAY)
    assert fields['patient_name'] == 'Bob Green'
    assert fields['age'] == '31'
    assert fields['gender'] == 'Male'


def test_one_line_can_fill_several_fields():
    fields = extract_fields('Age: 40 / Female', today=TODAY)
    assert fields['age'] == '40'
    assert fields['gender'] == 'Female'


def test_diagnosis_and_prescription_collect_every_matching_line():
    text = '\n'.join([
        'Diagnosis: Type 2 diabetes',
        'Condition stable',
        'Medication: Metformin 500mg',
        'Treatment: diet control',
    ])
    fields = extract_fields(text, today=TODAY)
    assert fields['diagnosis'] == 'Diagnosis: Type 2 diabetes Condition stable'
    assert fields['prescription'] == 'Medication: Metformin 500mg Treatment: diet control'


def test_line_with_both_keywords_feeds_both_fields():
    fields = extract_fields('Diagnosis and treatment: rest', today=TODAY)
    assert fields['diagnosis'] == 'Diagnosis and treatment: rest'
    assert fields['prescription'] == 'Diagnosis and treatment: rest'


def test_keywords_are_case_insensitive():
    fields = extract_fields('PATIENT NAME: MARY JANE\nPATIENT ID: x9\nAGE 7', today=TODAY)
    assert fields['patient_name'] == 'MARY JANE'
    assert fields['patient_id'] == 'x9'
    assert fields['age'] == '7'


def test_name_stops_at_non_letters():
    fields = extract_fields('Name: Ravi Kumar, 2nd visit', today=TODAY)
    assert fields['patient_name'] == 'Ravi Kumar'


def test_name_requires_a_value_after_label():
    fields = extract_fields('Patient:\nName:', today=TODAY)
    assert fields['patient_name'] == NOT_FOUND


def test_windows_line_endings():
    fields = extract_fields('Name: Ana Lima\r\nAge: 52\r\n', today=TODAY)
    assert fields['patient_name'] == 'Ana Lima'
    assert fields['age'] == '52'


def test_split_lines_strips_and_drops_blanks():
    assert split_lines('  a \n\n b\n   \n') == ['a', 'b']
    assert split_lines('') == []


def test_process_ocr_text_keeps_raw_text():
    payload = process_ocr_text(CLINIC_NOTE, today=TODAY)
    assert payload['extracted_text'] == CLINIC_NOTE
    assert payload['patient_id'] == 'P12345'


def test_found_fields_skips_placeholders():
    fields = extract_fields('Name: Lee Wong\nMale', today=TODAY)
    assert sorted(found_fields(fields)) == ['gender', 'patient_name']


def test_only_newlines_split_lines():
    # form feeds and vertical tabs from scanned pages stay inside the line
    assert split_lines('Name: Ana\x0bLima\nAge: 52') == ['Name: Ana\x0bLima', 'Age: 52']
    assert split_lines('a\x0cb c') == ['a\x0cb c']


def test_age_takes_ascii_digits_only():
    assert extract_fields('Age: ٤٥', today=TODAY)['age'] == ''
    assert extract_fields('Age: 45٤', today=TODAY)['age'] == '45'

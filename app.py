"""
MediScan Records API - Flask Backend

A Flask API for digitizing medical records with:
- Doctor and admin accounts (JWT-based)
- OCR of record photos and camera captures
- Field extraction from OCR text for review before saving
- Medical record CRUD, search and JSON export
- Analytics and audit logs

Features:
- Doctor registration and login with bcrypt password hashing
- JWT access tokens carrying the account role, checked on every protected route
- Image and PDF OCR via pytesseract (pdfplumber/pdf2image for PDFs)
- Per-record audit trail kept across record and account deletion
- Admin bootstrap account from environment (no hard-coded credentials)

Notes:
- Uses SQLite database by default (configurable via DATABASE_URL)
- OCR dependencies are optional at runtime; OCR routes answer 501 when missing
- For production: use HTTPS, rotate secrets and use a WSGI server.
"""
from datetime import timedelta, datetime
from functools import wraps
import json
import logging
import os
import re
import time
import uuid

import click
from dotenv import load_dotenv
from flask import Flask, Response, jsonify, request
from flask_bcrypt import Bcrypt
from flask_cors import CORS
from flask_jwt_extended import (JWTManager, create_access_token,
                                current_user, jwt_required)
from sqlalchemy import func, or_
from werkzeug.exceptions import RequestEntityTooLarge
from werkzeug.utils import secure_filename

from analytics import compute_analytics, dashboard_summary
from extraction import NOT_FOUND, found_fields, process_ocr_text
from models import (ACTION_CREATED, ACTION_DELETED, ACTION_UPDATED, ROLE_ADMIN,
                    ROLE_DOCTOR, AuditLog, MedicalRecord, Profile, db,
                    find_profile_by_username, log_action, utcnow)
from ocr import ALLOWED_EXT, OCRError, OCRUnavailableError, allowed_file, ocr_status, perform_ocr
from records import (RecordValidationError, export_filename, export_record,
                     merge_reviewed_fields, normalize_record_payload,
                     unresolved_fields)


# Load environment variables from a .env file (optional, for development).
load_dotenv()

logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)


# -----------------------------
# Application configuration
# -----------------------------
app = Flask(__name__)
CORS(app, supports_credentials=True)

# Secret key and JWT settings. In production, set real secrets via env vars.
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev-secret-key')
app.config['JWT_SECRET_KEY'] = os.environ.get('JWT_SECRET_KEY', app.config['SECRET_KEY'])
app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(hours=int(os.environ.get('JWT_EXPIRES_HOURS', 8)))

# SQLAlchemy (SQLite by default) and upload limits
app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', 'sqlite:///mediscan.db')
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['MAX_CONTENT_LENGTH'] = int(os.environ.get('MAX_CONTENT_LENGTH', 8 * 1024 * 1024))

# Accounts and OCR
app.config['ACCOUNT_EMAIL_DOMAIN'] = os.environ.get('ACCOUNT_EMAIL_DOMAIN', 'mediscan.ai')
app.config['ADMIN_USERNAME'] = os.environ.get('ADMIN_USERNAME', 'admin')
app.config['ADMIN_PASSWORD'] = os.environ.get('ADMIN_PASSWORD')
app.config['OCR_LANGUAGE'] = os.environ.get('OCR_LANGUAGE', 'eng')
app.config['UPLOAD_RETENTION_HOURS'] = int(os.environ.get('UPLOAD_RETENTION_HOURS', 24))

# Upload directory
app.config['UPLOAD_FOLDER'] = os.environ.get(
    'UPLOAD_FOLDER', os.path.join(os.path.dirname(os.path.abspath(__file__)), 'uploads'))
os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

MIN_PASSWORD_LENGTH = 6
USERNAME_RE = re.compile(r'^[A-Za-z0-9_.-]{3,150}$')
UPLOAD_FIELDS = ('image', 'file')
DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 500
MAX_AUDIT_LOGS = 200

# Initialize extensions
app.config['BCRYPT_LOG_ROUNDS'] = int(os.environ.get('BCRYPT_LOG_ROUNDS', 12))
bcrypt = Bcrypt(app)
jwt = JWTManager(app)
db.init_app(app)


# -----------------------------
# Auth helpers
# -----------------------------
@jwt.user_lookup_loader
def load_profile(_jwt_header, jwt_data):
    """Resolve the token identity to a Profile (None if it no longer exists)."""
    try:
        uid = int(jwt_data['sub'])
    except (KeyError, TypeError, ValueError):
        return None
    return db.session.get(Profile, uid)


@jwt.user_lookup_error_loader
def profile_not_found(_jwt_header, _jwt_data):
    return jsonify({'msg': 'user not found'}), 401


@jwt.invalid_token_loader
def invalid_token(reason):
    return jsonify({'msg': f'invalid token: {reason}'}), 401


@jwt.unauthorized_loader
def missing_token(reason):
    return jsonify({'msg': reason}), 401


def role_required(*roles):
    """Require a valid access token whose account holds one of roles."""
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if current_user.role not in roles:
                return jsonify({'msg': 'insufficient permissions'}), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def hash_password(password: str) -> str:
    return bcrypt.generate_password_hash(password).decode('utf-8')


def ensure_admin_account():
    """Create the bootstrap admin from ADMIN_USERNAME/ADMIN_PASSWORD if missing."""
    username = app.config.get('ADMIN_USERNAME')
    password = app.config.get('ADMIN_PASSWORD')
    if not username or not password:
        return None

    admin = find_profile_by_username(username)
    if admin:
        if admin.role != ROLE_ADMIN:
            logger.warning('bootstrap admin name %r belongs to a non-admin account', username)
        return admin

    admin = Profile(
        username=username,
        email=f"{username}@{app.config['ACCOUNT_EMAIL_DOMAIN']}",
        full_name='Administrator',
        password=hash_password(password),
        role=ROLE_ADMIN,
    )
    db.session.add(admin)
    db.session.commit()
    logger.info('created bootstrap admin account %r', username)
    return admin


def init_db():
    """Create tables and the bootstrap admin. Call inside an app context."""
    db.create_all()
    ensure_admin_account()


@app.cli.command('init-db')
def init_db_command():
    """Create database tables and the bootstrap admin account."""
    init_db()
    print('database initialized')


def purge_stale_uploads(max_age_hours=None, now=None) -> list:
    """Remove uploads older than max_age_hours that no record references.

    Files OCR'd for review but never saved are left behind by /api/ocr; this
    reclaims them. Returns the removed file names.
    """
    if max_age_hours is None:
        max_age_hours = app.config['UPLOAD_RETENTION_HOURS']
    cutoff = (now or time.time()) - max_age_hours * 3600
    referenced = {
        path for (path,) in db.session.query(MedicalRecord.image_path)
        .filter(MedicalRecord.image_path.isnot(None))
    }
    removed = []
    folder = app.config['UPLOAD_FOLDER']
    for name in sorted(os.listdir(folder)):
        path = os.path.join(folder, name)
        if name in referenced or not os.path.isfile(path):
            continue
        if os.path.getmtime(path) >= cutoff:
            continue
        remove_upload(name)
        removed.append(name)
    if removed:
        logger.info('purged %d stale uploads', len(removed))
    return removed


@app.cli.command('purge-uploads')
@click.option('--hours', type=int, default=None,
              help='Age in hours after which unreferenced uploads are removed.')
def purge_uploads_command(hours):
    """Delete uploads that were never attached to a record."""
    removed = purge_stale_uploads(hours)
    print(f'removed {len(removed)} stale uploads')


# -----------------------------
# Request helpers
# -----------------------------
def get_json_body():
    """Return the request JSON object, or None if the body isn't one."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def page_args(default_limit: int = DEFAULT_PAGE_SIZE, max_limit: int = MAX_PAGE_SIZE) -> tuple:
    limit = request.args.get('limit', default_limit, type=int)
    offset = request.args.get('offset', 0, type=int)
    return max(1, min(limit, max_limit)), max(0, offset)


def get_upload():
    """Return (file, None) for the uploaded image, or (None, error_response)."""
    upload = None
    for field in UPLOAD_FIELDS:
        if field in request.files:
            upload = request.files[field]
            break
    if upload is None:
        return None, (jsonify({'msg': "missing file field 'image'"}), 400)
    if upload.filename == '':
        return None, (jsonify({'msg': 'no selected file'}), 400)
    if not allowed_file(upload.filename):
        allowed = ', '.join(sorted(ALLOWED_EXT))
        return None, (jsonify({'msg': f'file type not allowed. Allowed: {allowed}'}), 415)
    return upload, None


def save_file_storage(file) -> tuple:
    """Save uploaded file to storage and return (original_name, stored_name)."""
    orig_name = secure_filename(file.filename)
    ext = os.path.splitext(orig_name)[1].lower() or '.bin'
    stored_name = f"{uuid.uuid4()}{ext}"
    file.save(os.path.join(app.config['UPLOAD_FOLDER'], stored_name))
    return orig_name, stored_name


def upload_path(stored_name: str) -> str:
    return os.path.join(app.config['UPLOAD_FOLDER'], stored_name)


def remove_upload(stored_name):
    if not stored_name:
        return
    try:
        os.remove(upload_path(stored_name))
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning('could not remove upload %s: %s', stored_name, e)


def valid_stored_upload(stored_name) -> bool:
    """True if stored_name names a file this service saved to UPLOAD_FOLDER."""
    if not stored_name or not isinstance(stored_name, str):
        return False
    if secure_filename(stored_name) != stored_name:
        return False
    return os.path.isfile(upload_path(stored_name))


def run_ocr(stored_name: str):
    """OCR a stored upload. Returns (text, None) or (None, error_response)."""
    try:
        text = perform_ocr(upload_path(stored_name), app.config['OCR_LANGUAGE'])
    except OCRUnavailableError as e:
        logger.warning('OCR unavailable: %s', e)
        return None, (jsonify({'msg': str(e)}), 501)
    except OCRError as e:
        logger.warning('OCR failed for %s: %s', stored_name, e)
        return None, (jsonify({'msg': 'error during OCR', 'error': str(e)}), 422)

    if not text or not text.strip():
        return None, (jsonify({'msg': 'no text could be read from the image'}), 422)
    return text, None


def visible_records(user):
    """Query of the records a user may see: their own, or everything for admins."""
    query = MedicalRecord.query
    if user.role != ROLE_ADMIN:
        query = query.filter(MedicalRecord.created_by == user.id)
    return query


def get_visible_record(user, record_id):
    """Return the record if the user may see it, else None."""
    record = db.session.get(MedicalRecord, record_id)
    if record is None:
        return None
    if user.role != ROLE_ADMIN and record.created_by != user.id:
        return None
    return record


def like_pattern(term: str) -> str:
    escaped = term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f'%{escaped}%'


def validation_error(e: RecordValidationError):
    return jsonify({'msg': 'invalid record', 'errors': e.errors}), 400


# -----------------------------
# Account routes
# -----------------------------
@app.route('/register', methods=['POST'])
def register():
    """Register a new doctor account.

    Expected JSON body:
        {"username": "drsmith", "password": "...", "full_name": "Dr. Jane Smith",
         "email": "optional@clinic.org"}

    When email is omitted it is derived from the username and
    ACCOUNT_EMAIL_DOMAIN. Admin accounts can't be created through this route.
    """
    data = get_json_body()
    if data is None:
        return jsonify({'msg': 'invalid JSON body'}), 400

    username = (data.get('username') or '').strip()
    full_name = (data.get('full_name') or '').strip()
    password = data.get('password') or ''
    email = (data.get('email') or '').strip().lower()

    if not username or not password or not full_name:
        return jsonify({'msg': 'username, password and full_name are required'}), 400
    if not USERNAME_RE.match(username):
        return jsonify({'msg': 'username must be 3-150 letters, digits, dots, dashes or underscores'}), 400
    if len(password) < MIN_PASSWORD_LENGTH:
        return jsonify({'msg': f'password must be at least {MIN_PASSWORD_LENGTH} characters'}), 400
    if username.lower() == (app.config.get('ADMIN_USERNAME') or '').lower():
        return jsonify({'msg': 'username is reserved'}), 409

    if not email:
        email = f"{username.lower()}@{app.config['ACCOUNT_EMAIL_DOMAIN']}"

    # Prevent duplicate usernames or emails
    if Profile.query.filter((Profile.username == username) | (Profile.email == email)).first():
        return jsonify({'msg': 'username or email already exists'}), 409

    user = Profile(
        username=username,
        email=email,
        full_name=full_name,
        password=hash_password(password),
        role=ROLE_DOCTOR,
    )
    db.session.add(user)
    db.session.commit()
    logger.info('registered doctor account id=%s', user.id)

    return jsonify({'msg': 'user created', 'user_id': user.id, 'username': username}), 201


@app.route('/login', methods=['POST'])
def login():
    """Authenticate and return a JWT access token.

    Expected JSON body: {"username": "drsmith", "password": "..."}
    """
    data = get_json_body()
    if data is None:
        return jsonify({'msg': 'invalid JSON body'}), 400

    username = (data.get('username') or '').strip()
    password = data.get('password') or ''

    if not username or not password:
        return jsonify({'msg': 'username and password required'}), 400

    user = find_profile_by_username(username)
    if not user or not bcrypt.check_password_hash(user.password, password):
        logger.warning('failed login for username %r', username)
        # Generic message to avoid revealing which field was incorrect
        return jsonify({'msg': 'invalid credentials'}), 401

    access_token = create_access_token(identity=str(user.id), additional_claims={'role': user.role})
    return jsonify({
        'access_token': access_token,
        'username': user.username,
        'full_name': user.full_name,
        'role': user.role,
    }), 200


@app.route('/profile', methods=['GET'])
@jwt_required()
def profile():
    """Return the caller's profile and role."""
    return jsonify({'profile': current_user.to_dict()}), 200


@app.route('/profile', methods=['DELETE'])
@jwt_required()
def delete_profile():
    """Delete the caller's own account. Their records stay, unowned."""
    user = current_user._get_current_object()
    if user.role == ROLE_ADMIN:
        return jsonify({'msg': 'admin accounts cannot delete themselves'}), 403

    uid = user.id
    MedicalRecord.query.filter_by(created_by=uid).update({'created_by': None})
    db.session.delete(user)
    db.session.commit()
    logger.info('account id=%s deleted by its owner', uid)
    return jsonify({'msg': 'account deleted'}), 200


# -----------------------------
# OCR
# -----------------------------
@app.route('/api/ocr', methods=['POST'])
@role_required(ROLE_DOCTOR)
def ocr_extract():
    """
    Run OCR on an uploaded record image and return the extracted fields for review.

    Accepts multipart/form-data with the image under 'image' (or 'file').
    Nothing is saved to the database; the stored image name is returned as
    'image_path' so the reviewed record can reference it on save.
    """
    upload, error = get_upload()
    if error:
        return error

    orig_name, stored_name = save_file_storage(upload)
    text, error = run_ocr(stored_name)
    if error:
        remove_upload(stored_name)
        return error

    extracted = process_ocr_text(text)
    return jsonify({
        'extracted': extracted,
        'found': found_fields(extracted),
        'filename': orig_name,
        'image_path': stored_name,
        'characters': len(text),
    }), 200


# -----------------------------
# Medical records
# -----------------------------
@app.route('/api/records', methods=['POST'])
@role_required(ROLE_DOCTOR)
def create_record():
    """Save a record from manual entry or from a reviewed OCR extraction.

    Expected JSON body:
        {"patient_name": "...", "patient_id": "...", "age": 45, "gender": "Male",
         "diagnosis": "...", "prescription": "...", "record_date": "2026-10-18",
         "extracted_text": "...", "image_path": "<from /api/ocr>",
         "source": "manual" | "upload" | "camera"}
    """
    data = get_json_body()
    if data is None:
        return jsonify({'msg': 'invalid JSON body'}), 400

    try:
        fields = normalize_record_payload(data)
    except RecordValidationError as e:
        return validation_error(e)

    image_path = data.get('image_path')
    if image_path and not valid_stored_upload(image_path):
        return jsonify({'msg': 'invalid record', 'errors': {'image_path': 'unknown upload'}}), 400

    record = MedicalRecord(created_by=current_user.id, image_path=image_path or None, **fields)
    db.session.add(record)
    db.session.flush()
    log_action(current_user, ACTION_CREATED, record)
    db.session.commit()
    logger.info('record %s created by user id=%s (source=%s)', record.id, current_user.id, record.source)

    return jsonify({'msg': 'record created', 'record': record.to_dict()}), 201


@app.route('/api/records/upload', methods=['POST'])
@role_required(ROLE_DOCTOR)
def upload_record():
    """
    Capture a record in one step: OCR the image, extract fields and save.

    Accepts multipart/form-data:
      - image (required): photo or camera capture of the record
      - source (optional): 'upload' (default) or 'camera'
      - any record field (optional): overrides the extracted value

    When OCR can't find the patient name or ID and no override is given, or
    the extracted values fail validation, nothing is saved: the extraction
    and the kept image_path come back with the missing or invalid fields so
    the client can fall back to the review flow.
    """
    upload, error = get_upload()
    if error:
        return error

    orig_name, stored_name = save_file_storage(upload)
    text, error = run_ocr(stored_name)
    if error:
        remove_upload(stored_name)
        return error

    extracted = process_ocr_text(text)
    for key in ('diagnosis', 'prescription'):
        if extracted[key] == NOT_FOUND:
            extracted[key] = ''

    overrides = request.form.to_dict()
    overrides.setdefault('source', 'upload')
    merged = merge_reviewed_fields(extracted, overrides)

    missing = unresolved_fields(merged)
    if missing:
        return jsonify({
            'msg': 'could not extract required fields; review and save manually',
            'missing': missing,
            'extracted': process_ocr_text(text),
            'image_path': stored_name,
        }), 400

    try:
        fields = normalize_record_payload(merged)
    except RecordValidationError as e:
        return jsonify({
            'msg': 'invalid record; review and save manually',
            'errors': e.errors,
            'extracted': process_ocr_text(text),
            'image_path': stored_name,
        }), 400

    record = MedicalRecord(created_by=current_user.id, image_path=stored_name, **fields)
    db.session.add(record)
    db.session.flush()
    log_action(current_user, ACTION_CREATED, record)
    db.session.commit()
    logger.info('record %s created from upload %s by user id=%s', record.id, orig_name, current_user.id)

    return jsonify({'msg': 'record created', 'record': record.to_dict()}), 201


@app.route('/api/records', methods=['GET'])
@role_required(ROLE_DOCTOR, ROLE_ADMIN)
def list_records():
    """List visible records, newest first.

    Query args: search (matches patient name, patient ID or diagnosis),
    limit, offset.
    """
    limit, offset = page_args()
    query = visible_records(current_user)

    search = (request.args.get('search') or '').strip()
    if search:
        pattern = like_pattern(search)
        query = query.filter(or_(
            MedicalRecord.patient_name.ilike(pattern, escape='\\'),
            MedicalRecord.patient_id.ilike(pattern, escape='\\'),
            MedicalRecord.diagnosis.ilike(pattern, escape='\\'),
        ))

    total = query.count()
    rows = (query.order_by(MedicalRecord.created_at.desc(), MedicalRecord.id)
            .offset(offset).limit(limit).all())
    return jsonify({
        'records': [r.to_dict() for r in rows],
        'total': total,
        'limit': limit,
        'offset': offset,
    }), 200


@app.route('/api/records/<record_id>', methods=['GET'])
@role_required(ROLE_DOCTOR, ROLE_ADMIN)
def get_record(record_id):
    record = get_visible_record(current_user, record_id)
    if record is None:
        return jsonify({'msg': 'record not found'}), 404
    return jsonify({'record': record.to_dict()}), 200


@app.route('/api/records/<record_id>', methods=['PUT', 'PATCH'])
@role_required(ROLE_DOCTOR, ROLE_ADMIN)
def update_record(record_id):
    """Edit a record. Only the doctor who created it may change it."""
    record = get_visible_record(current_user, record_id)
    if record is None:
        return jsonify({'msg': 'record not found'}), 404
    if record.created_by != current_user.id:
        return jsonify({'msg': 'only the creating doctor may edit this record'}), 403

    data = get_json_body()
    if data is None:
        return jsonify({'msg': 'invalid JSON body'}), 400

    try:
        fields = normalize_record_payload(data, partial=True)
    except RecordValidationError as e:
        return validation_error(e)

    for key, value in fields.items():
        setattr(record, key, value)
    log_action(current_user, ACTION_UPDATED, record)
    db.session.commit()
    logger.info('record %s updated by user id=%s (%s)', record.id, current_user.id, ', '.join(sorted(fields)))

    return jsonify({'msg': 'record updated', 'record': record.to_dict()}), 200


@app.route('/api/records/<record_id>', methods=['DELETE'])
@role_required(ROLE_DOCTOR, ROLE_ADMIN)
def delete_record(record_id):
    """Delete a record, and its image once no other record uses it. Creator or admin only."""
    record = get_visible_record(current_user, record_id)
    if record is None:
        return jsonify({'msg': 'record not found'}), 404

    image_path = record.image_path
    log_action(current_user, ACTION_DELETED, record)
    db.session.delete(record)
    db.session.commit()
    if image_path and not MedicalRecord.query.filter_by(image_path=image_path).first():
        remove_upload(image_path)
    logger.info('record %s deleted by user id=%s', record_id, current_user.id)

    return jsonify({'msg': 'record deleted'}), 200


@app.route('/api/records/<record_id>/export', methods=['GET'])
@role_required(ROLE_DOCTOR, ROLE_ADMIN)
def export_record_json(record_id):
    """Download a record as a JSON file."""
    record = get_visible_record(current_user, record_id)
    if record is None:
        return jsonify({'msg': 'record not found'}), 404

    body = json.dumps(export_record(record), indent=2, ensure_ascii=False)
    filename = export_filename(record)
    return Response(
        body,
        mimetype='application/json',
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
    )


# -----------------------------
# Dashboards
# -----------------------------
@app.route('/api/analytics', methods=['GET'])
@role_required(ROLE_DOCTOR, ROLE_ADMIN)
def analytics():
    records = visible_records(current_user).all()
    return jsonify(compute_analytics(records, now=utcnow())), 200


@app.route('/api/dashboard', methods=['GET'])
@role_required(ROLE_DOCTOR, ROLE_ADMIN)
def dashboard():
    summary = dashboard_summary(visible_records(current_user).all(), now=utcnow())
    summary['recent'] = [r.to_dict() for r in summary['recent']]
    return jsonify(summary), 200


# -----------------------------
# Admin
# -----------------------------
@app.route('/api/admin/doctors', methods=['GET'])
@role_required(ROLE_ADMIN)
def list_doctors():
    """Doctor accounts, newest first, with how many records each has created."""
    counts = dict(
        db.session.query(MedicalRecord.created_by, func.count(MedicalRecord.id))
        .group_by(MedicalRecord.created_by)
        .all()
    )
    doctors = (Profile.query.filter_by(role=ROLE_DOCTOR)
               .order_by(Profile.created_at.desc(), Profile.id.desc()).all())
    out = []
    for doctor in doctors:
        item = doctor.to_dict()
        item['record_count'] = counts.get(doctor.id, 0)
        out.append(item)
    return jsonify({'doctors': out}), 200


@app.route('/api/admin/doctors/<int:doctor_id>', methods=['DELETE'])
@role_required(ROLE_ADMIN)
def delete_doctor(doctor_id):
    """Delete a doctor account. Their records are kept without an owner."""
    doctor = db.session.get(Profile, doctor_id)
    if doctor is None:
        return jsonify({'msg': 'doctor not found'}), 404
    if doctor.role != ROLE_DOCTOR:
        return jsonify({'msg': 'only doctor accounts can be deleted'}), 403

    MedicalRecord.query.filter_by(created_by=doctor.id).update({'created_by': None})
    db.session.delete(doctor)
    db.session.commit()
    logger.info('doctor id=%s deleted by admin id=%s', doctor_id, current_user.id)

    return jsonify({'msg': 'doctor deleted'}), 200


@app.route('/api/admin/audit-logs', methods=['GET'])
@role_required(ROLE_ADMIN)
def audit_logs():
    limit = request.args.get('limit', 50, type=int)
    limit = max(1, min(limit, MAX_AUDIT_LOGS))
    logs = (AuditLog.query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
            .limit(limit).all())
    return jsonify({'logs': [entry.to_dict() for entry in logs]}), 200


@app.route('/api/admin/stats', methods=['GET'])
@role_required(ROLE_ADMIN)
def admin_stats():
    now = utcnow()
    month_start = datetime(now.year, now.month, 1)
    return jsonify({
        'total_doctors': Profile.query.filter_by(role=ROLE_DOCTOR).count(),
        'total_records': MedicalRecord.query.count(),
        'records_this_month': MedicalRecord.query.filter(MedicalRecord.created_at >= month_start).count(),
    }), 200


# -----------------------------
# Service
# -----------------------------
@app.route('/health', methods=['GET'])
def health():
    return jsonify({'status': 'ok', 'ocr': ocr_status()}), 200


# -----------------------------
# Error handlers
# -----------------------------
@app.errorhandler(404)
def not_found(e):
    return jsonify({'msg': 'resource not found'}), 404


@app.errorhandler(405)
def method_not_allowed(e):
    return jsonify({'msg': 'method not allowed'}), 405


@app.errorhandler(RequestEntityTooLarge)
def too_large(e):
    limit = app.config['MAX_CONTENT_LENGTH'] // (1024 * 1024)
    return jsonify({'msg': f'upload too large (limit {limit} MB)'}), 413


@app.errorhandler(500)
def server_error(e):
    original = getattr(e, 'original_exception', None)
    if original is not None:
        logger.error('unhandled error on %s %s', request.method, request.path, exc_info=original)
    return jsonify({'msg': 'internal server error'}), 500


if __name__ == '__main__':
    # Ensure DB tables exist (creates sqlite file if needed). In production,
    # use migrations (Flask-Migrate / Alembic) instead of create_all().
    with app.app_context():
        init_db()

    # Run development server. For production use a WSGI server.
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)), debug=True)

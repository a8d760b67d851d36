from datetime import datetime, timezone
import uuid

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

ROLE_DOCTOR = 'doctor'
ROLE_ADMIN = 'admin'

ACTION_CREATED = 'Created Record'
ACTION_UPDATED = 'Updated Record'
ACTION_DELETED = 'Deleted Record'


def utcnow():
    """Naive UTC timestamp; SQLite drops tzinfo on the way back anyway."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def make_uuid() -> str:
    return str(uuid.uuid4())


def isoformat(value):
    return value.isoformat() if value else None


# -----------------------------
# Accounts
# -----------------------------
class Profile(db.Model):
    """A doctor or admin account.

    Fields:
    - username: unique login name
    - email: unique address, derived from the username when not given
    - password: bcrypt-hashed password (stored as string)
    - role: 'doctor' or 'admin'
    """
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(150), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    full_name = db.Column(db.String(255), nullable=False, default='')
    password = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=ROLE_DOCTOR)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'full_name': self.full_name,
            'role': self.role,
            'created_at': isoformat(self.created_at),
        }


def find_profile_by_username(username: str):
    """Return a Profile instance by username or None."""
    return Profile.query.filter_by(username=username).first()


# -----------------------------
# Medical records
# -----------------------------
class MedicalRecord(db.Model):
    """A patient record captured by a doctor, from OCR or manual entry."""
    id = db.Column(db.String(36), primary_key=True, default=make_uuid)
    patient_name = db.Column(db.String(255), nullable=False)
    patient_id = db.Column(db.String(100), nullable=False, index=True)
    age = db.Column(db.Integer, nullable=True)
    gender = db.Column(db.String(20), nullable=True)
    diagnosis = db.Column(db.Text, nullable=True)
    prescription = db.Column(db.Text, nullable=True)
    record_date = db.Column(db.Date, nullable=True)
    extracted_text = db.Column(db.Text, nullable=True)
    image_path = db.Column(db.String(512), nullable=True)
    source = db.Column(db.String(20), nullable=False, default='manual')
    created_by = db.Column(db.Integer, db.ForeignKey('profile.id', ondelete='SET NULL'),
                           nullable=True, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'patient_name': self.patient_name,
            'patient_id': self.patient_id,
            'age': self.age,
            'gender': self.gender,
            'diagnosis': self.diagnosis,
            'prescription': self.prescription,
            'record_date': isoformat(self.record_date),
            'extracted_text': self.extracted_text,
            'image_path': self.image_path,
            'source': self.source,
            'created_by': self.created_by,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }


# -----------------------------
# Audit trail
# -----------------------------
class AuditLog(db.Model):
    """One row per record mutation.

    Actor name and patient name are copied in so the trail still reads after
    the record or the doctor account is deleted.
    """
    id = db.Column(db.Integer, primary_key=True)
    actor_id = db.Column(db.Integer, nullable=True, index=True)
    actor_name = db.Column(db.String(255), nullable=True)
    action = db.Column(db.String(50), nullable=False)
    record_id = db.Column(db.String(36), nullable=True)
    patient_name = db.Column(db.String(255), nullable=True)
    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'doctor_name': self.actor_name or 'Unknown Doctor',
            'action': self.action,
            'record_id': self.record_id,
            'patient_name': self.patient_name,
            'timestamp': isoformat(self.timestamp),
        }


def log_action(actor: Profile, action: str, record: MedicalRecord):
    """Stage an audit row in the current session; the caller commits."""
    entry = AuditLog(
        actor_id=actor.id if actor else None,
        actor_name=(actor.full_name or actor.username) if actor else None,
        action=action,
        record_id=record.id,
        patient_name=record.patient_name,
    )
    db.session.add(entry)
    return entry

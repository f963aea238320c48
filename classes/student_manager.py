import csv
import logging

from sqlalchemy.exc import IntegrityError

from models import db
from models.users import User
from classes.errors import Conflict, ValidationError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("email", "password", "registrationNumber", "name", "college", "branch")


class StudentManager:
    @staticmethod
    def build_student(data, admin):
        """Validate one student payload and return an unsaved User."""
        data = dict(data or {})
        # admins register students into their own college and branch by default
        data.setdefault("college", admin.college if admin else None)
        data.setdefault("branch", admin.branch if admin else None)

        missing = [name for name in REQUIRED_FIELDS if not str(data.get(name) or "").strip()]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        email = data["email"].strip().lower()
        registration_number = str(data["registrationNumber"]).strip().upper()
        existing = User.query.filter(
            (User.email == email) | (User.registration_number == registration_number)
        ).first()
        if existing:
            raise Conflict("Student with this email or registration number already exists")

        student = User(
            email=email,
            name=data["name"].strip(),
            role="student",
            registration_number=registration_number,
            college=data["college"].strip(),
            branch=data["branch"].strip(),
            section=(data.get("section") or "").strip().upper() or None,
            year=str(data["year"]) if data.get("year") else None,
            semester=str(data["semester"]) if data.get("semester") else None,
            created_by=admin.id if admin else None,
        )
        student.set_password(str(data["password"]))
        return student

    @staticmethod
    def create_student(data, admin):
        student = StudentManager.build_student(data, admin)
        db.session.add(student)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict("Student with this email or registration number already exists")
        logger.info("Created student %s", student.registration_number)
        return student

    @staticmethod
    def bulk_create(rows, admin):
        """Create students one by one; a bad row is reported, not fatal. Returns (created, errors)."""
        created, errors = [], []
        for row_number, row in enumerate(rows, start=1):
            try:
                created.append(StudentManager.create_student(row, admin))
            except (ValidationError, Conflict) as e:
                errors.append({
                    "row": row_number,
                    "email": (row or {}).get("email"),
                    "error": e.message,
                })
        return created, errors

    @staticmethod
    def parse_csv(file):
        """Read an uploaded CSV whose header uses the JSON field names."""
        try:
            decoded = file.read().decode("utf-8-sig").splitlines()
        except UnicodeDecodeError:
            raise ValidationError("CSV file must be UTF-8 encoded")
        reader = csv.DictReader(decoded)
        if not reader.fieldnames:
            raise ValidationError("CSV file is empty")
        return [{k.strip(): (v or "").strip() for k, v in row.items() if k} for row in reader]

    @staticmethod
    def set_active(student, active):
        student.is_active = active
        db.session.commit()
        return student

from models import db
from utils.helpers import utcnow, isoformat
from werkzeug.security import generate_password_hash, check_password_hash

ROLES = ("student", "admin", "super_admin")
ADMIN_ROLES = ("admin", "super_admin")


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="student")  # 'student', 'admin', 'super_admin'

    # Student identity fields, also used to scope admins to a college/branch
    registration_number = db.Column(db.String(50), nullable=True, unique=True)
    college = db.Column(db.String(120), nullable=True, index=True)
    branch = db.Column(db.String(120), nullable=True, index=True)
    section = db.Column(db.String(10), nullable=True)
    year = db.Column(db.String(2), nullable=True)
    semester = db.Column(db.String(2), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    date_created = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    attempts = db.relationship("Attempt", back_populates="student", lazy=True)

    def set_password(self, password):
        """Hashes the password before storing."""
        self.password_hash = generate_password_hash(password, method="pbkdf2:sha256")

    def check_password(self, password):
        """Checks if a given password matches the stored hash."""
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role in ADMIN_ROLES

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "registrationNumber": self.registration_number,
            "college": self.college,
            "branch": self.branch,
            "section": self.section,
            "year": self.year,
            "semester": self.semester,
            "isActive": self.is_active,
            "dateCreated": isoformat(self.date_created),
        }

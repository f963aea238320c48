from flask import Blueprint, request, jsonify, g, current_app
from models.users import User
from utils.tokens import get_jwt_token
from utils.utils import login_required, role_required
from classes.student_manager import StudentManager

auth_bp = Blueprint('auth_bp', __name__)


# Login
@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password")

    if not email or not password:
        return jsonify({"error": "Email and password are required"}), 400

    user = User.query.filter_by(email=email).first()

    if not user or not user.check_password(password):
        current_app.logger.info("Failed login for %s", email)
        return jsonify({"error": "Invalid credentials"}), 401

    if not user.is_active:
        return jsonify({"error": "Account is deactivated"}), 403

    token = get_jwt_token({
        "user_id": user.id,
        "email": user.email,
        "role": user.role,
    })

    return jsonify({
        "message": "Login successful",
        "token": token,
        "user": user.to_dict()
    }), 200


# Current user
@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({"user": g.current_user.to_dict()}), 200


# Register a student (admins only)
@auth_bp.route('/register-student', methods=['POST'])
@login_required
@role_required("admin", "super_admin")
def register_student():
    student = StudentManager.create_student(request.get_json(silent=True), g.current_user)
    return jsonify({
        "message": "Student registered successfully!",
        "student": student.to_dict()
    }), 201

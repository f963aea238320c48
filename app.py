import os
import logging
from dotenv import load_dotenv
load_dotenv()
from flask import Flask, jsonify
from flask_cors import CORS
from flask_migrate import Migrate
from config import config_dict, ProdConfig
from models import db
from classes.errors import AssessmentError
from classes.attempt_manager import AttemptManager
from routes.authentication import auth_bp
from routes.admin import admin_bp
from routes.students import student_bp

migrate = Migrate()


def create_app(env=None, config_overrides=None):
    app = Flask(__name__)

    env = (env or os.environ.get("FLASK_ENV", "production")).lower()
    app.config.from_object(config_dict.get(env, ProdConfig))
    if config_overrides:
        app.config.update(config_overrides)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.logger.info("Environment: %s", env)

    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}},
         supports_credentials=True)

    db.init_app(app)
    migrate.init_app(app, db)

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')
    app.register_blueprint(student_bp, url_prefix='/api/student')

    @app.route('/')
    def home():
        return jsonify({"message": "GradeUpNow College Portal API"})

    @app.errorhandler(AssessmentError)
    def handle_assessment_error(error):
        db.session.rollback()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found(_error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    def server_error(error):
        db.session.rollback()
        app.logger.exception("Unhandled error: %s", error)
        return jsonify({"error": "Internal server error"}), 500

    @app.cli.command("expire-attempts")
    def expire_attempts():
        """Auto-submit every in-progress attempt whose deadline has passed."""
        count = AttemptManager.expire_overdue()
        app.logger.info("Expired %d overdue attempts", count)

    return app


app = create_app()

if __name__ == '__main__':
    app.run(debug=app.config['DEBUG'])

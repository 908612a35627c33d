import os
import logging
from dotenv import load_dotenv
load_dotenv()
from flask import Flask, jsonify
from flask_cors import CORS
from flask_migrate import Migrate
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
from config import config_dict, ProdConfig
from models import db
from routes.courses import course_bp, lecture_bp
from routes.enrolments import enrolment_bp
from routes.coupons import coupon_bp
from routes.payments import payment_bp
from routes.categories import category_bp
from routes.assignments import assignment_bp
from routes.messages import message_bp

logger = logging.getLogger(__name__)

migrate = Migrate()


def create_app(config_name=None, config_overrides=None):
    app = Flask(__name__)

    env = (config_name or os.environ.get("FLASK_ENV", "production")).lower()
    app.config.from_object(config_dict.get(env, ProdConfig))
    if config_overrides:
        app.config.update(config_overrides)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Environment: %s", env)

    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}}, supports_credentials=True)

    db.init_app(app)
    migrate.init_app(app, db)

    @app.route('/')
    def home():
        return "Welcome to the e-learning API!"

    app.register_blueprint(course_bp, url_prefix='/api/courses')
    app.register_blueprint(lecture_bp, url_prefix='/api/lectures')
    app.register_blueprint(enrolment_bp, url_prefix='/api/enrollments')
    app.register_blueprint(coupon_bp, url_prefix='/api/coupons')
    app.register_blueprint(payment_bp, url_prefix='/api/payments')
    app.register_blueprint(category_bp, url_prefix='/api/categories')
    app.register_blueprint(assignment_bp, url_prefix='/api/assignments')
    app.register_blueprint(message_bp, url_prefix='/api/messages')

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(e):
        db.session.rollback()
        logger.error("Database error: %s", e, exc_info=True)
        return jsonify({"error": "Internal server error"}), 500

    return app


app = create_app()

if __name__ == '__main__':
    app.run(debug=app.config.get('DEBUG', False))

# FILE: edutrack/__init__.py
from flask import Flask, request
from config import Config
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_cors import CORS

# Extensions are declared here and bound to an app inside create_app
db = SQLAlchemy()
migrate = Migrate()
login = LoginManager()
limiter = Limiter(key_func=get_remote_address)
cors = CORS()


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.json.sort_keys = False
    app.logger.setLevel(app.config['LOG_LEVEL'])

    db.init_app(app)
    migrate.init_app(app, db)
    login.init_app(app)
    limiter.init_app(app)
    cors.init_app(
        app,
        resources={r'/api/*': {'origins': app.config['FRONTEND_URL']}},
        supports_credentials=True,
        expose_headers=['X-Captcha-Id'],
    )

    from edutrack.errors import bp as errors_bp
    app.register_blueprint(errors_bp)

    from edutrack.auth import bp as auth_bp
    app.register_blueprint(auth_bp, url_prefix='/api/auth')

    from edutrack.main import bp as main_bp
    app.register_blueprint(main_bp, url_prefix='/api')

    from edutrack.student import bp as student_bp
    app.register_blueprint(student_bp, url_prefix='/api/students')

    from edutrack.teacher import bp as teacher_bp
    app.register_blueprint(teacher_bp, url_prefix='/api/teachers')

    from edutrack.parent import bp as parent_bp
    app.register_blueprint(parent_bp, url_prefix='/api/parents')

    from edutrack.users import bp as users_bp
    app.register_blueprint(users_bp, url_prefix='/api/users')

    @app.after_request
    def log_request(response):
        if request.path.startswith('/api'):
            app.logger.info(f'{request.method} {request.path} {response.status_code}')
        return response

    # Tables that do not exist yet are created on start-up; schema changes
    # still go through Flask-Migrate.
    with app.app_context():
        from edutrack import models
        db.create_all()

    return app

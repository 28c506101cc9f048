from flask import Flask
from flask_cors import CORS
from config import Config
from errors import register_error_handlers
from extensions import mail
from logger import get_logger
from models import db

logger = get_logger(__name__)


def create_app(config_class=Config):
    app = Flask(__name__)

    # 1. Load Configuration
    app.config.from_object(config_class)

    # 2. Enable CORS (Allows Frontend to talk to Backend)
    CORS(app, origins=app.config['CORS_ORIGINS'], supports_credentials=True)

    # 3. Initialize Extensions
    db.init_app(app)
    mail.init_app(app)

    # 4. Register Blueprints (Routes) and JSON error handlers
    from routes import main
    app.register_blueprint(main)
    register_error_handlers(app)

    # 5. Create Tables Automatically
    with app.app_context():
        db.create_all()

    logger.info(f"Ledgerly API ready ({config_class.__name__})")
    return app


app = create_app()

if __name__ == '__main__':
    app.run(debug=True)

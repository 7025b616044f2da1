from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from spotdiff.config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

SOCKET_NAMESPACE = '/ws'


def create_app(config_class=Config, scheduler=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = [flask_app.config['FRONTEND_URL']]

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins,
         methods=['GET', 'POST', 'PUT', 'DELETE'])

    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from spotdiff.main import main
    flask_app.register_blueprint(main)

    from spotdiff.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api')

    # The session controller owns every live room for this process
    from spotdiff.services.session import build_session_controller
    flask_app.extensions['session_controller'] = build_session_controller(flask_app, socketio, scheduler=scheduler)

    from spotdiff.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from spotdiff.models import MasterImage
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed a couple of image pairs to build rooms from
            samples = [
                ('Harbour', [{'id': 'boat', 'x': 120, 'y': 80, 'radius': 24},
                             {'id': 'gull', 'x': 410, 'y': 42, 'radius': 18}]),
                ('Kitchen', [{'id': 'kettle', 'x': 300, 'y': 210, 'radius': 30}]),
            ]
            for name, differences in samples:
                slug = name.lower()
                db.session.add(MasterImage(
                    name=name,
                    original_url=f'/images/{slug}-original.png',
                    modified_url=f'/images/{slug}-modified.png',
                    differences=differences,
                ))

            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
